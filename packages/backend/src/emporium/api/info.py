"""Process info endpoint — which worker answered, and what it runs on."""

import os
import platform
import resource
import sys

from fastapi import APIRouter

from emporium import __version__
from emporium import config
from emporium.supervisor.modes import current_role

router = APIRouter()


@router.get("/info")
async def process_info():
    """Describe the serving process."""
    usage = resource.getrusage(resource.RUSAGE_SELF)
    return {
        "version": __version__,
        "pid": os.getpid(),
        "parent_pid": os.getppid(),
        "role": current_role().value,
        "mode": config.settings.mode.upper(),
        "cpus": os.cpu_count(),
        "platform": platform.platform(),
        "python": sys.version.split()[0],
        "cwd": os.getcwd(),
        "max_rss_kb": usage.ru_maxrss,
    }
