"""Process topology — FORK (one process) or CLUSTER (one worker per CPU).

Usage:
    supervisor = Supervisor(settings, parse_mode("cluster"))
    sys.exit(supervisor.run())
"""

from emporium.supervisor.modes import Mode, Role, current_role, parse_mode
from emporium.supervisor.supervisor import Supervisor, bind_socket, build_config

__all__ = [
    "Mode",
    "Role",
    "Supervisor",
    "bind_socket",
    "build_config",
    "current_role",
    "parse_mode",
]
