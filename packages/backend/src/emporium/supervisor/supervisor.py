"""Worker supervisor — run one listener, or one per CPU with re-forking.

Learn: FORK mode runs uvicorn in this process. CLUSTER mode works like
a prefork server: the primary binds the port once, then starts one
worker process per logical CPU and hands each the same listening
socket, so the kernel spreads incoming connections across them.

Whenever a worker exits, for any reason, the primary starts exactly one
replacement. There is no crash-loop ceiling; `restart_delay` (seconds)
is the only throttle and defaults to 0.

Workers share nothing but the message store. A chat post broadcast by
one worker reaches only the clients connected to that worker.
"""

import multiprocessing
import multiprocessing.connection
import os
import signal
import socket
import threading
from multiprocessing.context import BaseContext
from multiprocessing.process import BaseProcess
from typing import Callable, Optional

import structlog
import uvicorn

from emporium.config import Settings
from emporium.errors import TransportError, WorkerExit
from emporium.logs import configure_logging
from emporium.supervisor.modes import ROLE_ENV, Mode, Role

logger = structlog.get_logger()

# How often the primary wakes up to check its stop flag.
POLL_INTERVAL = 0.5
# How long stop() waits for workers before killing them.
STOP_TIMEOUT = 10.0


def build_config(settings: Settings) -> uvicorn.Config:
    """uvicorn config for one worker; the app is built fresh in each process."""
    return uvicorn.Config(
        "emporium.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_config=None,
        log_level=settings.log_level.lower(),
    )


def bind_socket(host: str, port: int) -> socket.socket:
    """Bind the listening socket. Raises TransportError on failure."""
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    try:
        sock.bind((host, port))
    except OSError as e:
        sock.close()
        raise TransportError(f"Could not bind {host}:{port}: {e.strerror or e}") from e
    sock.set_inheritable(True)
    return sock


def serve(config: uvicorn.Config, sock: socket.socket, role: Role) -> int:
    """Serve on an already bound socket until uvicorn shuts down. Returns the exit code."""
    os.environ[ROLE_ENV] = role.value
    logger.info(
        "server.started",
        url=f"http://localhost:{config.port}",
        role=role.value,
        pid=os.getpid(),
    )
    code = 1
    server = uvicorn.Server(config)
    try:
        server.run(sockets=[sock])
        # run() returns normally when lifespan startup fails
        code = 0 if server.started else 1
    except SystemExit as e:
        code = e.code if isinstance(e.code, int) else 1
        raise
    finally:
        logger.info("process.exit", code=code, pid=os.getpid())
    return code


def _exited(code: int) -> int:
    logger.info("process.exit", code=code, pid=os.getpid())
    return code


def run_worker(config: uvicorn.Config, sock: socket.socket) -> None:
    """Entry point of a CLUSTER worker process."""
    configure_logging(config.log_level or "info", role=Role.WORKER.value)
    code = serve(config, sock, Role.WORKER)
    if code:
        raise SystemExit(code)


class Supervisor:
    """Chooses and runs the process topology for one `emporium serve`."""

    def __init__(
        self,
        settings: Settings,
        mode: Mode,
        *,
        workers: Optional[int] = None,
        context: Optional[BaseContext] = None,
        target: Callable[..., None] = run_worker,
        config: Optional[uvicorn.Config] = None,
    ):
        self.settings = settings
        self.mode = mode
        self.workers = workers or settings.workers or os.cpu_count() or 1
        self.restart_delay = settings.restart_delay
        self.processes: list[BaseProcess] = []
        self.exits: list[WorkerExit] = []
        self.should_exit = threading.Event()
        self._context = context or multiprocessing.get_context("spawn")
        self._target = target
        self._config = config or build_config(settings)
        self._socket: Optional[socket.socket] = None
        self._spawned = 0

    def run(self) -> int:
        if self.mode is Mode.CLUSTER:
            return self.run_cluster()
        return self.run_fork()

    # ─── FORK ────────────────────────────────────────────────

    def run_fork(self) -> int:
        """Serve in this process. A bind failure is logged, not fatal."""
        sock = self._bind()
        if sock is None:
            return _exited(1)
        try:
            return serve(self._config, sock, Role.SINGLETON)
        finally:
            sock.close()

    # ─── CLUSTER ─────────────────────────────────────────────

    def run_cluster(self) -> int:
        os.environ[ROLE_ENV] = Role.PRIMARY.value
        logger.info("cluster.primary_started", pid=os.getpid(), workers=self.workers)
        self._socket = self._bind()
        if self._socket is None:
            return _exited(1)

        self._install_signal_handlers()
        try:
            self.start_workers()
            while not self.should_exit.is_set():
                self.wait_for_exit(POLL_INTERVAL)
                self.reap()
        finally:
            self.stop()
            self._socket.close()
            self._socket = None
        logger.info("cluster.primary_stopped", restarts=len(self.exits))
        return _exited(0)

    def start_workers(self) -> None:
        """Top the pool up to the configured worker count."""
        for _ in range(self.workers - len(self.processes)):
            self.spawn()

    def spawn(self) -> BaseProcess:
        self._spawned += 1
        process = self._context.Process(
            target=self._target,
            kwargs={"config": self._config, "sock": self._socket},
            name=f"emporium-worker-{self._spawned}",
        )
        process.start()
        self.processes.append(process)
        logger.info("cluster.worker_forked", pid=process.pid, live=len(self.processes))
        return process

    def wait_for_exit(self, timeout: float) -> None:
        """Block until a worker exits, the timeout passes, or stop is requested."""
        sentinels = [p.sentinel for p in self.processes]
        if sentinels:
            multiprocessing.connection.wait(sentinels, timeout=timeout)
        else:
            self.should_exit.wait(timeout)

    def reap(self) -> list[WorkerExit]:
        """Collect exited workers and start one replacement for each."""
        exits = []
        for process in list(self.processes):
            if process.is_alive():
                continue
            process.join()
            self.processes.remove(process)
            exit_ = WorkerExit(pid=process.pid, exitcode=process.exitcode)
            self.exits.append(exit_)
            exits.append(exit_)
            logger.warning(
                "cluster.worker_died",
                pid=exit_.pid,
                exitcode=exit_.exitcode,
                signal=exit_.signal,
            )
            if self.should_exit.is_set():
                continue
            if self.restart_delay and self.should_exit.wait(self.restart_delay):
                continue
            self.spawn()
        return exits

    def stop(self, timeout: float = STOP_TIMEOUT) -> None:
        """Terminate every worker, killing the ones that do not stop in time."""
        self.should_exit.set()
        for process in self.processes:
            if process.is_alive():
                process.terminate()
        for process in self.processes:
            process.join(timeout)
            if process.is_alive():
                logger.warning("cluster.worker_killed", pid=process.pid)
                process.kill()
                process.join()
        self.processes.clear()

    # ─── Helpers ─────────────────────────────────────────────

    def _bind(self) -> Optional[socket.socket]:
        """Bind the port, or log the failure and idle until told to stop."""
        try:
            return bind_socket(self.settings.host, self.settings.port)
        except TransportError as e:
            logger.error("server.transport_error", error=str(e), port=self.settings.port)
            self._install_signal_handlers()
            while not self.should_exit.wait(POLL_INTERVAL):
                pass
            return None

    def _install_signal_handlers(self) -> None:
        if threading.current_thread() is not threading.main_thread():
            return
        for sig in (signal.SIGINT, signal.SIGTERM):
            signal.signal(sig, self._handle_signal)

    def _handle_signal(self, signum, frame) -> None:
        logger.info("process.signal", signal=signal.Signals(signum).name)
        self.should_exit.set()
