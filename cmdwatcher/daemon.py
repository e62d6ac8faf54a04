import os
import signal
import threading
import time

import daemon
import psutil
from daemon.pidfile import PIDLockFile

from cmdwatcher import logger as cw_logger
from cmdwatcher.actions import ActionExecutor
from cmdwatcher.reader import RetryingFileReader
from cmdwatcher.watcher import ShutdownFlag, WatchManager

DEFAULT_PID_FILENAME = "cmdwatcher.pid"
STATUS_INTERVAL = 300


def get_pid_file(log_dir):
    return os.path.join(log_dir, DEFAULT_PID_FILENAME)


def read_pid(pid_file):
    """
    Read the daemon PID from its lock file.

    Returns:
        int or None: The PID, or None if the file is missing or unreadable.
    """
    if not os.path.exists(pid_file):
        return None
    try:
        with open(pid_file, "r") as f:
            return int(f.read().strip())
    except (OSError, ValueError):
        return None


def process_status(pid):
    """
    Collect process information for a PID using psutil.

    Returns:
        dict: Ordered process properties, or None if the process is gone.
    """
    try:
        proc = psutil.Process(pid)
        return {
            "PID": proc.pid,
            "CPU %": proc.cpu_percent(interval=0.1),
            "Memory %": round(proc.memory_percent(), 2),
            "Memory RSS": proc.memory_info().rss,
            "Threads": proc.num_threads(),
            "Started At": time.strftime(
                "%Y-%m-%d %H:%M:%S", time.localtime(proc.create_time())
            ),
        }
    except psutil.NoSuchProcess:
        return None


def log_daemon_status(root_logger, manager):
    """
    Log daemon process information and the number of active watches.
    """
    status_info = process_status(os.getpid()) or {}
    status_info["Active Watches"] = f"{manager.active_count} of {len(manager.rules)}"
    status_info["Folders"] = ", ".join(rule.folder for rule in manager.rules)
    root_logger.info(
        "Daemon Status:\n" + "\n".join(f"{k}: {v}" for k, v in status_info.items())
    )


def periodic_status_logger(root_logger, manager, interval=STATUS_INTERVAL):
    """Log daemon status every `interval` seconds until the manager shuts down."""
    while not manager.shutdown.wait(interval):
        try:
            log_daemon_status(root_logger, manager)
        except psutil.Error as e:
            root_logger.error(f"Error logging daemon status: {e}")


def build_manager(rules, settings, shutdown=None):
    """Create a WatchManager from loaded rules and settings."""
    reader_cfg = settings.get("reader", {})
    watcher_cfg = settings.get("watcher", {})
    reader = RetryingFileReader(
        retry_count=int(reader_cfg.get("retry_count", 3)),
        retry_delay=float(reader_cfg.get("retry_delay_ms", 1000)) / 1000.0,
    )
    return WatchManager(
        rules,
        executor=ActionExecutor(),
        reader=reader,
        poll_interval=float(watcher_cfg.get("poll_interval_ms", 100)) / 1000.0,
        shutdown=shutdown,
    )


def run_daemon(rules, settings, log_dir):
    """
    Detach from the terminal and run the watchers until SIGTERM.

    Observers are created inside the daemon context because threads do not
    survive the fork.
    """
    log_cfg = settings.get("logging", {})
    os.makedirs(log_dir, exist_ok=True)
    root_logger = cw_logger.setup_logger(
        "cmdwatcher",
        log_dir,
        log_cfg.get("log_file", "cmdwatcher.log"),
        level=cw_logger.parse_level(log_cfg.get("level", "INFO")),
        console=False,
    )
    pid_file = get_pid_file(log_dir)
    root_logger.info(f"Starting daemon, pid file: {pid_file}")

    shutdown = ShutdownFlag()

    def _terminate(signum, frame):
        root_logger.info(f"Interrupt signal ({signum}) received. Stopping...")
        shutdown.set()

    context = daemon.DaemonContext(
        pidfile=PIDLockFile(pid_file),
        signal_map={signal.SIGTERM: _terminate, signal.SIGINT: _terminate},
        files_preserve=[
            handler.stream.fileno()
            for handler in root_logger.handlers
            if hasattr(handler, "stream") and hasattr(handler.stream, "fileno")
        ],
    )

    with context:
        manager = build_manager(rules, settings, shutdown=shutdown)
        status_thread = threading.Thread(
            target=periodic_status_logger,
            args=(root_logger, manager),
            daemon=True,
            name="CMW_StatusLogger",
        )
        status_thread.start()
        try:
            manager.start()
            log_daemon_status(root_logger, manager)
            while not shutdown.is_set():
                shutdown.wait(manager.poll_interval)
        except Exception as e:
            root_logger.error(f"Fatal error in daemon: {e}", exc_info=True)
            raise
        finally:
            manager.stop()
            root_logger.info("File monitoring stopped.")
