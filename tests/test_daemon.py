import logging
import os
import signal
from types import SimpleNamespace

import pytest

from cmdwatcher import config, daemon
from cmdwatcher.watcher import ShutdownFlag


@pytest.fixture
def status_logger():
    return logging.getLogger("cmdwatcher.test_daemon")


def make_manager(folders, shutdown=None):
    return SimpleNamespace(
        active_count=len(folders),
        rules=[SimpleNamespace(folder=f) for f in folders],
        shutdown=shutdown or ShutdownFlag(),
    )


def test_read_pid(tmp_path):
    pid_file = daemon.get_pid_file(str(tmp_path))
    assert daemon.read_pid(pid_file) is None

    with open(pid_file, "w") as f:
        f.write("1234\n")
    assert daemon.read_pid(pid_file) == 1234

    with open(pid_file, "w") as f:
        f.write("garbage")
    assert daemon.read_pid(pid_file) is None


def test_process_status_for_current_process():
    info = daemon.process_status(os.getpid())
    assert info["PID"] == os.getpid()
    assert info["Threads"] >= 1


def test_build_manager_uses_settings(tmp_path):
    settings = config._merge(config.DEFAULT_SETTINGS, {
        "reader": {"retry_count": 5, "retry_delay_ms": 250},
        "watcher": {"poll_interval_ms": 50},
    })
    manager = daemon.build_manager([], settings)

    assert manager.reader.retry_count == 5
    assert manager.reader.retry_delay == 0.25
    assert manager.poll_interval == 0.05
    assert not manager.shutdown.is_set()


def test_log_daemon_status(status_logger, caplog):
    manager = make_manager(["/w", "/x"])
    with caplog.at_level(logging.INFO, logger="cmdwatcher"):
        daemon.log_daemon_status(status_logger, manager)

    assert "Active Watches: 2 of 2" in caplog.text
    assert "Folders: /w, /x" in caplog.text
    assert f"PID: {os.getpid()}" in caplog.text


def test_periodic_status_logger_returns_when_shut_down(status_logger, caplog):
    shutdown = ShutdownFlag()
    shutdown.set()
    manager = make_manager(["/w"], shutdown=shutdown)

    with caplog.at_level(logging.INFO, logger="cmdwatcher"):
        daemon.periodic_status_logger(status_logger, manager, interval=60)

    assert "Daemon Status" not in caplog.text


class ImmediateSigtermContext:
    """Stands in for DaemonContext; delivers SIGTERM through the signal map on entry."""

    instances = []

    def __init__(self, pidfile=None, signal_map=None, files_preserve=None):
        self.pidfile = pidfile
        self.signal_map = signal_map
        self.files_preserve = files_preserve
        ImmediateSigtermContext.instances.append(self)

    def __enter__(self):
        self.signal_map[signal.SIGTERM](signal.SIGTERM, None)
        return self

    def __exit__(self, *exc_info):
        return False


def test_run_daemon_stops_on_sigterm(tmp_path, monkeypatch):
    ImmediateSigtermContext.instances = []
    monkeypatch.setattr(daemon.daemon, "DaemonContext", ImmediateSigtermContext)
    watch_dir = tmp_path / "w"
    watch_dir.mkdir()
    rule = config.WatchRule(folder=str(watch_dir), file_extension=".txt",
                            events={config.EventType.MODIFIED: True})
    log_dir = tmp_path / "logs"

    daemon.run_daemon([rule], config.DEFAULT_SETTINGS, str(log_dir))

    context = ImmediateSigtermContext.instances[0]
    assert set(context.signal_map) == {signal.SIGTERM, signal.SIGINT}
    assert context.pidfile.path == daemon.get_pid_file(str(log_dir))
    assert context.files_preserve
    log_text = (log_dir / "cmdwatcher.log").read_text()
    assert "Interrupt signal" in log_text
    assert "Active Watches: 1 of 1" in log_text
    assert "File monitoring stopped." in log_text
