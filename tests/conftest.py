import logging
import subprocess

import pytest


class CommandRecorder:
    """Stands in for subprocess.run and records the commands it was given."""

    def __init__(self):
        self.commands = []
        self.returncode = 0

    def __call__(self, command, shell=False, **kwargs):
        self.commands.append(command)
        return subprocess.CompletedProcess(command, self.returncode)


@pytest.fixture
def recorded_commands(monkeypatch):
    recorder = CommandRecorder()
    monkeypatch.setattr("cmdwatcher.actions.subprocess.run", recorder)
    return recorder


@pytest.fixture(autouse=True)
def reset_cmdwatcher_logger():
    """Drop handlers the CLI attached so later tests do not write to closed streams."""
    yield
    cw_logger = logging.getLogger("cmdwatcher")
    for handler in list(cw_logger.handlers):
        cw_logger.removeHandler(handler)
        handler.close()
    cw_logger.setLevel(logging.NOTSET)
