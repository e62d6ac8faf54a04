"""
Error types raised and reported by CmdWatcher.

Only ConfigError is fatal to the process. The other errors are isolated to
the rule or event that produced them and are reported through logging.
"""


class CmdWatcherError(Exception):
    """Base class for all CmdWatcher errors."""


class ConfigError(CmdWatcherError):
    """Raised when a configuration file is missing or cannot be parsed."""


class RuleValidationError(CmdWatcherError):
    """Raised when a single watch rule record has a missing or mistyped field."""

    def __init__(self, message, field=None, kind=None, index=None):
        super().__init__(message)
        self.field = field
        self.kind = kind
        self.index = index


class RegistrationError(CmdWatcherError):
    """Raised when a folder cannot be subscribed to."""

    def __init__(self, folder, reason):
        super().__init__(f"Cannot watch folder {folder}: {reason}")
        self.folder = folder
        self.reason = reason


class ReadUnavailable(CmdWatcherError):
    """Raised when a file could not be read after all retries."""

    def __init__(self, path, attempts):
        super().__init__(
            f"Unable to open file after {attempts} attempts: {path}. "
            "The file may have been deleted or is inaccessible."
        )
        self.path = path
        self.attempts = attempts


class CommandFailure(CmdWatcherError):
    """Describes a command that exited with a non-zero status."""

    def __init__(self, command, returncode, folder=None, path=None):
        super().__init__(
            f"Command exited with status {returncode}: {command!r} "
            f"(folder={folder}, path={path})"
        )
        self.command = command
        self.returncode = returncode
        self.folder = folder
        self.path = path
