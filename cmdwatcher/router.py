"""
Event routing for a single watch rule.

Each notification is filtered by extension, existence and the rule's event
flags, and ends either dropped or handed to the ActionExecutor. Nothing is
queued or retried here.
"""

import logging
import os
from enum import Enum
from typing import Optional

from cmdwatcher.actions import ActionExecutor
from cmdwatcher.config import EventType, WatchRule
from cmdwatcher.errors import ReadUnavailable
from cmdwatcher.reader import RetryingFileReader

logger = logging.getLogger(__name__)

EVENT_MARKERS = {
    EventType.ADDED: "[+] File added",
    EventType.REMOVED: "[-] File removed",
    EventType.MODIFIED: "[*] File modified",
    EventType.RENAMED_OLD: "[~] File renamed (old name)",
    EventType.RENAMED_NEW: "[~] File renamed (new name)",
}

# Events after which the file is expected to have readable content.
CONTENT_EVENTS = (EventType.ADDED, EventType.MODIFIED, EventType.RENAMED_NEW)


class Outcome(str, Enum):
    """Terminal state of one routed event."""

    DROPPED = "dropped"
    EXECUTED = "executed"


class EventRouter:
    """
    Turns (relative path, event type) notifications for one folder into actions.

    Attributes:
        rule: The watch rule this router serves.
        executor: Runs the rule's command.
        reader: Reads file contents when the rule asks for them.
    """

    def __init__(
        self,
        rule: WatchRule,
        executor: Optional[ActionExecutor] = None,
        reader: Optional[RetryingFileReader] = None,
    ):
        self.rule = rule
        self.folder = rule.folder
        self.executor = executor or ActionExecutor()
        self.reader = reader or RetryingFileReader()

    def route(self, relative_path: str, event_type: EventType) -> Outcome:
        """
        Route one notification.

        Args:
            relative_path: Path of the changed file relative to the folder.
            event_type: Kind of change reported.

        Returns:
            Outcome.EXECUTED if the action ran, Outcome.DROPPED otherwise.
        """
        absolute_path = os.path.join(self.folder, relative_path)

        if self.rule.file_extension:
            _, ext = os.path.splitext(absolute_path)
            if ext != self.rule.file_extension:
                logger.debug(
                    f"Ignoring {absolute_path}: extension {ext!r} does not match "
                    f"{self.rule.file_extension!r}"
                )
                return Outcome.DROPPED

        if event_type != EventType.REMOVED and not os.path.exists(absolute_path):
            logger.warning(f"Warning: File does not exist: {absolute_path}")
            return Outcome.DROPPED

        marker = EVENT_MARKERS.get(event_type)
        if marker is None:
            logger.info(f"[?] Unknown event for file: {relative_path} (folder {self.folder})")
            return Outcome.DROPPED
        logger.info(f"{marker}: {relative_path} (folder {self.folder})")

        if not self.rule.is_enabled(event_type):
            logger.debug(f"{event_type.value} events are disabled for {self.folder}")
            return Outcome.DROPPED

        if self.rule.show_contents and event_type in CONTENT_EVENTS:
            self._log_contents(absolute_path)

        self.executor.perform(self.rule, absolute_path)
        return Outcome.EXECUTED

    def __call__(self, relative_path: str, event_type: EventType) -> Outcome:
        return self.route(relative_path, event_type)

    def _log_contents(self, absolute_path):
        try:
            lines = self.reader.read_lines(absolute_path)
        except ReadUnavailable as e:
            logger.error(f"Error: {e}")
            return
        logger.info(
            "--- File Contents: %s ---\n%s\n--- End of File ---",
            absolute_path,
            "\n".join(lines),
        )
