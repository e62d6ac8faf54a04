"""
Watch lifecycle for CmdWatcher.

This module subscribes each watch rule's folder to filesystem notifications
through watchdog, routes the notifications to the rule's EventRouter, and runs
the main loop until a shutdown is requested.
"""

import logging
import os
import signal
import threading
from typing import Callable, Iterable, List, Optional

from watchdog.events import (EVENT_TYPE_CREATED, EVENT_TYPE_DELETED,
                             EVENT_TYPE_MODIFIED, EVENT_TYPE_MOVED,
                             FileSystemEvent, FileSystemEventHandler)
from watchdog.observers import Observer

from cmdwatcher.actions import ActionExecutor
from cmdwatcher.config import EventType, WatchRule
from cmdwatcher.errors import RegistrationError
from cmdwatcher.reader import RetryingFileReader
from cmdwatcher.router import EventRouter

logger = logging.getLogger(__name__)

WATCHDOG_EVENT_TYPES = {
    EVENT_TYPE_CREATED: EventType.ADDED,
    EVENT_TYPE_DELETED: EventType.REMOVED,
    EVENT_TYPE_MODIFIED: EventType.MODIFIED,
}

# Access notifications; the file did not change.
IGNORED_EVENT_TYPES = {"opened", "closed", "closed_no_write"}


class ShutdownFlag:
    """Process-wide stop request. Starts unset; set() is the only transition."""

    def __init__(self):
        self._event = threading.Event()

    def set(self):
        self._event.set()

    def is_set(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._event.wait(timeout)


def install_signal_handlers(flag: ShutdownFlag, signals=(signal.SIGINT, signal.SIGTERM)):
    """Make SIGINT and SIGTERM set the shutdown flag."""

    def _handler(signum, frame):
        logger.info(f"Interrupt signal ({signum}) received. Stopping...")
        flag.set()

    for signum in signals:
        signal.signal(signum, _handler)
    return _handler


def _decode(path):
    return os.fsdecode(path)


class RuleEventHandler(FileSystemEventHandler):
    """
    Feeds watchdog events for one folder into a router callback.

    Callbacks for the folder are serialised with a lock, and a move is split
    into two unrelated RENAMED_OLD and RENAMED_NEW notifications.
    """

    def __init__(self, folder: str, route: Callable[[str, EventType], object]):
        super().__init__()
        self.folder = folder
        self.route = route
        self._lock = threading.Lock()

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type in IGNORED_EVENT_TYPES:
            return

        if event.event_type == EVENT_TYPE_MOVED:
            notifications = [
                (event.src_path, EventType.RENAMED_OLD),
                (event.dest_path, EventType.RENAMED_NEW),
            ]
        else:
            event_type = WATCHDOG_EVENT_TYPES.get(event.event_type, EventType.UNKNOWN)
            notifications = [(event.src_path, event_type)]

        with self._lock:
            for path, event_type in notifications:
                self._dispatch_one(_decode(path), event_type)

    def _dispatch_one(self, path, event_type):
        relative_path = os.path.relpath(path, self.folder)
        try:
            self.route(relative_path, event_type)
        except Exception as e:
            logger.error(
                f"Error handling {event_type.value} event for {path} "
                f"(folder {self.folder}): {e}",
                exc_info=True,
            )


class WatchManager:
    """
    Owns one watchdog observer per watch rule and the run-until-signalled loop.

    Attributes:
        rules: Watch rules to register.
        poll_interval: Seconds between shutdown checks in run().
        shutdown: Flag that ends run().
    """

    def __init__(
        self,
        rules: Iterable[WatchRule],
        executor: Optional[ActionExecutor] = None,
        reader: Optional[RetryingFileReader] = None,
        poll_interval: float = 0.1,
        shutdown: Optional[ShutdownFlag] = None,
        observer_factory: Callable = Observer,
    ):
        self.rules = list(rules)
        self.executor = executor or ActionExecutor()
        self.reader = reader or RetryingFileReader()
        self.poll_interval = poll_interval
        self.shutdown = shutdown or ShutdownFlag()
        self._observer_factory = observer_factory
        self._observers: List = []

    @property
    def active_count(self) -> int:
        return len(self._observers)

    def register(self, rule: WatchRule) -> bool:
        """
        Subscribe to a rule's folder.

        Returns:
            bool: True if the watch started, False if the rule was rejected.
        """
        try:
            if not os.path.exists(rule.folder):
                raise RegistrationError(rule.folder, "folder does not exist")
            if not os.path.isdir(rule.folder):
                raise RegistrationError(rule.folder, "not a directory")

            router = EventRouter(rule, executor=self.executor, reader=self.reader)
            handler = RuleEventHandler(rule.folder, router.route)
            observer = self._observer_factory()
            observer.schedule(handler, rule.folder, recursive=False)
            observer.start()
        except RegistrationError as e:
            logger.error(f"Error: {e}")
            return False
        except Exception as e:
            logger.error(f"Error: {RegistrationError(rule.folder, e)}", exc_info=True)
            return False

        self._observers.append(observer)
        logger.info(
            f"Watching {rule.folder} for '{rule.file_extension or '*'}' files "
            f"(events: {', '.join(et.value for et in rule.enabled_events()) or 'none'})"
        )
        return True

    def start(self) -> int:
        """Register every rule; returns the number of active watches."""
        for rule in self.rules:
            self.register(rule)
        logger.info(f"{self.active_count} of {len(self.rules)} watches active")
        return self.active_count

    def run(self) -> None:
        """Start all watches and block until the shutdown flag is set."""
        self.start()
        try:
            while not self.shutdown.is_set():
                self.shutdown.wait(self.poll_interval)
        finally:
            self.stop()
        logger.info("File monitoring stopped.")

    def stop(self) -> None:
        """Stop and join every observer. Commands already running are left alone."""
        for observer in self._observers:
            observer.stop()
        for observer in self._observers:
            observer.join(timeout=5.0)
        self._observers = []
