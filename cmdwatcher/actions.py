"""Runs the configured command for a matched event."""

import logging
import subprocess
from typing import Optional

from cmdwatcher.config import WatchRule
from cmdwatcher.errors import CommandFailure
from cmdwatcher.templating import render

logger = logging.getLogger(__name__)


class ActionExecutor:
    """Templates and runs a rule's command, reporting failures without raising."""

    def perform(self, rule: WatchRule, absolute_path: str) -> Optional[int]:
        """
        Run the rule's command for one file.

        The command goes through the platform shell, inherits the standard
        streams and blocks until it exits.

        Args:
            rule: The watch rule that matched.
            absolute_path: Path of the changed file, substituted for ${file}.

        Returns:
            The exit status, or None if there is no command or it failed to spawn.
        """
        if not rule.command:
            logger.debug(f"No command configured for {rule.folder}; observing only.")
            return None

        command = render(rule.command, {"file": absolute_path})
        logger.info(f"Executing command: {command}")
        try:
            completed = subprocess.run(command, shell=True)
        except OSError as e:
            logger.error(
                f"Failed to start command {command!r} for {absolute_path} "
                f"(folder {rule.folder}): {e}"
            )
            return None

        if completed.returncode != 0:
            failure = CommandFailure(
                command, completed.returncode, folder=rule.folder, path=absolute_path
            )
            logger.error(f"Error: {failure}")
        return completed.returncode
