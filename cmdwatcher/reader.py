"""Retrying reads of files that may be mid-write when a notification fires."""

import logging
import time
from typing import Callable, List

from cmdwatcher.errors import ReadUnavailable

logger = logging.getLogger(__name__)


class RetryingFileReader:
    """
    Reads a file's lines, retrying while it is momentarily unavailable.

    Attributes:
        retry_count: Maximum number of open attempts.
        retry_delay: Seconds to sleep between attempts.
    """

    def __init__(
        self,
        retry_count: int = 3,
        retry_delay: float = 1.0,
        opener: Callable = open,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if retry_count < 1:
            raise ValueError("retry_count must be at least 1")
        self.retry_count = retry_count
        self.retry_delay = retry_delay
        self._open = opener
        self._sleep = sleep

    def read_lines(self, path: str) -> List[str]:
        """
        Read all lines of a file.

        Returns the lines of the first attempt that succeeds; no sleep follows
        the final attempt.

        Raises:
            ReadUnavailable: If every attempt fails.
        """
        for attempt in range(1, self.retry_count + 1):
            logger.debug(f"Reading file contents (attempt {attempt}): {path}")
            try:
                with self._open(path, "r", errors="replace") as f:
                    return [line.rstrip("\n") for line in f]
            except OSError as e:
                if attempt < self.retry_count:
                    logger.warning(
                        f"Attempt {attempt} to read {path} failed ({e}). "
                        f"Retrying in {self.retry_delay}s..."
                    )
                    self._sleep(self.retry_delay)

        raise ReadUnavailable(path, self.retry_count)
