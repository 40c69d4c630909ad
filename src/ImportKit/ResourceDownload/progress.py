"""Progress and log sinks for resource download runs.

The engine reports through a small protocol: ``start(total)`` once with the
number of records, ``advance()`` once per dispatched network fetch,
``finish()`` once at the end, and ``warning(message)`` once per failed fetch.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol, TextIO, runtime_checkable

from tqdm import tqdm

__all__ = ["ProgressSink", "LoggingProgressSink", "TqdmProgressSink"]

logger = logging.getLogger(__name__)


@runtime_checkable
class ProgressSink(Protocol):
    def start(self, total: int) -> None: ...

    def advance(self) -> None: ...

    def finish(self) -> None: ...

    def warning(self, message: str) -> None: ...


class LoggingProgressSink:
    """Report progress through stdlib logging; the default sink."""

    def __init__(self, log: Optional[logging.Logger] = None) -> None:
        self._log = log or logger
        self.total = 0
        self.dispatched = 0

    def start(self, total: int) -> None:
        self.total = total
        self.dispatched = 0
        self._log.info(f"Downloading resources for {total} items")

    def advance(self) -> None:
        self.dispatched += 1
        self._log.debug(f"Dispatched fetch #{self.dispatched}")

    def finish(self) -> None:
        self._log.info(f"Resource download finished: {self.dispatched} fetches dispatched")

    def warning(self, message: str) -> None:
        # the failure itself is already logged with structured fields
        self._log.debug(message)


class TqdmProgressSink:
    """Render a console progress bar counting dispatched fetches."""

    def __init__(self, desc: str = "Fetching resources", file: Optional[TextIO] = None) -> None:
        self.desc = desc
        self.file = file
        self._bar: Optional[tqdm] = None

    def start(self, total: int) -> None:
        tqdm.write(f"Downloading resources for {total} items", file=self.file)
        # the fetch count is unknown until the batch is enumerated
        self._bar = tqdm(total=None, desc=self.desc, unit="file", file=self.file, leave=True)

    def advance(self) -> None:
        if self._bar is not None:
            self._bar.update(1)

    def finish(self) -> None:
        if self._bar is not None:
            self._bar.close()
            self._bar = None

    def warning(self, message: str) -> None:
        tqdm.write(message, file=self.file)
