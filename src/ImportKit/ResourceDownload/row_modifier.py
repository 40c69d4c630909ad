"""Row modifiers operating on an import batch.

A row modifier owns a batch of records for the duration of ``process`` and
rewrites them in place. :class:`ImageDownloader` is the modifier that
localises image fields through the resource download engine.
"""

from __future__ import annotations

import abc
import logging
from typing import Any, MutableMapping, MutableSequence, Optional

from .config.models import ResourceDownloadConfig
from .directories import DirectoryResolver
from .downloader import process
from .progress import LoggingProgressSink, ProgressSink

__all__ = ["RowModifier", "ImageDownloader"]

logger = logging.getLogger(__name__)


class RowModifier(abc.ABC):
    """Base class for modifiers rewriting a batch of records."""

    def __init__(self, progress: Optional[ProgressSink] = None) -> None:
        self.progress: ProgressSink = progress or LoggingProgressSink()
        self._items: MutableSequence[MutableMapping[str, Any]] = []

    def set_items(self, items: MutableSequence[MutableMapping[str, Any]]) -> None:
        self._items = items

    def get_items(self) -> MutableSequence[MutableMapping[str, Any]]:
        return self._items

    @abc.abstractmethod
    def process(self) -> None:
        """Modify the items in place."""


class ImageDownloader(RowModifier):
    """Download the images referenced by the items and point fields at them.

    Example:
        >>> downloader = ImageDownloader(StaticDirectoryResolver("/srv/media"))
        >>> downloader.set_items(rows)
        >>> downloader.concurrent = 10
        >>> downloader.process()
    """

    def __init__(
        self,
        directory_resolver: DirectoryResolver,
        config: Optional[ResourceDownloadConfig] = None,
        progress: Optional[ProgressSink] = None,
        transport: Any = None,
    ) -> None:
        super().__init__(progress)
        self.directory_resolver = directory_resolver
        self.config = config or ResourceDownloadConfig()
        self.transport = transport

    @property
    def concurrent(self) -> int:
        """Number of images downloaded concurrently."""
        return self.config.concurrency_limit

    @concurrent.setter
    def concurrent(self, value: int) -> None:
        self.config = ResourceDownloadConfig.model_validate(
            {**self.config.model_dump(), "concurrency_limit": value}
        )

    @property
    def overwrite_existing(self) -> bool:
        """Stored for callers; files already on disk are currently always reused."""
        return self.config.overwrite_existing

    @overwrite_existing.setter
    def overwrite_existing(self, value: bool) -> None:
        self.config = ResourceDownloadConfig.model_validate(
            {**self.config.model_dump(), "overwrite_existing": bool(value)}
        )

    def process(self) -> None:
        process(
            self._items,
            self.config,
            directory_resolver=self.directory_resolver,
            progress=self.progress,
            transport=self.transport,
        )
