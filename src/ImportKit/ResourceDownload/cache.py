# === NAVMAP v1 ===
# {
#   "module": "ImportKit.ResourceDownload.cache",
#   "purpose": "Per-run resource cache enforcing at most one fetch per target name",
#   "sections": [
#     {
#       "id": "resourcecache",
#       "name": "ResourceCache",
#       "anchor": "class-resourcecache",
#       "kind": "class"
#     },
#     {
#       "id": "existing-outcome",
#       "name": "existing_outcome",
#       "anchor": "function-existing-outcome",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Resource cache for one download run.

The cache maps a target name to the :class:`CacheEntry` of its fetch. The
first task for a name registers the entry and schedules the fetch; every later
task attaches to the same entry and observes the same outcome, whatever state
the entry is in when it arrives.

**Thread Safety:**

The check-and-register step runs under a lock, so at most one fetch is
registered per name even when lookups come from worker threads.

**Lifetime:**

One cache per ``process`` call, owned by the run context. Nothing is
persisted; cross-run reuse happens through the files on disk
(:func:`existing_outcome`).
"""

from __future__ import annotations

import asyncio
import logging
import threading
from pathlib import Path
from typing import Awaitable, Callable, Optional

from .types import CacheEntry, FetchOutcome

__all__ = ["ResourceCache", "existing_outcome"]

logger = logging.getLogger(__name__)


def existing_outcome(target_path: Path) -> Optional[FetchOutcome]:
    """Return a resolved outcome if ``target_path`` is already a file on disk.

    The check is unconditional: ``overwrite_existing`` is not consulted.
    """
    if target_path.is_file():
        return FetchOutcome.resolved(target_path.name, kind="exists")
    return None


class ResourceCache:
    """Map from target name to the entry of its single fetch.

    Example:
        >>> cache = ResourceCache()
        >>> entry, created = cache.lookup_or_create("a.jpg", lambda: fetch("a.jpg"))
        >>> outcome = await entry.wait()
    """

    def __init__(self) -> None:
        self._entries: dict[str, CacheEntry] = {}
        self._mutex = threading.Lock()

    def lookup_or_create(
        self,
        target_name: str,
        factory: Callable[[], Awaitable[FetchOutcome]],
    ) -> tuple[CacheEntry, bool]:
        """Return the entry for ``target_name``, creating it on first use.

        On a miss the entry is registered in the pending state and the
        awaitable produced by ``factory`` is scheduled on the running loop.
        ``factory`` is only called on a miss.

        Returns:
            Tuple of (entry, created)
        """
        with self._mutex:
            entry = self._entries.get(target_name)
            if entry is not None:
                logger.debug(f"Cache hit for {target_name} ({entry.state.value})")
                return entry, False

            entry = CacheEntry(target_name)
            self._entries[target_name] = entry
            entry.attach(asyncio.ensure_future(factory()))
            return entry, True

    def get(self, target_name: str) -> Optional[CacheEntry]:
        with self._mutex:
            return self._entries.get(target_name)

    def __contains__(self, target_name: object) -> bool:
        with self._mutex:
            return target_name in self._entries

    def __len__(self) -> int:
        with self._mutex:
            return len(self._entries)
