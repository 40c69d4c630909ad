# === NAVMAP v1 ===
# {
#   "module": "ImportKit.ResourceDownload.downloader",
#   "purpose": "Resolve remote resource references in record batches into local files",
#   "sections": [
#     {
#       "id": "downloadrun",
#       "name": "DownloadRun",
#       "anchor": "class-downloadrun",
#       "kind": "class"
#     },
#     {
#       "id": "download-resources",
#       "name": "download_resources",
#       "anchor": "function-download-resources",
#       "kind": "function"
#     },
#     {
#       "id": "aprocess",
#       "name": "aprocess",
#       "anchor": "function-aprocess",
#       "kind": "function"
#     },
#     {
#       "id": "process",
#       "name": "process",
#       "anchor": "function-process",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Resource download orchestration.

**Purpose**
-----------
Rewrite the resource fields of a record batch (image URLs and comma-separated
image lists) to the names of local copies under ``<base>/<import_subdir>``,
downloading each distinct resource at most once.

**Flow**
--------
1. Ensure the import directory exists (:class:`PreconditionError` otherwise).
2. :func:`iter_fetch_tasks` lazily yields one task per reference.
3. :func:`run_bounded` drains the tasks with ``concurrency_limit`` handlers.
4. Each handler consults the run's :class:`ResourceCache`, then the disk, and
   only then dispatches :func:`fetch_resource`.
5. :func:`apply_outcome` writes the outcome back by record index.
6. :func:`rejoin_list_fields` restores the delimited strings of the fields split in step 2.

**Scope**
---------
Everything mutable (cache, counters) lives on a :class:`DownloadRun`
created per call, so repeated calls never see each other's entries.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Iterable, MutableMapping, MutableSequence, Optional, Union

import httpx

from .cache import ResourceCache, existing_outcome
from .config.models import ResourceDownloadConfig
from .directories import DirectoryResolver, StaticDirectoryResolver, ensure_import_dir
from .enumerator import iter_fetch_tasks
from .errors import log_fetch_failure
from .fetch import build_http_client, fetch_resource
from .naming import target_path_for
from .progress import LoggingProgressSink, ProgressSink
from .rewriter import apply_outcome, rejoin_list_fields
from .scheduler import run_bounded
from .summary import RunSummary
from .types import FetchOutcome, FetchTask

__all__ = ["DownloadRun", "aprocess", "download_resources", "process"]

logger = logging.getLogger(__name__)

Record = MutableMapping[str, Any]
DirectoryLike = Union[DirectoryResolver, Path, str]


class DownloadRun:
    """State of one ``process`` call: the arena, the cache and the counters."""

    def __init__(
        self,
        records: MutableSequence[Record],
        config: ResourceDownloadConfig,
        import_dir: Path,
        client: httpx.AsyncClient,
        progress: ProgressSink,
    ) -> None:
        self.records = records
        self.config = config
        self.import_dir = import_dir
        self.client = client
        self.progress = progress
        self.cache = ResourceCache()
        self.split_fields: set[tuple[int, str]] = set()
        self.summary = RunSummary(records=len(records))

    async def handle(self, task: FetchTask) -> None:
        """Resolve one task: cache, then disk, then network."""
        self.summary.tasks += 1

        if task.target_name not in self.cache:
            existing = existing_outcome(target_path_for(self.import_dir, task.target_name))
            if existing is not None:
                logger.debug(f"Using existing file for {task.target_name}")
                self.summary.existing_skipped += 1
                self._apply(task, existing)
                return

        entry, created = self.cache.lookup_or_create(task.target_name, lambda: self._fetch(task))
        if not created:
            self.summary.cache_hits += 1

        outcome = await entry.wait()
        self._apply(task, outcome)

    async def _fetch(self, task: FetchTask) -> FetchOutcome:
        entry = self.cache.get(task.target_name)
        if entry is not None:
            entry.mark_in_flight()
        self.summary.fetches_dispatched += 1
        self.progress.advance()

        outcome = await fetch_resource(
            self.client,
            task.source_url,
            target_path_for(self.import_dir, task.target_name),
            chunk_size=self.config.chunk_size_bytes,
        )

        if outcome.ok:
            self.summary.bytes_written += outcome.bytes_written
        else:
            self.summary.failures_by_reason[outcome.kind] += 1
            message = log_fetch_failure(
                logger,
                url=task.source_url,
                target_name=task.target_name,
                reason_code=outcome.kind,
                http_status=outcome.http_status,
                error_details=outcome.message,
            )
            self.progress.warning(message)
        return outcome

    def _apply(self, task: FetchTask, outcome: FetchOutcome) -> None:
        if outcome.ok:
            self.summary.resolved += 1
        else:
            self.summary.failed += 1
        apply_outcome(self.records, task, outcome)


def _as_resolver(directory: DirectoryLike) -> DirectoryResolver:
    if isinstance(directory, (str, Path)):
        return StaticDirectoryResolver(directory)
    return directory


def _as_arena(records: Iterable[Record]) -> MutableSequence[Record]:
    # a list of the same record objects still mutates the caller's records
    if isinstance(records, MutableSequence):
        return records
    return list(records)


async def download_resources(
    records: Iterable[Record],
    config: Optional[ResourceDownloadConfig] = None,
    *,
    directory_resolver: DirectoryLike,
    progress: Optional[ProgressSink] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> RunSummary:
    """
    Download every resource referenced by ``records`` and rewrite the fields.

    Args:
        records: Batch of records, mutated in place
        config: Engine configuration (defaults apply when None)
        directory_resolver: Supplies the base storage path
        progress: Progress/log sink (logging sink when None)
        transport: Optional transport for the client built by this call
        client: Optional pre-built client; left open on return

    Returns:
        RunSummary with the run's counters

    Raises:
        PreconditionError: If the import directory cannot be created
    """
    config = config or ResourceDownloadConfig()
    progress = progress or LoggingProgressSink()
    arena = _as_arena(records)

    import_dir = ensure_import_dir(_as_resolver(directory_resolver), config.import_subdir)
    if config.overwrite_existing:
        logger.warning("overwrite_existing is set but files already on disk are still reused")

    progress.start(len(arena))
    own_client = client is None
    if client is None:
        client = build_http_client(
            config.http,
            concurrency_limit=config.concurrency_limit,
            transport=transport,
        )

    run = DownloadRun(arena, config, import_dir, client, progress)
    tasks = iter_fetch_tasks(
        arena,
        config.scalar_fields,
        config.list_fields,
        delimiter=config.list_delimiter,
        split_fields=run.split_fields,
    )
    try:
        await run_bounded(tasks, run.handle, config.concurrency_limit)
    finally:
        if own_client:
            await client.aclose()
        rejoin_list_fields(arena, run.split_fields, config.list_delimiter)
        progress.finish()

    logger.debug(f"Resource cache held {len(run.cache)} distinct target names")
    logger.info(
        f"Resolved {run.summary.resolved}/{run.summary.tasks} resource references "
        f"({run.summary.fetches_dispatched} fetches, {run.summary.failed} failed)"
    )
    return run.summary


async def aprocess(
    records: Iterable[Record],
    config: Optional[ResourceDownloadConfig] = None,
    *,
    directory_resolver: DirectoryLike,
    progress: Optional[ProgressSink] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> None:
    """Coroutine form of :func:`process` for callers already inside a loop."""
    await download_resources(
        records,
        config,
        directory_resolver=directory_resolver,
        progress=progress,
        transport=transport,
    )


def process(
    records: Iterable[Record],
    config: Optional[ResourceDownloadConfig] = None,
    *,
    directory_resolver: DirectoryLike,
    progress: Optional[ProgressSink] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> None:
    """Resolve resource fields of ``records`` in place; blocks until done.

    Individual fetch failures never raise: the affected fields are cleared and
    a warning is reported. Only a :class:`PreconditionError` escapes.
    """
    asyncio.run(
        aprocess(
            records,
            config,
            directory_resolver=directory_resolver,
            progress=progress,
            transport=transport,
        )
    )
