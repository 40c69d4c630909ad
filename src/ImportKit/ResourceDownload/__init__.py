"""Public API for the ImportKit resource download engine.

Resolves remote resource references embedded in record fields into files
under a local import directory and rewrites each field to the local name.
"""

from __future__ import annotations

from .cache import ResourceCache
from .config import HttpClientConfig, ResourceDownloadConfig, load_config
from .directories import DirectoryResolver, StaticDirectoryResolver
from .downloader import DownloadRun, aprocess, download_resources, process
from .errors import FilesystemError, NetworkError, PreconditionError, ResourceDownloadError
from .progress import LoggingProgressSink, ProgressSink, TqdmProgressSink
from .row_modifier import ImageDownloader, RowModifier
from .summary import RunSummary, format_run_summary
from .types import CacheEntry, CacheState, FetchOutcome, FetchTask, FieldLocator

__all__ = [
    "CacheEntry",
    "CacheState",
    "DirectoryResolver",
    "DownloadRun",
    "FetchOutcome",
    "FetchTask",
    "FieldLocator",
    "FilesystemError",
    "HttpClientConfig",
    "ImageDownloader",
    "LoggingProgressSink",
    "NetworkError",
    "PreconditionError",
    "ProgressSink",
    "ResourceCache",
    "ResourceDownloadConfig",
    "ResourceDownloadError",
    "RowModifier",
    "RunSummary",
    "StaticDirectoryResolver",
    "TqdmProgressSink",
    "aprocess",
    "download_resources",
    "format_run_summary",
    "load_config",
    "process",
]
