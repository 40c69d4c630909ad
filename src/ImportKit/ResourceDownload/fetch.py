# === NAVMAP v1 ===
# {
#   "module": "ImportKit.ResourceDownload.fetch",
#   "purpose": "Async fetch worker streaming one resource to disk atomically",
#   "sections": [
#     {
#       "id": "build-http-client",
#       "name": "build_http_client",
#       "anchor": "function-build-http-client",
#       "kind": "function"
#     },
#     {
#       "id": "stream-to-file",
#       "name": "stream_to_file",
#       "anchor": "function-stream-to-file",
#       "kind": "function"
#     },
#     {
#       "id": "fetch-resource",
#       "name": "fetch_resource",
#       "anchor": "function-fetch-resource",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""
Fetch worker for ResourceDownload.

Performs exactly one GET per call and streams the body into a temporary
``.part-*.tmp`` file next to the target, promoting it with ``os.replace``
only after the whole body has been written and fsynced. On any failure the
temporary file (and a target file, should one exist) is removed, so a later
run never mistakes a partial file for a finished download.

Errors are raised internally as :class:`NetworkError` / :class:`FilesystemError`
and converted to a failed :class:`FetchOutcome` at the function boundary; the
caller never sees an exception for a single failed resource.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

import httpx

from .config.models import HttpClientConfig
from .errors import FilesystemError, NetworkError
from .types import FetchOutcome

__all__ = ["build_http_client", "fetch_resource", "stream_to_file"]

logger = logging.getLogger(__name__)


def build_http_client(
    cfg: HttpClientConfig,
    *,
    concurrency_limit: int,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """Build the async client shared by all fetches of one run.

    Only connection establishment is bounded; read, write and pool waits have
    no deadline.
    """
    timeout = httpx.Timeout(None, connect=cfg.timeout_connect_s)
    max_connections = cfg.max_connections or concurrency_limit
    limits = httpx.Limits(
        max_connections=max_connections,
        max_keepalive_connections=max_connections,
    )
    if transport is None:
        transport = httpx.AsyncHTTPTransport(
            retries=cfg.connect_retries,
            verify=cfg.verify_tls,
            limits=limits,
        )

    client = httpx.AsyncClient(
        transport=transport,
        timeout=timeout,
        follow_redirects=cfg.follow_redirects,
        headers={"User-Agent": cfg.user_agent, "Accept": "*/*"},
    )
    logger.debug(
        f"HTTPX async client created: connect_timeout={cfg.timeout_connect_s}s, "
        f"max_connections={max_connections}"
    )
    return client


def _remove_quietly(path: Optional[Path]) -> None:
    """Best-effort unlink; failures are logged and never raised."""
    if path is None:
        return
    try:
        path.unlink(missing_ok=True)
    except (OSError, ValueError) as e:
        logger.warning(f"Failed to remove partial file {path}: {e}")


async def stream_to_file(
    client: httpx.AsyncClient,
    url: str,
    dest: Path,
    *,
    chunk_size: int = 1 << 16,
) -> int:
    """
    Stream ``url`` into ``dest`` atomically.

    File writes and the final ``fsync`` run on the event loop thread; while a
    large body is flushed to disk the other in-flight fetches do not advance.

    Args:
        client: Shared async client
        url: Resource URL
        dest: Final path; its directory must exist
        chunk_size: Stream chunk size in bytes

    Returns:
        Number of bytes written

    Raises:
        NetworkError: Connect timeout, transport failure or non-2xx status
        FilesystemError: The temporary file cannot be written or promoted
    """
    tmp_path: Optional[Path] = None
    bytes_written = 0

    try:
        try:
            fd, tmp_name = tempfile.mkstemp(dir=dest.parent, prefix=".part-", suffix=".tmp")
        except OSError as e:
            raise FilesystemError(f"Cannot create temporary file: {e}", path=dest) from e
        tmp_path = Path(tmp_name)

        with os.fdopen(fd, "wb") as sink:
            try:
                async with client.stream("GET", url) as response:
                    response.raise_for_status()
                    async for chunk in response.aiter_bytes(chunk_size):
                        if not chunk:
                            continue
                        try:
                            sink.write(chunk)
                        except OSError as e:
                            raise FilesystemError(f"Write error: {e}", path=tmp_path) from e
                        bytes_written += len(chunk)
            except httpx.HTTPStatusError as e:
                raise NetworkError(
                    f"HTTP error: {e.response.status_code}",
                    url=url,
                    reason="http-status",
                    http_status=e.response.status_code,
                ) from e
            except httpx.TimeoutException as e:
                raise NetworkError(f"Timeout: {e}", url=url, reason="timeout") from e
            except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
                # malformed hosts (IDNA) and unencodable URLs fail while building the request
                raise NetworkError(f"Network error: {e}", url=url, reason="conn-error") from e

            try:
                sink.flush()
                os.fsync(sink.fileno())
            except OSError as e:
                raise FilesystemError(f"Write error: {e}", path=tmp_path) from e

        try:
            os.replace(tmp_path, dest)
        except (OSError, ValueError) as e:
            raise FilesystemError(f"Rename error: {e}", path=dest) from e
        tmp_path = None
        return bytes_written

    except BaseException:
        _remove_quietly(tmp_path)
        raise


async def fetch_resource(
    client: httpx.AsyncClient,
    url: str,
    target_path: Path,
    *,
    chunk_size: int = 1 << 16,
) -> FetchOutcome:
    """
    Fetch one resource and report a typed outcome.

    Args:
        client: Shared async client
        url: Source URL from the record
        target_path: ``<import dir>/<target name>``
        chunk_size: Stream chunk size in bytes

    Returns:
        ``FetchOutcome.resolved(target_name)`` on success, otherwise a failed
        outcome carrying the reason code, error class and HTTP status.
    """
    target_name = target_path.name
    try:
        bytes_written = await stream_to_file(client, url, target_path, chunk_size=chunk_size)
    except NetworkError as e:
        _remove_quietly(target_path)
        return FetchOutcome.failed(
            target_name,
            e.reason,
            error_class="network",
            http_status=e.http_status,
            message=str(e),
        )
    except FilesystemError as e:
        _remove_quietly(target_path)
        return FetchOutcome.failed(
            target_name,
            e.reason,
            error_class="filesystem",
            message=str(e),
        )

    logger.debug(f"Downloaded {url} → {target_path} ({bytes_written} bytes)")
    return FetchOutcome.resolved(target_name, bytes_written=bytes_written)
