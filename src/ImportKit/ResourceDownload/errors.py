# === NAVMAP v1 ===
# {
#   "module": "ImportKit.ResourceDownload.errors",
#   "purpose": "Error taxonomy and failure logging helpers for resource downloads.",
#   "sections": [
#     {
#       "id": "resourcedownloaderror",
#       "name": "ResourceDownloadError",
#       "anchor": "class-resourcedownloaderror",
#       "kind": "class"
#     },
#     {
#       "id": "networkerror",
#       "name": "NetworkError",
#       "anchor": "class-networkerror",
#       "kind": "class"
#     },
#     {
#       "id": "filesystemerror",
#       "name": "FilesystemError",
#       "anchor": "class-filesystemerror",
#       "kind": "class"
#     },
#     {
#       "id": "preconditionerror",
#       "name": "PreconditionError",
#       "anchor": "class-preconditionerror",
#       "kind": "class"
#     },
#     {
#       "id": "get-actionable-error-message",
#       "name": "get_actionable_error_message",
#       "anchor": "function-get-actionable-error-message",
#       "kind": "function"
#     },
#     {
#       "id": "log-fetch-failure",
#       "name": "log_fetch_failure",
#       "anchor": "function-log-fetch-failure",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Error taxonomy and logging helpers for resource downloads.

Responsibilities
----------------
- Define the exception types raised inside the fetch worker
  (``NetworkError``, ``FilesystemError``) and by the run setup
  (``PreconditionError``).
- Translate HTTP status codes and reason codes into user-friendly remediation
  hints via :func:`get_actionable_error_message`.
- Centralise the per-failure warning through :func:`log_fetch_failure`.

Propagation
-----------
``NetworkError`` and ``FilesystemError`` never leave the fetch worker: they are
converted into a failed :class:`~ImportKit.ResourceDownload.types.FetchOutcome`
after cleanup. ``PreconditionError`` aborts the whole ``process`` call.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

__all__ = (
    "ResourceDownloadError",
    "NetworkError",
    "FilesystemError",
    "PreconditionError",
    "get_actionable_error_message",
    "log_fetch_failure",
)



class ResourceDownloadError(Exception):
    """Base class for resource download failures."""


class NetworkError(ResourceDownloadError):
    """Connect timeout, connection failure or non-success response."""

    def __init__(
        self,
        message: str,
        *,
        url: Optional[str] = None,
        reason: str = "conn-error",
        http_status: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.url = url
        self.reason = reason
        self.http_status = http_status


class FilesystemError(ResourceDownloadError):
    """Unable to write the sink or remove a partial file."""

    def __init__(self, message: str, *, path: Optional[Path] = None, reason: str = "write-error") -> None:
        super().__init__(message)
        self.path = path
        self.reason = reason


class PreconditionError(ResourceDownloadError):
    """The run cannot start, e.g. the import directory cannot be created."""

    def __init__(self, message: str, *, path: Optional[Path] = None) -> None:
        super().__init__(message)
        self.path = path


def get_actionable_error_message(
    http_status: Optional[int],
    reason_code: Optional[str],
) -> tuple[str, Optional[str]]:
    """Generate a user-friendly error message with an actionable suggestion.

    Args:
        http_status: HTTP status code from the failed request
        reason_code: Reason code describing the failure

    Returns:
        Tuple of (error_message, suggestion) where suggestion may be None

    Examples:
        >>> msg, suggestion = get_actionable_error_message(404, "http-status")
        >>> print(msg)
        Resource not found (HTTP 404)
    """

    if http_status == 401 or http_status == 403:
        return (
            f"Access denied (HTTP {http_status})",
            "Check that the resource URL is publicly reachable",
        )
    elif http_status == 404:
        return (
            "Resource not found (HTTP 404)",
            "The resource may have been moved or deleted. Fix the source record.",
        )
    elif http_status == 429:
        return (
            "Rate limit exceeded (HTTP 429)",
            "Lower the concurrency limit or retry later",
        )
    elif http_status and http_status >= 500:
        return (
            f"Server error (HTTP {http_status})",
            "The upstream server failed. Retry later.",
        )
    elif http_status and http_status >= 400:
        return (
            f"HTTP error {http_status}",
            "Check the resource URL in the source record",
        )

    if reason_code == "timeout":
        return (
            "Connection timed out",
            "Increase http.timeout_connect_s or check network latency",
        )
    elif reason_code == "conn-error":
        return (
            "Failed to establish connection",
            "Check network connectivity, DNS resolution, or proxy configuration",
        )
    elif reason_code == "write-error":
        return (
            "Could not write downloaded file",
            "Check free disk space and permissions on the import directory",
        )

    return ("Download failed", None)


def log_fetch_failure(
    logger: logging.Logger,
    *,
    url: str,
    target_name: str,
    reason_code: Optional[str],
    http_status: Optional[int] = None,
    error_details: Optional[str] = None,
) -> str:
    """Log one failed fetch with structured context and return the message.

    Args:
        logger: Logger instance to use for output
        url: Source URL that failed
        target_name: Derived local filename of the resource
        reason_code: Reason code of the failure
        http_status: HTTP status code if available
        error_details: Additional error context

    Returns:
        The warning text, so progress sinks can display the same line.
    """

    error_msg, suggestion = get_actionable_error_message(http_status, reason_code)

    log_entry: dict[str, Any] = {
        "url": url,
        "target_name": target_name,
        "http_status": http_status,
        "reason_code": reason_code,
        "error_message": error_msg,
    }
    if error_details:
        log_entry["details"] = error_details

    message = f"Resource can not be downloaded: {target_name} ({error_msg})"
    logger.warning(message, extra={"extra_fields": log_entry})
    if suggestion:
        logger.debug("Suggestion: %s", suggestion, extra={"extra_fields": {"url": url}})
    return message
