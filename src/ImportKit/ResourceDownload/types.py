"""
Canonical Types for the ResourceDownload engine

Frozen dataclasses used as contracts between the task enumerator, the
resource cache, the fetch worker and the outcome rewriter.

Data Flow:
  iter_fetch_tasks(records) → FetchTask[]
  ResourceCache.lookup_or_create(task.target_name) → CacheEntry
  fetch_resource(url, target_path) → FetchOutcome
  apply_outcome(records, task, outcome) → record mutated in place

Design Principles:
  - Tasks address records by index (FieldLocator), never by reference
  - Outcomes are values: resolved or failed, never exceptions
  - Literal types keep reason tokens stable for logs and summaries
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Literal, Optional

# ============================================================================
# STABLE TOKEN VOCABULARIES
# ============================================================================

#: Normalized reason codes attached to every outcome
ReasonCode = Literal[
    "ok",
    "exists",
    "http-status",
    "timeout",
    "conn-error",
    "write-error",
]

#: Failure category, mirrors the NetworkError / FilesystemError split
ErrorClass = Literal["network", "filesystem"]


class CacheState(str, Enum):
    """Lifecycle of one cache entry."""

    PENDING = "pending"
    IN_FLIGHT = "in_flight"
    RESOLVED = "resolved"
    FAILED = "failed"


# ============================================================================
# TASK PAYLOADS
# ============================================================================


@dataclass(frozen=True, slots=True)
class FieldLocator:
    """
    Address of one value inside the record arena.

    ``element_index`` is None for scalar fields and the position inside the
    deduplicated list for list-typed fields.
    """

    record_index: int
    field: str
    element_index: Optional[int] = None

    @property
    def is_list_element(self) -> bool:
        return self.element_index is not None


@dataclass(frozen=True, slots=True)
class FetchTask:
    """One resource reference to resolve, bound to the field that holds it."""

    source_url: str
    """Raw field value as found in the record."""

    target_name: str
    """Derived local filename; also the cache key."""

    locator: FieldLocator
    """Where the outcome is written back."""

    def __post_init__(self) -> None:
        if not self.target_name:
            raise ValueError("FetchTask.target_name cannot be empty")


@dataclass(frozen=True, slots=True)
class FetchOutcome:
    """
    Terminal outcome of resolving one target name.

    Invariants: ``ok=True`` ⇒ ``kind`` in {"ok", "exists"} and no error class;
    ``ok=False`` ⇒ ``error_class`` is set.
    """

    ok: bool
    target_name: str
    kind: ReasonCode = "ok"
    error_class: Optional[ErrorClass] = None
    http_status: Optional[int] = None
    message: Optional[str] = None
    bytes_written: int = 0

    def __post_init__(self) -> None:
        if self.ok and self.kind not in ("ok", "exists"):
            raise ValueError(f"FetchOutcome.ok=True requires kind 'ok' or 'exists', got {self.kind!r}")
        if not self.ok and self.error_class is None:
            raise ValueError("FetchOutcome.ok=False requires an error_class")

    @classmethod
    def resolved(cls, target_name: str, *, kind: ReasonCode = "ok", bytes_written: int = 0) -> "FetchOutcome":
        return cls(ok=True, target_name=target_name, kind=kind, bytes_written=bytes_written)

    @classmethod
    def failed(
        cls,
        target_name: str,
        kind: ReasonCode,
        *,
        error_class: ErrorClass,
        http_status: Optional[int] = None,
        message: Optional[str] = None,
    ) -> "FetchOutcome":
        return cls(
            ok=False,
            target_name=target_name,
            kind=kind,
            error_class=error_class,
            http_status=http_status,
            message=message,
        )


class CacheEntry:
    """
    Pending, in-flight or completed fetch shared by every task with the same
    target name.

    The entry is registered before its fetch is scheduled; the cache then
    attaches the asyncio future running the fetch. ``wait()`` hands the same
    outcome object to every caller.
    """

    __slots__ = ("target_name", "_future", "_in_flight")

    def __init__(self, target_name: str) -> None:
        self.target_name = target_name
        self._future: Optional["asyncio.Future[FetchOutcome]"] = None
        self._in_flight = False

    def attach(self, future: "asyncio.Future[FetchOutcome]") -> None:
        if self._future is not None:
            raise RuntimeError(f"Fetch already attached for {self.target_name!r}")
        self._future = future

    def mark_in_flight(self) -> None:
        self._in_flight = True

    @property
    def state(self) -> CacheState:
        outcome = self.outcome
        if outcome is not None:
            return CacheState.RESOLVED if outcome.ok else CacheState.FAILED
        return CacheState.IN_FLIGHT if self._in_flight else CacheState.PENDING

    @property
    def outcome(self) -> Optional[FetchOutcome]:
        if self._future is None or not self._future.done():
            return None
        return self._future.result()

    async def wait(self) -> FetchOutcome:
        if self._future is None:
            raise RuntimeError(f"No fetch attached for {self.target_name!r}")
        return await self._future

    def __repr__(self) -> str:
        return f"CacheEntry(target_name={self.target_name!r}, state={self.state.value})"
