"""Run summary for resource download runs.

Responsibilities
----------------
- Provide the :class:`RunSummary` dataclass holding the counters of one
  ``process`` call (records, tasks, fetches, cache hits, disk skips,
  outcomes, bytes).
- Render a human-readable report via :func:`format_run_summary`; the CLI
  prints it after a run.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict

__all__ = ["RunSummary", "format_run_summary"]


@dataclass
class RunSummary:
    """Counters collected during one run.

    ``resolved`` and ``failed`` count resource references (tasks);
    ``failures_by_reason`` counts failed fetches, one per distinct resource.
    """

    records: int = 0
    tasks: int = 0
    fetches_dispatched: int = 0
    cache_hits: int = 0
    existing_skipped: int = 0
    resolved: int = 0
    failed: int = 0
    bytes_written: int = 0
    failures_by_reason: Counter = field(default_factory=Counter)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "records": self.records,
            "tasks": self.tasks,
            "fetches_dispatched": self.fetches_dispatched,
            "cache_hits": self.cache_hits,
            "existing_skipped": self.existing_skipped,
            "resolved": self.resolved,
            "failed": self.failed,
            "bytes_written": self.bytes_written,
            "failures_by_reason": dict(self.failures_by_reason),
        }


def format_run_summary(summary: RunSummary) -> str:
    """Format a run summary.

    Examples:
        >>> print(format_run_summary(RunSummary(records=2, tasks=3, fetches_dispatched=2, resolved=3)))
        Resource Download Summary:
        - Records: 2
        - Resource references: 3
        - Fetches dispatched: 2
        - Cache hits: 0
        - Already on disk: 0
        - Resolved: 3
        - Failed: 0
        - Bytes written: 0
    """
    lines = [
        "Resource Download Summary:",
        f"- Records: {summary.records}",
        f"- Resource references: {summary.tasks}",
        f"- Fetches dispatched: {summary.fetches_dispatched}",
        f"- Cache hits: {summary.cache_hits}",
        f"- Already on disk: {summary.existing_skipped}",
        f"- Resolved: {summary.resolved}",
        f"- Failed: {summary.failed}",
        f"- Bytes written: {summary.bytes_written}",
    ]

    if summary.failures_by_reason:
        lines.append("")
        lines.append("Failure reasons:")
        for reason, count in summary.failures_by_reason.most_common():
            lines.append(f"- {reason}: {count}")

    return "\n".join(lines)
