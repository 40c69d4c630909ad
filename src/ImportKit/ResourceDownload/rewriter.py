"""Outcome rewriting for resource fields.

Every task's terminal outcome is written back through its
:class:`FieldLocator`, i.e. through the record's index in the arena and the
field (and element) name, never through a live reference held by the task.

Failure handling clears more than the originating position: every field of
the owning record whose current value equals the failed source URL is
cleared too, including matching elements of list fields that are still
split. A record that repeats the same URL in two fields therefore loses both,
even though only one task failed. This is long-standing import behaviour and
is kept as-is.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, MutableMapping, MutableSequence, Optional, Tuple

from .types import FetchOutcome, FetchTask, FieldLocator

__all__ = ["apply_outcome", "clear_matching_values", "rejoin_list_fields", "write_value"]

logger = logging.getLogger(__name__)

Records = MutableSequence[MutableMapping[str, Any]]


def write_value(records: Records, locator: FieldLocator, value: Optional[str]) -> bool:
    """Write ``value`` at ``locator``; return False when the position is gone.

    A list position is gone when its field was cleared or re-joined since the
    task was created.
    """
    record = records[locator.record_index]
    if locator.element_index is None:
        record[locator.field] = value
        return True

    elements = record.get(locator.field)
    if not isinstance(elements, list) or locator.element_index >= len(elements):
        logger.debug(f"Skipping write to {locator}: list field no longer present")
        return False
    elements[locator.element_index] = value
    return True


def clear_matching_values(record: MutableMapping[str, Any], source_url: str) -> int:
    """Clear every field (or list element) of ``record`` equal to ``source_url``.

    Returns:
        Number of values cleared
    """
    cleared = 0
    for field, current in list(record.items()):
        if isinstance(current, list):
            for position, element in enumerate(current):
                if element == source_url:
                    current[position] = None
                    cleared += 1
        elif current == source_url:
            record[field] = None
            cleared += 1
    return cleared


def apply_outcome(records: Records, task: FetchTask, outcome: FetchOutcome) -> None:
    """Apply one terminal outcome to the field the task came from."""
    if outcome.ok:
        write_value(records, task.locator, outcome.target_name)
        return

    record = records[task.locator.record_index]
    cleared = clear_matching_values(record, task.source_url)
    write_value(records, task.locator, None)
    logger.debug(
        f"Cleared {task.locator} after failed fetch of {task.target_name} "
        f"({outcome.kind}); {cleared} matching value(s) in record"
    )


def rejoin_list_fields(
    records: Records,
    split_fields: Iterable[Tuple[int, str]],
    delimiter: str = ",",
) -> None:
    """Join the list fields split during enumeration back into strings.

    Only the ``(record_index, field)`` positions in ``split_fields`` are
    touched; lists the caller stored in a list field are left alone. Cleared
    elements become empty positions, so ``["a.jpg", None, "c.jpg"]`` is stored
    as ``"a.jpg,,c.jpg"``.
    """
    for index, field in sorted(split_fields):
        record = records[index]
        elements = record.get(field)
        if isinstance(elements, list):
            record[field] = delimiter.join("" if e is None else str(e) for e in elements)
