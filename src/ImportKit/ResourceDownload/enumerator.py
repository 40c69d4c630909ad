"""Lazy enumeration of fetch tasks over a record batch.

:func:`iter_fetch_tasks` is a generator: the scheduler pulls tasks only when a
slot is free, so large batches are never expanded up front. List fields are
split and deduplicated in place as the generator reaches them; they are joined
back by :func:`~ImportKit.ResourceDownload.rewriter.rejoin_list_fields` once
the run has drained.
"""

from __future__ import annotations

import logging
from typing import Any, Iterator, MutableMapping, MutableSequence, Optional, Sequence, Set, Tuple

from .naming import target_name_for
from .types import FetchTask, FieldLocator

__all__ = ["iter_fetch_tasks", "split_unique"]

logger = logging.getLogger(__name__)


def split_unique(value: str, delimiter: str = ",") -> list[str]:
    """Split a delimited value, dropping repeated tokens.

    The first occurrence of each token keeps its position, so the list can be
    joined back in a stable order.

    >>> split_unique("a.jpg,a.jpg,b.jpg")
    ['a.jpg', 'b.jpg']
    """
    return list(dict.fromkeys(value.split(delimiter)))


def _task_for(value: Any, locator: FieldLocator) -> FetchTask | None:
    if not isinstance(value, str) or not value.strip():
        return None
    target_name = target_name_for(value)
    if not target_name:
        logger.debug(f"No target name derivable from {value!r} at {locator}")
        return None
    return FetchTask(source_url=value, target_name=target_name, locator=locator)


def iter_fetch_tasks(
    records: MutableSequence[MutableMapping[str, Any]],
    scalar_fields: Sequence[str],
    list_fields: Sequence[str],
    *,
    delimiter: str = ",",
    split_fields: Optional[Set[Tuple[int, str]]] = None,
) -> Iterator[FetchTask]:
    """Yield one :class:`FetchTask` per resource reference, record by record.

    Args:
        records: Record arena, addressed by index
        scalar_fields: Fields holding one URL
        list_fields: Fields holding a delimited list of URLs
        delimiter: List field delimiter
        split_fields: Receives ``(record_index, field)`` for every list field
            split here, so only those are joined back afterwards

    Side effects:
        Each list field reached is replaced by its deduplicated list before
        its tasks are yielded.
    """
    for index in range(len(records)):
        record = records[index]

        for field in scalar_fields:
            task = _task_for(record.get(field), FieldLocator(index, field))
            if task is not None:
                yield task

        for field in list_fields:
            value = record.get(field)
            if not isinstance(value, str) or not value:
                continue
            elements = split_unique(value, delimiter)
            record[field] = elements
            if split_fields is not None:
                split_fields.add((index, field))

            # elements may be rewritten while this generator is suspended
            for position, element in enumerate(elements):
                task = _task_for(element, FieldLocator(index, field, position))
                if task is not None:
                    yield task
