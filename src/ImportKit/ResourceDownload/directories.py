"""Storage location of downloaded resources.

The surrounding application decides where media lives; the engine only asks
a :class:`DirectoryResolver` for the base path and owns the import
subdirectory beneath it.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol, runtime_checkable

from .errors import PreconditionError

__all__ = ["DirectoryResolver", "StaticDirectoryResolver", "ensure_import_dir"]

logger = logging.getLogger(__name__)


@runtime_checkable
class DirectoryResolver(Protocol):
    def base_path(self) -> Path: ...


class StaticDirectoryResolver:
    """Resolver returning a fixed base path."""

    def __init__(self, base: Path | str) -> None:
        self._base = Path(base).expanduser()

    def base_path(self) -> Path:
        return self._base

    def __repr__(self) -> str:
        return f"StaticDirectoryResolver({str(self._base)!r})"


def ensure_import_dir(resolver: DirectoryResolver, subdir: str) -> Path:
    """Create ``<base>/<subdir>`` if needed and return it.

    Raises:
        PreconditionError: If the directory cannot be created
    """
    import_dir = Path(resolver.base_path()) / subdir
    try:
        import_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise PreconditionError(f"Cannot create import directory {import_dir}: {e}", path=import_dir) from e
    if not import_dir.is_dir():
        raise PreconditionError(f"Import path is not a directory: {import_dir}", path=import_dir)
    logger.debug(f"Import directory ready: {import_dir}")
    return import_dir
