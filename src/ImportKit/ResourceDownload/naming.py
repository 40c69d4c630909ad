# === NAVMAP v1 ===
# {
#   "module": "ImportKit.ResourceDownload.naming",
#   "purpose": "Derive deterministic local filenames from resource URLs",
#   "sections": [
#     {
#       "id": "target-name-for",
#       "name": "target_name_for",
#       "anchor": "function-target-name-for",
#       "kind": "function"
#     },
#     {
#       "id": "target-path-for",
#       "name": "target_path_for",
#       "anchor": "function-target-path-for",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Target naming for downloaded resources.

The target name is the last segment of the raw field value with every
whitespace character removed. It is used both as the on-disk filename under
the import directory and as the resource cache key, so two URLs sharing a
basename share one download.
"""

from __future__ import annotations

import re
from pathlib import Path

__all__ = ["target_name_for", "target_path_for"]

_WHITESPACE = re.compile(r"\s+")
_CONTROL = re.compile(r"[\x00-\x1f\x7f]")


def target_name_for(value: str) -> str:
    """Return the sanitized basename of ``value``.

    Trailing slashes are ignored, so ``https://cdn.example/images/`` maps to
    ``images``. Query strings are part of the last segment and are kept.

    Examples:
        >>> target_name_for("https://cdn.example/media/red shoe.jpg")
        'redshoe.jpg'
        >>> target_name_for("https://cdn.example/")
        'cdn.example'
    """
    trimmed = value.strip().rstrip("/")
    basename = _WHITESPACE.sub("", trimmed.rsplit("/", 1)[-1])
    # "." and ".." resolve to the import directory or its parent; control
    # characters (NUL in particular) are not valid in file names
    if basename in (".", "..") or _CONTROL.search(basename):
        return ""
    return basename


def target_path_for(import_dir: Path, target_name: str) -> Path:
    """Return the path a resource with ``target_name`` is stored at."""
    return import_dir / target_name
