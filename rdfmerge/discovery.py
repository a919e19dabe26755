# rdfmerge/discovery.py
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from rdfmerge.rdfio import can_read

log = logging.getLogger(__name__)


def _absolute(path: str | Path) -> str:
    return os.path.abspath(str(path))


def is_blacklisted(path: str | Path, blacklist: Sequence[str]) -> bool:
    absolute = _absolute(path)
    return any(absolute.startswith(prefix) for prefix in blacklist)


def _walk(path: Path, blacklist: Sequence[str], input_format: Optional[str], found: List[Path], top: bool = False) -> None:
    if is_blacklisted(path, blacklist):
        log.debug("Skipping blacklisted %s", path)
        return
    if path.is_dir():
        if not top and path.name.startswith("."):
            return
        for child in sorted(path.iterdir()):
            _walk(child, blacklist, input_format, found)
    elif not path.exists():
        log.warning("No such file or directory: %s", path)
    elif can_read(path, input_format):
        found.append(path)
    else:
        log.debug("Skipping %s, not a readable RDF file", path)


def discover_sources(
    inputs: Iterable[str | Path],
    blacklist: Sequence[str] = (),
    exclude: Optional[str | Path] = None,
    input_format: Optional[str] = None,
) -> List[Path]:
    """
    Expand files and directories (recursively, in sorted order, skipping hidden
    subdirectories) into the ordered list of readable RDF files. Paths under any
    `blacklist` prefix and the `exclude` path itself are left out.
    """
    blacklist = [_absolute(prefix) for prefix in blacklist]
    found: List[Path] = []
    for item in inputs:
        _walk(Path(item), blacklist, input_format, found, top=True)
    if exclude is not None:
        excluded = _absolute(exclude)
        found = [path for path in found if _absolute(path) != excluded]
    return found
