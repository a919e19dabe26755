# rdfmerge/common.py
from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass, field
from pathlib import Path

LOG_FORMAT = "[rdfmerge] %(message)s"
DEFAULT_LOG_LEVEL = os.environ.get("RDFMERGE_LOG_LEVEL", "INFO")


def ensure_dir(path: str | Path) -> Path:
    p = Path(path)
    p.mkdir(parents=True, exist_ok=True)
    return p


def configure_logging(level: str | int = DEFAULT_LOG_LEVEL) -> None:
    if isinstance(level, str):
        level = level.upper()
    logging.basicConfig(level=level, format=LOG_FORMAT)
    # rdflib warns on every odd literal it casts; nothing we can act on here
    logging.getLogger("rdflib").setLevel(logging.ERROR)
    logging.getLogger("rdflib.term").setLevel(logging.ERROR)


def format_duration(millis: int) -> str:
    """
    Render a duration as hours:minutes:seconds:millis without zero padding,
    e.g. 3723004 -> "1:2:3:4".
    """
    seconds, ms = divmod(int(millis), 1000)
    minutes, s = divmod(seconds, 60)
    hours, m = divmod(minutes, 60)
    return f"{hours}:{m}:{s}:{ms}"


def throughput(count: int, millis: int) -> int:
    """Statements per second; the +1 keeps instant runs from dividing by zero."""
    return count * 1000 // (millis + 1)


def _now_ms() -> int:
    return int(time.monotonic() * 1000)


@dataclass
class Stopwatch:
    started: int = field(default_factory=_now_ms)

    def elapsed(self) -> int:
        return _now_ms() - self.started

    def report(self, count: int) -> str:
        """Summary line for `count` statements read or written since the watch started."""
        ms = self.elapsed()
        return f"{count:,} statements in {format_duration(ms)}, avg {throughput(count, ms):,} statements/s"
