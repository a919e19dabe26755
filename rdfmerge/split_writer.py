# rdfmerge/split_writer.py
from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, List, Optional

from rdfmerge.common import Stopwatch
from rdfmerge.prefixes import Prolog
from rdfmerge.rdfio import Quad, QuadSink, open_sink

log = logging.getLogger(__name__)

SinkFactory = Callable[..., QuadSink]


def split_path(output: str | Path, ordinal: int) -> Path:
    """
    Name of the `ordinal`-th output file: `data.nt` -> `data-1.nt`. Everything
    from the first dot of the file name on counts as the extension, so
    `data.nt.gz` -> `data-1.nt.gz`.
    """
    output = Path(output)
    stem, dot, ext = output.name.partition(".")
    return output.with_name(f"{stem}-{ordinal}{dot}{ext}")


class SplitWriter:
    """
    Writes quads to `output`, or with a `threshold` to `output-1`, `output-2`, ...
    holding at most `threshold` quads each. Every file opened gets the same
    prolog: the base IRI, then every prefix of `prolog` in insertion order.
    """

    def __init__(
        self,
        output: str | Path,
        prolog: Prolog,
        threshold: Optional[int] = None,
        fmt: Optional[str] = None,
        pretty: bool = True,
        sink_factory: SinkFactory = open_sink,
    ):
        if threshold is not None and threshold < 1:
            raise ValueError(f"split threshold must be positive, got {threshold}")
        self.output = Path(output)
        self.prolog = prolog
        self.threshold = threshold
        self.fmt = fmt
        self.pretty = pretty
        self.sink_factory = sink_factory

        self.ordinal = 0
        self.count = 0
        self.total = 0
        self.paths: List[Path] = []
        self._sink: Optional[QuadSink] = None
        self._open_next()

    @property
    def current_path(self) -> Path:
        return self.paths[-1]

    def _open_next(self) -> None:
        self.ordinal += 1
        self.count = 0
        path = split_path(self.output, self.ordinal) if self.threshold is not None else self.output
        sink = self.sink_factory(path, self.fmt, self.pretty)
        if self.prolog.base is not None:
            sink.set_base(self.prolog.base)
        for prefix, namespace in self.prolog.prefixes.items():
            sink.bind(prefix, namespace)
        sink.end_prolog()
        self.paths.append(path)
        self._sink = sink

    def _close_current(self) -> None:
        sink, self._sink = self._sink, None
        if sink is None:
            return
        watch = Stopwatch()
        sink.close()
        # buffered sinks write repeated statements once, so the count is an upper bound
        log.info("Closed (and possibly wrote) %s: %s", sink.path, watch.report(self.count))

    def write(self, quad: Quad) -> None:
        if self._sink is None:
            raise ValueError("write to a closed SplitWriter")
        if self.threshold is not None and self.count == self.threshold:
            self._close_current()
            self._open_next()
        self._sink.write(quad)
        self.count += 1
        self.total += 1

    def comment(self, text: str) -> None:
        if self._sink is None:
            raise ValueError("write to a closed SplitWriter")
        self._sink.comment(text)

    @property
    def closed(self) -> bool:
        return self._sink is None

    def close(self) -> None:
        self._close_current()

    def __enter__(self) -> "SplitWriter":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
