# rdfmerge/merge.py
"""
Merge RDF files into one output, or into several with --split.

    rdfmerge a.ttl b/ out.ttl
    rdfmerge --split 1000000 --nopretty dump/ merged.nt

Every argument but the last is a file or a directory to read (recursively);
the last one is the output. When no readable input is found, the last argument
is read on its own and only its statements are counted.

Sources are read twice: a first pass collects the prefixes and base IRIs of
every source into one prolog, a second pass streams the statements into the
output, with blank nodes renamed per source so they stay distinct.
"""
from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from rdfmerge.bnodes import disambiguate_quad
from rdfmerge.common import DEFAULT_LOG_LEVEL, Stopwatch, configure_logging, throughput
from rdfmerge.discovery import discover_sources
from rdfmerge.errors import ConfigurationError, ParseError, UnreadableFormat
from rdfmerge.prefixes import Prolog, PrologCollector
from rdfmerge.rdfio import READ_FORMATS, Quad, QuadHandler, can_write, normalize_format, open_sink, read
from rdfmerge.split_writer import SinkFactory, SplitWriter

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class MergeConfig:
    inputs: Tuple[str, ...]
    output: str
    blacklist: Tuple[str, ...] = ()
    split: Optional[int] = None
    input_format: Optional[str] = None
    output_format: Optional[str] = None
    pretty: bool = True

    def validate(self) -> "MergeConfig":
        if self.split is not None and self.split < 1:
            raise ConfigurationError(f"--split must be a positive number of statements, got {self.split}")
        if self.input_format is not None and normalize_format(self.input_format) not in READ_FORMATS:
            raise ConfigurationError(
                f"Unknown input format {self.input_format!r}, expected one of {', '.join(sorted(READ_FORMATS))}"
            )
        if self.output_format is not None and not can_write(self.output_format):
            raise ConfigurationError(f"Unknown output format {self.output_format!r}")
        return self


@dataclass
class SourceStats:
    source: Path
    index: int
    count: int = 0
    error: Optional[Exception] = None
    watch: Stopwatch = field(default_factory=Stopwatch)

    @property
    def ok(self) -> bool:
        return self.error is None


class _Counter(QuadHandler):
    def __init__(self, stats: SourceStats):
        self.stats = stats

    def quad(self, quad: Quad) -> None:
        self.stats.count += 1


class _MergeHandler(_Counter):
    """Second pass: prolog events are already reconciled, statements go to the writer."""

    def __init__(self, stats: SourceStats, writer: SplitWriter):
        super().__init__(stats)
        self.writer = writer

    def comment(self, text: str) -> None:
        self.writer.comment(text)

    def quad(self, quad: Quad) -> None:
        self.writer.write(disambiguate_quad(quad, self.stats.index))
        self.stats.count += 1


def count_quads(source: Path, input_format: Optional[str] = None) -> SourceStats:
    """Read one source without writing anything; parse failures end up in `stats.error`."""
    stats = SourceStats(source, 1)
    try:
        read(source, _Counter(stats), input_format)
    except (ParseError, UnreadableFormat) as e:
        stats.error = e
    return stats


def collect_prolog(sources: Sequence[Path], input_format: Optional[str] = None, prolog: Optional[Prolog] = None) -> Prolog:
    prolog = prolog if prolog is not None else Prolog()
    collector = PrologCollector(prolog)
    for source in sources:
        log.info("Reading prefixes from %s", source)
        try:
            read(source, collector, input_format)
        except (ParseError, UnreadableFormat) as e:
            log.error("Couldn't read prefixes from %s: %s", source, e)
    return prolog


def merge_sources(sources: Sequence[Path], writer: SplitWriter, input_format: Optional[str] = None) -> List[SourceStats]:
    """
    Stream every source into `writer`, the i-th source (from 1) having its
    blank nodes renamed with index i. A source that fails to parse is logged
    and left behind; whatever it produced before failing stays written.
    """
    results = []
    for index, source in enumerate(sources, start=1):
        stats = SourceStats(source, index)
        log.info("Reading triples from %s", source)
        try:
            read(source, _MergeHandler(stats, writer), input_format)
        except (ParseError, UnreadableFormat) as e:
            stats.error = e
            log.error("Couldn't read triples from %s (managed to read %s): %s", source, stats.watch.report(stats.count), e)
        else:
            log.info("Read (and possibly wrote) %s from %s", stats.watch.report(stats.count), source)
        results.append(stats)
    return results


def run(config: MergeConfig, sink_factory: SinkFactory = open_sink) -> int:
    watch = Stopwatch()
    sources = discover_sources(
        config.inputs,
        blacklist=config.blacklist,
        exclude=config.output,
        input_format=config.input_format,
    )

    if not sources:
        source = Path(config.output)
        log.info("No input files to merge, counting statements of %s", source)
        stats = count_quads(source, config.input_format)
        if not stats.ok:
            log.error("Couldn't read %s (managed to read %s): %s", source, stats.watch.report(stats.count), stats.error)
            return 1
        log.info("Read %s from %s", stats.watch.report(stats.count), source)
        return 0

    log.info("Merging %d files into %s", len(sources), config.output)
    prolog = collect_prolog(sources, config.input_format)
    log.debug("Output prolog: base %s, %d prefixes", prolog.base, len(prolog.prefixes))

    try:
        writer = SplitWriter(
            config.output,
            prolog,
            threshold=config.split,
            fmt=config.output_format,
            pretty=config.pretty,
            sink_factory=sink_factory,
        )
    except (UnreadableFormat, OSError) as e:
        log.error("Can't write format of %s: %s", config.output, e)
        return 1

    try:
        results = merge_sources(sources, writer, config.input_format)
    finally:
        writer.close()

    failed = [stats.source for stats in results if not stats.ok]
    if failed:
        log.warning("%d of %d files could not be read completely: %s", len(failed), len(results), ", ".join(map(str, failed)))
    ms = watch.elapsed()
    log.info(
        "Read a total of %s statements from %d files into %d output file(s), avg %s statements/s",
        f"{writer.total:,}",
        len(results),
        len(writer.paths),
        f"{throughput(writer.total, ms):,}",
    )
    return 0


def parse_args(argv: Optional[Sequence[str]] = None) -> MergeConfig:
    ap = argparse.ArgumentParser(
        prog="rdfmerge",
        description="Merge RDF files and directories into one output file, reconciling prefixes and blank nodes.",
    )
    ap.add_argument("files", nargs="+", metavar="FILE", help="Input files or directories, followed by the output file.")
    ap.add_argument(
        "--blacklist",
        action="append",
        default=[],
        metavar="PATH",
        help="Skip input files and directories whose absolute path starts with PATH (repeatable).",
    )
    ap.add_argument("--split", type=int, metavar="N", help="Write at most N statements per output file.")
    ap.add_argument("--input-format", help="rdflib format of every input, instead of guessing from extensions.")
    ap.add_argument("--output-format", help="rdflib format of the output, instead of guessing from its extension.")
    ap.add_argument(
        "--nopretty",
        dest="pretty",
        action="store_false",
        help=(
            "Favor write speed over readable output: Turtle and TriG are streamed with every "
            "blank node label kept (pretty output inlines single-use blank nodes as [ ]), "
            "RDF/XML is not pretty printed."
        ),
    )
    ap.add_argument("--log-level", default=DEFAULT_LOG_LEVEL, help="Logging level (default: %(default)s).")
    args = ap.parse_args(argv)

    configure_logging(args.log_level)
    *inputs, output = args.files
    return MergeConfig(
        inputs=tuple(inputs),
        output=output,
        blacklist=tuple(args.blacklist),
        split=args.split,
        input_format=args.input_format,
        output_format=args.output_format,
        pretty=args.pretty,
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    config = parse_args(argv)
    try:
        config.validate()
    except ConfigurationError as e:
        log.error("%s", e)
        return 1
    return run(config)


if __name__ == "__main__":
    sys.exit(main())
