# rdfmerge/rdfio.py
"""
Quad sources and quad sinks on top of rdflib.

A source is read with `read(path, handler)`: the handler gets the prefix, base,
comment and quad events of the document in the order they are parsed, so that a
file is never materialized as a whole graph. A sink is opened with
`open_sink(path)` and receives an output prolog followed by quads.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator, NamedTuple, Optional, Union
from xml.sax import SAXException

from rdflib import BNode, Dataset, Graph, Literal, URIRef
from rdflib.exceptions import Error as RDFLibError
from rdflib.graph import DATASET_DEFAULT_GRAPH_ID
from rdflib.namespace import NamespaceManager
from rdflib.parser import create_input_source
from rdflib.plugin import PluginException
from rdflib.plugin import get as get_plugin
from rdflib.plugins.parsers.notation3 import RDFSink, SinkParser
from rdflib.plugins.parsers.nquads import NQuadsParser
from rdflib.plugins.parsers.ntriples import W3CNTriplesParser
from rdflib.plugins.parsers.trig import TrigSinkParser
from rdflib.plugins.serializers.nquads import _nq_row
from rdflib.plugins.serializers.nt import _nt_row
from rdflib.serializer import Serializer
from rdflib.store import Store

from rdfmerge.common import ensure_dir
from rdfmerge.errors import ParseError, UnreadableFormat

log = logging.getLogger(__name__)

Node = Union[URIRef, BNode, Literal]


class Quad(NamedTuple):
    subject: Node
    predicate: Node
    object: Node
    graph: Optional[Node] = None


RDF_EXT_MAP = {
    ".ttl": "turtle",
    ".trig": "trig",
    ".nt": "nt",
    ".nq": "nquads",
    ".n3": "n3",
    ".owl": "xml",
    ".rdf": "xml",
    ".xml": "xml",
    ".jsonld": "json-ld",
    ".trix": "trix",
}

_FORMAT_ALIASES = {
    "ttl": "turtle",
    "text/turtle": "turtle",
    "ntriples": "nt",
    "nt11": "nt",
    "n-triples": "nt",
    "application/n-triples": "nt",
    "n-quads": "nquads",
    "application/n-quads": "nquads",
    "rdf/xml": "xml",
    "application/rdf+xml": "xml",
    "application/trig": "trig",
    "jsonld": "json-ld",
    "application/ld+json": "json-ld",
}

READ_FORMATS = frozenset({"turtle", "trig", "nt", "nquads", "xml"})

# formats whose serializers keep graph names
QUAD_FORMATS = frozenset({"trig", "trix", "nquads", "json-ld", "hext"})


def normalize_format(fmt: Optional[str]) -> Optional[str]:
    if not fmt:
        return None
    fmt = fmt.strip().lower()
    return _FORMAT_ALIASES.get(fmt, fmt)


def guess_format(path: str | Path) -> Optional[str]:
    return RDF_EXT_MAP.get(Path(path).suffix.lower())


def can_read(path: str | Path, fmt: Optional[str] = None) -> bool:
    return normalize_format(fmt or guess_format(path)) in READ_FORMATS


def can_write(fmt: Optional[str]) -> bool:
    fmt = normalize_format(fmt)
    if fmt is None:
        return False
    try:
        get_plugin(fmt, Serializer)
    except PluginException:
        return False
    return True


# ------------------ Sources ------------------


class StopReading(Exception):
    """Raised by a handler to end a read early; `read` then returns normally."""


class QuadHandler:
    """Receives the events of one source in document order. Every hook is optional."""

    def prefix(self, prefix: str, namespace: str) -> None:
        pass

    def base(self, iri: Optional[str]) -> None:
        pass

    def comment(self, text: str) -> None:
        pass

    def quad(self, quad: Quad) -> None:
        pass


def _graph_name(context) -> Optional[Node]:
    ident = getattr(context, "identifier", context)
    if ident is None or ident == DATASET_DEFAULT_GRAPH_ID:
        return None
    return ident


class _HandlerStore(Store):
    """
    A store that keeps nothing: every triple rdflib adds is handed to a
    QuadHandler as a quad, and (when `report_prefixes` is set) every prefix
    rdflib binds is handed over as a prefix declaration.
    """

    context_aware = True
    graph_aware = True

    def __init__(self, handler: QuadHandler, report_prefixes: bool = False):
        super().__init__()
        self.handler = handler
        self.report_prefixes = report_prefixes
        self._prefixes: dict[str, str] = {}

    def add(self, triple, context, quoted=False):
        s, p, o = triple
        self.handler.quad(Quad(s, p, o, _graph_name(context)))

    def addN(self, quads):  # noqa: N802
        for s, p, o, c in quads:
            self.add((s, p, o), c)

    def bind(self, prefix, namespace, override=True):
        namespace = str(namespace)
        if self._prefixes.get(prefix) == namespace:
            return
        self._prefixes[prefix] = namespace
        # expat always declares the reserved xml prefix
        if self.report_prefixes and prefix != "xml":
            self.handler.prefix(prefix, namespace)

    def namespace(self, prefix):
        ns = self._prefixes.get(prefix)
        return URIRef(ns) if ns is not None else None

    def prefix(self, namespace):
        namespace = str(namespace)
        for prefix, ns in self._prefixes.items():
            if ns == namespace:
                return prefix
        return None

    def namespaces(self):
        for prefix, ns in self._prefixes.items():
            yield prefix, URIRef(ns)

    def triples(self, triple_pattern, context=None) -> Iterator:
        return iter(())

    def __len__(self, context=None) -> int:
        return 0

    def contexts(self, triple=None) -> Iterator:
        return iter(())

    def add_graph(self, graph) -> None:
        pass

    def remove_graph(self, graph) -> None:
        pass


def _handler_graph(handler: QuadHandler, report_prefixes: bool = False) -> Graph:
    graph = Graph(store=_HandlerStore(handler, report_prefixes), identifier=DATASET_DEFAULT_GRAPH_ID)
    # rdflib would otherwise bind its own vocabulary prefixes into the store
    graph.namespace_manager = NamespaceManager(graph, bind_namespaces="none")
    return graph


class _DocumentLabels(dict):
    """An N-Triples bnode_context that keeps the document's own blank node labels."""

    def get(self, label, default=None):
        return BNode(label)


class _PrologReporting:
    """
    Mixin for rdflib's notation3 sink parsers: reports @prefix/@base and
    PREFIX/BASE directives as they are parsed, and keeps `_:label` blank nodes
    under their document label.
    """

    events: QuadHandler

    def directive(self, argstr, i):
        return self._reporting(super().directive, argstr, i)

    def sparqlDirective(self, argstr, i):  # noqa: N802
        return self._reporting(super().sparqlDirective, argstr, i)

    def _reporting(self, parse_directive, argstr, i):
        bindings, base = dict(self._bindings), self._baseURI
        j = parse_directive(argstr, i)
        if j >= 0:
            for prefix, ns in self._bindings.items():
                if bindings.get(prefix) != ns:
                    self.events.prefix(prefix, str(ns))
            if self._baseURI != base:
                self.events.base(str(self._baseURI) if self._baseURI is not None else None)
        return j

    def anonymousNode(self, ln):  # noqa: N802
        term = self._anonymousNodes.get(ln)
        if term is None:
            term = self._anonymousNodes[ln] = BNode(ln)
        return term


class _TurtleSource(_PrologReporting, SinkParser):
    pass


class _TrigSource(_PrologReporting, TrigSinkParser):
    pass


class _CommentReporting:
    """Mixin for rdflib's line parsers: reports `# ...` lines as comments."""

    events: QuadHandler

    def parseline(self, bnode_context=None):
        text = self.line.strip() if self.line else ""
        if text.startswith("#"):
            self.events.comment(text[1:].strip())
            return
        super().parseline(bnode_context)


class _NTriplesSource(_CommentReporting, W3CNTriplesParser):
    pass


class _NQuadsSource(_CommentReporting, NQuadsParser):
    pass


class _TripleSink:
    def __init__(self, handler: QuadHandler):
        self.handler = handler

    def triple(self, s, p, o):
        self.handler.quad(Quad(s, p, o))


def _read_notation3(path: Path, handler: QuadHandler, trig: bool) -> None:
    parser_cls = _TrigSource if trig else _TurtleSource
    parser = parser_cls(RDFSink(_handler_graph(handler)), baseURI=path.resolve().as_uri(), turtle=True)
    parser.events = handler
    with path.open("rb") as stream:
        parser.loadStream(stream)


def _read_ntriples(path: Path, handler: QuadHandler) -> None:
    parser = _NTriplesSource(_TripleSink(handler))
    parser.events = handler
    with path.open("r", encoding="utf-8") as stream:
        parser.parse(stream, bnode_context=_DocumentLabels())


def _read_nquads(path: Path, handler: QuadHandler) -> None:
    parser = _NQuadsSource()
    parser.events = handler
    with path.open("rb") as stream:
        parser.parse(create_input_source(file=stream), _handler_graph(handler), bnode_context=_DocumentLabels())


def _read_rdfxml(path: Path, handler: QuadHandler) -> None:
    _handler_graph(handler, report_prefixes=True).parse(path, format="xml", preserve_bnode_ids=True)


_READERS = {
    "turtle": lambda path, handler: _read_notation3(path, handler, trig=False),
    "trig": lambda path, handler: _read_notation3(path, handler, trig=True),
    "nt": _read_ntriples,
    "nquads": _read_nquads,
    "xml": _read_rdfxml,
}

_PARSE_FAILURES = (SyntaxError, RDFLibError, SAXException, ValueError, OSError)


class _HandlerFailure(Exception):
    def __init__(self, cause: BaseException):
        super().__init__(cause)
        self.cause = cause


class _Guarded(QuadHandler):
    """Tags exceptions raised by a handler so they are not taken for parse errors."""

    def __init__(self, handler: QuadHandler):
        self.handler = handler

    def _call(self, method, *args) -> None:
        try:
            method(*args)
        except StopReading:
            raise
        except Exception as e:
            raise _HandlerFailure(e) from e

    def prefix(self, prefix: str, namespace: str) -> None:
        self._call(self.handler.prefix, prefix, namespace)

    def base(self, iri: Optional[str]) -> None:
        self._call(self.handler.base, iri)

    def comment(self, text: str) -> None:
        self._call(self.handler.comment, text)

    def quad(self, quad: Quad) -> None:
        self._call(self.handler.quad, quad)


def read(path: str | Path, handler: QuadHandler, fmt: Optional[str] = None) -> None:
    """
    Stream one RDF file into `handler`.

    Raises UnreadableFormat when no reader matches, and ParseError when the
    document turns out to be malformed (events delivered before that point stay
    delivered). A handler may raise StopReading to end the read early.
    """
    path = Path(path)
    fmt = normalize_format(fmt or guess_format(path))
    reader = _READERS.get(fmt)
    if reader is None:
        raise UnreadableFormat(str(path), fmt)
    try:
        reader(path, _Guarded(handler))
    except StopReading:
        return
    except _HandlerFailure as e:
        raise e.cause from None
    except _PARSE_FAILURES as e:
        raise ParseError(str(path), str(e) or type(e).__name__) from e


# ------------------ Sinks ------------------


class QuadSink:
    """One output file: a prolog (base, prefixes), then quads and comments."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.closed = False

    def set_base(self, iri: str) -> None:
        pass

    def bind(self, prefix: str, namespace: str) -> None:
        pass

    def end_prolog(self) -> None:
        pass

    def write(self, quad: Quad) -> None:
        raise NotImplementedError

    def comment(self, text: str) -> None:
        pass

    def close(self) -> None:
        self.closed = True


class LineSink(QuadSink):
    """N-Triples / N-Quads, written line by line as quads arrive."""

    def __init__(self, path: str | Path, with_graph: bool = False):
        super().__init__(path)
        self.with_graph = with_graph
        ensure_dir(self.path.parent)
        self._fh = self.path.open("w", encoding="utf-8", newline="\n")

    def write(self, quad: Quad) -> None:
        if self.with_graph:
            self._fh.write(_nq_row(quad[:3], quad.graph))
        else:
            self._fh.write(_nt_row(quad[:3]))

    def comment(self, text: str) -> None:
        for line in text.splitlines() or [""]:
            self._fh.write(f"# {line}\n")

    def close(self) -> None:
        if not self.closed:
            self._fh.close()
        super().close()


class StreamingTurtleSink(LineSink):
    """
    Turtle / TriG without pretty printing: a @base/@prefix header followed by
    one statement per line with full IRIs, so nothing needs to be buffered.
    """

    def __init__(self, path: str | Path, trig: bool = False):
        super().__init__(path, with_graph=trig)

    def set_base(self, iri: str) -> None:
        self._fh.write(f"@base <{iri}> .\n")

    def bind(self, prefix: str, namespace: str) -> None:
        self._fh.write(f"@prefix {prefix}: <{namespace}> .\n")

    def end_prolog(self) -> None:
        self._fh.write("\n")

    def write(self, quad: Quad) -> None:
        row = _nt_row(quad[:3])
        if self.with_graph and quad.graph is not None:
            row = f"{quad.graph.n3()} {{ {row.rstrip()} }}\n"
        self._fh.write(row)


class GraphSink(QuadSink):
    """
    Any other rdflib serializer. Quads are held in memory until close, so with
    splitting enabled at most one output file's worth of data is buffered.
    The buffer is a set: repeated statements are written once, although the
    split count includes every copy. Pretty Turtle and TriG inline blank nodes
    used once as `[ ]`, so their labels do not appear in the output.
    """

    def __init__(self, path: str | Path, fmt: str):
        super().__init__(path)
        self.fmt = fmt
        self.graph = Dataset() if fmt in QUAD_FORMATS else Graph()
        self.graph.namespace_manager = NamespaceManager(self.graph, bind_namespaces="none")
        self.base: Optional[str] = None

    def set_base(self, iri: str) -> None:
        self.base = iri

    def bind(self, prefix: str, namespace: str) -> None:
        self.graph.bind(prefix, namespace, override=True, replace=True)

    def write(self, quad: Quad) -> None:
        if isinstance(self.graph, Dataset):
            if quad.graph is None:
                self.graph.default_graph.add(quad[:3])
            else:
                self.graph.add(tuple(quad))
        else:
            self.graph.add(quad[:3])

    def comment(self, text: str) -> None:
        log.debug("Dropping comment, %s output has no comment syntax: %s", self.fmt, text)

    def close(self) -> None:
        if not self.closed:
            ensure_dir(self.path.parent)
            self.graph.serialize(destination=str(self.path), format=self.fmt, base=self.base)
        super().close()


def open_sink(path: str | Path, fmt: Optional[str] = None, pretty: bool = True) -> QuadSink:
    """Open a sink for `path`, choosing the format from `fmt` or the file extension."""
    fmt = normalize_format(fmt or guess_format(path))
    if fmt is None:
        raise UnreadableFormat(str(path))
    if fmt == "nt":
        return LineSink(path)
    if fmt == "nquads":
        return LineSink(path, with_graph=True)
    if fmt in ("turtle", "trig") and not pretty:
        return StreamingTurtleSink(path, trig=fmt == "trig")
    if fmt == "xml" and pretty:
        fmt = "pretty-xml"
    if not can_write(fmt):
        raise UnreadableFormat(str(path), fmt)
    return GraphSink(path, fmt)
