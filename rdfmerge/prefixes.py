# rdfmerge/prefixes.py
"""
Prefix reconciliation across sources.

Every source may declare its own prefixes and base IRI. The merged output has
a single prolog, so bindings are collected into one `Prolog`: a binding, once
made, never changes, and a prefix reused for a different namespace gets a
numbered alias (`ex`, `ex2`, `ex3`, ...) so no namespace is lost.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

from rdfmerge.rdfio import QuadHandler, StopReading

log = logging.getLogger(__name__)

BASE_ALIAS = "basens"


@dataclass
class Prolog:
    prefixes: Dict[str, str] = field(default_factory=dict)
    base: Optional[str] = None
    next_base_alias: int = 2


def resolve_prefix(prolog: Prolog, prefix: str, namespace: str) -> str:
    """Bind `prefix` to `namespace` in `prolog`, or an alias of it; return the prefix used."""
    namespace = str(namespace)
    candidate = prefix
    suffix = 2
    while candidate in prolog.prefixes and prolog.prefixes[candidate] != namespace:
        candidate = f"{prefix}{suffix}"
        suffix += 1
    if candidate not in prolog.prefixes:
        prolog.prefixes[candidate] = namespace
        if candidate != prefix:
            log.info("Prefix %s: already bound to %s, binding %s to %s", prefix, prolog.prefixes[prefix], candidate, namespace)
    return candidate


def declare_base(prolog: Prolog, iri: Optional[str]) -> Optional[str]:
    """
    Record a base IRI declared by a source.

    The first base IRI becomes the base of the output. Each later one that
    differs from it is kept as a `basens{N}` prefix instead; N counts every such
    declaration, so a value repeated by several sources gets several aliases.
    Returns the alias used, if any.
    """
    if iri is None:
        return None
    iri = str(iri)
    if prolog.base is None:
        prolog.base = iri
        return None
    if iri == prolog.base:
        return None
    alias = f"{BASE_ALIAS}{prolog.next_base_alias}"
    prolog.next_base_alias += 1
    return resolve_prefix(prolog, alias, iri)


class PrologCollector(QuadHandler):
    """
    Handler for the prefix pass. Only the prolog of a source matters here, so
    the first quad ends the read.
    """

    def __init__(self, prolog: Prolog):
        self.prolog = prolog

    def prefix(self, prefix: str, namespace: str) -> None:
        resolve_prefix(self.prolog, prefix, namespace)

    def base(self, iri: Optional[str]) -> None:
        declare_base(self.prolog, iri)

    def quad(self, quad) -> None:
        raise StopReading()
