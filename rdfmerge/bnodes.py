# rdfmerge/bnodes.py
"""
Blank node labels are only meaningful inside the document that produced them,
so when several sources are merged each source's labels are moved into a
namespace of their own: label `x` of source 2 becomes `b2_x`.
"""
from __future__ import annotations

from rdflib import BNode

from rdfmerge.rdfio import Node, Quad


def bnode_label(label: str, source_index: int) -> str:
    # ':' is not allowed in the blank node labels of most serializations
    return f"b{source_index}_{label.replace(':', '_')}"


def disambiguate_term(term: Node | None, source_index: int) -> Node | None:
    if isinstance(term, BNode):
        return BNode(bnode_label(str(term), source_index))
    return term


def disambiguate_quad(quad: Quad, source_index: int) -> Quad:
    """Rewrite the blank nodes of `quad`; a quad without any is returned as is."""
    if not any(isinstance(term, BNode) for term in quad):
        return quad
    return Quad(*(disambiguate_term(term, source_index) for term in quad))
