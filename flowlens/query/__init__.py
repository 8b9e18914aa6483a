"""
FlowLens Query
===============

The boolean filter language shared by ``filter``, ``flows where`` and
``graph``.
"""

from flowlens.query.filter import (
    MATCH_ALL,
    Compare,
    Conjunction,
    Disjunction,
    MatchAll,
    Membership,
    Predicate,
    both,
    compile_filter,
    select,
    tokenize,
)

__all__ = [
    "MATCH_ALL",
    "Compare",
    "Conjunction",
    "Disjunction",
    "MatchAll",
    "Membership",
    "Predicate",
    "both",
    "compile_filter",
    "select",
    "tokenize",
]
