"""
FlowLens Flow Store
====================

In-memory state of one analysis session: the loaded flow records, the
active filter, the last explicit result set and the analyst's notes.

One :class:`FlowEngine` owns one store and is its only writer. Work that
runs on another thread receives a :class:`StoreSnapshot` instead of the
store itself.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from flowlens.core.models import Flow
from flowlens.query.filter import MATCH_ALL, Predicate, compile_filter, select


@dataclass(frozen=True)
class StoreSnapshot:
    """Immutable view of the records and the active filter at one instant."""

    flows: tuple[Flow, ...]
    active_filter: Predicate = MATCH_ALL
    filter_text: str = ""
    source: Optional[Path] = None

    def filtered(self) -> list[Flow]:
        """Records passing the active filter, in file order."""
        return select(self.flows, self.active_filter)


@dataclass
class FlowStore:
    """Mutable session state.

    Attributes:
        source: Flow table registered by ``load``; ``None`` until then.
        flows: Records of the last successful build, in file order.
        active_filter: Compiled global filter.
        filter_text: Source text of the active filter.
        last_result: Most recent explicit result set (feeds export).
        notes: Free-text notes in the order they were added.
    """

    source: Optional[Path] = None
    flows: list[Flow] = field(default_factory=list)
    active_filter: Predicate = MATCH_ALL
    filter_text: str = ""
    last_result: list[Flow] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)

    def clear_records(self) -> None:
        self.flows = []

    def replace_records(self, flows: Iterable[Flow]) -> None:
        """Swap in a freshly parsed dataset and reset the filter to match-all."""
        self.flows = list(flows)
        self.active_filter = MATCH_ALL
        self.filter_text = ""

    def set_filter(self, expr: str) -> Predicate:
        self.active_filter = compile_filter(expr)
        self.filter_text = expr.strip()
        return self.active_filter

    def set_result(self, flows: Iterable[Flow]) -> None:
        self.last_result = list(flows)

    def add_note(self, text: str) -> None:
        self.notes.append(text)

    def filtered(self) -> list[Flow]:
        """Records passing the active filter, in file order."""
        return select(self.flows, self.active_filter)

    def snapshot(self) -> StoreSnapshot:
        return StoreSnapshot(
            flows=tuple(self.flows),
            active_filter=self.active_filter,
            filter_text=self.filter_text,
            source=self.source,
        )

    def __len__(self) -> int:
        return len(self.flows)
