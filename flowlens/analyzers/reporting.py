"""
FlowLens Reporting
===================

Read-only aggregations over the flows that pass the active filter:

- :class:`TopTalkers` -- sources ranked by bytes sent or flow count.
- :class:`Timeline`   -- fixed-width time buckets with proportional bars.

Neither report touches the store's last result set.
"""

from __future__ import annotations

import math
from typing import Iterable

from shared.logger import FlowLogger

from flowlens.core.models import Flow, Metric, TalkerRow, TimelineBucket

logger = FlowLogger("analyzers.reporting")


def _increment(flow: Flow, metric: Metric) -> int:
    return 1 if metric is Metric.FLOWS else flow.bytes_total


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class TopTalkers:
    """Ranks sources by accumulated bytes or flow count.

    Usage::

        rows = TopTalkers(limit=5).rank(flows, Metric.BYTES)
    """

    def __init__(self, limit: int = 5) -> None:
        self.limit: int = max(1, limit)

    def rank(self, flows: Iterable[Flow], metric: Metric = Metric.BYTES) -> list[TalkerRow]:
        """Return the top ``limit`` sources, highest value first.

        Ties keep the order in which the sources first appeared.
        """
        totals: dict[str, int] = {}
        for flow in flows:
            totals[flow.src_ip] = totals.get(flow.src_ip, 0) + _increment(flow, metric)

        ranked = sorted(totals.items(), key=lambda item: item[1], reverse=True)
        logger.debug("Ranked %d sources by %s", len(ranked), metric.value)
        return [
            TalkerRow(src_ip=src, value=value, metric=metric)
            for src, value in ranked[: self.limit]
        ]


class Timeline:
    """Buckets flows into ``period``-second windows.

    The bucket key is ``floor(ts / period) * period``; a flow at ``t=125``
    with ``period=60`` lands in bucket ``120``. Bars are scaled against the
    largest bucket: ``max(1, round(bar_width * value / peak))``.
    """

    def __init__(self, period: int = 60, bar_width: int = 40) -> None:
        self.period: int = max(1, period)
        self.bar_width: int = bar_width

    def bucket_of(self, timestamp: float) -> int:
        return int(math.floor(timestamp / self.period)) * self.period

    def build(self, flows: Iterable[Flow], metric: Metric = Metric.BYTES) -> list[TimelineBucket]:
        """Return buckets in ascending time order."""
        totals: dict[int, int] = {}
        for flow in flows:
            key = self.bucket_of(flow.timestamp)
            totals[key] = totals.get(key, 0) + _increment(flow, metric)

        if not totals:
            return []

        peak = max(totals.values())
        buckets: list[TimelineBucket] = []
        for start in sorted(totals):
            value = totals[start]
            bar = _round_half_up(self.bar_width * value / peak) if peak > 0 else 0
            buckets.append(TimelineBucket(start=start, value=value, bar=max(1, bar)))
        return buckets
