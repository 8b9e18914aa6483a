"""
FlowLens Rare DNS Analyzer
===========================

Counts DNS query names under the active filter and lists those seen at
most ``minimum`` times, rarest first. NXDOMAIN answers (rcode ``3``) are
counted per name alongside.

Rare and failing lookups are a cheap signal for DGA activity and
DNS tunnelling.

References:
    - Antonakakis, M. et al. (2012). From Throw-Away Traffic to Bots:
      Detecting the Rise of DGA-Based Malware. USENIX Security '12.
"""

from __future__ import annotations

from typing import Iterable

from shared.logger import FlowLogger

from flowlens.core.models import Flow, RareDomain

logger = FlowLogger("analyzers.dns_rare")


class DnsRarityAnalyzer:
    """Usage::

        rare = DnsRarityAnalyzer(minimum=2).detect(flows)
    """

    def __init__(self, minimum: int = 2) -> None:
        self.minimum: int = minimum

    def detect(self, flows: Iterable[Flow]) -> list[RareDomain]:
        """Rare names by ascending count; equal counts keep first-seen order."""
        counts: dict[str, int] = {}
        failures: dict[str, int] = {}
        for flow in flows:
            name = flow.dns_query
            if not name:
                continue
            counts[name] = counts.get(name, 0) + 1
            if flow.is_nxdomain:
                failures[name] = failures.get(name, 0) + 1

        rare = [
            RareDomain(domain=name, count=count, nxdomain=failures.get(name, 0))
            for name, count in counts.items()
            if count <= self.minimum
        ]
        rare.sort(key=lambda item: item.count)

        logger.info(
            "DNS rarity: %d distinct names, %d at or below %d",
            len(counts),
            len(rare),
            self.minimum,
        )
        return rare
