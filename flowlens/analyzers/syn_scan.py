"""
FlowLens SYN-Scan Detector
===========================

Flags sources whose bare-SYN fan-out to distinct ``dst:dport`` targets
reaches a threshold inside a sliding time window.

A bare SYN is a TCP flow whose flags token contains ``0x02`` and does
not contain ``0x10`` (ACK). Matching is by substring on the raw token,
so ``0x12`` (SYN+ACK written as one byte) is not counted as a SYN.

The window slides over whole seconds: for each second ``t`` at which the
source sent SYNs, the distinct targets over ``[t - window, t]`` are
counted. A source is reported once, for the first ``t`` that qualifies.

References:
    - Jung, J., Paxson, V., Berger, A. W., & Balakrishnan, H. (2004).
      Fast Portscan Detection Using Sequential Hypothesis Testing.
      IEEE S&P 2004.
    - RFC 9293: Transmission Control Protocol (TCP).
"""

from __future__ import annotations

from collections import Counter
from typing import Iterable, Optional

from shared.logger import FlowLogger

from flowlens.core.models import Flow, SynScanOffender

logger = FlowLogger("analyzers.syn_scan")

SYN_MARKER = "0x02"
ACK_MARKER = "0x10"


def is_bare_syn(flow: Flow) -> bool:
    """``True`` for a TCP flow carrying SYN without ACK."""
    flags = flow.tcp_flags
    return flow.is_tcp and SYN_MARKER in flags and ACK_MARKER not in flags


class SynScanDetector:
    """Sliding-window fan-out counter for bare TCP SYNs.

    Usage::

        detector = SynScanDetector(window=120, threshold=150)
        offenders = detector.detect(flows)
        offenders = detector.detect(flows, src="10.0.0.66")
    """

    def __init__(self, window: int = 120, threshold: int = 150) -> None:
        self.window: int = max(0, window)
        self.threshold: int = threshold

    def detect(
        self,
        flows: Iterable[Flow],
        src: Optional[str] = None,
    ) -> list[SynScanOffender]:
        """Return offenders in the order their sources first sent a SYN.

        Args:
            flows: Flows already narrowed by the active filter.
            src: Restrict the check to this one source.

        Returns:
            One :class:`SynScanOffender` per qualifying source.
        """
        per_source: dict[str, dict[int, set[str]]] = {}
        for flow in flows:
            if src and flow.src_ip != src:
                continue
            if not is_bare_syn(flow):
                continue
            per_source.setdefault(flow.src_ip, {}).setdefault(flow.second, set()).add(
                f"{flow.dst_ip}:{flow.dst_port}"
            )

        offenders: list[SynScanOffender] = []
        for source, by_second in per_source.items():
            hit = self._first_qualifying(by_second)
            if hit is not None:
                until, fanout = hit
                offenders.append(
                    SynScanOffender(
                        src_ip=source, fanout=fanout, window=self.window, until=until
                    )
                )

        logger.info(
            "SYN scan: %d sources checked, %d offenders (window=%ds, threshold=%d)",
            len(per_source),
            len(offenders),
            self.window,
            self.threshold,
        )
        return offenders

    def _first_qualifying(
        self, by_second: dict[int, set[str]]
    ) -> Optional[tuple[int, int]]:
        """Slide over the source's seconds, keeping a target refcount."""
        seconds = sorted(by_second)
        in_window: Counter[str] = Counter()
        lo = 0

        for t in seconds:
            in_window.update(by_second[t])
            while seconds[lo] < t - self.window:
                for target in by_second[seconds[lo]]:
                    in_window[target] -= 1
                    if not in_window[target]:
                        del in_window[target]
                lo += 1

            if len(in_window) >= self.threshold:
                return t, len(in_window)
        return None
