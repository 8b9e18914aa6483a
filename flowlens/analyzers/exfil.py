"""
FlowLens Exfiltration Detector
===============================

Checks whether one host pushed at least ``threshold_mb`` MiB to external
destinations inside any ``window``-second span.

A destination is internal when its identifier starts with ``10.``;
everything else counts as egress. Egress points are ordered by whole
second (ties keep file order) and summed with a sliding window; the
first point at which the running sum reaches the threshold is reported.

References:
    - MITRE ATT&CK T1048: Exfiltration Over Alternative Protocol.
    - MITRE ATT&CK T1030: Data Transfer Size Limits.
"""

from __future__ import annotations

from collections import deque
from typing import Iterable

from shared.logger import FlowLogger

from flowlens.core.models import ExfilAlert, ExfilVerdict, Flow

logger = FlowLogger("analyzers.exfil")

INTERNAL_PREFIX = "10."
MIB = 1024 * 1024


def is_internal(address: str) -> bool:
    return address.startswith(INTERNAL_PREFIX)


class ExfilDetector:
    """Sliding-window egress volume check for a single host.

    Usage::

        verdict = ExfilDetector(window=600, threshold_mb=50).detect(flows, "10.0.0.5")
        if verdict.suspected:
            print(verdict.alert.bytes_total)
    """

    def __init__(self, window: int = 600, threshold_mb: int = 50) -> None:
        self.window: int = window
        self.threshold_mb: int = threshold_mb

    @property
    def threshold_bytes(self) -> int:
        return self.threshold_mb * MIB

    def detect(self, flows: Iterable[Flow], host: str) -> ExfilVerdict:
        points = sorted(
            (
                (flow.second, flow.bytes_total)
                for flow in flows
                if flow.src_ip == host and not is_internal(flow.dst_ip)
            ),
            key=lambda point: point[0],
        )

        alert = None
        in_window: deque[tuple[int, int]] = deque()
        running = 0
        for t, size in points:
            in_window.append((t, size))
            running += size
            while in_window and in_window[0][0] < t - self.window:
                running -= in_window.popleft()[1]

            if running >= self.threshold_bytes:
                alert = ExfilAlert(
                    host=host,
                    bytes_total=running,
                    threshold_bytes=self.threshold_bytes,
                    window=self.window,
                    until=t,
                )
                break

        logger.info(
            "Exfil check for %s: %d egress points, %s",
            host,
            len(points),
            "ALERT" if alert else "clear",
        )
        return ExfilVerdict(
            host=host,
            threshold_mb=self.threshold_mb,
            candidates=len(points),
            alert=alert,
        )
