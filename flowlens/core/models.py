"""
FlowLens Data Models
=====================

Pydantic models for flow records and for the typed results of the
reporting and detection operations.

A :class:`Flow` is one summarised network conversation as read from the
flow table. It is immutable once built; its identity is its position in
the loaded dataset.
"""

from __future__ import annotations

import enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

PROTO_TCP = 6
PROTO_UDP = 17

NXDOMAIN_RCODE = "3"


class Metric(str, enum.Enum):
    """Accumulation mode for top-talkers and timeline."""

    BYTES = "bytes"
    FLOWS = "flows"

    @classmethod
    def parse(cls, label: Optional[str]) -> Metric:
        """``"flows"`` in any case selects flow counting; anything else is bytes."""
        if label is not None and label.strip().lower() == cls.FLOWS.value:
            return cls.FLOWS
        return cls.BYTES


# ---------------------------------------------------------------------------
#  Flow record
# ---------------------------------------------------------------------------


class Flow(BaseModel):
    """A single flow record.

    Attributes:
        timestamp: Seconds since epoch (sub-second precision kept).
        src_ip: Source identifier, compared by exact string equality.
        dst_ip: Destination identifier.
        src_port: Source port.
        dst_port: Destination port.
        protocol: IP protocol number (6 = TCP, 17 = UDP).
        bytes_total: Bytes carried by the flow.
        packets: Packets carried by the flow.
        tcp_flags: Free-form flags token such as ``0x02``; empty when unknown.
        dns_query: DNS query name, empty when the flow carries none.
        dns_rcode: Digits-only DNS response code; ``"3"`` is NXDOMAIN.
    """

    model_config = ConfigDict(frozen=True)

    timestamp: float = 0.0
    src_ip: str = ""
    dst_ip: str = ""
    src_port: int = 0
    dst_port: int = 0
    protocol: int = 0
    bytes_total: int = Field(default=0, ge=0)
    packets: int = Field(default=1, ge=0)
    tcp_flags: str = ""
    dns_query: str = ""
    dns_rcode: str = ""

    @property
    def is_tcp(self) -> bool:
        return self.protocol == PROTO_TCP

    @property
    def is_udp(self) -> bool:
        return self.protocol == PROTO_UDP

    @property
    def second(self) -> int:
        """Timestamp truncated to whole seconds."""
        return int(self.timestamp)

    @property
    def is_nxdomain(self) -> bool:
        return self.dns_rcode == NXDOMAIN_RCODE


# ---------------------------------------------------------------------------
#  Reporting results
# ---------------------------------------------------------------------------


class TalkerRow(BaseModel):
    """One ranked row of the top-talkers report."""

    src_ip: str
    value: int
    metric: Metric = Metric.BYTES


class TimelineBucket(BaseModel):
    """One fixed-width time bucket of the timeline report.

    Attributes:
        start: Bucket start, ``floor(ts / period) * period``.
        value: Accumulated bytes or flow count.
        bar: Length of the proportional bar.
    """

    start: int
    value: int
    bar: int = 1


class Edge(BaseModel):
    """A distinct ``(src, dst, dst_port, protocol)`` communication edge."""

    model_config = ConfigDict(frozen=True)

    src_ip: str
    dst_ip: str
    dst_port: int
    protocol: int

    def __str__(self) -> str:
        return f"{self.src_ip} -> {self.dst_ip} [{self.dst_port}/p{self.protocol}]"


# ---------------------------------------------------------------------------
#  Detection results
# ---------------------------------------------------------------------------


class SynScanOffender(BaseModel):
    """A source whose bare-SYN fan-out reached the threshold.

    Attributes:
        src_ip: Offending source.
        fanout: Distinct ``dst:dport`` targets in the window.
        window: Window length in seconds.
        until: Whole-second timestamp that closed the qualifying window.
    """

    src_ip: str
    fanout: int
    window: int
    until: int


class ExfilAlert(BaseModel):
    """First point at which a host's external egress reached the threshold."""

    host: str
    bytes_total: int
    threshold_bytes: int
    window: int
    until: int


class ExfilVerdict(BaseModel):
    """Outcome of one exfiltration check.

    ``candidates`` counts the egress points considered; ``alert`` is set
    when the sliding-window sum reached the threshold.
    """

    host: str
    threshold_mb: int
    candidates: int = 0
    alert: Optional[ExfilAlert] = None

    @property
    def suspected(self) -> bool:
        return self.alert is not None


class RareDomain(BaseModel):
    """A DNS name seen at most ``minimum`` times under the active filter."""

    domain: str
    count: int
    nxdomain: int = 0
