"""
FlowLens Line Formatting
=========================

Text renderings of flows and analysis results, one line each. The engine
writes these to its :class:`~flowlens.output.console.TerminalIO` sink.
"""

from __future__ import annotations

import datetime as _dt
from typing import Optional

from flowlens.core.models import (
    ExfilAlert,
    Flow,
    RareDomain,
    SynScanOffender,
    TalkerRow,
    TimelineBucket,
)


def fmt_ts(seconds: float) -> str:
    """Local wall-clock ``HH:MM:SS`` for an epoch timestamp."""
    try:
        return _dt.datetime.fromtimestamp(seconds).strftime("%H:%M:%S")
    except (OverflowError, OSError, ValueError):
        return f"{seconds:.0f}"


def format_flow(flow: Flow) -> str:
    return (
        f"{fmt_ts(flow.timestamp)}  {flow.src_ip}:{flow.src_port} -> "
        f"{flow.dst_ip}:{flow.dst_port}  p={flow.protocol}  "
        f"bytes={flow.bytes_total}  pkts={flow.packets}  "
        f"flags={flow.tcp_flags}  q={flow.dns_query}"
    )


def format_talker(row: TalkerRow, label: Optional[str] = None) -> str:
    """*label* is the metric name as the user typed it, if any."""
    return f"{row.src_ip:<16}  {row.value:>12,} {label or row.metric.value}"


def format_bucket(bucket: TimelineBucket) -> str:
    return f"{fmt_ts(bucket.start)}  {'#' * bucket.bar}  ({bucket.value:,})"


def format_offender(offender: SynScanOffender) -> str:
    return (
        f"{offender.src_ip}  fanout={offender.fanout}  "
        f"window={offender.window}s  until={fmt_ts(offender.until)}"
    )


def format_exfil(alert: ExfilAlert) -> str:
    return (
        f"EXFIL suspected: {alert.host}  bytes={alert.bytes_total:,} "
        f"(>= {alert.threshold_bytes:,})  window={alert.window}s  "
        f"until={fmt_ts(alert.until)}"
    )


def format_rare(rare: RareDomain) -> str:
    return f"{rare.domain:<50}  count={rare.count}  NX={rare.nxdomain}"
