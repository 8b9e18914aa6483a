"""
FlowLens CSV Export
====================

Writes flows back out in the ingestion column layout, so an exported
result set can be loaded again.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

from shared.logger import FlowLogger

from flowlens.collectors.csv_reader import COLUMNS
from flowlens.core.models import Flow

logger = FlowLogger("output.export")


def _clean(text: str) -> str:
    """Replace commas; quote a field holding ``#`` so it is not read as a comment."""
    text = text.replace(",", " ")
    if "#" in text:
        return f'"{text}"'
    return text


def flow_to_row(flow: Flow) -> str:
    """One CSV line; the timestamp keeps its shortest exact float form."""
    return ",".join(
        (
            repr(flow.timestamp),
            _clean(flow.src_ip),
            _clean(flow.dst_ip),
            str(flow.src_port),
            str(flow.dst_port),
            str(flow.protocol),
            str(flow.bytes_total),
            str(flow.packets),
            _clean(flow.tcp_flags),
            _clean(flow.dns_query),
            _clean(flow.dns_rcode),
        )
    )


def export_flows(flows: Iterable[Flow], path: str | Path) -> int:
    """Write the header and one row per flow; return the row count.

    Raises:
        OSError: The file cannot be created or written.
    """
    count = 0
    with open(path, "w", encoding="utf-8", newline="") as fh:
        fh.write(",".join(COLUMNS) + "\n")
        for flow in flows:
            fh.write(flow_to_row(flow) + "\n")
            count += 1
    logger.info("Exported %d rows to %s", count, path)
    return count
