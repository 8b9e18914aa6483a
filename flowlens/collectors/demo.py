"""
Demo flow table generator.

Writes a small flow table anchored at the current time that exercises
every report and detector: internal SMB chatter, an egress burst to public
resolvers, a short SYN sweep, NXDOMAIN lookups and an RDP exchange.
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import Optional

from flowlens.collectors.csv_reader import COLUMNS

_SWEEP_PORTS = (22, 23, 25, 80, 110, 135, 139, 143, 443, 445, 8080)


def demo_rows(t0: int) -> list[str]:
    """Return the demo data lines (without header) anchored at *t0*."""
    rows = [
        f"{t0},10.1.2.10,10.1.2.23,12345,445,6,820,1,0x18,,",
        f"{t0 + 5},10.1.2.10,10.1.2.23,12345,445,6,840,1,0x18,,",
        f"{t0 + 60},10.1.2.23,8.8.8.8,51522,443,6,1048576,5,0x18,,",
        f"{t0 + 120},10.1.2.23,8.8.4.4,51522,443,6,1572864,7,0x18,,",
        f"{t0 + 180},10.1.2.23,1.1.1.1,51522,443,6,943718,4,0x18,,",
        f"{t0 + 240},10.1.2.23,9.9.9.9,51522,443,6,524288,3,0x18,,",
    ]
    for i, port in enumerate(_SWEEP_PORTS):
        rows.append(f"{t0 + 300 + i},10.1.2.50,10.1.2.{20 + i},53000,{port},6,60,1,0x02,,")
    rows += [
        f"{t0 + 400},10.1.2.31,10.1.2.53,53100,53,17,90,1,,odd1.bad.labs,3",
        f"{t0 + 405},10.1.2.31,10.1.2.53,53101,53,17,90,1,,odd2.bad.labs,3",
        f"{t0 + 410},10.1.2.31,10.1.2.53,53102,53,17,90,1,,www.google.com,0",
        f"{t0 + 415},10.1.2.31,10.1.2.53,53103,53,17,90,1,,assets.cloudflare.com,0",
        f"{t0 + 500},10.1.2.40,10.1.2.41,54000,3389,6,50000,10,0x18,,",
        f"{t0 + 560},10.1.2.41,10.1.2.40,3389,54000,6,52000,10,0x18,,",
    ]
    return rows


def write_demo(path: str | Path, now: Optional[int] = None) -> int:
    """Write the demo table to *path*; returns the number of data rows."""
    t0 = int(time.time()) if now is None else now
    rows = demo_rows(t0)
    with open(path, "w", encoding="utf-8", newline="\n") as fh:
        fh.write(",".join(COLUMNS) + "\n")
        for row in rows:
            fh.write(row + "\n")
    return len(rows)
