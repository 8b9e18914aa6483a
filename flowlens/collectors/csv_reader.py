"""
FlowLens Flow Table Reader
===========================

Reads a comma-separated flow table into :class:`Flow` records.

File format::

    # comments start with '#' outside quotes, anywhere on a line
    ts,src,dst,sport,dport,proto,bytes,pkts,tcp_flags,dns_qname,dns_rcode
    1700000000.25,10.0.0.5,8.8.8.8,51522,53,17,90,1,,example.com,0

The first non-blank, non-comment line is the header; columns are looked up
by exact name. Parsing is best effort per field: a missing or malformed
value falls back to its default and the row is still kept. Double quotes
toggle quoting (commas inside are literal); there is no escape for a quote
character inside a quoted field.
"""

from __future__ import annotations

import math
import re
from pathlib import Path
from typing import Iterator, Optional

from shared.logger import FlowLogger

from flowlens.core.models import Flow

logger = FlowLogger("collectors.csv")

COLUMNS: tuple[str, ...] = (
    "ts",
    "src",
    "dst",
    "sport",
    "dport",
    "proto",
    "bytes",
    "pkts",
    "tcp_flags",
    "dns_qname",
    "dns_rcode",
)

_NON_DIGITS = re.compile(r"[^0-9]")
# ASCII digits only; underscores and other scripts fall back to the default
_INTEGER = re.compile(r"[+-]?[0-9]+")
_REAL = re.compile(r"[+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")


def strip_comment(line: str) -> str:
    """Cut *line* at the first ``#`` that is not inside double quotes."""
    in_quotes = False
    for idx, char in enumerate(line):
        if char == '"':
            in_quotes = not in_quotes
        elif char == "#" and not in_quotes:
            return line[:idx]
    return line


def split_fields(line: str) -> list[str]:
    """Split one line on commas outside double quotes, dropping the quotes."""
    fields: list[str] = []
    current: list[str] = []
    in_quotes = False
    for char in line:
        if char == '"':
            in_quotes = not in_quotes
            continue
        if char == "," and not in_quotes:
            fields.append("".join(current))
            current = []
        else:
            current.append(char)
    fields.append("".join(current))
    return fields


class _Row:
    """Field accessor for one data line, keyed by header column name."""

    __slots__ = ("_fields", "_index")

    def __init__(self, fields: list[str], index: dict[str, int]) -> None:
        self._fields = fields
        self._index = index

    def text(self, column: str, default: str = "") -> str:
        idx = self._index.get(column)
        if idx is None or idx >= len(self._fields):
            return default
        return self._fields[idx].strip()

    def integer(self, column: str, default: int) -> int:
        raw = self.text(column)
        if _INTEGER.fullmatch(raw):
            return int(raw)
        if raw:
            logger.debug("Bad integer %r in column %s, using %d", raw, column, default)
        return default

    def real(self, column: str, default: float) -> float:
        raw = self.text(column)
        if _REAL.fullmatch(raw):
            value = float(raw)
            if math.isfinite(value):
                return value
        if raw:
            logger.debug("Bad number %r in column %s, using %s", raw, column, default)
        return default


def parse_row(fields: list[str], index: dict[str, int]) -> Flow:
    """Build one :class:`Flow` from split *fields* using the header *index*."""
    row = _Row(fields, index)
    return Flow(
        timestamp=row.real("ts", 0.0),
        src_ip=row.text("src"),
        dst_ip=row.text("dst"),
        src_port=row.integer("sport", 0),
        dst_port=row.integer("dport", 0),
        protocol=row.integer("proto", 0),
        bytes_total=max(0, row.integer("bytes", 0)),
        packets=max(0, row.integer("pkts", 1)),
        tcp_flags=row.text("tcp_flags"),
        dns_query=row.text("dns_qname"),
        dns_rcode=_NON_DIGITS.sub("", row.text("dns_rcode")),
    )


class FlowCsvReader:
    """Streams :class:`Flow` records out of a flow table file.

    Usage::

        reader = FlowCsvReader()
        flows = reader.read("flows.csv")
        reader.header        # column names of the last file read

    Raises ``OSError`` (``FileNotFoundError`` included) when the file
    cannot be opened or read; nothing else aborts a read.
    """

    def __init__(self, encoding: str = "utf-8") -> None:
        self.encoding = encoding
        self.header: Optional[list[str]] = None

    def read(self, path: str | Path) -> list[Flow]:
        """Parse every data row of *path* into a list, in file order."""
        flows = list(self.iter_flows(path))
        logger.info("Parsed %d flows", len(flows), source=str(path))
        return flows

    def iter_flows(self, path: str | Path) -> Iterator[Flow]:
        self.header = None
        index: dict[str, int] = {}

        with open(path, "r", encoding=self.encoding, errors="replace", newline="") as fh:
            for raw_line in fh:
                line = strip_comment(raw_line.rstrip("\r\n")).strip()
                if not line:
                    continue

                if self.header is None:
                    self.header = [name.strip() for name in split_fields(line)]
                    index = {name: i for i, name in enumerate(self.header)}
                    missing = [c for c in COLUMNS if c not in index]
                    if missing:
                        logger.debug("Header lacks columns %s; defaults apply", missing)
                    continue

                yield parse_row(split_fields(line), index)
