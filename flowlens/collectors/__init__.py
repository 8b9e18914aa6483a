"""
FlowLens Collectors
====================

Flow table ingestion.

- ``csv_reader`` -- comment-tolerant CSV reader producing Flow records
- ``demo``       -- demo flow table generator
"""

from flowlens.collectors.csv_reader import COLUMNS, FlowCsvReader
from flowlens.collectors.demo import write_demo

__all__ = ["COLUMNS", "FlowCsvReader", "write_demo"]
