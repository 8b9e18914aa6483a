"""
FlowLens Output
================

Output sinks, line formatting, CSV export and the JSON report.
"""

from flowlens.output.console import BufferIO, ConsoleIO, FlowConsoleOutput, TerminalIO
from flowlens.output.export import export_flows
from flowlens.output.report import FlowReportGenerator

__all__ = [
    "BufferIO",
    "ConsoleIO",
    "FlowConsoleOutput",
    "FlowReportGenerator",
    "TerminalIO",
    "export_flows",
]
