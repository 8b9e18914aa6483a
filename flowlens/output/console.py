"""
FlowLens Console Output
========================

Output sinks for engine operations and the Rich renderer for correlated
scan results.

Engine operations never print directly; they write result lines to a
:class:`TerminalIO` sink. :class:`ConsoleIO` sends them to the terminal
through :class:`~shared.console.FlowConsole`; :class:`BufferIO` keeps them
in memory for scripting and tests.

References:
    - Rich library: https://github.com/Textualize/rich
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from rich.panel import Panel

from shared.console import FlowConsole
from shared.models import ScanResult


@runtime_checkable
class TerminalIO(Protocol):
    """Line-oriented output sink."""

    def out(self, line: str) -> None: ...

    def err(self, line: str) -> None: ...


class ConsoleIO:
    """Writes result lines to stdout and error lines to stderr."""

    def __init__(
        self,
        console: FlowConsole | None = None,
        errors: FlowConsole | None = None,
    ) -> None:
        self.console = console or FlowConsole()
        self.errors = errors or FlowConsole(stderr=True)

    def out(self, line: str) -> None:
        self.console.line(line)

    def err(self, line: str) -> None:
        self.errors.line(line)


class BufferIO:
    """Collects lines in memory.

    Usage::

        io = BufferIO()
        engine.top_talkers(io)
        assert io.lines[0].startswith("10.0.0.5")
    """

    def __init__(self) -> None:
        self.lines: list[str] = []
        self.errors: list[str] = []

    def out(self, line: str) -> None:
        self.lines.append(line)

    def err(self, line: str) -> None:
        self.errors.append(line)

    @property
    def text(self) -> str:
        return "\n".join(self.lines)

    def clear(self) -> None:
        self.lines.clear()
        self.errors.clear()


class FlowConsoleOutput:
    """Renders a correlated :class:`ScanResult` with Rich tables.

    Usage::

        FlowConsoleOutput().display(result)
    """

    def __init__(self, console: FlowConsole | None = None) -> None:
        self.console = console or FlowConsole()

    def display(self, result: ScanResult) -> None:
        meta = result.metadata

        self.console.print(
            Panel(
                "[bright_cyan]FLOWLENS[/bright_cyan] -- "
                "[bright_magenta]Network Flow Analysis[/bright_magenta]",
                border_style="bright_cyan",
            )
        )
        self._display_summary(result)

        talkers = meta.get("top_talkers", [])
        if talkers:
            self.display_talkers(talkers)

        graph = meta.get("graph", {})
        if graph:
            self.display_graph(graph)

        if result.findings:
            self.console.section("Findings")
            self.console.findings_table(result.findings)
        else:
            self.console.info("No findings under the current filter.")

        notes = meta.get("notes", [])
        if notes:
            self.console.section("Notes")
            for note in notes:
                self.console.line(f"- {note}")

        self.console.blank()
        self.console.divider()
        duration = result.duration_seconds or 0.0
        self.console.success(
            f"Scan complete. {result.finding_count} findings. "
            f"Duration: {duration:.2f}s"
        )

    def _display_summary(self, result: ScanResult) -> None:
        self.console.section("Summary")
        meta = result.metadata
        self.console.table(
            "Dataset",
            ["Field", "Value"],
            [
                ["Source", result.target],
                ["Flows", f"{meta.get('flow_count', 0):,}"],
                ["Filtered", f"{meta.get('filtered_count', 0):,}"],
                ["Filter", meta.get("filter") or "(none)"],
                [
                    "Findings",
                    f"{result.finding_count} (Critical: {result.critical_count}, "
                    f"High: {result.high_count})",
                ],
            ],
            styles=["bright_white", "bright_cyan"],
        )

    def display_talkers(self, talkers: list[dict[str, Any]]) -> None:
        self.console.section("Top Talkers")
        self.console.table(
            "Sources by bytes",
            ["Source", "Bytes"],
            [[row.get("src_ip", ""), f"{row.get('value', 0):,}"] for row in talkers],
            styles=["bright_white", "bright_green"],
        )

    def display_graph(self, graph: dict[str, Any]) -> None:
        self.console.section("Communication Graph")
        self.console.table(
            "Hosts",
            ["Metric", "Value"],
            [
                ["Hosts", graph.get("host_count", 0)],
                ["Service edges", graph.get("edge_count", 0)],
                ["Peer pairs", graph.get("peer_pairs", 0)],
                ["Components", graph.get("components", 0)],
            ],
            styles=["bright_white", "bright_cyan"],
        )
        fan_out = graph.get("top_fan_out", [])
        if fan_out:
            self.console.table(
                "Widest fan-out",
                ["Host", "Peers"],
                fan_out,
                styles=["bright_white", "bright_yellow"],
            )
