"""
FlowLens Console Interface
===========================

Rich console wrapper shared by the shell, the CLI and the scan renderer.

Result lines go through :meth:`FlowConsole.line`, which prints text
verbatim: flow tables are full of brackets (``[445/p6]``) that Rich would
otherwise read as markup. Status messages, tables and the findings table
use the FlowLens palette below.

References:
    - Rich library: https://github.com/Textualize/rich
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterable, Iterator, Sequence

from rich.console import Console
from rich.markup import escape
from rich.status import Status
from rich.table import Table
from rich.theme import Theme

from shared.models import Finding, Severity

_FLOW_THEME = Theme(
    {
        "flow.section": "bold cyan",
        "flow.border": "cyan",
        "flow.header": "bold white",
        "flow.ok": "green",
        "flow.warn": "yellow",
        "flow.fail": "bold red",
        "flow.note": "blue",
        "sev.critical": "bold white on red",
        "sev.high": "bold red",
        "sev.medium": "yellow",
        "sev.low": "cyan",
        "sev.info": "dim",
    }
)

# (prefix, style) per message kind
_MESSAGE_KINDS: dict[str, tuple[str, str]] = {
    "success": ("ok", "flow.ok"),
    "warning": ("warning:", "flow.warn"),
    "error": ("error:", "flow.fail"),
    "info": ("--", "flow.note"),
}


def severity_style(severity: Severity) -> str:
    return f"sev.{severity.value.lower()}"


class FlowConsole:
    """Themed console for one output stream.

    Usage::

        con = FlowConsole()
        con.section("Top Talkers")
        con.line("10.0.0.5 -> 10.0.0.9 [445/p6]")
        con.error("File not found: flows.csv")

    Args:
        stderr: Write to stderr instead of stdout.
    """

    def __init__(self, *, stderr: bool = False) -> None:
        self._console = Console(theme=_FLOW_THEME, highlight=False, stderr=stderr)

    def line(self, text: str) -> None:
        """Print a result line verbatim (no markup, no wrapping)."""
        self._console.print(text, markup=False, soft_wrap=True)

    def _message(self, kind: str, message: str) -> None:
        prefix, style = _MESSAGE_KINDS[kind]
        self._console.print(f"[{style}]{prefix}[/{style}] {escape(message)}")

    def success(self, message: str) -> None:
        self._message("success", message)

    def warning(self, message: str) -> None:
        self._message("warning", message)

    def error(self, message: str) -> None:
        self._message("error", message)

    def info(self, message: str) -> None:
        self._message("info", message)

    def section(self, title: str) -> None:
        self._console.rule(f" {escape(title)} ", style="flow.section")

    def divider(self) -> None:
        self._console.rule(style="dim")

    def blank(self) -> None:
        self._console.print()

    def table(
        self,
        title: str,
        columns: Sequence[str],
        rows: Iterable[Sequence[Any]],
        *,
        styles: Sequence[str] = (),
    ) -> None:
        """Two-or-more column table; cells are stringified and escaped."""
        tbl = Table(title=title, border_style="flow.border", header_style="flow.header")
        for idx, name in enumerate(columns):
            tbl.add_column(name, style=styles[idx] if idx < len(styles) else "")
        for row in rows:
            tbl.add_row(*(escape(str(cell)) for cell in row))
        self._console.print(tbl)

    def findings_table(self, findings: Sequence[Finding]) -> None:
        """Findings with their detector, coloured by severity."""
        tbl = Table(
            title="Findings",
            border_style="flow.border",
            header_style="flow.header",
            show_lines=True,
        )
        tbl.add_column("#", style="dim", justify="right")
        tbl.add_column("Severity")
        tbl.add_column("Detector", style="dim")
        tbl.add_column("Title")
        tbl.add_column("Description", ratio=2)
        for idx, finding in enumerate(findings, start=1):
            style = severity_style(finding.severity)
            tbl.add_row(
                str(idx),
                f"[{style}]{finding.severity.value}[/{style}]",
                escape(finding.detector),
                escape(finding.title),
                escape(finding.description),
            )
        self._console.print(tbl)

    @contextmanager
    def status(self, message: str) -> Iterator[Status]:
        """Spinner shown while the block runs."""
        with self._console.status(escape(message), spinner="dots") as spinner:
            yield spinner

    def input(self, prompt: str) -> str:
        """Read one line (raises ``EOFError`` at end of input)."""
        return self._console.input(prompt, markup=False)

    def print(self, *renderables: Any) -> None:
        self._console.print(*renderables)
