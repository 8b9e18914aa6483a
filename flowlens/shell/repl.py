"""Interactive read-eval loop over a :class:`CommandDispatcher`."""

from __future__ import annotations

from typing import Iterable

from shared.console import FlowConsole

from flowlens.shell.commands import CommandDispatcher


def run_script(dispatcher: CommandDispatcher, lines: Iterable[str]) -> bool:
    """Run command lines in order, skipping blanks and ``#`` comment lines.

    Returns ``False`` if a line asked to exit.
    """
    for line in lines:
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if not dispatcher.execute_line(stripped):
            return False
    return True


def run_repl(dispatcher: CommandDispatcher, console: FlowConsole, prompt: str) -> None:
    console.info("FlowLens shell. Type 'help' for commands, 'exit' to leave.")
    while True:
        try:
            line = console.input(prompt)
        except (EOFError, KeyboardInterrupt):
            console.blank()
            break
        if not dispatcher.execute_line(line):
            break
