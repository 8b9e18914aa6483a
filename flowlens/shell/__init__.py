"""
FlowLens Shell
===============

Command-line parsing, dispatch to the engine, and the interactive loop.
"""

from flowlens.shell.commands import (
    CommandArgs,
    CommandDispatcher,
    parse_command,
    split_commands,
    tokenize,
)
from flowlens.shell.repl import run_repl, run_script

__all__ = [
    "CommandArgs",
    "CommandDispatcher",
    "parse_command",
    "run_repl",
    "run_script",
    "split_commands",
    "tokenize",
]
