"""
FlowLens CLI -- Network Flow Analysis Command-Line Interface
=============================================================

Click-based entry point. Without a command source it opens the
interactive shell; with ``-c``, ``--script`` or ``--scan`` it runs
non-interactively and exits.

Usage:
    flowlens                                         # interactive shell
    flowlens -i flows.csv                            # load, build, then shell
    flowlens -i flows.csv -c "top talkers limit=10"  # one-shot command
    flowlens -i flows.csv -c "filter dport = 53" -c "dns rare min=1"
    flowlens -i flows.csv --script triage.flq        # command file
    flowlens -i flows.csv --scan --format all -o output/scan.json

References:
    - Click Documentation: https://click.palletsprojects.com/
"""

from __future__ import annotations

import asyncio
import sys
from typing import Optional

import click

from shared.config import get_config
from shared.console import FlowConsole
from shared.logger import FlowLogger, configure_logging

from flowlens import __version__
from flowlens.core.engine import FlowEngine
from flowlens.core.errors import FlowLensError
from flowlens.output.console import ConsoleIO, FlowConsoleOutput
from flowlens.shell.commands import CommandDispatcher
from flowlens.shell.repl import run_repl, run_script

logger = FlowLogger("cli")


@click.command(
    name="flowlens",
    help=(
        "FLOWLENS -- Network Flow Analysis\n\n"
        "Loads a flow table and answers questions about it: filtered "
        "queries, top talkers, timelines, communication edges, SYN-scan "
        "fan-out, exfiltration volume and rare DNS lookups."
    ),
)
@click.version_option(__version__, prog_name="flowlens")
@click.option(
    "-i", "--input",
    "input_file",
    type=click.Path(dir_okay=False),
    default=None,
    help="Flow table (CSV) to load and index before anything else.",
)
@click.option(
    "-c", "--command",
    "commands",
    multiple=True,
    help="Shell command to run; repeatable, ';' separates several.",
)
@click.option(
    "--script",
    "script_file",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="File of shell commands, one per line ('#' lines are skipped).",
)
@click.option(
    "--scan",
    is_flag=True,
    default=False,
    help="Run every detector and correlate the findings.",
)
@click.option(
    "-o", "--output",
    type=click.Path(),
    default=None,
    help="JSON report path for --scan (default: <output_dir>/flowlens_scan.json).",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["console", "json", "all"], case_sensitive=False),
    default="console",
    show_default=True,
    help="Output format for --scan results.",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Path to a FlowLens configuration file (TOML).",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    default=False,
    help="Enable debug logging.",
)
def main(
    input_file: Optional[str],
    commands: tuple[str, ...],
    script_file: Optional[str],
    scan: bool,
    output: Optional[str],
    output_format: str,
    config_path: Optional[str],
    verbose: bool,
) -> None:
    """FLOWLENS entry point."""
    console = FlowConsole()

    try:
        config = get_config(config_path)
    except FileNotFoundError as exc:
        console.error(str(exc))
        sys.exit(1)

    settings = config.global_settings
    configure_logging(
        "DEBUG" if verbose or settings.debug else settings.log_level,
        settings.log_file,
        settings.log_json,
    )

    engine = FlowEngine(config=config)
    io = ConsoleIO(console=console)
    renderer = FlowConsoleOutput(console=console)
    dispatcher = CommandDispatcher(engine, io, renderer=renderer)

    if input_file:
        if engine.load(io, input_file) is None or engine.build_index(io) is None:
            sys.exit(1)

    interactive = not (commands or script_file or scan)

    try:
        for command in commands:
            if not dispatcher.execute_line(command):
                return

        if script_file:
            with open(script_file, "r", encoding="utf-8") as fh:
                if not run_script(dispatcher, fh):
                    return

        if scan:
            _run_scan(engine, io, console, renderer, output_format, output)

        if interactive:
            run_repl(dispatcher, console, config.shell.prompt)

    except KeyboardInterrupt:
        console.warning("Interrupted by user")
        sys.exit(130)
    except OSError as exc:
        console.error(f"OS error: {exc}")
        sys.exit(1)


def _run_scan(
    engine: FlowEngine,
    io: ConsoleIO,
    console: FlowConsole,
    renderer: FlowConsoleOutput,
    output_format: str,
    output_path: Optional[str],
) -> None:
    """Run the correlated scan and render it in the requested format."""
    try:
        with console.status("Scanning flows..."):
            result = asyncio.run(engine.scan())
    except FlowLensError as exc:
        console.error(str(exc))
        sys.exit(1)

    output_format = output_format.lower()
    if output_format in ("console", "all"):
        renderer.display(result)

    if output_format in ("json", "all"):
        if engine.write_report(io, result, output_path) is None:
            sys.exit(1)

    if output_format == "json":
        console.info(
            f"Scan complete: {result.finding_count} findings "
            f"({result.critical_count} critical, {result.high_count} high)"
        )
    logger.info("Scan rendered as %s", output_format)


if __name__ == "__main__":
    main()
