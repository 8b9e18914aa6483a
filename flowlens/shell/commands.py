"""
FlowLens Command Shell
=======================

Turns command lines such as::

    pcap load "flows.csv"; index build
    filter proto = tcp and dport in (22, 445)
    detect syn-scan window=60 thr=100
    detect exfil 10.0.0.5 thrMB=20

into :class:`CommandArgs` and dispatches them to :class:`FlowEngine`
operations. Several commands may share one line, separated by ``;``
outside quotes.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass, field
from typing import Callable, Iterator, Optional

from shared.logger import FlowLogger
from shared.models import ScanResult

from flowlens.core.engine import FlowEngine
from flowlens.core.errors import FlowLensError
from flowlens.output.console import FlowConsoleOutput, TerminalIO

logger = FlowLogger("shell")

_TOKEN_RE = re.compile(r""""([^"]*)"|'([^']*)'|\S+""")
_OPTION_RE = re.compile(r"^(\w+)=(\S+)$")

# Two-word phrases win over a one-word head.
ALIASES: dict[tuple[str, ...], str] = {
    ("pcap", "load"): "load",
    ("pcap",): "load",
    ("index", "build"): "build",
    ("index",): "build",
    ("filter",): "filter",
    ("top", "talkers"): "top",
    ("top",): "top",
    ("timeline",): "timeline",
    ("flows", "where"): "query",
    ("detect", "syn-scan"): "syn_scan",
    ("detect", "exfil"): "exfil",
    ("dns", "rare"): "dns_rare",
    ("graph",): "graph",
    ("http", "suspicious"): "http_suspicious",
    ("export",): "export",
    ("note",): "note",
    ("notes",): "notes",
    ("demo", "make"): "demo",
    ("demo",): "demo",
    ("status",): "status",
    ("scan",): "scan",
    ("report",): "report",
    ("help",): "help",
    ("exit",): "exit",
    ("quit",): "exit",
}

HELP_LINES = (
    'pcap load "flows.csv"                      register a flow table',
    "index build                                parse it into memory",
    "filter <expr>                              set the global filter (blank clears)",
    "top talkers [by=bytes|flows] [limit=5]     rank sources",
    "timeline [bytes|flows] [per=60]            traffic per time bucket",
    "flows where <expr>                         ad-hoc query (feeds export)",
    "graph <expr>                               distinct communication edges",
    "detect syn-scan [src=IP] [window=120] [thr=150]",
    "detect exfil <host> [window=600] [thrMB=50]",
    "dns rare [min=2]                           rare and failing DNS names",
    "http suspicious                            HTTP rules (stub)",
    'export "file.csv"                          write the last result set',
    'note "text" | notes                        analyst notes',
    'demo [file="day1_flows_demo.csv"]          write a demo flow table',
    "status | scan | report [file.json]         session state, full scan",
    "help | exit",
)


def _scan_tokens(text: str) -> Iterator[tuple[str, bool]]:
    """Yield ``(token, was_quoted)`` pairs."""
    for match in _TOKEN_RE.finditer(text):
        if match.group(1) is not None:
            yield match.group(1), True
        elif match.group(2) is not None:
            yield match.group(2), True
        else:
            yield match.group(0), False


def tokenize(text: str) -> list[str]:
    """Split on whitespace; double- or single-quoted runs stay one token."""
    return [token for token, _ in _scan_tokens(text)]


def strip_quotes(text: str) -> str:
    if len(text) >= 2 and text[0] == text[-1] and text[0] in "\"'":
        return text[1:-1]
    return text


def split_commands(line: str) -> list[str]:
    """Split *line* on ``;`` outside quotes, dropping empty pieces."""
    parts: list[str] = []
    current: list[str] = []
    quote: Optional[str] = None
    for char in line:
        if quote:
            if char == quote:
                quote = None
        elif char in "\"'":
            quote = char
        elif char == ";":
            parts.append("".join(current))
            current = []
            continue
        current.append(char)
    parts.append("".join(current))
    return [part.strip() for part in parts if part.strip()]


@dataclass
class CommandArgs:
    """One parsed command.

    Attributes:
        name: Canonical command name (``"query"``, ``"syn_scan"`` ...), or
            ``None`` when the head is not a known command.
        head: The words that selected the command, as typed.
        positionals: Remaining tokens that are not ``key=value`` options.
        options: ``key=value`` options; keys are lower-cased.
        rest: Raw text after the head, trimmed.
        raw: The whole command text.
    """

    name: Optional[str]
    head: str
    positionals: list[str] = field(default_factory=list)
    options: dict[str, str] = field(default_factory=dict)
    rest: str = ""
    raw: str = ""

    def get(self, *keys: str, default: Optional[str] = None) -> Optional[str]:
        for key in keys:
            if key in self.options:
                return self.options[key]
        return default

    def integer(self, *keys: str, default: Optional[int] = None) -> Optional[int]:
        """Integer option; a value that does not parse yields *default*."""
        value = self.get(*keys)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            logger.debug("Option %s=%r is not an integer, using %s", keys[0], value, default)
            return default

    def first(self, default: Optional[str] = None) -> Optional[str]:
        return self.positionals[0] if self.positionals else default

    @property
    def expression(self) -> str:
        """The remainder as one expression, outer quotes removed."""
        return strip_quotes(self.rest)


def _match_head(words: list[str]) -> tuple[Optional[str], int]:
    lowered = [word.lower() for word in words[:2]]
    for size in (2, 1):
        phrase = tuple(lowered[:size])
        if len(phrase) == size and phrase in ALIASES:
            return ALIASES[phrase], size
    return None, 1


def parse_command(text: str) -> CommandArgs:
    """Parse one command (no ``;``) into :class:`CommandArgs`."""
    text = text.strip()
    words = text.split()
    if not words:
        return CommandArgs(name=None, head="", raw=text)

    name, size = _match_head(words)
    head_re = r"\s*" + r"\s+".join(re.escape(word) for word in words[:size])
    match = re.match(head_re, text)
    rest = text[match.end():].strip() if match else ""

    args = CommandArgs(name=name, head=" ".join(words[:size]), rest=rest, raw=text)
    for token, quoted in _scan_tokens(rest):
        option = None if quoted else _OPTION_RE.match(token)
        if option:
            args.options[option.group(1).lower()] = strip_quotes(option.group(2))
        else:
            args.positionals.append(token)
    return args


class CommandDispatcher:
    """Runs parsed commands against one engine.

    Usage::

        dispatcher = CommandDispatcher(FlowEngine(), ConsoleIO())
        dispatcher.execute_line('pcap load "flows.csv"; index build')

    ``execute_line`` returns ``False`` once ``exit`` or ``quit`` ran.
    """

    def __init__(
        self,
        engine: FlowEngine,
        io: TerminalIO,
        renderer: Optional[FlowConsoleOutput] = None,
    ) -> None:
        self.engine = engine
        self.io = io
        self.renderer = renderer
        self._handlers: dict[str, Callable[[CommandArgs], None]] = {
            "load": self._load,
            "build": self._build,
            "filter": self._filter,
            "top": self._top,
            "timeline": self._timeline,
            "query": self._query,
            "syn_scan": self._syn_scan,
            "exfil": self._exfil,
            "dns_rare": self._dns_rare,
            "graph": self._graph,
            "http_suspicious": self._http_suspicious,
            "export": self._export,
            "note": self._note,
            "notes": self._notes,
            "demo": self._demo,
            "status": self._status,
            "scan": self._scan,
            "report": self._report,
            "help": self._help,
        }

    def execute_line(self, line: str) -> bool:
        for command in split_commands(line):
            if not self.execute(parse_command(command)):
                return False
        return True

    def execute(self, args: CommandArgs) -> bool:
        if args.name == "exit":
            return False
        handler = self._handlers.get(args.name or "")
        if handler is None:
            self.io.err(f"Unknown command: {args.head}")
            return True

        with logger.operation(args.name or ""):
            logger.debug("Dispatch %r", args.raw)
            handler(args)
        return True

    # ------------------------------------------------------------------ #
    #  Handlers
    # ------------------------------------------------------------------ #

    def _load(self, args: CommandArgs) -> None:
        self.engine.load(self.io, args.get("file", default=args.first()))

    def _build(self, args: CommandArgs) -> None:
        self.engine.build_index(self.io)

    def _filter(self, args: CommandArgs) -> None:
        self.engine.set_filter(self.io, args.expression)

    def _top(self, args: CommandArgs) -> None:
        self.engine.top_talkers(self.io, by=args.get("by"), limit=args.integer("limit"))

    def _timeline(self, args: CommandArgs) -> None:
        self.engine.timeline(
            self.io,
            metric=args.get("metric", default=args.first()),
            period=args.integer("per", "period"),
        )

    def _query(self, args: CommandArgs) -> None:
        self.engine.query(self.io, args.expression)

    def _syn_scan(self, args: CommandArgs) -> None:
        self.engine.detect_syn_scan(
            self.io,
            window=args.integer("window"),
            threshold=args.integer("thr", "threshold"),
            src=args.get("src"),
        )

    def _exfil(self, args: CommandArgs) -> None:
        self.engine.detect_exfil(
            self.io,
            args.get("host", default=args.first()),
            window=args.integer("window"),
            threshold_mb=args.integer("thrmb", "threshold_mb"),
        )

    def _dns_rare(self, args: CommandArgs) -> None:
        self.engine.dns_rare(self.io, minimum=args.integer("min", "minimum"))

    def _graph(self, args: CommandArgs) -> None:
        self.engine.graph(self.io, args.expression)

    def _http_suspicious(self, args: CommandArgs) -> None:
        self.engine.http_suspicious(self.io)

    def _export(self, args: CommandArgs) -> None:
        self.engine.export(self.io, args.get("file", default=args.first()))

    def _note(self, args: CommandArgs) -> None:
        self.engine.note(self.io, args.expression)

    def _notes(self, args: CommandArgs) -> None:
        self.engine.notes(self.io)

    def _demo(self, args: CommandArgs) -> None:
        self.engine.make_demo(self.io, args.get("file", default=args.first()))

    def _status(self, args: CommandArgs) -> None:
        self.engine.status(self.io)

    def _scan(self, args: CommandArgs) -> None:
        result = self._run_scan()
        if result is None:
            return
        if self.renderer is not None:
            self.renderer.display(result)
            return
        for finding in result.findings:
            self.io.out(f"[{finding.severity.value}] {finding.title}")
        self.io.out(result.summary)

    def _report(self, args: CommandArgs) -> None:
        result = self._run_scan()
        if result is not None:
            self.engine.write_report(self.io, result, args.get("file", default=args.first()))

    def _help(self, args: CommandArgs) -> None:
        for line in HELP_LINES:
            self.io.out(line)

    def _run_scan(self) -> Optional[ScanResult]:
        try:
            return asyncio.run(self.engine.scan())
        except FlowLensError as exc:
            self.io.err(str(exc))
            return None
