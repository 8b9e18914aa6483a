"""
FlowLens Engine -- Flow Analysis Core
======================================

Owns one :class:`FlowStore` and exposes every analysis operation the
shell and the CLI invoke. Each operation writes its result lines to a
:class:`~flowlens.output.console.TerminalIO` sink and returns the
structured result it printed.

Failures stay local to one operation: usage errors, missing datasets and
file-system errors are written to the sink's error side and the
operation returns ``None`` (or an empty result) without touching the
store beyond what it documents.

Scan pipeline:
    Phase 1 -- Snapshot:
        Copy the records and the active filter; apply the filter.
    Phase 2 -- Analysis:
        Top talkers, SYN scan, DNS rarity and the communication graph run
        concurrently in the default executor.
    Phase 3 -- Egress:
        Exfiltration checks for each top talker, concurrently.
    Phase 4 -- Correlation:
        Detector results become severity-rated findings in a ScanResult.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Optional

from shared.config import FlowLensConfig
from shared.logger import FlowLogger
from shared.models import Finding, ScanResult, Severity

from flowlens.analyzers.dns_rare import DnsRarityAnalyzer
from flowlens.analyzers.exfil import ExfilDetector
from flowlens.analyzers.graph import GraphAnalyzer
from flowlens.analyzers.reporting import Timeline, TopTalkers
from flowlens.analyzers.syn_scan import SynScanDetector
from flowlens.collectors.csv_reader import FlowCsvReader
from flowlens.collectors.demo import write_demo
from flowlens.core.errors import DatasetError, UsageError
from flowlens.core.models import (
    Edge,
    ExfilAlert,
    ExfilVerdict,
    Flow,
    Metric,
    RareDomain,
    SynScanOffender,
    TalkerRow,
    TimelineBucket,
)
from flowlens.core.store import FlowStore, StoreSnapshot
from flowlens.output.console import TerminalIO
from flowlens.output.export import export_flows
from flowlens.output.formatting import (
    format_bucket,
    format_exfil,
    format_flow,
    format_offender,
    format_rare,
    format_talker,
)
from flowlens.output.report import FlowReportGenerator
from flowlens.query.filter import both, compile_filter, select

logger = FlowLogger("engine")

USAGE_LOAD = 'pcap load "flows.csv"'
USAGE_EXFIL = "detect exfil <host> [window=600] [thrMB=50]"
USAGE_EXPORT = 'export "file.csv"'
USAGE_NOTE = 'note "text"'

HTTP_STUB = "HTTP suspicious: stub. Add UA/URI/SNI to CSV to enable richer rules."


def _required(value: Optional[str], usage: str) -> str:
    if value is None or not value.strip():
        raise UsageError(usage)
    return value.strip()


class FlowEngine:
    """Single-writer facade over the flow store.

    Usage::

        engine = FlowEngine()
        io = ConsoleIO()
        engine.load(io, "flows.csv")
        engine.build_index(io)
        engine.set_filter(io, "proto=tcp")   # one token: matches everything
        engine.set_filter(io, "proto = tcp")
        engine.top_talkers(io, by="flows", limit=10)
        result = asyncio.run(engine.scan())
    """

    def __init__(
        self,
        config: Optional[FlowLensConfig] = None,
        store: Optional[FlowStore] = None,
    ) -> None:
        self.config = config or FlowLensConfig()
        self.store = store or FlowStore()
        self.reader = FlowCsvReader()
        self.reporter = FlowReportGenerator()

    # ================================================================== #
    #  Dataset
    # ================================================================== #

    def load(self, io: TerminalIO, path: Optional[str]) -> Optional[Path]:
        """Register the flow table that the next ``build_index`` reads."""
        try:
            target = Path(_required(path, USAGE_LOAD)).expanduser()
            if not target.exists():
                io.err(f"File not found: {target.absolute()}")
                return None
        except UsageError as exc:
            io.err(str(exc))
            return None
        except OSError as exc:
            io.err(f"pcap load failed: {exc}")
            return None

        self.store.source = target
        logger.info("Registered flow table %s", target)
        io.out(f"Loaded file reference: {target.absolute()}")
        return target

    def build_index(self, io: TerminalIO) -> Optional[int]:
        """Parse the registered table into the store; return the flow count.

        The previous records are dropped before reading, so a failed read
        leaves the store empty. A successful read resets the active filter
        and makes the full dataset the last result.
        """
        source = self.store.source
        if source is None:
            io.err(f"No file loaded. Use: {USAGE_LOAD}")
            return None

        self.store.clear_records()
        with logger.operation("build_index"):
            try:
                with logger.timed(f"index build {source.name}") as timer:
                    flows = self.reader.read(source)
            except OSError as exc:
                logger.error("Index build failed for %s: %s", source, exc)
                io.err(f"index build failed: {exc}")
                return None

        self.store.replace_records(flows)
        self.store.set_result(flows)
        io.out(f"Index built: {len(flows):,} flows in {timer.elapsed:.1f}s")
        return len(flows)

    def set_filter(self, io: TerminalIO, expr: Optional[str]) -> None:
        expr = (expr or "").strip()
        if not expr:
            io.out("Warning: clearing global filter.")
        self.store.set_filter(expr)
        logger.info("Active filter: %r", expr)
        io.out(f"Filter set: {expr}")

    # ================================================================== #
    #  Reporting
    # ================================================================== #

    def query(self, io: TerminalIO, expr: Optional[str]) -> list[Flow]:
        """Flows matching *expr* and the active filter; all become the last result."""
        predicate = both(compile_filter(expr or ""), self.store.active_filter)
        matches = select(self.store.flows, predicate)
        self.store.set_result(matches)

        preview = self.config.reporting.query_preview
        for flow in matches[:preview]:
            io.out(format_flow(flow))
        if len(matches) > preview:
            io.out(f"... ({len(matches)} total)")
        logger.info("Query %r matched %d flows", expr, len(matches))
        return matches

    def top_talkers(
        self,
        io: TerminalIO,
        by: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[TalkerRow]:
        report = TopTalkers(limit=self.config.reporting.top_limit if limit is None else limit)
        rows = report.rank(self.store.filtered(), Metric.parse(by))
        label = (by or "").strip()
        for row in rows:
            io.out(format_talker(row, label))
        return rows

    def timeline(
        self,
        io: TerminalIO,
        metric: Optional[str] = None,
        period: Optional[int] = None,
    ) -> list[TimelineBucket]:
        cfg = self.config.reporting
        report = Timeline(
            period=cfg.timeline_period if period is None else period,
            bar_width=cfg.bar_width,
        )
        buckets = report.build(self.store.filtered(), Metric.parse(metric))
        for bucket in buckets:
            io.out(format_bucket(bucket))
        return buckets

    def graph(self, io: TerminalIO, expr: Optional[str]) -> list[Edge]:
        """Distinct edges of the flows matching *expr* and the active filter."""
        predicate = both(compile_filter(expr or ""), self.store.active_filter)
        matches = select(self.store.flows, predicate)
        self.store.set_result(matches)

        edges = GraphAnalyzer().edges(matches)
        preview = self.config.reporting.graph_preview
        for edge in edges[:preview]:
            io.out(str(edge))
        if len(edges) > preview:
            io.out(f"... ({len(edges)} total edges)")
        return edges

    # ================================================================== #
    #  Detection
    # ================================================================== #

    def detect_syn_scan(
        self,
        io: TerminalIO,
        window: Optional[int] = None,
        threshold: Optional[int] = None,
        src: Optional[str] = None,
    ) -> list[SynScanOffender]:
        cfg = self.config.detection
        detector = SynScanDetector(
            window=cfg.syn_window if window is None else window,
            threshold=cfg.syn_threshold if threshold is None else threshold,
        )
        offenders = detector.detect(self.store.filtered(), src=src)
        if not offenders:
            io.out(f"No SYN scan offenders (thr={detector.threshold}).")
        for offender in offenders:
            io.out(format_offender(offender))
        return offenders

    def detect_exfil(
        self,
        io: TerminalIO,
        host: Optional[str],
        window: Optional[int] = None,
        threshold_mb: Optional[int] = None,
    ) -> Optional[ExfilVerdict]:
        try:
            host = _required(host, USAGE_EXFIL)
        except UsageError as exc:
            io.err(str(exc))
            return None

        cfg = self.config.detection
        detector = ExfilDetector(
            window=cfg.exfil_window if window is None else window,
            threshold_mb=cfg.exfil_threshold_mb if threshold_mb is None else threshold_mb,
        )
        verdict = detector.detect(self.store.filtered(), host)
        if verdict.alert is not None:
            io.out(format_exfil(verdict.alert))
        elif verdict.candidates == 0:
            io.out(f"No external egress for {host} under current filter.")
        else:
            io.out(f"No exfil over threshold ({verdict.threshold_mb} MB).")
        return verdict

    def dns_rare(self, io: TerminalIO, minimum: Optional[int] = None) -> list[RareDomain]:
        cfg = self.config.detection
        analyzer = DnsRarityAnalyzer(minimum=cfg.dns_minimum if minimum is None else minimum)
        rare = analyzer.detect(self.store.filtered())
        if not rare:
            io.out(f"No rare domains <= {analyzer.minimum}")
            return rare

        io.out(f"Rare domains (<= {analyzer.minimum}):")
        for item in rare[: cfg.dns_preview]:
            io.out(format_rare(item))
        return rare

    def http_suspicious(self, io: TerminalIO) -> None:
        io.out(HTTP_STUB)

    # ================================================================== #
    #  Export and notes
    # ================================================================== #

    def export(self, io: TerminalIO, path: Optional[str]) -> Optional[int]:
        """Write the last result set in the ingestion layout."""
        try:
            target = _required(path, USAGE_EXPORT)
            count = export_flows(self.store.last_result, target)
        except UsageError as exc:
            io.err(str(exc))
            return None
        except OSError as exc:
            logger.error("Export to %s failed: %s", path, exc)
            io.err(f"export failed: {exc}")
            return None

        io.out(f"Exported {count} rows -> {target}")
        return count

    def note(self, io: TerminalIO, text: Optional[str]) -> Optional[str]:
        try:
            text = _required(text, USAGE_NOTE)
        except UsageError as exc:
            io.err(str(exc))
            return None
        self.store.add_note(text)
        io.out(f"Noted: {text}")
        return text

    def notes(self, io: TerminalIO) -> list[str]:
        if not self.store.notes:
            io.out("No notes.")
        for idx, text in enumerate(self.store.notes, start=1):
            io.out(f"{idx}. {text}")
        return list(self.store.notes)

    def make_demo(self, io: TerminalIO, path: Optional[str] = None) -> Optional[int]:
        """Write the demo flow table to *path* (default from the shell config)."""
        target = (path or "").strip() or self.config.shell.demo_file
        try:
            rows = write_demo(target)
        except OSError as exc:
            io.err(f"demo make failed: {exc}")
            return None
        io.out(f"Demo CSV written: {target}")
        return rows

    def status(self, io: TerminalIO) -> dict[str, Any]:
        store = self.store
        info = {
            "source": str(store.source) if store.source else None,
            "flows": len(store),
            "filtered": len(store.filtered()),
            "filter": store.filter_text,
            "last_result": len(store.last_result),
            "notes": len(store.notes),
        }
        io.out(f"Source:       {info['source'] or '(none)'}")
        io.out(f"Flows:        {info['flows']:,}")
        io.out(f"Filtered:     {info['filtered']:,}")
        io.out(f"Filter:       {info['filter'] or '(none)'}")
        io.out(f"Last result:  {info['last_result']:,}")
        io.out(f"Notes:        {info['notes']}")
        return info

    # ================================================================== #
    #  Scan pipeline
    # ================================================================== #

    async def scan(self) -> ScanResult:
        """Run every analyzer over a snapshot and correlate the findings.

        Raises:
            DatasetError: No flows have been indexed.
        """
        snapshot = self.store.snapshot()
        if not snapshot.flows:
            raise DatasetError(f"No flows indexed. Use: {USAGE_LOAD}, then: index build")

        result = ScanResult(
            tool_name="flowlens",
            target=str(snapshot.source or "(memory)"),
        )
        logger.info("Scan started over %d flows", len(snapshot.flows))

        loop = asyncio.get_running_loop()

        # ---- Phase 1: Snapshot ----
        flows = await loop.run_in_executor(None, snapshot.filtered)

        # ---- Phase 2: Analysis ----
        cfg = self.config
        talkers_task = loop.run_in_executor(
            None, TopTalkers(limit=cfg.reporting.top_limit).rank, flows, Metric.BYTES
        )
        syn_task = loop.run_in_executor(
            None,
            SynScanDetector(
                window=cfg.detection.syn_window, threshold=cfg.detection.syn_threshold
            ).detect,
            flows,
        )
        dns_task = loop.run_in_executor(
            None, DnsRarityAnalyzer(minimum=cfg.detection.dns_minimum).detect, flows
        )
        graph_task = loop.run_in_executor(None, self._graph_summary, flows)

        talkers, offenders, rare, graph_summary = await asyncio.gather(
            talkers_task, syn_task, dns_task, graph_task
        )

        # ---- Phase 3: Egress ----
        exfil = ExfilDetector(
            window=cfg.detection.exfil_window,
            threshold_mb=cfg.detection.exfil_threshold_mb,
        )
        verdicts = await asyncio.gather(
            *(
                loop.run_in_executor(None, exfil.detect, flows, row.src_ip)
                for row in talkers
            )
        )

        # ---- Phase 4: Correlation ----
        for offender in offenders:
            result.add_finding(self._offender_to_finding(offender))
        for verdict in verdicts:
            if verdict.alert is not None:
                result.add_finding(self._exfil_to_finding(verdict.alert, verdict.threshold_mb))
        for item in rare:
            result.add_finding(self._rare_to_finding(item))

        result.metadata = self._scan_metadata(snapshot, flows, talkers, graph_summary)
        result.finalize()
        logger.info(
            "Scan complete: %d findings",
            result.finding_count,
            severities=result.severity_counts,
        )
        return result

    def write_report(
        self,
        io: TerminalIO,
        result: ScanResult,
        path: Optional[str] = None,
    ) -> Optional[str]:
        """Write *result* as JSON (default ``<output_dir>/flowlens_scan.json``)."""
        target = (path or "").strip() or str(
            Path(self.config.global_settings.output_dir) / "flowlens_scan.json"
        )
        try:
            written = self.reporter.generate_json(result, target)
        except OSError as exc:
            io.err(f"report failed: {exc}")
            return None
        io.out(f"Report written -> {written}")
        return written

    # ------------------------------------------------------------------ #
    #  Correlation helpers
    # ------------------------------------------------------------------ #

    def _graph_summary(self, flows: list[Flow]) -> dict[str, Any]:
        analyzer = GraphAnalyzer()
        return analyzer.summarize(analyzer.build_graph(analyzer.edges(flows)))

    def _scan_metadata(
        self,
        snapshot: StoreSnapshot,
        flows: list[Flow],
        talkers: list[TalkerRow],
        graph_summary: dict[str, Any],
    ) -> dict[str, Any]:
        return {
            "flow_count": len(snapshot.flows),
            "filtered_count": len(flows),
            "filter": snapshot.filter_text,
            "top_talkers": [row.model_dump(mode="json") for row in talkers],
            "graph": graph_summary,
            "notes": list(self.store.notes),
        }

    def _offender_to_finding(self, offender: SynScanOffender) -> Finding:
        return Finding(
            severity=Severity.HIGH,
            title=f"SYN scan from {offender.src_ip}",
            description=(
                f"{offender.src_ip} sent bare SYNs to {offender.fanout} distinct "
                f"destination:port targets within {offender.window}s."
            ),
            detector="syn_scan",
            evidence=offender.model_dump(),
            recommendation=(
                "Confirm whether the source is an authorised scanner; otherwise "
                "isolate it and review which targets answered."
            ),
        )

    def _exfil_to_finding(self, alert: ExfilAlert, threshold_mb: int) -> Finding:
        return Finding(
            severity=Severity.CRITICAL,
            title=f"Possible exfiltration from {alert.host}",
            description=(
                f"{alert.host} sent {alert.bytes_total:,} bytes to external "
                f"destinations within {alert.window}s "
                f"(threshold {threshold_mb} MB)."
            ),
            detector="exfil",
            evidence=alert.model_dump(),
            recommendation=(
                "Identify the external destinations and the process behind the "
                "transfer; preserve host evidence before remediation."
            ),
        )

    def _rare_to_finding(self, item: RareDomain) -> Finding:
        if item.nxdomain:
            severity = Severity.MEDIUM
            description = (
                f"{item.domain} was queried {item.count} time(s), "
                f"{item.nxdomain} answered NXDOMAIN."
            )
        else:
            severity = Severity.LOW
            description = f"{item.domain} was queried only {item.count} time(s)."
        return Finding(
            severity=severity,
            title=f"Rare DNS name {item.domain}",
            description=description,
            detector="dns_rare",
            evidence=item.model_dump(),
            recommendation="Check the name against threat intelligence and DGA patterns.",
        )


