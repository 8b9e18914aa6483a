from __future__ import annotations

import asyncio
import json

import pytest

from shared.config import DetectionConfig, FlowLensConfig
from shared.models import Severity

from flowlens.collectors.csv_reader import COLUMNS, FlowCsvReader
from flowlens.core.engine import HTTP_STUB, FlowEngine
from flowlens.core.errors import DatasetError
from flowlens.output.console import BufferIO

HEADER = ",".join(COLUMNS)


def _table(path, *rows: str):
    path.write_text(HEADER + "\n" + "\n".join(rows) + "\n", encoding="utf-8")
    return path


def _engine_with(path, config: FlowLensConfig | None = None) -> tuple[FlowEngine, BufferIO]:
    engine = FlowEngine(config=config)
    io = BufferIO()
    assert engine.load(io, str(path)) is not None
    assert engine.build_index(io) is not None
    io.clear()
    return engine, io


def _sample(tmp_path):
    return _table(
        tmp_path / "flows.csv",
        "1700000000.25,10.0.0.1,8.8.8.8,5000,53,17,90,1,,a.example,0",
        "1700000001,10.0.0.1,10.0.0.9,5001,445,6,4000,4,0x18,,",
        '1700000002,10.0.0.2,203.0.113.5,5002,443,6,900,2,0x18,"x,y.example",3',
    )


def test_load_and_build(tmp_path):
    path = _sample(tmp_path)
    engine = FlowEngine()
    io = BufferIO()

    engine.load(io, str(path))
    count = engine.build_index(io)

    assert count == 3
    assert io.lines[0] == f"Loaded file reference: {path.absolute()}"
    assert io.lines[1].startswith("Index built: 3 flows in ")
    assert io.lines[1].endswith("s")
    assert io.errors == []
    assert len(engine.store.last_result) == 3


def test_load_missing_file(tmp_path):
    io = BufferIO()
    missing = tmp_path / "nope.csv"

    assert FlowEngine().load(io, str(missing)) is None
    assert io.errors == [f"File not found: {missing.absolute()}"]


def test_load_requires_path():
    io = BufferIO()
    FlowEngine().load(io, "  ")
    assert io.errors == ['usage: pcap load "flows.csv"']


def test_build_without_load():
    io = BufferIO()
    assert FlowEngine().build_index(io) is None
    assert io.errors == ['No file loaded. Use: pcap load "flows.csv"']


def test_failed_build_clears_records_only(tmp_path):
    path = _sample(tmp_path)
    engine, io = _engine_with(path)
    engine.set_filter(io, "dport = 53")
    engine.note(io, "keep me")

    path.unlink()
    io.clear()
    assert engine.build_index(io) is None

    assert io.errors[0].startswith("index build failed:")
    assert len(engine.store) == 0
    assert engine.store.filter_text == "dport = 53"
    assert engine.store.notes == ["keep me"]


def test_rebuild_resets_filter(tmp_path):
    engine, io = _engine_with(_sample(tmp_path))
    engine.set_filter(io, "src = 10.0.0.2")
    assert len(engine.store.filtered()) == 1

    engine.build_index(io)

    assert engine.store.filter_text == ""
    assert len(engine.store.filtered()) == 3


def test_set_filter_messages(tmp_path):
    engine, io = _engine_with(_sample(tmp_path))

    engine.set_filter(io, "  proto = tcp ")
    engine.set_filter(io, "")

    assert io.lines == [
        "Filter set: proto = tcp",
        "Warning: clearing global filter.",
        "Filter set: ",
    ]


def test_query_combines_with_active_filter(tmp_path):
    engine, io = _engine_with(_sample(tmp_path))
    engine.set_filter(io, "proto = tcp")
    io.clear()

    matches = engine.query(io, "src = 10.0.0.1")

    assert [f.dst_port for f in matches] == [445]
    assert engine.store.last_result == matches
    assert len(io.lines) == 1
    assert "10.0.0.1:5001 -> 10.0.0.9:445  p=6  bytes=4000  pkts=4  flags=0x18  q=" in io.lines[0]


def test_query_preview_is_capped(tmp_path):
    rows = [f"{1700000000 + i},10.0.0.1,8.8.8.8,{5000 + i},80,6,10,1,0x18,," for i in range(25)]
    engine, io = _engine_with(_table(tmp_path / "many.csv", *rows))

    matches = engine.query(io, "")

    assert len(matches) == 25
    assert len(io.lines) == 21
    assert io.lines[-1] == "... (25 total)"
    assert len(engine.store.last_result) == 25


def test_reports_do_not_touch_last_result(tmp_path):
    engine, io = _engine_with(_sample(tmp_path))
    engine.query(io, "dport = 53")
    io.clear()

    rows = engine.top_talkers(io, by="flows", limit=1)
    engine.timeline(io, metric="bytes", period=60)

    assert [(r.src_ip, r.value) for r in rows] == [("10.0.0.1", 2)]
    assert io.lines[0].endswith(" flows")
    assert len(engine.store.last_result) == 1


def test_top_talkers_echoes_metric_as_typed(tmp_path):
    engine, io = _engine_with(_sample(tmp_path))

    rows = engine.top_talkers(io, by="packets", limit=1)
    engine.top_talkers(io, limit=1)

    assert [(r.src_ip, r.value) for r in rows] == [("10.0.0.1", 4090)]
    assert io.lines[0] == "10.0.0.1".ljust(16) + "  " + "4,090".rjust(12) + " packets"
    assert io.lines[1].endswith(" bytes")


def test_graph_sets_last_result(tmp_path):
    engine, io = _engine_with(_sample(tmp_path))

    edges = engine.graph(io, "proto = tcp")

    assert io.lines == ["10.0.0.1 -> 10.0.0.9 [445/p6]", "10.0.0.2 -> 203.0.113.5 [443/p6]"]
    assert len(edges) == 2
    assert len(engine.store.last_result) == 2


def test_graph_preview_is_capped(tmp_path):
    rows = [f"1700000000,10.0.0.1,10.0.2.{i},5000,80,6,10,1,,," for i in range(55)]
    engine, io = _engine_with(_table(tmp_path / "wide.csv", *rows))

    engine.graph(io, "")

    assert len(io.lines) == 51
    assert io.lines[-1] == "... (55 total edges)"


def test_detector_messages(tmp_path):
    engine, io = _engine_with(_sample(tmp_path))

    engine.detect_syn_scan(io)
    engine.detect_exfil(io, "10.0.0.2")
    engine.detect_exfil(io, "10.0.0.9")
    engine.dns_rare(io, minimum=0)
    engine.http_suspicious(io)

    assert io.lines == [
        "No SYN scan offenders (thr=150).",
        "No exfil over threshold (50 MB).",
        "No external egress for 10.0.0.9 under current filter.",
        "No rare domains <= 0",
        HTTP_STUB,
    ]


def test_exfil_requires_host(tmp_path):
    engine, io = _engine_with(_sample(tmp_path))

    assert engine.detect_exfil(io, None) is None
    assert engine.detect_exfil(io, "") is None
    assert io.errors == ["usage: detect exfil <host> [window=600] [thrMB=50]"] * 2
    assert io.lines == []


def test_exfil_alert_line(tmp_path):
    engine, io = _engine_with(_sample(tmp_path))

    verdict = engine.detect_exfil(io, "10.0.0.2", threshold_mb=0)

    assert verdict.suspected
    assert io.lines[0].startswith("EXFIL suspected: 10.0.0.2  bytes=900 (>= 0)  window=600s  until=")


def test_dns_rare_lists_names(tmp_path):
    engine, io = _engine_with(_sample(tmp_path))

    rare = engine.dns_rare(io)

    assert [r.domain for r in rare] == ["a.example", "x,y.example"]
    assert io.lines[0] == "Rare domains (<= 2):"
    assert io.lines[2] == "x,y.example".ljust(50) + "  count=1  NX=1"


def test_export_round_trip(tmp_path):
    engine, io = _engine_with(_sample(tmp_path))
    out = tmp_path / "out.csv"

    assert engine.export(io, str(out)) == 3
    assert io.lines == [f"Exported 3 rows -> {out}"]

    original = engine.store.flows
    reloaded = FlowCsvReader().read(out)
    assert len(reloaded) == 3
    for before, after in zip(original, reloaded):
        assert after.timestamp == before.timestamp
        assert after.dns_query == before.dns_query.replace(",", " ")
        assert after.model_dump(exclude={"dns_query"}) == before.model_dump(exclude={"dns_query"})


def test_export_keeps_hash_fields_and_full_precision(tmp_path):
    path = _table(
        tmp_path / "odd.csv",
        '1700000000.1234567,10.0.0.1,"10.0.0.9 #2",5000,53,17,90,1,,"a#b.example",3',
    )
    engine, io = _engine_with(path)
    out = tmp_path / "out.csv"

    engine.export(io, str(out))

    assert out.read_text(encoding="utf-8").splitlines()[1] == (
        '1700000000.1234567,10.0.0.1,"10.0.0.9 #2",5000,53,17,90,1,,"a#b.example",3'
    )
    (after,) = FlowCsvReader().read(out)
    assert after == engine.store.flows[0]
    assert after.timestamp == 1700000000.1234567
    assert after.dst_ip == "10.0.0.9 #2"
    assert after.dns_query == "a#b.example"
    assert after.dns_rcode == "3"


def test_export_uses_last_result(tmp_path):
    engine, io = _engine_with(_sample(tmp_path))
    out = tmp_path / "udp.csv"

    engine.query(io, "proto = udp")
    engine.export(io, str(out))

    lines = out.read_text(encoding="utf-8").splitlines()
    assert lines[0] == ",".join(COLUMNS)
    assert lines[1] == "1700000000.25,10.0.0.1,8.8.8.8,5000,53,17,90,1,,a.example,0"


def test_export_empty_writes_header_only(tmp_path):
    io = BufferIO()
    out = tmp_path / "empty.csv"

    assert FlowEngine().export(io, str(out)) == 0
    assert out.read_text(encoding="utf-8") == ",".join(COLUMNS) + "\n"


def test_export_errors(tmp_path):
    io = BufferIO()
    engine = FlowEngine()

    engine.export(io, "")
    engine.export(io, str(tmp_path))

    assert io.errors[0] == 'usage: export "file.csv"'
    assert io.errors[1].startswith("export failed:")


def test_notes():
    io = BufferIO()
    engine = FlowEngine()

    engine.notes(io)
    engine.note(io, "   ")
    engine.note(io, "beacon to 203.0.113.5")
    engine.note(io, "check 10.0.0.2")
    engine.notes(io)

    assert io.errors == ['usage: note "text"']
    assert io.lines == [
        "No notes.",
        "Noted: beacon to 203.0.113.5",
        "Noted: check 10.0.0.2",
        "1. beacon to 203.0.113.5",
        "2. check 10.0.0.2",
    ]


def test_status(tmp_path):
    engine, io = _engine_with(_sample(tmp_path))
    engine.set_filter(io, "proto = tcp")

    info = engine.status(io)

    assert info["flows"] == 3
    assert info["filtered"] == 2
    assert info["filter"] == "proto = tcp"


def test_scan_requires_data():
    with pytest.raises(DatasetError):
        asyncio.run(FlowEngine().scan())


def _demo_engine(tmp_path) -> FlowEngine:
    config = FlowLensConfig(detection=DetectionConfig(syn_threshold=5, exfil_threshold_mb=3))
    engine = FlowEngine(config=config)
    io = BufferIO()
    demo = tmp_path / "demo.csv"
    engine.make_demo(io, str(demo))
    engine.load(io, str(demo))
    engine.build_index(io)
    assert io.errors == []
    assert io.lines[0] == f"Demo CSV written: {demo}"
    return engine


def test_scan_correlates_findings(tmp_path):
    engine = _demo_engine(tmp_path)
    engine.note(BufferIO(), "demo run")

    result = asyncio.run(engine.scan())

    by_detector = {}
    for finding in result.findings:
        by_detector.setdefault(finding.detector, []).append(finding)

    assert [f.severity for f in by_detector["syn_scan"]] == [Severity.HIGH]
    assert "10.1.2.50" in by_detector["syn_scan"][0].title
    assert [f.severity for f in by_detector["exfil"]] == [Severity.CRITICAL]
    assert "10.1.2.23" in by_detector["exfil"][0].title
    rare = {f.title: f.severity for f in by_detector["dns_rare"]}
    assert rare["Rare DNS name odd1.bad.labs"] is Severity.MEDIUM
    assert rare["Rare DNS name www.google.com"] is Severity.LOW

    assert result.highest_severity is Severity.CRITICAL
    assert result.end_time is not None
    assert result.metadata["flow_count"] == 23
    assert result.metadata["notes"] == ["demo run"]
    assert result.metadata["graph"]["host_count"] > 0


def test_scan_honours_active_filter(tmp_path):
    engine = _demo_engine(tmp_path)
    engine.set_filter(BufferIO(), "proto = udp")

    result = asyncio.run(engine.scan())

    assert {f.detector for f in result.findings} == {"dns_rare"}
    assert result.metadata["filtered_count"] == 4


def test_write_report(tmp_path):
    engine = _demo_engine(tmp_path)
    result = asyncio.run(engine.scan())
    io = BufferIO()

    path = engine.write_report(io, result, str(tmp_path / "reports" / "scan.json"))

    data = json.loads((tmp_path / "reports" / "scan.json").read_text(encoding="utf-8"))
    assert io.lines == [f"Report written -> {path}"]
    assert data["tool"] == "flowlens"
    assert data["statistics"]["total_findings"] == len(result.findings)
    assert len(data["findings"]) == len(result.findings)
    assert data["metadata"]["flow_count"] == 23
