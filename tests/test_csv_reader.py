from __future__ import annotations

import pytest

from flowlens.collectors.csv_reader import (
    COLUMNS,
    FlowCsvReader,
    split_fields,
    strip_comment,
)
from flowlens.collectors.demo import write_demo
from flowlens.core.models import Flow


def _write(path, text: str):
    path.write_text(text, encoding="utf-8")
    return path


def test_strip_comment_ignores_hash_inside_quotes():
    assert strip_comment('a,"b # c",d # tail') == 'a,"b # c",d '
    assert strip_comment("# whole line") == ""
    assert strip_comment("no comment") == "no comment"


def test_split_fields_drops_quotes_and_keeps_inner_commas():
    assert split_fields('1,"a,b",c') == ["1", "a,b", "c"]
    assert split_fields("1,,") == ["1", "", ""]
    assert split_fields('"x"y') == ["xy"]


def test_reader_parses_rows_with_defaults(tmp_path):
    csv = _write(
        tmp_path / "flows.csv",
        "# exported from sensor 3\n"
        " ts , src,dst,sport,dport,proto,bytes,pkts,tcp_flags,dns_qname,dns_rcode\n"
        "\n"
        '1700000000.5,10.0.0.1,8.8.8.8,1234,53,17,90,,,"a,b.example",NX3  # note\n'
        '1700000001,10.0.0.2,"host # 1",x,80,6,-5,2,0x02,,\n'
        "1700000002,10.0.0.3\n",
    )

    reader = FlowCsvReader()
    flows = reader.read(csv)

    assert reader.header == list(COLUMNS)
    assert len(flows) == 3

    first, second, third = flows
    assert first.timestamp == 1700000000.5
    assert first.packets == 1
    assert first.dns_query == "a,b.example"
    assert first.dns_rcode == "3"
    assert first.is_nxdomain
    assert first.is_udp and not first.is_tcp

    assert second.dst_ip == "host # 1"
    assert second.src_port == 0
    assert second.bytes_total == 0
    assert second.packets == 2
    assert second.tcp_flags == "0x02"
    assert second.is_tcp and not second.is_udp

    assert third.src_ip == "10.0.0.3"
    assert third.dst_ip == ""
    assert third.dst_port == 0
    assert third.packets == 1
    assert third.tcp_flags == ""


def test_reader_uses_defaults_for_unparsable_timestamp(tmp_path):
    csv = _write(
        tmp_path / "flows.csv",
        "ts,src,bytes\nnot-a-time,10.0.0.1,12\nnan,10.0.0.2,3\n",
    )

    flows = FlowCsvReader().read(csv)

    assert [f.timestamp for f in flows] == [0.0, 0.0]
    assert [f.bytes_total for f in flows] == [12, 3]


def test_reader_accepts_only_plain_ascii_numbers(tmp_path):
    csv = _write(
        tmp_path / "flows.csv",
        "ts,src,dport,bytes,pkts\n"
        "1_700_000_000,10.0.0.1,4_43,1_000,２\n"
        "1.7e9,10.0.0.2,+80,-0,3\n"
        ".5,10.0.0.3,٨٠,12,1\n",
    )

    first, second, third = FlowCsvReader().read(csv)

    assert (first.timestamp, first.dst_port, first.bytes_total, first.packets) == (0.0, 0, 0, 1)
    assert (second.timestamp, second.dst_port, second.bytes_total, second.packets) == (
        1.7e9,
        80,
        0,
        3,
    )
    assert (third.timestamp, third.dst_port) == (0.5, 0)


def test_reader_header_only_yields_no_flows(tmp_path):
    csv = _write(tmp_path / "empty.csv", ",".join(COLUMNS) + "\n")
    assert FlowCsvReader().read(csv) == []


def test_reader_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        FlowCsvReader().read(tmp_path / "missing.csv")


def test_protocol_classification_is_exclusive():
    for proto in (0, 1, 6, 17, 47):
        flow = Flow(protocol=proto)
        assert not (flow.is_tcp and flow.is_udp)
    assert Flow(protocol=6).is_tcp
    assert Flow(protocol=17).is_udp


def test_demo_table_loads(tmp_path):
    path = tmp_path / "demo.csv"
    rows = write_demo(path, now=1_700_000_000)

    flows = FlowCsvReader().read(path)

    assert len(flows) == rows == 23
    assert flows[0].timestamp == 1_700_000_000
    assert sum(1 for f in flows if f.tcp_flags == "0x02") == 11
    assert {f.dns_query for f in flows if f.is_nxdomain} == {"odd1.bad.labs", "odd2.bad.labs"}
