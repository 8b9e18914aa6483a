from __future__ import annotations

import networkx as nx

from flowlens.analyzers.graph import GraphAnalyzer
from flowlens.analyzers.reporting import Timeline, TopTalkers
from flowlens.core.models import Edge, Flow, Metric, TalkerRow, TimelineBucket
from flowlens.output.formatting import fmt_ts, format_bucket, format_talker


def _flow(src: str = "10.0.0.1", dst: str = "8.8.8.8", ts: float = 0.0, size: int = 0, **kw) -> Flow:
    return Flow(timestamp=ts, src_ip=src, dst_ip=dst, bytes_total=size, **kw)


def test_top_talkers_by_bytes_descending():
    flows = [
        _flow("10.0.0.1", size=100),
        _flow("10.0.0.2", size=300),
        _flow("10.0.0.1", size=250),
        _flow("10.0.0.3", size=5),
    ]

    rows = TopTalkers(limit=2).rank(flows)

    assert [(r.src_ip, r.value) for r in rows] == [("10.0.0.1", 350), ("10.0.0.2", 300)]
    assert all(r.metric is Metric.BYTES for r in rows)


def test_top_talkers_by_flow_count_and_minimum_limit():
    flows = [_flow("a"), _flow("b"), _flow("b"), _flow("c")]

    assert [(r.src_ip, r.value) for r in TopTalkers(limit=5).rank(flows, Metric.FLOWS)] == [
        ("b", 2),
        ("a", 1),
        ("c", 1),
    ]
    assert len(TopTalkers(limit=0).rank(flows)) == 1
    assert len(TopTalkers(limit=-3).rank(flows)) == 1


def test_metric_parse():
    assert Metric.parse("flows") is Metric.FLOWS
    assert Metric.parse("FLOWS") is Metric.FLOWS
    assert Metric.parse("bytes") is Metric.BYTES
    assert Metric.parse("packets") is Metric.BYTES
    assert Metric.parse(None) is Metric.BYTES


def test_timeline_bucket_boundary():
    buckets = Timeline(period=60).build([_flow(ts=125, size=10)])
    assert buckets == [TimelineBucket(start=120, value=10, bar=40)]


def test_timeline_orders_buckets_and_scales_bars():
    flows = [
        _flow(ts=200, size=5),
        _flow(ts=10, size=80),
        _flow(ts=70, size=1),
    ]

    buckets = Timeline(period=60, bar_width=40).build(flows)

    assert [b.start for b in buckets] == [0, 60, 180]
    # 40 * 5 / 80 = 2.5 rounds half up
    assert [b.bar for b in buckets] == [40, 1, 3]


def test_timeline_flow_metric_and_period_floor():
    flows = [_flow(ts=0.5), _flow(ts=0.9), _flow(ts=1.1)]

    buckets = Timeline(period=0).build(flows, Metric.FLOWS)

    assert [(b.start, b.value) for b in buckets] == [(0, 2), (1, 1)]


def test_timeline_zero_bytes_still_draws_one_bar():
    buckets = Timeline().build([_flow(ts=1), _flow(ts=90)])
    assert [b.bar for b in buckets] == [1, 1]


def test_timeline_empty():
    assert Timeline().build([]) == []


def test_line_formats():
    row = TalkerRow(src_ip="10.0.0.1", value=1234, metric=Metric.BYTES)
    assert format_talker(row) == "10.0.0.1".ljust(16) + "  " + "1,234".rjust(12) + " bytes"

    bucket = TimelineBucket(start=120, value=2048, bar=3)
    assert format_bucket(bucket) == f"{fmt_ts(120)}  ###  (2,048)"


def test_graph_edges_are_distinct_and_ordered():
    flows = [
        _flow("a", "b", dst_port=80, protocol=6),
        _flow("a", "c", dst_port=53, protocol=17),
        _flow("a", "b", dst_port=80, protocol=6),
        _flow("a", "b", dst_port=443, protocol=6),
    ]

    edges = GraphAnalyzer().edges(flows)

    assert [str(e) for e in edges] == [
        "a -> b [80/p6]",
        "a -> c [53/p17]",
        "a -> b [443/p6]",
    ]
    assert edges[0] == Edge(src_ip="a", dst_ip="b", dst_port=80, protocol=6)


def test_graph_summary_counts_peers():
    analyzer = GraphAnalyzer(top_n=2)
    flows = [
        _flow("a", "b", dst_port=80),
        _flow("a", "b", dst_port=443),
        _flow("a", "c", dst_port=22),
        _flow("d", "e", dst_port=22),
    ]

    graph = analyzer.build_graph(analyzer.edges(flows))
    summary = analyzer.summarize(graph)

    assert isinstance(graph, nx.MultiDiGraph)
    assert summary["host_count"] == 5
    assert summary["edge_count"] == 4
    assert summary["peer_pairs"] == 3
    assert summary["components"] == 2
    assert summary["top_fan_out"][0] == ["a", 2]


def test_graph_summary_of_empty_graph():
    analyzer = GraphAnalyzer()
    summary = analyzer.summarize(analyzer.build_graph([]))
    assert summary["host_count"] == 0
    assert summary["components"] == 0
    assert summary["top_fan_out"] == []
