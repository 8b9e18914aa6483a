"""
FlowLens Communication Graph
=============================

Extracts the distinct ``(src, dst, dst_port, protocol)`` edges of a flow
set in first-seen order and builds a NetworkX multigraph from them for
host-level summaries (fan-out, fan-in, connected groups).

References:
    - NetworkX documentation. https://networkx.org/
    - Newman, M. E. J. (2010). Networks: An Introduction.
      Oxford University Press.
"""

from __future__ import annotations

from typing import Any, Iterable

import networkx as nx

from shared.logger import FlowLogger

from flowlens.core.models import Edge, Flow

logger = FlowLogger("analyzers.graph")


class GraphAnalyzer:
    """Builds communication edges and graphs from flows.

    Usage::

        analyzer = GraphAnalyzer(top_n=5)
        edges = analyzer.edges(flows)
        graph = analyzer.build_graph(edges)
        summary = analyzer.summarize(graph)
    """

    def __init__(self, top_n: int = 5) -> None:
        self.top_n: int = top_n

    def edges(self, flows: Iterable[Flow]) -> list[Edge]:
        """Distinct edges in the order their first flow appears."""
        seen: dict[tuple[str, str, int, int], None] = {}
        for flow in flows:
            seen.setdefault((flow.src_ip, flow.dst_ip, flow.dst_port, flow.protocol), None)
        return [
            Edge(src_ip=src, dst_ip=dst, dst_port=port, protocol=proto)
            for src, dst, port, proto in seen
        ]

    def build_graph(self, edges: Iterable[Edge]) -> nx.MultiDiGraph:
        """One node per host, one keyed edge per ``dst_port/protocol`` service."""
        graph = nx.MultiDiGraph()
        for edge in edges:
            graph.add_edge(
                edge.src_ip,
                edge.dst_ip,
                key=f"{edge.dst_port}/p{edge.protocol}",
                dst_port=edge.dst_port,
                protocol=edge.protocol,
            )
        return graph

    def summarize(self, graph: nx.MultiDiGraph) -> dict[str, Any]:
        """Host counts and the hosts with the widest fan-out and fan-in.

        Fan-out counts distinct peers, not services, so the multigraph is
        collapsed to a simple digraph first.
        """
        simple = nx.DiGraph(graph)
        fan_out = sorted(simple.out_degree(), key=lambda item: item[1], reverse=True)
        fan_in = sorted(simple.in_degree(), key=lambda item: item[1], reverse=True)
        components = (
            nx.number_weakly_connected_components(simple)
            if simple.number_of_nodes()
            else 0
        )

        summary = {
            "host_count": graph.number_of_nodes(),
            "edge_count": graph.number_of_edges(),
            "peer_pairs": simple.number_of_edges(),
            "components": components,
            "top_fan_out": [[host, deg] for host, deg in fan_out[: self.top_n] if deg > 0],
            "top_fan_in": [[host, deg] for host, deg in fan_in[: self.top_n] if deg > 0],
        }
        logger.debug(
            "Graph summary: %d hosts, %d edges",
            summary["host_count"],
            summary["edge_count"],
        )
        return summary
