"""
FlowLens Analyzers
===================

Reports and detectors over already-filtered flows.

Modules:
    reporting -- Top talkers and traffic timeline
    graph     -- Distinct communication edges, NetworkX host summaries
    syn_scan  -- Bare-SYN fan-out detection
    exfil     -- External egress volume detection
    dns_rare  -- Rare and failing DNS names
"""

from flowlens.analyzers.dns_rare import DnsRarityAnalyzer
from flowlens.analyzers.exfil import ExfilDetector
from flowlens.analyzers.graph import GraphAnalyzer
from flowlens.analyzers.reporting import Timeline, TopTalkers
from flowlens.analyzers.syn_scan import SynScanDetector

__all__ = [
    "DnsRarityAnalyzer",
    "ExfilDetector",
    "GraphAnalyzer",
    "SynScanDetector",
    "Timeline",
    "TopTalkers",
]
