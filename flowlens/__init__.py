"""
FlowLens -- Network Flow Analysis Engine
=========================================

Loads a flow table into memory and answers interactive questions about
it: filtered queries, top talkers, traffic timelines, communication edges,
and three detectors (SYN-scan fan-out, data exfiltration volume, rare DNS
lookups).

Modules:
    - ``flowlens.core.engine``     -- Engine facade over the store
    - ``flowlens.core.store``      -- Session state and snapshots
    - ``flowlens.core.models``     -- Pydantic data models
    - ``flowlens.collectors``      -- Flow table reader, demo generator
    - ``flowlens.query``           -- Filter language
    - ``flowlens.analyzers``       -- Reports and detectors
    - ``flowlens.output``          -- Console sinks, export, JSON report
    - ``flowlens.shell``           -- Command parsing and dispatch
    - ``flowlens.cli``             -- Click CLI entry point
"""

__version__ = "1.0.0"
