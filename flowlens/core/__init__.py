"""
FlowLens Core Module
=====================

Data models and errors. The engine and the store live in
``flowlens.core.engine`` and ``flowlens.core.store``.
"""

from flowlens.core.errors import DatasetError, FlowLensError, UsageError
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

__all__ = [
    "DatasetError",
    "FlowLensError",
    "UsageError",
    "Edge",
    "ExfilAlert",
    "ExfilVerdict",
    "Flow",
    "Metric",
    "RareDomain",
    "SynScanOffender",
    "TalkerRow",
    "TimelineBucket",
]
