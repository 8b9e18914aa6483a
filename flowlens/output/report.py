"""
FlowLens Report Generator
==========================

Writes a correlated scan result as a JSON document for machine
consumption: dataset statistics, findings, analyst notes and the raw
metadata the scan collected.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from shared.logger import FlowLogger
from shared.models import ScanResult

logger = FlowLogger("output.report")


class _FlowJSONEncoder(json.JSONEncoder):
    """JSON encoder for datetimes, paths, enums and sets."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, Path):
            return str(obj)
        if isinstance(obj, Enum):
            return obj.value
        if isinstance(obj, (set, frozenset)):
            return sorted(obj)
        return super().default(obj)


class FlowReportGenerator:
    """Usage::

        path = FlowReportGenerator().generate_json(result, "output/scan.json")
    """

    def build(self, result: ScanResult) -> dict[str, Any]:
        """The report document as a plain dictionary."""
        metadata = dict(result.metadata)
        notes = metadata.pop("notes", [])
        return {
            "report_type": "flowlens_flow_analysis",
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "tool": result.tool_name,
            "target": result.target,
            "started_at": result.start_time,
            "completed_at": result.end_time,
            "duration_seconds": result.duration_seconds,
            "summary": result.summary,
            "statistics": {
                "total_findings": result.finding_count,
                "critical_findings": result.critical_count,
                "high_findings": result.high_count,
                "by_severity": result.severity_counts,
            },
            "findings": [
                {
                    "severity": f.severity.value,
                    "title": f.title,
                    "description": f.description,
                    "detector": f.detector,
                    "evidence": f.evidence,
                    "recommendation": f.recommendation,
                }
                for f in result.findings
            ],
            "notes": notes,
            "metadata": metadata,
        }

    def generate_json(self, result: ScanResult, output_path: str | Path) -> str:
        """Write the report and return its absolute path.

        Raises:
            OSError: The file or its parent directory cannot be written.
        """
        path = Path(output_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w", encoding="utf-8") as fh:
            json.dump(
                self.build(result), fh, cls=_FlowJSONEncoder, indent=2, ensure_ascii=False
            )

        logger.info("JSON report generated: %s", path.resolve())
        return str(path.resolve())
