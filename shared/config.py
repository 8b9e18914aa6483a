"""
FlowLens Configuration Management
==================================

Centralised configuration for the FlowLens flow-analysis engine using
Python dataclasses and TOML-based persistence.

Every tunable default of the engine (report sizes, detector windows and
thresholds, shell prompt) lives here so the command layer never hard-codes
numbers of its own.

References:
    - TOML v1.0.0 Specification. https://toml.io/en/v1.0.0
    - PEP 681 -- Data Class Transforms (2022).
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib  # type: ignore[no-redef]


# ---------------------------------------------------------------------------
# Default configuration file path relative to the project root
# ---------------------------------------------------------------------------
_DEFAULT_CONFIG_PATH: Path = Path(__file__).resolve().parent.parent / "flowlens.toml"


# ========================== Section Configs ================================


@dataclass(frozen=False, slots=True)
class ReportingConfig:
    """Defaults for the read-only reporting operations.

    ``query_preview`` and ``graph_preview`` cap how many lines the
    ad-hoc query and graph commands print; the full result set is still
    kept for export.
    """

    top_limit: int = 5
    timeline_period: int = 60
    query_preview: int = 20
    graph_preview: int = 50
    bar_width: int = 40


@dataclass(frozen=False, slots=True)
class DetectionConfig:
    """Defaults for the SYN-scan, exfiltration and DNS rarity detectors."""

    syn_window: int = 120
    syn_threshold: int = 150
    exfil_window: int = 600
    exfil_threshold_mb: int = 50
    dns_minimum: int = 2
    dns_preview: int = 50


@dataclass(frozen=False, slots=True)
class ShellConfig:
    """Interactive shell settings."""

    prompt: str = "flowlens> "
    demo_file: str = "day1_flows_demo.csv"


@dataclass(frozen=False, slots=True)
class GlobalConfig:
    """Logging verbosity, output directory and general switches."""

    log_level: str = "WARNING"
    log_file: Optional[str] = None
    log_json: bool = False
    output_dir: str = "output"
    debug: bool = False


# =========================== Master Config =================================


@dataclass(frozen=False, slots=True)
class FlowLensConfig:
    """Master configuration aggregating every section.

    Usage:
        >>> config = FlowLensConfig.load()                 # from default path
        >>> config = FlowLensConfig.load("custom.toml")    # from custom path
        >>> config.detection.syn_threshold
        150
    """

    global_settings: GlobalConfig = field(default_factory=GlobalConfig)
    reporting: ReportingConfig = field(default_factory=ReportingConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    shell: ShellConfig = field(default_factory=ShellConfig)

    @classmethod
    def load(cls, path: str | Path | None = None) -> FlowLensConfig:
        """Load configuration from a TOML file.

        If *path* is ``None`` the loader looks for ``flowlens.toml`` in the
        project root.  Missing keys fall back to dataclass defaults.

        Raises:
            FileNotFoundError: If the specified path does not exist
                *and* was explicitly provided by the caller.
        """
        config_path = Path(path) if path is not None else _DEFAULT_CONFIG_PATH

        if not config_path.exists():
            if path is not None:
                raise FileNotFoundError(
                    f"Configuration file not found: {config_path}"
                )
            return cls()

        with open(config_path, "rb") as fh:
            raw: dict[str, Any] = tomllib.load(fh)

        return cls(
            global_settings=cls._build_section(GlobalConfig, raw.get("global", {})),
            reporting=cls._build_section(ReportingConfig, raw.get("reporting", {})),
            detection=cls._build_section(DetectionConfig, raw.get("detection", {})),
            shell=cls._build_section(ShellConfig, raw.get("shell", {})),
        )

    @staticmethod
    def _build_section(cls: type, data: dict[str, Any]) -> Any:
        """Instantiate a dataclass *cls* using only the keys it declares.

        Unknown keys in the TOML source are ignored.
        """
        valid_keys = {f.name for f in cls.__dataclass_fields__.values()}  # type: ignore[attr-defined]
        filtered = {k: v for k, v in data.items() if k in valid_keys}
        return cls(**filtered)


def get_config(path: str | Path | None = None) -> FlowLensConfig:
    """Module-level convenience wrapper around :meth:`FlowLensConfig.load`.

    Caches the result so that repeated calls share one instance.
    """
    if not hasattr(get_config, "_cached") or path is not None:
        get_config._cached = FlowLensConfig.load(path)  # type: ignore[attr-defined]
    return get_config._cached  # type: ignore[attr-defined]
