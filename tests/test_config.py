from __future__ import annotations

import json
import logging
from logging.handlers import RotatingFileHandler

import pytest

from shared.config import DetectionConfig, FlowLensConfig
from shared.logger import FlowLogger, configure_logging


def test_defaults():
    config = FlowLensConfig()

    assert config.detection == DetectionConfig()
    assert config.detection.syn_window == 120
    assert config.detection.syn_threshold == 150
    assert config.detection.exfil_threshold_mb == 50
    assert config.reporting.top_limit == 5
    assert config.reporting.query_preview == 20
    assert config.global_settings.log_level == "WARNING"
    assert config.shell.demo_file == "day1_flows_demo.csv"


def test_load_overrides_and_ignores_unknown_keys(tmp_path):
    path = tmp_path / "flowlens.toml"
    path.write_text(
        "[global]\n"
        'log_level = "DEBUG"\n'
        "\n"
        "[detection]\n"
        "syn_threshold = 40\n"
        "exfil_window = 300\n"
        "not_a_setting = true\n"
        "\n"
        "[reporting]\n"
        "top_limit = 10\n"
        "\n"
        "[unknown_section]\n"
        "x = 1\n",
        encoding="utf-8",
    )

    config = FlowLensConfig.load(path)

    assert config.global_settings.log_level == "DEBUG"
    assert config.detection.syn_threshold == 40
    assert config.detection.exfil_window == 300
    assert config.detection.syn_window == 120
    assert config.reporting.top_limit == 10
    assert not hasattr(config.detection, "not_a_setting")


def test_explicit_missing_path_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        FlowLensConfig.load(tmp_path / "missing.toml")


@pytest.fixture
def restore_logging():
    yield
    for name, candidate in list(logging.Logger.manager.loggerDict.items()):
        if name.startswith("flowlens.") and isinstance(candidate, logging.Logger):
            for handler in [h for h in candidate.handlers if isinstance(h, RotatingFileHandler)]:
                candidate.removeHandler(handler)
                handler.close()
            candidate.setLevel(logging.WARNING)


def test_configure_logging_writes_json_lines(tmp_path, restore_logging):
    log_file = tmp_path / "logs" / "flowlens.jsonl"
    log = FlowLogger("tests.config")
    other = FlowLogger("tests.other")

    configure_logging("INFO", log_file, json_lines=True)
    with log.operation("load"):
        log.info("Parsed %d flows", 3, source="flows.csv")
    log.debug("below threshold")
    other.warning("second component")

    records = [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines()]
    assert len(records) == 2
    first, second = records
    assert first["logger"] == "flowlens.tests.config"
    assert first["message"] == "Parsed 3 flows"
    assert first["component"] == "tests.config"
    assert first["operation"] == "load"
    assert first["context"] == {"source": "flows.csv"}
    assert second["component"] == "tests.other"
    assert "operation" not in second
