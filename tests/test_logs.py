from __future__ import annotations

import json
import logging

import pytest

from todolist_service.errors import LogConfigError
from todolist_service.logs import get_logger, init_log


@pytest.mark.parametrize(
    "level, expected",
    [("debug", logging.DEBUG), ("info", logging.INFO), ("warning", logging.WARNING), ("error", logging.ERROR)],
)
def test_init_log_levels(level, expected):
    init_log(level, "text")
    assert logging.getLogger().level == expected


def test_invalid_level_falls_back_to_debug():
    with pytest.raises(LogConfigError, match="unknown log level 'loud'"):
        init_log("loud", "text")
    assert logging.getLogger().level == logging.DEBUG


def test_invalid_format_still_configures_logging(caplog):
    with pytest.raises(LogConfigError, match="unknown log format 'xml'"):
        init_log("info", "xml")
    get_logger("tests").info("still_logging", answer=42)
    assert "still_logging" in caplog.text
    assert "answer=42" in caplog.text


def test_both_invalid_reported_together():
    with pytest.raises(LogConfigError) as excinfo:
        init_log("WARNING", "fancy")
    assert "log level" in str(excinfo.value)
    assert "log format" in str(excinfo.value)


@pytest.mark.parametrize("fmt", ["structured", "json", "logstash"])
def test_structured_output_is_json(capsys, fmt):
    init_log("info", fmt)
    get_logger("tests").warning("disk_low", free_mb=12)
    line = capsys.readouterr().err.strip().splitlines()[-1]
    record = json.loads(line)
    assert record["event"] == "disk_low"
    assert record["free_mb"] == 12
    assert record["level"] == "warning"
    assert record["logger"] == "tests"


def test_level_filters_events(capsys):
    init_log("error", "structured")
    get_logger("tests").warning("ignored")
    assert capsys.readouterr().err == ""


def test_reconfigure_keeps_foreign_handlers():
    foreign = logging.NullHandler()
    root = logging.getLogger()
    root.addHandler(foreign)
    try:
        init_log("info", "text")
        init_log("debug", "structured")
        assert foreign in root.handlers
        streams = [h for h in root.handlers if type(h) is logging.StreamHandler]
        assert len(streams) == 1
    finally:
        root.removeHandler(foreign)
