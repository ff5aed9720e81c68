"""Tests for YAML configuration loading."""

import os
import tempfile

import pytest
import yaml

from jolt.config import (
    SAMPLE_CONFIG,
    config_from_dict,
    load_config,
    parse_duration,
    parse_metric,
)
from jolt.errors import ConfigError


def _write(text: str) -> str:
    with tempfile.NamedTemporaryFile("w", suffix=".yaml", delete=False) as f:
        f.write(text)
        return f.name


def test_defaults():
    config = config_from_dict({})
    assert config.context == "/jolokia/"
    assert config.delimiter == "_"
    assert config.response_header_timeout == 3.0
    assert config.client_timeout == 4.0
    assert config.servers == []
    assert config.metrics == []


def test_durations():
    assert parse_duration("3s") == 3.0
    assert parse_duration("500ms") == 0.5
    assert parse_duration("2m") == 120.0
    assert parse_duration(7) == 7.0
    assert parse_duration("1.5") == 1.5


@pytest.mark.parametrize("value", ["fast", "3h", "", True])
def test_bad_durations(value):
    with pytest.raises(ConfigError):
        parse_duration(value)


def test_context_gets_trailing_slash():
    assert config_from_dict({"context": "/gm/jolokia"}).context == "/gm/jolokia/"


def test_metric_fields():
    metric = parse_metric({
        "name": "heap",
        "mbean": "java.lang:type=Memory",
        "attribute": "HeapMemoryUsage",
        "path": "used",
        "servers": "ECS7@ydh",
        "tags": {"port": 8080},
    })
    assert metric.attribute == "HeapMemoryUsage"
    assert metric.path == "used"
    assert metric.server_scope == ("ECS7@ydh",)
    assert metric.tags == {"port": "8080"}


@pytest.mark.parametrize("raw", [
    {"mbean": "java.lang:type=Memory"},
    {"name": "heap"},
    {"name": "threads", "mbean": "java.lang:type=Threading", "attribute": "ThreadCount,PeakThreadCount"},
    {"name": "heap", "mbean": "x:type=y", "tags": ["a"]},
    "heap",
])
def test_invalid_metrics(raw):
    with pytest.raises(ConfigError):
        parse_metric(raw)


def test_sample_config_loads():
    path = _write(SAMPLE_CONFIG)
    try:
        config = load_config(path)
        assert config.servers == ["ECS7:ydh@127.0.0.1:7016"]
        assert [m.name for m in config.metrics] == [
            "heap_memory_usage", "heap_memory_used", "thread_count",
        ]
        assert config.metrics[1].server_scope == ("ECS7",)
        assert config.metrics[2].tags == {"group": "threads"}
        assert config.interval == 10.0
    finally:
        os.unlink(path)


def test_sample_config_is_valid_yaml():
    assert isinstance(yaml.safe_load(SAMPLE_CONFIG), dict)


def test_missing_file():
    with pytest.raises(ConfigError):
        load_config("/nonexistent/jolt.yaml")


def test_invalid_yaml():
    path = _write("servers: [unclosed")
    try:
        with pytest.raises(ConfigError):
            load_config(path)
    finally:
        os.unlink(path)


def test_top_level_must_be_mapping():
    path = _write("- just\n- a list\n")
    try:
        with pytest.raises(ConfigError):
            load_config(path)
    finally:
        os.unlink(path)
