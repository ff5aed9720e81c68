"""
YAML configuration for jolt.

Only the file format lives here. Server strings are kept as-is and parsed
by the collector on its first cycle, so one bad server never blocks the
others from loading.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Union

import yaml

from jolt.errors import ConfigError
from jolt.metrics import MetricDefinition

log = logging.getLogger(__name__)

SAMPLE_CONFIG = """\
## Context root used to compose the Jolokia URL.
## Jolokia requires a trailing slash and a security policy allowing POST.
context: /jolokia/

## Servers exposing the Jolokia read service:
##   HostName:AppName@IP:PORT[@USERNAME[:PASSWORD]]
servers:
  - "ECS7:ydh@127.0.0.1:7016"

## How long to wait for response headers after writing the request.
response_header_timeout: 3s

## Limit for connecting and writing a request.
client_timeout: 4s

## Seconds between collection cycles for `jolt run`.
interval: 10s

## Joins nested attribute names into a single field name.
delimiter: "_"

metrics:
  - name: heap_memory_usage
    mbean: java.lang:type=Memory
    attribute: HeapMemoryUsage

  ## Only on ECS7 servers, and only the 'used' value
  - name: heap_memory_used
    mbean: java.lang:type=Memory
    attribute: HeapMemoryUsage
    path: used
    servers: ["ECS7"]

  - name: thread_count
    mbean: java.lang:type=Threading
    attribute: ThreadCount
    tags:
      group: threads
"""

_DURATION_RE = re.compile(r"^\s*([0-9]*\.?[0-9]+)\s*(ms|s|m)?\s*$")
_UNIT_SECONDS = {"ms": 0.001, "s": 1.0, "m": 60.0, None: 1.0}


@dataclass
class JoltConfig:
    context: str = "/jolokia/"
    servers: List[str] = field(default_factory=list)
    metrics: List[MetricDefinition] = field(default_factory=list)
    delimiter: str = "_"
    response_header_timeout: float = 3.0
    client_timeout: float = 4.0
    interval: float = 10.0


def parse_duration(value: Union[str, int, float]) -> float:
    """Seconds from a number or a string like "3s", "500ms", "1m"."""
    if isinstance(value, bool):
        raise ConfigError(f"Invalid duration [{value}]")
    if isinstance(value, (int, float)):
        return float(value)

    match = _DURATION_RE.match(str(value))
    if not match:
        raise ConfigError(f"Invalid duration [{value}]")
    number, unit = match.groups()
    return float(number) * _UNIT_SECONDS[unit]


def normalize_context(context: str) -> str:
    if not context.endswith("/"):
        log.warning("Context root %r has no trailing slash, appending one", context)
        context += "/"
    return context


def parse_metric(raw: Dict[str, Any]) -> MetricDefinition:
    if not isinstance(raw, dict):
        raise ConfigError(f"Metric entry must be a mapping, got [{raw}]")

    name = raw.get("name")
    mbean = raw.get("mbean")
    if not name or not mbean:
        raise ConfigError(f"Metric entry needs 'name' and 'mbean': {raw}")

    attribute = str(raw.get("attribute") or "")
    if "," in attribute:
        raise ConfigError(f"Metric [{name}] reads one attribute, got [{attribute}]")

    scope = raw.get("servers") or []
    if isinstance(scope, str):
        scope = [scope]

    tags = raw.get("tags") or {}
    if not isinstance(tags, dict):
        raise ConfigError(f"Metric [{name}] tags must be a mapping")

    return MetricDefinition(
        name=str(name),
        mbean=str(mbean),
        attribute=attribute,
        path=str(raw.get("path") or ""),
        server_scope=tuple(str(s) for s in scope),
        tags={str(k): str(v) for k, v in tags.items()},
    )


def config_from_dict(raw: Dict[str, Any]) -> JoltConfig:
    config = JoltConfig()
    if "context" in raw:
        config.context = str(raw["context"])
    config.context = normalize_context(config.context)

    servers = raw.get("servers") or []
    if isinstance(servers, str):
        servers = [servers]
    config.servers = [str(s) for s in servers]

    config.metrics = [parse_metric(m) for m in raw.get("metrics") or []]

    if "delimiter" in raw:
        config.delimiter = str(raw["delimiter"])
    for key in ("response_header_timeout", "client_timeout", "interval"):
        if key in raw:
            setattr(config, key, parse_duration(raw[key]))

    return config


def load_config(path: Union[str, Path]) -> JoltConfig:
    try:
        text = Path(path).read_text()
    except OSError as e:
        raise ConfigError(f"Cannot read config {path}: {e}") from e

    try:
        raw = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError(f"Config {path} must be a mapping at the top level")

    config = config_from_dict(raw)
    log.debug("Loaded %s: %d servers, %d metrics", path, len(config.servers), len(config.metrics))
    return config
