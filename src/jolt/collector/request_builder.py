"""
Builds the bulk read request sent to a Jolokia agent.

One body per metric, in the same order as the server's metric list.
The agent answers with an array in that order, which is how responses
get matched back to their metrics.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence
from urllib.parse import quote

from jolt.errors import ConfigError
from jolt.metrics import MetricDefinition, ServerDescriptor

CONTENT_TYPE = "application/json"


@dataclass
class BatchRequest:
    url: str
    endpoint: str
    bodies: List[Dict[str, Any]]
    metrics: List[MetricDefinition]

    def __len__(self) -> int:
        return len(self.bodies)

    def content(self) -> bytes:
        return json.dumps(self.bodies).encode("utf-8")

    def headers(self) -> Dict[str, str]:
        return {"Content-type": CONTENT_TYPE}


def build_read_body(metric: MetricDefinition) -> Dict[str, Any]:
    body: Dict[str, Any] = {"type": "read", "mbean": metric.mbean}
    if metric.attribute:
        body["attribute"] = metric.attribute
        # path only narrows an attribute, never sent on its own
        if metric.path:
            body["path"] = metric.path
    return body


def build_endpoint(server: ServerDescriptor, context: str) -> str:
    return f"http://{server.address}{context}"


def build_url(server: ServerDescriptor, context: str) -> str:
    """Endpoint with the server credentials, if any, as userinfo."""
    userinfo = ""
    if server.has_credentials:
        userinfo = f"{quote(server.user_name, safe='')}:{quote(server.password, safe='')}@"
    return f"http://{userinfo}{server.address}{context}"


def build_batch_request(server: ServerDescriptor, metrics: Sequence[MetricDefinition],
                        context: str) -> BatchRequest:
    """Raises ConfigError when there is nothing to ask the server for."""
    if not metrics:
        raise ConfigError(
            f"No metrics assigned to server {server.host_name}:{server.app_name}@{server.address}"
        )
    return BatchRequest(
        url=build_url(server, context),
        endpoint=build_endpoint(server, context),
        bodies=[build_read_body(m) for m in metrics],
        metrics=list(metrics),
    )
