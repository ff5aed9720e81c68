"""
Routes configured metrics to the servers they apply to.

The routing table lives on the servers themselves: each ServerDescriptor
carries the ordered list of metrics it should read. RoutingContext owns
that list of servers and builds it at most once until reset.
"""

from __future__ import annotations

import logging
import threading
from typing import Iterable, List, Sequence

from jolt.accumulator import Accumulator
from jolt.collector.connection_string import parse_servers
from jolt.errors import ConfigError
from jolt.metrics import MetricDefinition, ServerDescriptor

log = logging.getLogger(__name__)


def split_scope(entry: str):
    """Split a "HostName[@AppName]" scope entry on its first '@'."""
    host, _, app = entry.partition("@")
    return host, app


def _matches(server: ServerDescriptor, host: str, app: str) -> bool:
    if host and app:
        return server.host_name == host and server.app_name == app
    if host:
        return server.host_name == host
    if app:
        return server.app_name == app
    return True


def assign_metric(servers: Sequence[ServerDescriptor], metric: MetricDefinition,
                  host: str = "", app: str = "") -> int:
    """Append metric to every server matching host/app. Returns the match count."""
    matched = 0
    for server in servers:
        if _matches(server, host, app):
            server.metrics.append(metric)
            matched += 1
    return matched


def assign_metrics(servers: Sequence[ServerDescriptor], metrics: Iterable[MetricDefinition],
                   acc: Accumulator) -> None:
    """Fill in each server's metric list.

    Overlapping scope entries can put the same metric on a server more
    than once; those duplicates are kept and emitted twice.
    """
    for metric in metrics:
        if not metric.server_scope:
            assign_metric(servers, metric)
            continue

        for entry in metric.server_scope:
            host, app = split_scope(entry)
            if not host and not app:
                acc.add_error(ConfigError(
                    f"Metric [{metric.name}] has empty server scope [{entry}], skipping"
                ))
                continue
            if assign_metric(servers, metric, host, app) == 0:
                log.debug("Scope %r of metric %s matches no configured server", entry, metric.name)


class RoutingContext:
    """Owns the parsed servers and their assigned metrics."""

    def __init__(self):
        self._servers: List[ServerDescriptor] = []
        self._lock = threading.Lock()

    @property
    def servers(self) -> List[ServerDescriptor]:
        return self._servers

    @property
    def built(self) -> bool:
        return bool(self._servers)

    def ensure_built(self, conns: Iterable[str], metrics: Iterable[MetricDefinition],
                     acc: Accumulator) -> List[ServerDescriptor]:
        """Parse servers and route metrics, unless that already happened."""
        with self._lock:
            if not self._servers:
                servers = parse_servers(conns, acc)
                assign_metrics(servers, metrics, acc)
                self._servers = servers
                log.info("Routing table built: %d servers, %d assignments",
                         len(servers), sum(len(s.metrics) for s in servers))
            return self._servers

    def reset(self):
        """Forget the routing table so the next cycle rebuilds it."""
        with self._lock:
            self._servers = []
