"""
Collector for Jolokia agents. Each cycle sends one bulk read per server
and turns every successful sub-response into a flattened record.

Failures are reported to the accumulator and never stop the cycle:
a bad server is skipped for this cycle, a bad sub-response only drops
its own metric.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Dict, List, Optional, Sequence

import httpx

from jolt.accumulator import Accumulator
from jolt.collector.base import MetricsCollector
from jolt.collector.flatten import DEFAULT_DELIMITER, flatten
from jolt.collector.request_builder import BatchRequest, build_batch_request
from jolt.collector.router import RoutingContext
from jolt.errors import (
    ConfigError,
    DataError,
    JoltError,
    ProtocolError,
    RemoteStatusError,
    TransportError,
)
from jolt.metrics import MetricDefinition, ServerDescriptor

log = logging.getLogger(__name__)

DEFAULT_CONTEXT = "/jolokia/"
DEFAULT_RESPONSE_HEADER_TIMEOUT = 3.0
DEFAULT_CLIENT_TIMEOUT = 4.0

STATUS_OK = 200


def make_timeout(response_header_timeout: float, client_timeout: float) -> httpx.Timeout:
    # read covers the header wait; the overall deadline is enforced in _do_request
    return httpx.Timeout(client_timeout, read=response_header_timeout)


class JolokiaCollector(MetricsCollector):

    def __init__(
        self,
        servers: Sequence[str],
        metrics: Sequence[MetricDefinition],
        context: str = DEFAULT_CONTEXT,
        delimiter: str = DEFAULT_DELIMITER,
        response_header_timeout: float = DEFAULT_RESPONSE_HEADER_TIMEOUT,
        client_timeout: float = DEFAULT_CLIENT_TIMEOUT,
        client: Optional[httpx.Client] = None,
        routing: Optional[RoutingContext] = None,
    ):
        self._server_conns = list(servers)
        self._metrics = list(metrics)
        self._context = context
        self._delimiter = delimiter
        self._response_header_timeout = response_header_timeout
        self._client_timeout = client_timeout
        self._client = client
        self._owns_client = client is None
        self.routing = routing or RoutingContext()

    @classmethod
    def from_config(cls, config, client: Optional[httpx.Client] = None) -> "JolokiaCollector":
        return cls(
            servers=config.servers,
            metrics=config.metrics,
            context=config.context,
            delimiter=config.delimiter,
            response_header_timeout=config.response_header_timeout,
            client_timeout=config.client_timeout,
            client=client,
        )

    @property
    def client(self) -> httpx.Client:
        """Built on first use and reused for every later cycle."""
        if self._client is None:
            self._client = httpx.Client(
                timeout=make_timeout(self._response_header_timeout, self._client_timeout)
            )
        return self._client

    def gather(self, acc: Accumulator) -> int:
        client = self.client
        servers = self.routing.ensure_built(self._server_conns, self._metrics, acc)
        log.debug("Starting cycle over %d servers", len(servers))

        emitted = 0
        for server in servers:
            emitted += self._gather_server(client, server, acc)

        log.debug("Cycle complete: %d records", emitted)
        return emitted

    def _gather_server(self, client: httpx.Client, server: ServerDescriptor,
                       acc: Accumulator) -> int:
        try:
            request = build_batch_request(server, server.metrics, self._context)
        except ConfigError as e:
            acc.add_error(ConfigError(f"unable to create request: {e}"))
            return 0

        try:
            out = self._do_request(client, request)
        except JoltError as e:
            log.info("Skipping %s this cycle", server.address)
            acc.add_error(e)
            return 0

        if len(out) != len(request):
            acc.add_error(ProtocolError(
                "did not receive the correct number of metrics in response. "
                f"expected {len(request)}, received {len(out)}"
            ))
            return 0

        server_tags = server.tags()
        emitted = 0
        for metric, resp in zip(request.metrics, out):
            fields = self._extract_fields(server, metric, resp, acc)
            if fields is None:
                continue

            tags = dict(server_tags)
            tags.update(metric.tags)
            acc.add_fields(metric.name, fields, tags)
            emitted += 1
        return emitted

    def _do_request(self, client: httpx.Client, request: BatchRequest) -> List[Any]:
        """Send the bulk read and decode the reply.

        The whole exchange, from connecting to the last body byte, must
        finish within client_timeout seconds.
        """
        deadline = time.monotonic() + self._client_timeout
        try:
            with client.stream("POST", request.url, content=request.content(),
                               headers=request.headers()) as response:
                self._check_deadline(deadline, request)
                if response.status_code != STATUS_OK:
                    raise ProtocolError(
                        f'Response from url "{request.endpoint}" '
                        f"has status code {response.status_code} ({response.reason_phrase}), "
                        f"expected {STATUS_OK} (OK)"
                    )

                chunks = []
                for chunk in response.iter_bytes():
                    chunks.append(chunk)
                    self._check_deadline(deadline, request)
                encoding = response.encoding or "utf-8"
        except httpx.HTTPError as e:
            raise TransportError(f"error performing request: {e}") from e

        body = b"".join(chunks).decode(encoding, errors="replace")
        try:
            out = json.loads(body)
        except ValueError as e:
            raise ProtocolError(f"Error decoding JSON response: {e}: {body}") from e

        if not isinstance(out, list):
            raise ProtocolError(f"Error decoding JSON response: expected an array: {body}")
        return out

    def _check_deadline(self, deadline: float, request: BatchRequest):
        if time.monotonic() > deadline:
            raise TransportError(
                f'error performing request: "{request.endpoint}" did not complete '
                f"within {self._client_timeout}s"
            )

    def _extract_fields(self, server: ServerDescriptor, metric: MetricDefinition,
                        resp: Any, acc: Accumulator) -> Optional[Dict[str, Any]]:
        if not isinstance(resp, dict) or "status" not in resp:
            acc.add_error(RemoteStatusError("Missing status in response body"))
            return None

        status = resp["status"]
        if status != STATUS_OK:
            acc.add_error(RemoteStatusError(
                f'Not expected status value in response body ({server.address} '
                f'mbean="{metric.mbean}" attribute="{metric.attribute}"): {status}'
            ))
            return None

        if "value" not in resp:
            acc.add_error(DataError("Missing key 'value' in output response"))
            return None

        return flatten(resp["value"], self._delimiter)

    def name(self) -> str:
        return f"Jolokia ({len(self._server_conns)} servers, context {self._context})"

    def close(self):
        if self._client is not None and self._owns_client:
            self._client.close()
            self._client = None
