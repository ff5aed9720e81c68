"""
Tests for the Jolokia collector with a stubbed HTTP transport.

Responses are canned agent payloads; the handler also records what the
collector sent so the request side can be checked.
"""

import base64
import json

import httpx

from jolt.accumulator import MemoryAccumulator
from jolt.collector.jolokia_collector import JolokiaCollector, make_timeout
from jolt.errors import (
    ConfigError,
    DataError,
    ProtocolError,
    RemoteStatusError,
    TransportError,
)
from jolt.metrics import MetricDefinition

SERVERS = ["ECS7:ydh@127.0.0.1:7016"]
SERVER_TAGS = {"HostName": "ECS7", "AppName": "ydh", "URI": "127.0.0.1:7016"}

HEAP = MetricDefinition(name="heap_memory_usage", mbean="java.lang:type=Memory",
                        attribute="HeapMemoryUsage")
NON_HEAP = MetricDefinition(name="non_heap_memory_usage", mbean="java.lang:type=Memory",
                            attribute="NonHeapMemoryUsage")

HEAP_VALUE = {"init": 67108864, "committed": 456130560, "max": 477626368, "used": 203288528}
NON_HEAP_VALUE = {"init": 2555904, "committed": 51380224, "max": -1, "used": 49944048}


def _item(value, status=200, **request):
    return {"request": request, "value": value, "timestamp": 1446129191, "status": status}


def _collector(body, status_code=200, servers=SERVERS, metrics=(HEAP,), sent=None, **kwargs):
    def handler(request: httpx.Request) -> httpx.Response:
        if sent is not None:
            sent.append(request)
        content = body if isinstance(body, str) else json.dumps(body)
        return httpx.Response(status_code, text=content)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    return JolokiaCollector(servers=servers, metrics=list(metrics), client=client,
                            context="/jolokia/", **kwargs)


def test_multi_value_response():
    collector = _collector([_item(HEAP_VALUE)])
    acc = MemoryAccumulator()

    assert collector.gather(acc) == 1
    assert acc.errors == []
    record = acc.records[0]
    assert record.measurement == "heap_memory_usage"
    assert record.fields == {"init": 67108864.0, "committed": 456130560.0,
                             "max": 477626368.0, "used": 203288528.0}
    assert record.tags == SERVER_TAGS
    assert record.timestamp is not None


def test_bulk_response_matched_by_position():
    collector = _collector([_item(HEAP_VALUE), _item(NON_HEAP_VALUE)], metrics=[HEAP, NON_HEAP])
    acc = MemoryAccumulator()
    collector.gather(acc)

    assert [r.measurement for r in acc.records] == ["heap_memory_usage", "non_heap_memory_usage"]
    assert acc.records[1].fields["max"] == -1.0


def test_single_value_with_path():
    used = MetricDefinition(name="heap_used", mbean="java.lang:type=Memory",
                            attribute="HeapMemoryUsage", path="used")
    sent = []
    collector = _collector([_item(209274376)], metrics=[used], sent=sent)
    acc = MemoryAccumulator()
    collector.gather(acc)

    assert acc.records[0].fields == {"": 209274376.0}
    assert json.loads(sent[0].content)[0]["path"] == "used"


def test_request_shape():
    sent = []
    collector = _collector([_item(HEAP_VALUE), _item(NON_HEAP_VALUE)],
                           metrics=[HEAP, NON_HEAP], sent=sent)
    collector.gather(MemoryAccumulator())

    request = sent[0]
    assert request.method == "POST"
    assert str(request.url) == "http://127.0.0.1:7016/jolokia/"
    assert request.headers["Content-type"] == "application/json"
    assert json.loads(request.content) == [
        {"type": "read", "mbean": "java.lang:type=Memory", "attribute": "HeapMemoryUsage"},
        {"type": "read", "mbean": "java.lang:type=Memory", "attribute": "NonHeapMemoryUsage"},
    ]


def test_credentials_sent_as_basic_auth():
    sent = []
    collector = _collector([_item(HEAP_VALUE)], servers=["ECS7:ydh@127.0.0.1:7016@admin:s3:cret"],
                           sent=sent)
    collector.gather(MemoryAccumulator())

    token = base64.b64encode(b"admin:s3:cret").decode()
    assert sent[0].headers["Authorization"] == f"Basic {token}"


def test_http_404_skips_server():
    collector = _collector("I don't think this is JSON", status_code=404)
    acc = MemoryAccumulator()

    assert collector.gather(acc) == 0
    assert acc.records == []
    assert len(acc.errors) == 1
    assert isinstance(acc.errors[0], ProtocolError)
    assert "has status code 404" in str(acc.errors[0])


def test_invalid_json_skips_server():
    collector = _collector("I don't think this is JSON")
    acc = MemoryAccumulator()
    collector.gather(acc)

    assert acc.records == []
    assert len(acc.errors) == 1
    assert isinstance(acc.errors[0], ProtocolError)
    assert "Error decoding JSON response" in str(acc.errors[0])
    assert "I don't think this is JSON" in str(acc.errors[0])


def test_non_array_body_is_a_protocol_error():
    collector = _collector(_item(HEAP_VALUE))
    acc = MemoryAccumulator()
    collector.gather(acc)

    assert acc.records == []
    assert isinstance(acc.errors[0], ProtocolError)


def test_length_mismatch_skips_server():
    collector = _collector([_item(HEAP_VALUE)], metrics=[HEAP, NON_HEAP])
    acc = MemoryAccumulator()
    collector.gather(acc)

    assert acc.records == []
    assert len(acc.errors) == 1
    assert "expected 2, received 1" in str(acc.errors[0])


def test_bad_sub_status_skips_only_that_metric():
    collector = _collector([_item(HEAP_VALUE), _item(None, status=500)], metrics=[HEAP, NON_HEAP])
    acc = MemoryAccumulator()

    assert collector.gather(acc) == 1
    assert [r.measurement for r in acc.records] == ["heap_memory_usage"]
    assert len(acc.errors) == 1
    err = acc.errors[0]
    assert isinstance(err, RemoteStatusError)
    assert 'attribute="NonHeapMemoryUsage"' in str(err)
    assert 'mbean="java.lang:type=Memory"' in str(err)
    assert "500" in str(err)


def test_missing_status_skips_only_that_metric():
    collector = _collector([{"value": 1}, _item(NON_HEAP_VALUE)], metrics=[HEAP, NON_HEAP])
    acc = MemoryAccumulator()
    collector.gather(acc)

    assert [r.measurement for r in acc.records] == ["non_heap_memory_usage"]
    assert isinstance(acc.errors[0], RemoteStatusError)
    assert "Missing status" in str(acc.errors[0])


def test_missing_value_skips_only_that_metric():
    collector = _collector([{"status": 200}, _item(NON_HEAP_VALUE)], metrics=[HEAP, NON_HEAP])
    acc = MemoryAccumulator()
    collector.gather(acc)

    assert [r.measurement for r in acc.records] == ["non_heap_memory_usage"]
    assert len(acc.errors) == 1
    assert isinstance(acc.errors[0], DataError)


def test_metric_tags_override_and_do_not_leak():
    tagged = MetricDefinition(name="heap_memory_usage", mbean="java.lang:type=Memory",
                              attribute="HeapMemoryUsage", tags={"AppName": "override", "env": "prod"})
    collector = _collector([_item(HEAP_VALUE), _item(NON_HEAP_VALUE)], metrics=[tagged, NON_HEAP])
    acc = MemoryAccumulator()
    collector.gather(acc)

    assert acc.records[0].tags == {"HostName": "ECS7", "AppName": "override",
                                   "URI": "127.0.0.1:7016", "env": "prod"}
    assert acc.records[1].tags == SERVER_TAGS


def test_transport_error_skips_server_and_continues():
    def handler(request):
        if request.url.port == 7016:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, json=[_item(HEAP_VALUE)])

    client = httpx.Client(transport=httpx.MockTransport(handler))
    collector = JolokiaCollector(servers=["a:x@127.0.0.1:7016", "b:x@127.0.0.1:7017"],
                                 metrics=[HEAP], client=client)
    acc = MemoryAccumulator()
    collector.gather(acc)

    assert [r.tags["HostName"] for r in acc.records] == ["b"]
    assert len(acc.errors) == 1
    assert isinstance(acc.errors[0], TransportError)


def test_bad_server_string_dropped_others_collected():
    collector = _collector([_item(HEAP_VALUE)], servers=["broken@1.2.3.4:1", SERVERS[0]])
    acc = MemoryAccumulator()
    collector.gather(acc)

    assert len(acc.records) == 1
    assert len(acc.errors) == 1
    assert isinstance(acc.errors[0], ConfigError)


def test_server_without_metrics_reports_error():
    scoped = MetricDefinition(name="only_h2", mbean="x:type=y", attribute="A", server_scope=("H2",))
    collector = _collector([_item(1)], metrics=[scoped])
    acc = MemoryAccumulator()
    collector.gather(acc)

    assert acc.records == []
    assert isinstance(acc.errors[0], ConfigError)
    assert "unable to create request" in str(acc.errors[0])


def test_routing_and_client_reused_across_cycles():
    sent = []
    collector = _collector([_item(HEAP_VALUE)], servers=["broken", SERVERS[0]], sent=sent)
    acc = MemoryAccumulator()

    collector.gather(acc)
    client = collector.client
    servers = collector.routing.servers
    collector.gather(acc)

    assert collector.client is client
    assert collector.routing.servers is servers
    assert len(acc.records) == 2
    # the bad server string is only reported on the first cycle
    assert len(acc.errors) == 1
    assert len(sent) == 2


def test_owned_client_created_lazily_and_closed():
    collector = JolokiaCollector(servers=[], metrics=[], response_header_timeout=1.5,
                                 client_timeout=2.5)
    client = collector.client
    assert client.timeout.read == 1.5
    assert client.timeout.connect == 2.5
    collector.close()
    assert client.is_closed


def test_make_timeout():
    timeout = make_timeout(3.0, 4.0)
    assert timeout.read == 3.0
    assert timeout.connect == 4.0
    assert timeout.write == 4.0
    assert timeout.pool == 4.0


def test_non_decimal_port_dropped_at_parse_time():
    sent = []
    collector = _collector([_item(HEAP_VALUE)], servers=["h:a@127.0.0.1:8_080"], sent=sent)
    acc = MemoryAccumulator()
    collector.gather(acc)

    assert sent == []
    assert collector.routing.servers == []
    assert len(acc.errors) == 1
    assert isinstance(acc.errors[0], ConfigError)
