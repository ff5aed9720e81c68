"""
Fake Jolokia agent for testing without a JVM.

    python -m jolt.mock.fake_jolokia_server
    jolt --config sample.yaml once

Answers bulk POST reads for a handful of java.lang MBeans. Unknown MBeans
and attributes come back as per-item 404 entries, like the real agent.
"""

from __future__ import annotations

import json
import random
import time
from http.server import HTTPServer, BaseHTTPRequestHandler

CONTEXT = "/jolokia/"

_rng = random.Random(42)
_started = time.time()
_threads_started = 40


def _memory_usage(init: int, max_bytes: int) -> dict:
    used = int(max_bytes * _rng.uniform(0.2, 0.7))
    return {
        "init": init,
        "committed": min(max_bytes, used + 32 * 1024 * 1024) if max_bytes > 0 else used,
        "max": max_bytes,
        "used": used,
    }


def _mbean_attributes(mbean: str):
    global _threads_started
    if mbean == "java.lang:type=Memory":
        return {
            "HeapMemoryUsage": _memory_usage(134217728, 1908932608),
            "NonHeapMemoryUsage": _memory_usage(2555904, -1),
            "ObjectPendingFinalizationCount": 0,
            "Verbose": False,
        }
    if mbean == "java.lang:type=Threading":
        _threads_started += _rng.randint(0, 3)
        live = 20 + _rng.randint(0, 10)
        return {
            "ThreadCount": live,
            "PeakThreadCount": 32,
            "DaemonThreadCount": live - 6,
            "TotalStartedThreadCount": _threads_started,
        }
    if mbean == "java.lang:type=Runtime":
        return {"Uptime": int((time.time() - _started) * 1000)}
    return None


def _error(request: dict, status: int, message: str) -> dict:
    return {"request": request, "status": status, "error": message,
            "error_type": "javax.management.InstanceNotFoundException"}


def read_one(request: dict) -> dict:
    """Answer a single read request the way the agent would."""
    mbean = request.get("mbean", "")
    attributes = _mbean_attributes(mbean)
    if attributes is None:
        return _error(request, 404, f"{mbean} not found")

    attribute = request.get("attribute")
    if not attribute:
        value = attributes
    elif attribute in attributes:
        value = attributes[attribute]
        path = request.get("path")
        if path:
            for part in path.split("/"):
                if not isinstance(value, dict) or part not in value:
                    return _error(request, 404, f"path {path} not found")
                value = value[part]
    else:
        return _error(request, 404, f"No attribute {attribute} for {mbean}")

    return {"request": request, "value": value, "timestamp": int(time.time()), "status": 200}


class _JolokiaHandler(BaseHTTPRequestHandler):
    def do_POST(self):
        if self.path != CONTEXT:
            self.send_response(404)
            self.end_headers()
            return

        length = int(self.headers.get("Content-Length", 0))
        try:
            requests = json.loads(self.rfile.read(length) or b"[]")
        except ValueError:
            self.send_response(400)
            self.end_headers()
            return

        if isinstance(requests, dict):
            payload = read_one(requests)
        else:
            payload = [read_one(r) for r in requests]

        body = json.dumps(payload).encode()
        self.send_response(200)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args):
        pass  # Suppress request logging noise


def run_fake_server(host: str = "127.0.0.1", port: int = 7016):
    server = HTTPServer((host, port), _JolokiaHandler)
    print(f"Fake Jolokia agent running at http://{host}:{port}{CONTEXT}")
    print("Press Ctrl+C to stop.\n")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    server.server_close()
    print("\nServer stopped.")


if __name__ == "__main__":
    run_fake_server()
