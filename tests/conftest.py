"""
conftest.py – central pytest configuration and shared fixtures.

Pytest imports this module before it collects any test files, which lets us prepare the test
environment once:
  1) Extend `sys.path` with the project root so imports like `from core.reconciler import ...`
     resolve without an editable install.
  2) Define safe default environment variables read at import time by the configuration layer
     (vendor URL and API key), so collection never depends on a developer's shell.
  3) Provide `FakeSonyVendor`, an in-memory stand-in for `requests.Session` that speaks the Sony
     device API. Providers under test talk to it through the real resilient executor, so retry,
     404 and idempotency behavior is exercised end to end without network access.
"""

import itertools
import json
import os
import sys
import threading
from collections import defaultdict
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pytest
import requests

# Ensure project root is on sys.path for direct imports like `core`, `shared`, etc.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Provide required environment defaults for tests
os.environ.setdefault("SONY_API_URL", "http://sony.test")
os.environ.setdefault("SONY_API_KEY", "test-key")
os.environ.setdefault("LOG_LEVEL", "WARNING")

BASE_URL = "http://sony.test"


def make_response(status_code: int, payload: Any = None, text: Optional[str] = None) -> requests.Response:
    """Build a real `requests.Response` with an in-memory body."""
    response = requests.Response()
    response.status_code = status_code
    response.reason = {200: "OK", 201: "Created", 204: "No Content", 400: "Bad Request",
                       404: "Not Found", 500: "Internal Server Error",
                       503: "Service Unavailable"}.get(status_code, "")
    if text is not None:
        body = text.encode("utf-8")
    elif payload is not None:
        body = json.dumps(payload).encode("utf-8")
    else:
        body = b""
    response._content = body
    response._content_consumed = True
    response.encoding = "utf-8"
    response.headers["Content-Type"] = "application/json"
    return response


class FakeSonyVendor:
    """
    Thread-safe in-memory Sony device API exposed through the `requests.Session` surface.

    Scripted failures: `fail_next(method, *outcomes)` queues outcomes that are consumed before the
    normal behavior for that HTTP method. An outcome is either an int status code (returned with
    an error body) or an exception instance (raised, simulating a transport failure).
    """

    def __init__(self, base_url: str = BASE_URL) -> None:
        self.base_url = base_url
        self.devices: Dict[str, Dict[str, Any]] = {}
        self.calls: List[Tuple[str, str, Dict[str, Any]]] = []
        self.create_status = "active"
        self.healthy = True
        # Merged into every device created from now on.
        self.device_extras: Dict[str, Any] = {}
        self._failures: Dict[str, List[Any]] = defaultdict(list)
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def fail_next(self, method: str, *outcomes: Any) -> None:
        with self._lock:
            self._failures[method.upper()].extend(outcomes)

    def calls_for(self, method: str) -> List[Tuple[str, str, Dict[str, Any]]]:
        with self._lock:
            return [call for call in self.calls if call[0] == method.upper()]

    def _scripted(self, method: str) -> Optional[requests.Response]:
        queue = self._failures.get(method)
        if not queue:
            return None
        outcome = queue.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return make_response(outcome, {"error": f"scripted {outcome}"})

    def request(self, method: str, url: str, timeout: Any = None, headers: Any = None,
                json: Any = None, **kwargs: Any) -> requests.Response:
        method = method.upper()
        path = url[len(self.base_url):]
        with self._lock:
            self.calls.append((method, path, {"headers": headers or {}, "json": json, "timeout": timeout}))
            scripted = self._scripted(method)
            if scripted is not None:
                return scripted

            if method == "POST" and path == "/devices":
                device_id = f"dev-{next(self._ids)}"
                device = {
                    "device_id": device_id,
                    "status": self.create_status,
                    "message": "Device created",
                    "model": (json or {}).get("model", ""),
                }
                device.update(self.device_extras)
                self.devices[device_id] = device
                return make_response(201, device)

            device_id = path[len("/devices/"):] if path.startswith("/devices/") else ""
            device = self.devices.get(device_id)
            if method == "GET":
                if device is None:
                    return make_response(404, {"error": "device not found"})
                return make_response(200, device)
            if method == "PATCH":
                if device is None:
                    return make_response(404, {"error": "device not found"})
                device.update({"status": "active", "message": "Device updated"})
                return make_response(200, device)
            if method == "DELETE":
                if device is None:
                    return make_response(404, {"error": "device not found"})
                del self.devices[device_id]
                return make_response(204)
        return make_response(405, {"error": "method not allowed"})

    def get(self, url: str, headers: Any = None, timeout: Any = None, **kwargs: Any) -> requests.Response:
        with self._lock:
            self.calls.append(("HEALTH", url[len(self.base_url):], {"headers": headers or {}, "timeout": timeout}))
            scripted = self._scripted("HEALTH")
            if scripted is not None:
                return scripted
        if not self.healthy:
            raise requests.ConnectionError("connection refused")
        return make_response(200, {"status": "ok"})


@pytest.fixture
def http_response():
    """Factory fixture for canned `requests.Response` objects."""
    return make_response


@pytest.fixture
def vendor() -> FakeSonyVendor:
    return FakeSonyVendor()


@pytest.fixture
def sony_provider(vendor):
    from provider_api.sony_provider import SonyProvider

    # Zero backoff keeps retry tests fast; the schedule itself is tested separately.
    return SonyProvider(BASE_URL, "test-key", session=vendor, max_retries=3, base_delay_s=0.0, max_delay_s=0.0)


@pytest.fixture
def store():
    from services.resource_store import ResourceStore

    return ResourceStore()


@pytest.fixture
def reconciler(store, sony_provider):
    from core.reconciler import LifecycleReconciler

    return LifecycleReconciler(store=store, providers={"sony": sony_provider})


@pytest.fixture
def client(store, sony_provider):
    from fastapi.testclient import TestClient
    from main import create_app

    app = create_app(store=store, providers={"sony": sony_provider})
    return TestClient(app)
