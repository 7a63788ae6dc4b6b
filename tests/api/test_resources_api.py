"""
API tests for the `/resources` and `/health` endpoints.

Uses FastAPI's TestClient against an app built by `create_app` with the in-memory Sony vendor, so
the full HTTP -> reconciler -> provider -> executor path is exercised. Covers the status-code
contract of every endpoint, the stale-read header, and concurrent creates.
"""

from concurrent.futures import ThreadPoolExecutor

CAMERA = {
    "name": "cam-1",
    "type": "camera",
    "namespace": "studio-a",
    "spec": {"vendorType": "sony", "config": {"resolution": "4K"}},
}


def _create(client, body=None):
    response = client.post("/resources", json=body or CAMERA)
    assert response.status_code == 201, response.text
    return response.json()


# --- POST /resources ---

def test_create_returns_running_record(client, vendor):
    body = _create(client)
    assert body["id"].startswith("res-")
    assert body["name"] == "cam-1"
    assert body["namespace"] == "studio-a"
    assert body["spec"] == {"vendorType": "sony", "config": {"resolution": "4K"}}
    assert body["status"]["phase"] == "Running"
    assert body["status"]["vendorId"] == "dev-1"
    assert body["status"]["healthStatus"] == "healthy"
    assert "createdAt" in body and "updatedAt" in body
    assert vendor.calls_for("POST")[0][2]["json"]["settings"]["resolution"] == "3840x2160"


def test_create_vendor_failure_still_returns_201(client, vendor):
    vendor.fail_next("POST", 500, 500, 500, 500)
    body = _create(client)
    assert body["status"]["phase"] == "Failed"
    assert body["status"]["message"].startswith("Vendor API error:")


def test_create_missing_name_is_400(client):
    response = client.post("/resources", json={"type": "camera", "spec": {"vendorType": "sony"}})
    assert response.status_code == 400
    assert response.json() == {"error": "name is required"}


def test_create_unknown_vendor_is_400(client, vendor):
    body = dict(CAMERA, spec={"vendorType": "panasonic", "config": {}})
    response = client.post("/resources", json=body)
    assert response.status_code == 400
    assert "unsupported vendor" in response.json()["error"]
    assert vendor.calls == []


def test_create_malformed_body_is_400(client):
    response = client.post("/resources", content=b"not json", headers={"Content-Type": "application/json"})
    assert response.status_code == 400
    assert "error" in response.json()


def test_concurrent_creates_get_distinct_ids(client, store):
    def _post(i):
        body = dict(CAMERA, name=f"cam-{i}")
        return client.post("/resources", json=body).json()["id"]

    with ThreadPoolExecutor(max_workers=8) as pool:
        ids = list(pool.map(_post, range(40)))
    assert len(set(ids)) == 40
    assert len(store) == 40


# --- GET /resources/{id} ---

def test_get_returns_refreshed_record(client, vendor):
    created = _create(client)
    vendor.devices["dev-1"]["status"] = "provisioning"
    response = client.get(f"/resources/{created['id']}")
    assert response.status_code == 200
    assert response.json()["status"]["phase"] == "Provisioning"
    assert "X-Resource-Stale" not in response.headers


def test_get_after_vendor_lost_device_reports_failed(client, vendor):
    created = _create(client)
    vendor.devices.clear()
    response = client.get(f"/resources/{created['id']}")
    assert response.status_code == 200
    status = response.json()["status"]
    assert status["phase"] == "Failed"
    assert status["healthStatus"] == "unhealthy"


def test_get_with_vendor_outage_returns_cached_record(client, vendor):
    created = _create(client)
    vendor.fail_next("GET", 503, 503, 503, 503)
    response = client.get(f"/resources/{created['id']}")
    assert response.status_code == 200
    assert response.headers["X-Resource-Stale"] == "true"
    assert response.json()["status"]["phase"] == "Running"


def test_get_with_malformed_vendor_metrics_returns_cached_record(client, vendor):
    created = _create(client)
    vendor.devices["dev-1"]["stream_status"] = {"current_bitrate": "fast"}
    response = client.get(f"/resources/{created['id']}")
    assert response.status_code == 200
    assert response.headers["X-Resource-Stale"] == "true"
    assert response.json()["status"]["phase"] == "Running"


def test_create_with_malformed_vendor_metrics_persists_failed(client, vendor, store):
    vendor.device_extras = {"stream_status": {"dropped_frames": {"n": 1}}}
    body = _create(client)
    assert body["status"]["phase"] == "Failed"
    assert "Failed to parse Sony API response" in body["status"]["message"]
    assert len(store) == 1


def test_get_unknown_is_404(client):
    response = client.get("/resources/res-missing")
    assert response.status_code == 404
    assert "not found" in response.json()["error"]


# --- PUT /resources/{id} ---

def test_update_returns_updated_record(client):
    created = _create(client)
    response = client.put(f"/resources/{created['id']}", json={"spec": {"config": {"codec": "HEVC"}}})
    assert response.status_code == 200
    assert response.json()["spec"]["config"] == {"codec": "HEVC"}


def test_update_status_codes(client, vendor):
    assert client.put("/resources/res-missing", json={"spec": {"config": {}}}).status_code == 404

    created = _create(client)
    change_vendor = {"spec": {"vendorType": "blackmagic", "config": {}}}
    assert client.put(f"/resources/{created['id']}", json=change_vendor).status_code == 400

    vendor.fail_next("PATCH", 500, 500, 500, 500)
    response = client.put(f"/resources/{created['id']}", json={"spec": {"config": {"codec": "HEVC"}}})
    assert response.status_code == 502
    assert client.get(f"/resources/{created['id']}").json()["spec"]["config"] == {"resolution": "4K"}


def test_update_never_provisioned_is_internal_fault(client, vendor):
    vendor.fail_next("POST", 400)
    created = _create(client)
    response = client.put(f"/resources/{created['id']}", json={"spec": {"config": {}}})
    assert response.status_code == 500
    assert "has not been created at the vendor" in response.json()["error"]
    assert vendor.calls_for("PATCH") == []


# --- DELETE /resources/{id} ---

def test_delete_then_get_is_404(client, vendor):
    created = _create(client)
    response = client.delete(f"/resources/{created['id']}")
    assert response.status_code == 204
    assert response.content == b""
    assert client.get(f"/resources/{created['id']}").status_code == 404
    assert client.delete(f"/resources/{created['id']}").status_code == 404
    assert vendor.devices == {}


def test_delete_vendor_failure_is_500_and_keeps_record(client, vendor):
    created = _create(client)
    vendor.fail_next("DELETE", 500, 500, 500, 500)
    response = client.delete(f"/resources/{created['id']}")
    assert response.status_code == 500
    assert response.json()["error"].startswith("failed to delete from vendor:")
    follow_up = client.get(f"/resources/{created['id']}")
    assert follow_up.status_code == 200
    assert follow_up.json()["id"] == created["id"]


def test_delete_succeeds_when_vendor_already_forgot_device(client, vendor):
    created = _create(client)
    vendor.devices.clear()
    assert client.delete(f"/resources/{created['id']}").status_code == 204


# --- GET /health ---

def test_health_ok(client):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["providers"] == {"sony": "ok"}
    assert "timestamp" in body


def test_health_vendor_down_is_503(client, vendor):
    vendor.healthy = False
    response = client.get("/health")
    assert response.status_code == 503
    body = response.json()
    assert body["status"] == "unhealthy"
    assert "connection refused" in body["providers"]["sony"]
    assert len(vendor.calls_for("HEALTH")) == 1


def test_metrics_endpoint_is_mounted(client):
    _create(client)
    response = client.get("/metrics/")
    assert response.status_code == 200
    assert "vendor_requests_total" in response.text
