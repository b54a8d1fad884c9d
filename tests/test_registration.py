"""Device and node registration API."""

from dataclasses import replace

from fastapi.testclient import TestClient

from meter_api.main import create_app


def _register_device(client, device_id="D1"):
    return client.post("/api/devices/register", json={
        "deviceId": device_id,
        "deviceName": "Gateway",
        "ipAddress": "192.168.1.100",
        "location": "Lab",
    })


def _register_node(client, node_id="N1", device_id="D1"):
    return client.post("/api/nodes/register", json={
        "nodeId": node_id,
        "nodeName": f"Meter {node_id}",
        "deviceId": device_id,
    })


class TestDevices:
    def test_register_and_fetch(self, client):
        r = _register_device(client)
        assert r.status_code == 201
        assert r.json()["data"]["status"] == "active"

        r = client.get("/api/devices/D1")
        assert r.status_code == 200
        assert r.json()["data"]["ipAddress"] == "192.168.1.100"

    def test_duplicate_is_400(self, client):
        _register_device(client)
        r = _register_device(client)
        assert r.status_code == 400
        assert r.json()["message"] == "Device with this ID already exists"

    def test_missing_name_is_rejected(self, client):
        r = client.post("/api/devices/register", json={"deviceId": "D1"})
        assert r.status_code == 422

    def test_list(self, client):
        _register_device(client, "D1")
        _register_device(client, "D2")
        body = client.get("/api/devices").json()
        assert body["count"] == 2

    def test_unknown_is_404(self, client):
        assert client.get("/api/devices/nope").status_code == 404
        assert client.patch("/api/devices/nope", json={"location": "x"}).status_code == 404
        assert client.delete("/api/devices/nope").status_code == 404

    def test_update_only_sent_fields(self, client):
        _register_device(client)
        r = client.patch("/api/devices/D1", json={"location": "Roof"})
        data = r.json()["data"]
        assert data["location"] == "Roof"
        assert data["deviceName"] == "Gateway"

    def test_status_update(self, client):
        _register_device(client)
        r = client.patch("/api/devices/D1/status", json={"status": "error"})
        assert r.status_code == 200
        assert r.json()["data"]["status"] == "error"

    def test_bad_status_is_rejected(self, client):
        _register_device(client)
        assert client.patch("/api/devices/D1/status", json={"status": "asleep"}).status_code == 422

    def test_delete_cascades_to_nodes(self, client):
        _register_device(client)
        _register_node(client, "N1")
        _register_node(client, "N2")

        assert client.delete("/api/devices/D1").status_code == 200
        assert client.get("/api/nodes/N1").status_code == 404
        assert client.get("/api/nodes/device/D1").json()["count"] == 0


class TestNodes:
    def test_register_requires_device(self, client):
        r = _register_node(client)
        assert r.status_code == 404
        assert "register the device first" in r.json()["message"]

    def test_register_links_device(self, client):
        _register_device(client)
        r = _register_node(client)
        assert r.status_code == 201
        assert r.json()["data"]["deviceId"] == "D1"

    def test_node_id_is_globally_unique(self, client):
        _register_device(client, "D1")
        _register_device(client, "D2")
        _register_node(client, "N1", "D1")
        r = _register_node(client, "N1", "D2")
        assert r.status_code == 400
        assert r.json()["message"] == "Node with this ID already exists"

    def test_list_by_device(self, client):
        _register_device(client, "D1")
        _register_device(client, "D2")
        _register_node(client, "N1", "D1")
        _register_node(client, "N2", "D2")
        body = client.get("/api/nodes/device/D1").json()
        assert [n["nodeId"] for n in body["data"]] == ["N1"]
        assert client.get("/api/nodes").json()["count"] == 2

    def test_update_and_status(self, client):
        _register_device(client)
        _register_node(client)
        r = client.patch("/api/nodes/N1", json={"nodeName": "Kitchen"})
        assert r.json()["data"]["nodeName"] == "Kitchen"
        r = client.patch("/api/nodes/N1/status", json={"status": "inactive"})
        assert r.json()["data"]["status"] == "inactive"

    def test_delete(self, client):
        _register_device(client)
        _register_node(client)
        assert client.delete("/api/nodes/N1").status_code == 200
        assert client.delete("/api/nodes/N1").status_code == 404


class TestRoot:
    def test_banner(self, client):
        body = client.get("/").json()
        assert body["endpoints"]["meter"] == "/api/meter"


class TestLifespan:
    def test_udp_listener_follows_app_lifetime(self, settings, mongo, cache):
        app = create_app(replace(settings, udp_enabled=True), mongo=mongo, cache=cache)
        udp = app.state.udp
        assert udp.address is None

        with TestClient(app):
            assert udp.address is not None
        assert udp.address is None

    def test_udp_disabled_keeps_listener_closed(self, app):
        with TestClient(app):
            assert app.state.udp.address is None
