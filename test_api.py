"""
HTTP API tests for the /sharepoint routes.

Runs the FastAPI app with the sync service dependency pointed at a local
packet tree and a temporary database.
"""

import json
import shutil

import pytest
from fastapi.testclient import TestClient

from api.routes.sharepoint import get_sync_service
from api.server import create_app


@pytest.fixture
def client(service):
    app = create_app()
    app.dependency_overrides[get_sync_service] = lambda: service
    with TestClient(app) as c:
        yield c


def _pending_id(client, folder_name):
    data = client.get("/sharepoint/pending").json()["data"]
    return next(item["id"] for item in data if item["folder_name"] == folder_name)


class TestScanEndpoint:

    def test_scan_then_rescan(self, client):
        first = client.get("/sharepoint/scan")
        assert first.status_code == 200
        assert first.json() == {"found": 2, "new": 2}

        second = client.get("/sharepoint/scan")
        assert second.json() == {"found": 2, "new": 0}

    def test_source_unavailable_is_503(self, client, packet_root):
        shutil.rmtree(packet_root)

        response = client.get("/sharepoint/scan")

        assert response.status_code == 503
        assert "unavailable" in response.json()["detail"]

    def test_scan_in_progress_is_409(self, client, service):
        service.store.acquire_scan_lease("scheduled-scan", ttl_seconds=600)

        response = client.get("/sharepoint/scan")

        assert response.status_code == 409

    def test_request_id_is_echoed(self, client):
        response = client.get("/sharepoint/pending", headers={"X-Request-Id": "req-123"})

        assert response.headers["X-Request-Id"] == "req-123"


class TestPendingEndpoints:

    def test_list_shape(self, client):
        client.get("/sharepoint/scan")

        body = client.get("/sharepoint/pending").json()

        assert body["total"] == 2
        assert body["page"] == 1
        assert body["limit"] == 50
        assert body["totalPages"] == 1
        item = body["data"][0]
        assert item["status"] == "pending"
        assert isinstance(item["files"], str)
        assert {f["type"] for f in json.loads(item["files"])} <= {"order", "invoice", "other"}

    def test_pagination(self, client):
        client.get("/sharepoint/scan")

        body = client.get("/sharepoint/pending", params={"limit": 1, "page": 2}).json()

        assert len(body["data"]) == 1
        assert body["totalPages"] == 2

    def test_empty_list(self, client):
        body = client.get("/sharepoint/pending").json()

        assert body["data"] == []
        assert body["totalPages"] == 0

    @pytest.mark.parametrize("params", [{"status": "archived"}, {"limit": 0}, {"page": 0}])
    def test_invalid_query_is_422(self, client, params):
        assert client.get("/sharepoint/pending", params=params).status_code == 422

    def test_large_limit_is_capped(self, client):
        client.get("/sharepoint/scan")

        response = client.get("/sharepoint/pending", params={"limit": 500})

        assert response.status_code == 200
        assert response.json()["limit"] == 100
        assert len(response.json()["data"]) == 2

    def test_count(self, client):
        client.get("/sharepoint/scan")

        assert client.get("/sharepoint/pending/count").json() == {"count": 2}

    def test_get_one(self, client):
        client.get("/sharepoint/scan")
        item_id = _pending_id(client, "SO-1001")

        response = client.get(f"/sharepoint/pending/{item_id}")

        assert response.status_code == 200
        assert response.json()["folder_name"] == "SO-1001"
        assert client.get("/sharepoint/pending/9999").status_code == 404


class TestImportEndpoint:

    def test_import(self, client, db):
        db.execute("INSERT INTO users (id, username, display_name) VALUES (5, 'alice', 'Alice')")
        db.commit()
        client.get("/sharepoint/scan")
        item_id = _pending_id(client, "SO-1001")

        response = client.post(f"/sharepoint/pending/{item_id}/import", headers={"X-User-Id": "5"})

        assert response.status_code == 200
        body = response.json()
        assert body["operationNumber"] == "SO-1001"
        assert body["ordersLinked"] == 1
        assert body["invoicesLinked"] == 1
        assert body["skippedFiles"] == []
        assert isinstance(body["operationId"], int)

        imported = client.get("/sharepoint/pending", params={"status": "imported"}).json()["data"]
        assert imported[0]["imported_by_name"] == "Alice"
        assert imported[0]["imported_operation_number"] == "SO-1001"
        assert client.get("/sharepoint/pending/count").json() == {"count": 1}

    def test_second_import_is_409(self, client):
        client.get("/sharepoint/scan")
        item_id = _pending_id(client, "SO-1001")
        client.post(f"/sharepoint/pending/{item_id}/import")

        response = client.post(f"/sharepoint/pending/{item_id}/import")

        assert response.status_code == 409
        assert "already imported" in response.json()["detail"]

    def test_unknown_item_is_404(self, client):
        assert client.post("/sharepoint/pending/9999/import").status_code == 404

    def test_download_failure_is_502(self, client, packet_root):
        client.get("/sharepoint/scan")
        item_id = _pending_id(client, "SO-1001")
        (packet_root / "SO-1001" / "PO_1001.pdf").unlink()

        response = client.post(f"/sharepoint/pending/{item_id}/import")

        assert response.status_code == 502
        assert client.get(f"/sharepoint/pending/{item_id}").json()["status"] == "pending"


class TestIgnoreEndpoint:

    def test_ignore(self, client):
        client.get("/sharepoint/scan")
        item_id = _pending_id(client, "SO-1002")

        response = client.post(f"/sharepoint/pending/{item_id}/ignore")

        assert response.status_code == 200
        assert response.json() == {}
        assert client.get(f"/sharepoint/pending/{item_id}").json()["status"] == "ignored"

    def test_ignore_twice_is_409(self, client):
        client.get("/sharepoint/scan")
        item_id = _pending_id(client, "SO-1002")
        client.post(f"/sharepoint/pending/{item_id}/ignore")

        response = client.post(f"/sharepoint/pending/{item_id}/ignore")

        assert response.status_code == 409
        assert "already ignored" in response.json()["detail"]

    def test_unknown_item_is_404(self, client):
        assert client.post("/sharepoint/pending/9999/ignore").status_code == 404


class TestHealth:

    def test_live_and_ready(self, client):
        assert client.get("/live").json() == {"status": "alive"}
        assert client.get("/ready").json() == {"status": "ready"}
