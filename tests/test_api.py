import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from conftest import TENANT_ID, USER_ID, make_occurrence
from corrective.db.session import get_db
from corrective.main import app

HEADERS = {"X-Tenant-Id": str(TENANT_ID), "X-User-Id": str(USER_ID)}


@pytest.fixture()
def client(engine, monkeypatch):
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def override_get_db():
        db = SessionLocal()
        try:
            yield db
        finally:
            db.close()

    monkeypatch.setattr("corrective.main.engine", engine)
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_quick_report_then_close_flow(client, asset):
    response = client.post(
        "/api/failures/quick-report",
        json={"asset_id": asset.id, "title": "Motor no arranca", "caused_downtime": True},
        headers=HEADERS,
    )
    assert response.status_code == 200
    body = response.json()
    work_order_id = body["work_order_id"]
    assert body["priority"]["priority"] == "P1"
    assert body["qa_required"] is True

    response = client.get(f"/api/work-orders/{work_order_id}/can-close", headers=HEADERS)
    assert response.json()["valid"] is False
    assert "Retorno a Producción" in response.json()["error"]

    response = client.post(
        f"/api/downtime/{body['downtime_log_id']}/return-to-production",
        json={"notes": "Linea en marcha"},
        headers=HEADERS,
    )
    assert response.status_code == 200
    response = client.post(
        f"/api/downtime/{body['downtime_log_id']}/return-to-production", json={}, headers=HEADERS
    )
    assert response.status_code == 409

    close_payload = {
        "diagnosis": "Contactor principal quemado",
        "solution": "Reemplazo de contactor K1",
        "outcome": "FUNCIONÓ",
        "effectiveness": 5,
    }
    response = client.post(f"/api/work-orders/{work_order_id}/close", json=close_payload, headers=HEADERS)
    assert response.status_code == 409

    response = client.post(
        f"/api/work-orders/{work_order_id}/qa/evidence",
        json={"evidence": [{"url": "https://files/ok.jpg"}]},
        headers=HEADERS,
    )
    assert response.status_code == 200
    response = client.post(f"/api/work-orders/{work_order_id}/qa/approve", json={}, headers=HEADERS)
    assert response.json()["status"] == "APPROVED"

    response = client.post(f"/api/work-orders/{work_order_id}/close", json=close_payload, headers=HEADERS)
    assert response.status_code == 200
    assert response.json()["work_order"]["status"] == "COMPLETED"

    response = client.get("/api/solutions/top", headers=HEADERS)
    assert response.json()["items"][0]["usage_count"] == 1


def test_duplicates_endpoint(client, db_session, asset):
    make_occurrence(db_session, asset, "Motor no arranca")
    response = client.post(
        "/api/failures/duplicates",
        json={"asset_id": asset.id, "title": "Motor no arranca correctamente"},
        headers=HEADERS,
    )
    assert response.status_code == 200
    assert len(response.json()["items"]) == 1


def test_error_mapping(client):
    response = client.post("/api/failures/duplicates", json={"asset_id": 1, "title": "ab"}, headers=HEADERS)
    assert response.status_code == 422
    response = client.get("/api/solutions/999", headers=HEADERS)
    assert response.status_code == 404
    response = client.get("/api/solutions/stats")
    assert response.status_code == 401


def test_settings_endpoints(client):
    response = client.get("/api/corrective-settings", headers=HEADERS)
    assert response.json()["duplicate_window_hours"] == 48
    response = client.patch("/api/corrective-settings", json={"duplicate_window_hours": 12}, headers=HEADERS)
    assert response.json()["duplicate_window_hours"] == 12
    response = client.patch("/api/corrective-settings", json={"duplicate_window_hours": 0}, headers=HEADERS)
    assert response.status_code == 422


def test_priority_endpoint(client):
    response = client.post(
        "/api/failures/priority",
        json={"asset_criticality": "CRITICAL", "caused_downtime": True, "is_observation": True},
    )
    assert response.json()["priority"] == "P2"
