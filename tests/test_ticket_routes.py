from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from app.core.config import Settings, get_settings
from app.dependencies import tickets as ticket_deps
from app.main import create_app
from app.tickets.errors import BackendUnavailableError
from app.tickets.memory import InMemoryTicketRepository
from app.tickets.service import TicketService
from app.tickets.views import TicketViews

NOW = datetime(2025, 3, 2, 12, 0, tzinfo=timezone.utc)
OPERATOR = {"Authorization": "Bearer op-token"}
VIEWER = {"Authorization": "Bearer view-token"}


@pytest.fixture
def settings() -> Settings:
    return Settings(
        api_tokens={"op-token": "jdoe:operator", "view-token": "asmith:viewer"},
        max_page_size=50,
    )


@pytest.fixture
def ticket_client(settings, seed_tickets):
    app = create_app()
    repository = InMemoryTicketRepository(seed_tickets)
    service = TicketService(repository, clock=lambda: NOW)
    views = TicketViews(repository, clock=lambda: NOW)

    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[ticket_deps.get_ticket_service] = lambda: service
    app.dependency_overrides[ticket_deps.get_ticket_views] = lambda: views

    client = TestClient(app)
    try:
        yield client, service
    finally:
        app.dependency_overrides.clear()


def test_list_tickets_default_page(ticket_client):
    client, _ = ticket_client

    response = client.get("/tickets")

    assert response.status_code == 200
    body = response.json()
    assert body["pagination"] == {"page": 1, "limit": 20, "total": 8, "total_pages": 1}
    assert body["data"][0]["tt_number"] == "TT-240301-0002"
    assert body["data"][0]["details"]["site_classification"] == "Gold"


def test_list_tickets_filters(ticket_client):
    client, _ = ticket_client

    response = client.get(
        "/tickets",
        params={"status": "Open,null", "severity": "critical", "sortBy": "most_critical", "limit": 5},
    )

    assert response.status_code == 200
    assert [item["tt_number"] for item in response.json()["data"]] == ["TT-240301-0001"]


def test_list_tickets_search_and_age(ticket_client):
    client, _ = ticket_client

    response = client.get("/tickets", params={"search": "porur", "age": "1-5 days"})

    assert [item["tt_number"] for item in response.json()["data"]] == ["TT-240226-0090"]


@pytest.mark.parametrize(
    "params",
    [{"age": "forever"}, {"sortBy": "random"}, {"page": 0}, {"limit": 0}, {"limit": 51}],
)
def test_list_tickets_rejects_bad_criteria(ticket_client, params):
    client, _ = ticket_client

    response = client.get("/tickets", params=params)

    assert response.status_code == 400


def test_get_ticket_and_not_found(ticket_client):
    client, _ = ticket_client

    assert client.get("/tickets/TT-240301-0001").json()["supervisor"] == "S. Rao"
    assert client.get("/tickets/TT-missing").status_code == 404


def test_acknowledge_requires_operator(ticket_client):
    client, _ = ticket_client

    assert client.post("/tickets/TT-240301-0002/acknowledge").status_code == 403
    assert client.post("/tickets/TT-240301-0002/acknowledge", headers=VIEWER).status_code == 403
    assert client.post("/tickets/TT-240301-0002/acknowledge", headers={"Authorization": "Bearer nope"}).status_code == 401

    response = client.post("/tickets/TT-240301-0002/acknowledge", headers=OPERATOR)

    assert response.status_code == 200
    body = response.json()
    assert body["ticket"]["status"] == "Assigned"
    assert body["activity"]["activity_type"] == "acknowledged"
    assert body["activity"]["created_by"] == "jdoe"


def test_update_status(ticket_client):
    client, _ = ticket_client

    response = client.patch(
        "/tickets/TT-240301-0001/status",
        json={"status": "Closed", "remarks": "fixed"},
        headers=OPERATOR,
    )

    assert response.status_code == 200
    ticket = response.json()["ticket"]
    assert ticket["status"] == "Closed"
    assert ticket["cleared_date"] is not None
    assert ticket["system_rca"].endswith("fixed")


def test_update_status_invalid(ticket_client):
    client, _ = ticket_client

    invalid = client.patch("/tickets/TT-240301-0001/status", json={"status": "Resolved"}, headers=OPERATOR)
    missing = client.patch("/tickets/TT-missing/status", json={"status": "Closed"}, headers=OPERATOR)
    no_status = client.patch("/tickets/TT-240301-0001/status", json={}, headers=OPERATOR)

    assert invalid.status_code == 400
    assert "Must be one of" in invalid.json()["detail"]
    assert missing.status_code == 404
    assert no_status.status_code == 422


def test_add_remark(ticket_client):
    client, _ = ticket_client

    blank = client.post("/tickets/TT-240301-0001/remarks", json={"remarks": "   "}, headers=OPERATOR)
    added = client.post("/tickets/TT-240301-0001/remarks", json={"remarks": "on site"}, headers=OPERATOR)

    assert blank.status_code == 400
    assert blank.json()["detail"] == "Remarks cannot be empty"
    assert added.status_code == 200
    assert added.json()["ticket"]["system_rca"].endswith("jdoe]: on site")


def test_attachments_and_timeline(ticket_client):
    client, _ = ticket_client
    payload = {
        "original_filename": "rack.jpg",
        "stored_filename": "1700000000-rack.jpg",
        "file_path": "/uploads/1700000000-rack.jpg",
        "file_size": 1024,
        "mime_type": "image/jpeg",
    }

    created = client.post("/tickets/TT-240301-0001/attachments", json=payload, headers=OPERATOR)
    attachment_id = created.json()["attachment_id"]
    client.post(
        "/tickets/TT-240301-0001/remarks",
        json={"remarks": "photo attached", "attachment_id": attachment_id},
        headers=OPERATOR,
    )
    foreign = client.post(
        "/tickets/TT-240301-0002/remarks",
        json={"remarks": "photo attached", "attachment_id": attachment_id},
        headers=OPERATOR,
    )

    assert created.status_code == 201
    assert created.json()["uploaded_by"] == "jdoe"
    assert foreign.status_code == 404
    listed = client.get("/tickets/TT-240301-0001/attachments").json()
    assert [item["attachment_id"] for item in listed] == [attachment_id]
    timeline = client.get("/tickets/TT-240301-0001/timeline").json()
    assert timeline[0]["attachment_filename"] == "rack.jpg"
    assert timeline[0]["activity_type"] == "add_remark"
    assert client.get("/tickets/TT-missing/timeline").status_code == 404


def test_backend_unavailable_maps_to_503(ticket_client):
    client, service = ticket_client
    service.get_ticket = AsyncMock(side_effect=BackendUnavailableError("Ticket database is unavailable"))

    response = client.get("/tickets/TT-240301-0001")

    assert response.status_code == 503


def test_service_not_configured_returns_503():
    app = create_app()
    client = TestClient(app)

    assert client.get("/tickets").status_code == 503
