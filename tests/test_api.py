"""
API Tests for the SLA Endpoints
Exercises the FastAPI routes over httpx with the services wired to the test
database; the application lifespan is not run.
"""
from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.exc import OperationalError

from ticket_sla.main import app

CREATED = {
    "type": "ticket_created",
    "ticket_id": "TICKET-001",
    "priority": "urgent",
    "created_at": "2024-01-15T09:00:00Z",
}


@pytest.fixture
async def client(sla_engine, pause_service, reporting, config_provider):
    app.state.sla_engine = sla_engine
    app.state.pause_window_service = pause_service
    app.state.reporting_service = reporting
    app.state.sla_config_provider = config_provider
    app.state.sla_scheduler = None

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


class TestEventIngestion:

    async def test_events_start_and_stop_clocks(self, client):
        response = await client.post("/sla/events", json={"events": [
            CREATED,
            {"type": "ticket_first_response", "ticket_id": "TICKET-001",
             "responded_at": "2024-01-15T09:20:00Z"},
        ]})

        assert response.status_code == 200
        body = response.json()
        assert body["processed"] == 2
        assert body["failed"] == 0
        assert body["clocks_touched"] == 3

        clocks = await client.get("/sla/tickets/TICKET-001/clocks")
        assert clocks.status_code == 200
        by_type = {c["clock_type"]: c for c in clocks.json()["clocks"]}
        assert by_type["response"]["status"] == "met"
        assert by_type["response"]["elapsed_minutes"] == 20
        assert by_type["resolution"]["status"] == "ok"

    async def test_unknown_event_type_is_rejected(self, client):
        response = await client.post("/sla/events", json={"events": [
            {"type": "ticket_merged", "ticket_id": "TICKET-001"}
        ]})
        assert response.status_code == 422

    async def test_empty_batch_is_rejected(self, client):
        response = await client.post("/sla/events", json={"events": []})
        assert response.status_code == 422

    async def test_response_carries_correlation_id(self, client):
        response = await client.post(
            "/sla/events", json={"events": [CREATED]},
            headers={"X-Correlation-ID": "abc-123"}
        )
        assert response.headers["X-Correlation-ID"] == "abc-123"

    async def test_database_error_does_not_stop_batch(self, client, sla_engine, monkeypatch):
        async def locked(ticket_id, responded_at):
            raise OperationalError("UPDATE sla_tracked_tickets", {}, Exception("database is locked"))

        monkeypatch.setattr(sla_engine, "on_first_response", locked)

        response = await client.post("/sla/events", json={"events": [
            CREATED,
            {"type": "ticket_first_response", "ticket_id": "TICKET-001",
             "responded_at": "2024-01-15T09:20:00Z"},
            {"type": "ticket_resolved_or_closed", "ticket_id": "TICKET-001",
             "at": "2024-01-15T10:00:00Z"},
        ]})

        assert response.status_code == 200
        body = response.json()
        assert body["processed"] == 2
        assert body["failed"] == 1
        assert "ticket_first_response" in body["errors"][0]
        assert "database is locked" in body["errors"][0]

        clocks = await client.get("/sla/tickets/TICKET-001/clocks")
        by_type = {c["clock_type"]: c for c in clocks.json()["clocks"]}
        assert by_type["resolution"]["status"] == "met"
        assert by_type["response"]["status"] == "ok"


class TestReportingEndpoints:

    async def test_unknown_ticket_clocks_404(self, client):
        response = await client.get("/sla/tickets/nope/clocks")
        assert response.status_code == 404
        assert response.json()["error_type"] == "ResourceNotFoundException"

    async def test_all_cycles(self, client):
        await client.post("/sla/events", json={"events": [
            CREATED,
            {"type": "ticket_resolved_or_closed", "ticket_id": "TICKET-001",
             "at": "2024-01-15T10:00:00Z"},
            {"type": "ticket_reopened", "ticket_id": "TICKET-001",
             "at": "2024-01-15T11:00:00Z"},
        ]})

        current = await client.get("/sla/tickets/TICKET-001/clocks")
        every = await client.get("/sla/tickets/TICKET-001/clocks", params={"all_cycles": "true"})
        assert len(current.json()["clocks"]) == 2
        assert len(every.json()["clocks"]) == 3

    async def test_history_filtered_by_clock_type(self, client):
        await client.post("/sla/events", json={"events": [CREATED]})

        response = await client.get(
            "/sla/tickets/TICKET-001/history", params={"clock_type": "response"}
        )
        assert response.status_code == 200
        entries = response.json()["entries"]
        assert len(entries) == 1
        assert entries[0]["status"] == "ok"

    async def test_evaluate_ticket(self, client, clock):
        await client.post("/sla/events", json={"events": [CREATED]})
        clock.advance(minutes=61)

        response = await client.post("/sla/tickets/TICKET-001/evaluate")

        assert response.status_code == 200
        by_type = {c["clock_type"]: c for c in response.json()["clocks"]}
        assert by_type["response"]["status"] == "overdue"
        assert by_type["response"]["escalated_threshold_pct"] == 100

    async def test_sweep_and_dashboard(self, client, clock):
        await client.post("/sla/events", json={"events": [CREATED]})
        clock.advance(minutes=50)

        sweep = await client.post("/sla/sweep")
        assert sweep.status_code == 200
        assert sweep.json()["evaluated"] == 2
        assert sweep.json()["status_changes"] == 1

        dashboard = (await client.get("/sla/dashboard")).json()
        assert dashboard["total_clocks"] == 2
        assert dashboard["warning_count"] == 1
        assert dashboard["compliance_rate"] == 50.0

    async def test_config(self, client):
        response = await client.get("/sla/config")
        assert response.status_code == 200
        assert {rule["id"] for rule in response.json()["rules"]} == {"urgent", "high", "low"}


class TestPauseWindowEndpoints:

    async def test_crud(self, client):
        created = await client.post("/sla/pause-windows", json={
            "name": "Deploy freeze",
            "start": "2024-01-15T09:10:00Z",
            "end": "2024-01-15T09:40:00Z",
        })
        assert created.status_code == 201
        window_id = created.json()["id"]

        fetched = await client.get(f"/sla/pause-windows/{window_id}")
        assert fetched.json()["name"] == "Deploy freeze"

        patched = await client.patch(f"/sla/pause-windows/{window_id}", json={"name": "Freeze"})
        assert patched.status_code == 200
        assert patched.json()["name"] == "Freeze"

        listed = await client.get("/sla/pause-windows")
        assert [w["id"] for w in listed.json()] == [window_id]

        deleted = await client.delete(f"/sla/pause-windows/{window_id}")
        assert deleted.status_code == 204
        assert (await client.get(f"/sla/pause-windows/{window_id}")).status_code == 404

    async def test_inverted_range_rejected(self, client):
        response = await client.post("/sla/pause-windows", json={
            "name": "bad",
            "start": "2024-01-15T10:00:00Z",
            "end": "2024-01-15T09:00:00Z",
        })
        assert response.status_code == 422

    async def test_patch_to_inverted_range_rejected(self, client):
        created = await client.post("/sla/pause-windows", json={
            "name": "freeze",
            "start": "2024-01-15T09:10:00Z",
            "end": "2024-01-15T09:40:00Z",
        })
        response = await client.patch(
            f"/sla/pause-windows/{created.json()['id']}", json={"end": "2024-01-15T09:00:00Z"}
        )
        assert response.status_code == 422
        assert response.json()["error_type"] == "InvalidWindowException"

    async def test_delete_unknown_window(self, client):
        response = await client.delete(f"/sla/pause-windows/{uuid4()}")
        assert response.status_code == 404


class TestHealth:

    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["checks"]["sla_rules"] == 3
        assert body["checks"]["sla_scheduler"] == "stopped"
