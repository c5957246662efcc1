import json
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from helpdesk.api import build_helpdesk, create_app
from helpdesk.storage import RemoteStore

from factories import FakeRedis

SIGNATURE = "data:image/png;base64,iVBORw0KGgo="


def new_ticket(client, name="Morgan Wu", urgency="medium", **extra):
    payload = {
        "name": name,
        "department": "Administration",
        "requirement": "Printer jammed",
        "urgency": urgency,
        **extra,
    }
    response = client.post("/api/tickets", json=payload)
    assert response.status_code == 201
    return response.json()


# =============================================================================
# Health / config
# =============================================================================

def test_health_and_status(client):
    assert client.get("/health").json()["status"] == "healthy"

    status = client.get("/status").json()
    assert status["status"] == "online"
    assert status["kv_enabled"] is False


def test_config_and_no_cache_headers(client):
    response = client.get("/api/config")

    assert response.status_code == 200
    assert response.headers["Cache-Control"].startswith("no-store")
    config = response.json()
    assert config["version"]
    assert config["kv_enabled"] is False
    assert isinstance(config["timestamp"], int)


def test_defaults_are_seeded_on_startup(client, settings):
    roster = client.get("/api/engineers").json()

    assert roster["engineers"]
    assert roster["default_engineer_id"] == roster["engineers"][0]["id"]
    assert client.get("/api/contacts").json()
    assert client.get("/api/tickets").json() == []
    assert (settings.data_dir / "engineers.json").exists()


# =============================================================================
# Tickets
# =============================================================================

def test_ticket_lifecycle(client):
    medium = new_ticket(client, name="Casey Huang")
    high = new_ticket(client, name="Riley Tsai", urgency="high")

    queue = [t["id"] for t in client.get("/api/tickets/queue").json()]
    assert queue == [high["id"], medium["id"]]

    response = client.put(
        f"/api/tickets/{high['id']}",
        json={"status": "completed", "signature": SIGNATURE, "revision": 0},
    )
    assert response.status_code == 200
    done = response.json()
    assert done["completion_time"] is not None
    assert done["assigned_engineer"]
    assert done["revision"] == 1

    queue = [t["id"] for t in client.get("/api/tickets/queue").json()]
    assert queue == [medium["id"], high["id"]]

    today = datetime.now(timezone.utc).date().isoformat()
    report = client.get("/api/reports/daily", params={"date": today}).json()
    assert [t["id"] for t in report["completed"]] == [high["id"]]
    assert [t["id"] for t in report["pending"]] == [medium["id"]]


def test_completing_without_signature_is_rejected(client):
    ticket = new_ticket(client)

    response = client.put(f"/api/tickets/{ticket['id']}", json={"status": "completed"})

    assert response.status_code == 422
    assert client.get(f"/api/tickets/{ticket['id']}").json()["status"] == "pending"


def test_stale_update_conflicts(client):
    ticket = new_ticket(client)
    url = f"/api/tickets/{ticket['id']}"

    assert client.put(url, json={"process_note": "first", "revision": 0}).status_code == 200
    response = client.put(url, json={"process_note": "second", "revision": 0})

    assert response.status_code == 409
    assert client.get(url).json()["process_note"] == "first"


def test_missing_ticket_is_404(client):
    assert client.get("/api/tickets/nope").status_code == 404
    assert client.put("/api/tickets/nope", json={"process_note": "x"}).status_code == 404
    assert client.delete("/api/tickets/nope").status_code == 404


def test_delete_ticket(client):
    ticket = new_ticket(client)

    assert client.delete(f"/api/tickets/{ticket['id']}").status_code == 204
    assert client.get("/api/tickets").json() == []


def test_create_rejects_blank_fields_and_bad_urgency(client):
    blank = {"name": " ", "department": "IT", "requirement": "VPN"}
    assert client.post("/api/tickets", json=blank).status_code == 422

    bad = {"name": "Casey", "department": "IT", "requirement": "VPN", "urgency": "urgent"}
    assert client.post("/api/tickets", json=bad).status_code == 422


def test_queue_filters(client):
    new_ticket(client, name="Casey Huang", urgency="low")
    new_ticket(client, name="Riley Tsai", urgency="high")

    by_urgency = client.get("/api/tickets/queue", params={"urgency": "low"}).json()
    assert [t["name"] for t in by_urgency] == ["Casey Huang"]

    by_query = client.get("/api/tickets/queue", params={"q": "Riley"}).json()
    assert [t["name"] for t in by_query] == ["Riley Tsai"]

    assert client.get("/api/tickets/queue", params={"urgency": "urgent"}).status_code == 422


def test_history_search(client):
    new_ticket(client, name="Casey Huang", phone="#201")

    assert len(client.get("/api/tickets/history", params={"q": "casey"}).json()) == 1
    assert len(client.get("/api/tickets/history", params={"q": "#201"}).json()) == 1
    assert client.get("/api/tickets/history", params={"q": "riley"}).json() == []


def test_replace_tickets_rejects_duplicate_ids(client):
    ticket = new_ticket(client)

    response = client.put("/api/tickets", json=[ticket, ticket])

    assert response.status_code == 422


def test_legacy_epoch_ms_timestamps_are_accepted(client):
    legacy = {
        "id": "legacy-1",
        "name": "Casey Huang",
        "department": "Accounting",
        "requirement": "Monitor flickers",
        "urgency": "low",
        "request_time": 1709280000000,
        "status": "pending",
    }

    response = client.put("/api/tickets", json=[legacy])

    assert response.status_code == 200
    stored = client.get("/api/tickets/legacy-1").json()
    assert stored["request_time"].startswith("2024-03-01T08:00:00")


# =============================================================================
# Engineers / contacts
# =============================================================================

def test_engineer_roster_management(client):
    added = client.post("/api/engineers/items", json={"name": "Taylor Lee"})
    assert added.status_code == 201
    engineer_id = added.json()["id"]

    roster = client.put("/api/engineers/default", json={"engineer_id": engineer_id}).json()
    assert roster["default_engineer_id"] == engineer_id

    ticket = new_ticket(client)
    updated = client.put(f"/api/tickets/{ticket['id']}", json={"status": "in_progress"}).json()
    assert updated["assigned_engineer"] == "Taylor Lee"

    assert client.put("/api/engineers/default", json={"engineer_id": "ghost"}).status_code == 404
    assert client.delete("/api/engineers/ghost").status_code == 404
    assert client.post("/api/engineers/items", json={"name": "  "}).status_code == 422


def test_contact_import_and_lookup(client):
    client.post("/api/contacts", json=[])

    response = client.post(
        "/api/contacts/import",
        json={"text": "Department,Name,Extension\nAccounting,Casey Huang,301\nbad row"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["imported"] == 1
    assert body["skipped"] == 1

    assert client.get("/api/contacts/lookup/301").json()["name"] == "Casey Huang"
    assert client.get("/api/contacts/lookup/999").status_code == 404
    assert [c["name"] for c in client.get("/api/contacts", params={"q": "Casey"}).json()] == ["Casey Huang"]

    assert client.post("/api/contacts/import", json={"text": "nothing here"}).status_code == 422


def test_contact_edit_and_reset(client):
    contact = client.post(
        "/api/contacts/items",
        json={"name": "Quinn Park", "department": "Accounting", "extension": "301"},
    ).json()

    updated = client.put(f"/api/contacts/{contact['id']}", json={"extension": "302"}).json()
    assert updated["extension"] == "302"

    assert client.delete(f"/api/contacts/{contact['id']}").status_code == 204
    assert client.delete(f"/api/contacts/{contact['id']}").status_code == 404

    restored = client.post("/api/contacts/reset").json()
    assert restored
    assert all(c["name"] != "Quinn Park" for c in restored)


# =============================================================================
# Reports
# =============================================================================

def test_monthly_report_endpoint(client):
    new_ticket(client)
    month = datetime.now(timezone.utc).strftime("%Y-%m")

    report = client.get("/api/reports/monthly", params={"month": month}).json()

    assert report["total"] == 1
    assert report["departments"] == [{"department": "Administration", "count": 1}]
    assert client.get("/api/reports/monthly", params={"month": "2024-13"}).status_code == 422


def test_summary_endpoint(client):
    new_ticket(client, urgency="high")

    summary = client.get("/api/reports/summary").json()

    assert summary["total_completed"] == 0
    assert summary["avg_resolution_minutes"] == 0
    assert len(summary["last_7_days"]) == 7
    assert summary["urgency_counts"]["high"] == 1


# =============================================================================
# Real-time channel
# =============================================================================

def test_websocket_sends_snapshots_then_updates(client):
    with client.websocket_connect("/ws") as ws:
        events = {}
        for _ in range(3):
            message = ws.receive_json()
            events[message["event"]] = message["data"]

        assert set(events) == {"tickets:updated", "engineers:updated", "contacts:updated"}
        assert events["tickets:updated"] == []

        ticket = new_ticket(client)

        message = ws.receive_json()
        assert message["event"] == "tickets:updated"
        assert [t["id"] for t in message["data"]] == [ticket["id"]]


# =============================================================================
# Remote store
# =============================================================================

def test_remote_store_is_used_and_closed(settings):
    redis = FakeRedis()
    app = create_app(settings, remote=RemoteStore(redis, prefix="hd:"))

    with TestClient(app) as client:
        assert client.get("/status").json()["kv_enabled"] is True
        new_ticket(client)
        assert "hd:tickets" in redis.store
        assert "hd:engineers" in redis.store

    assert redis.closed is True


def test_unreachable_remote_store_falls_back_to_files(settings):
    app = create_app(settings, remote=RemoteStore(FakeRedis(fail=True)))

    with TestClient(app) as client:
        ticket = new_ticket(client)
        assert [t["id"] for t in client.get("/api/tickets").json()] == [ticket["id"]]

    assert (settings.data_dir / "tickets.json").exists()


def test_malformed_remote_document_does_not_break_reads(settings):
    redis = FakeRedis()
    redis.store["tickets"] = json.dumps({"unexpected": "object"})
    app = create_app(settings, remote=RemoteStore(redis))

    with TestClient(app) as client:
        response = client.get("/api/tickets")
        assert response.status_code == 200
        assert response.json() == []

        ticket = new_ticket(client)
        assert [t["id"] for t in client.get("/api/tickets").json()] == [ticket["id"]]
        assert isinstance(json.loads(redis.store["tickets"]), list)


def test_malformed_local_file_does_not_break_reads(client, settings):
    (settings.data_dir / "tickets.json").write_text(json.dumps([{"id": "x"}]), encoding="utf-8")

    response = client.get("/api/tickets")
    assert response.status_code == 200
    assert response.json() == []

    ticket = new_ticket(client)
    assert client.get(f"/api/tickets/{ticket['id']}").status_code == 200


def test_legacy_ticket_file_is_served_in_current_form(client, settings):
    legacy = [{
        "id": "legacy-1",
        "name": "Casey Huang",
        "department": "Accounting",
        "phone": "#201",
        "requirement": "Monitor flickers",
        "urgency": "高",
        "requestTime": 1709280000000,
        "status": "等待處理",
    }]
    (settings.data_dir / "tickets.json").write_text(
        json.dumps(legacy, ensure_ascii=False), encoding="utf-8"
    )

    [ticket] = client.get("/api/tickets").json()

    assert ticket["urgency"] == "high"
    assert ticket["status"] == "pending"
    assert ticket["request_time"].startswith("2024-03-01T08:00:00")


class LockCheckingSocket:
    """Records, per event, whether the matching collection lock was held."""

    def __init__(self, helpdesk):
        self.locks = {c.event: c.lock for c in helpdesk.collections}
        self.sent = []

    async def send_json(self, message):
        self.sent.append((message["event"], self.locks[message["event"]].locked()))


@pytest.mark.asyncio
async def test_connect_snapshots_are_sent_under_collection_locks(settings):
    helpdesk = build_helpdesk(settings)
    socket = LockCheckingSocket(helpdesk)

    await helpdesk.send_snapshots(socket)

    assert socket.sent == [
        ("tickets:updated", True),
        ("engineers:updated", True),
        ("contacts:updated", True),
    ]
