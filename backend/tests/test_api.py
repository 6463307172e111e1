"""Tests for the HTTP API."""
import pytest
from fastapi.testclient import TestClient

from fieldreports.analysis import EnrichmentAssembler, ReportCompositor
from fieldreports.context import ServiceContext, build_context
from fieldreports.delivery import ReportDelivery
from fieldreports.main import app
from fieldreports.models import QueueStatus
from fieldreports.queue_worker import ReportQueueCoordinator

from conftest import FakeMailer, FakeNarrative, FakeWeather


@pytest.fixture
def context(settings, engine, session_factory, store):
    weather = FakeWeather()
    mailer = FakeMailer()
    assembler = EnrichmentAssembler(store, weather_client=weather, narrative_client=FakeNarrative())
    compositor = ReportCompositor(app_url="https://example.test")
    delivery = ReportDelivery(mailer, store=store, backoff_seconds=0, sleep=lambda seconds: None)
    coordinator = ReportQueueCoordinator(
        store, assembler, compositor, delivery, throttle_seconds=0, sleep=lambda seconds: None
    )
    return ServiceContext(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        store=store,
        weather=weather,
        llm=None,
        mailer=mailer,
        assembler=assembler,
        compositor=compositor,
        delivery=delivery,
        coordinator=coordinator,
    )


@pytest.fixture
def client(context):
    app.state.context = context
    with TestClient(app) as test_client:
        yield test_client
    app.state.context = None


def test_root(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["docs"] == "/docs"


def test_health(client, context):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["database"] == "connected"


def test_health_degraded_when_email_unreachable(client, context):
    context.mailer.verify = lambda: False

    response = client.get("/health")
    assert response.json()["status"] == "degraded"
    assert response.json()["email"] == "unreachable"


def test_webhook_enqueues_without_processing(client, context, seeded_field):
    response = client.post("/api/webhook/field", json={"field_id": seeded_field, "trigger_type": "loss_event"})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["created"] is True

    item = context.store.get_item(body["queue_item_id"])
    assert item.status == QueueStatus.PENDING.value
    assert item.priority == "high"
    assert context.mailer.attempts == 0


def test_webhook_defaults_to_new_field(client, context, seeded_field):
    body = client.post("/api/webhook/field", json={"field_id": seeded_field}).json()

    item = context.store.get_item(body["queue_item_id"])
    assert item.trigger_type == "new_field"
    assert item.priority == "normal"


def test_webhook_validation(client, seeded_field):
    assert client.post("/api/webhook/field", json={}).status_code == 422
    assert client.post("/api/webhook/field", json={"field_id": seeded_field, "trigger_type": "bogus"}).status_code == 422
    assert client.post("/api/webhook/field", json={"field_id": 999}).status_code == 404


def test_enqueue_and_process(client, context, seeded_field):
    response = client.post(
        "/api/queue/enqueue",
        json={"field_id": seeded_field, "trigger_type": "growth_stage_change", "priority": "critical"},
    )
    assert response.status_code == 200
    item = response.json()["item"]
    assert item["status"] == "pending"
    assert item["priority"] == "critical"

    again = client.post("/api/queue/enqueue", json={"field_id": seeded_field, "trigger_type": "growth_stage_change"})
    assert again.json()["created"] is False
    assert again.json()["item"]["id"] == item["id"]

    summary = client.post("/api/queue/process").json()
    assert summary == {"processed": 1, "errors": 0, "skipped": 0}
    assert context.mailer.attempts == 1

    assert client.post("/api/queue/process").json() == {"processed": 0, "errors": 0, "skipped": 0}


def test_enqueue_unknown_field(client):
    assert client.post("/api/queue/enqueue", json={"field_id": 999}).status_code == 404


def test_status_and_items(client, context, seeded_field):
    context.store.enqueue(seeded_field, "field_update")
    client.post("/api/queue/process")

    status = client.get("/api/queue/status").json()
    assert status["counts"]["completed"] == 1
    assert status["pending"] == 0
    assert status["last_batch"] == {"processed": 1, "errors": 0, "skipped": 0}

    items = client.get("/api/queue/items", params={"status": "completed"}).json()
    assert len(items) == 1
    assert items[0]["field_id"] == seeded_field

    assert client.get("/api/queue/items", params={"status": "pending"}).json() == []
    assert client.get("/api/queue/items", params={"status": "unknown"}).status_code == 422


def test_cancel(client, context, seeded_field):
    item, _ = context.store.enqueue(seeded_field, "field_update")

    response = client.post(f"/api/queue/{item.id}/cancel")
    assert response.status_code == 200
    assert context.store.get_item(item.id).status == QueueStatus.CANCELLED.value

    assert client.post(f"/api/queue/{item.id}/cancel").status_code == 409
    assert client.post("/api/queue/999/cancel").status_code == 404


def test_release_stale(client):
    response = client.post("/api/queue/release-stale")
    assert response.status_code == 200
    assert response.json()["released"] == 0


def test_build_context(settings):
    context = build_context(settings)
    try:
        assert context.llm is None
        assert context.store.ping() is True
        assert context.coordinator.batch_size == settings.batch_size
        assert context.assembler.narrative_client is None
    finally:
        context.close()
