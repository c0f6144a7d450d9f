from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient
from fastapi import WebSocketDisconnect

from app.main import app
from app.models.classification import ClassificationResult, IssueCategory, IssuePriority
from app.models.notification import Channel
from app.services.classifier.base import (
    ClassificationAlreadyAttached,
    ClassificationTransportError,
    ContentFilteredError,
)
from app.services.notifications.dispatcher import DispatchOutcome

HEADERS = {"X-User-Id": "citizen-1"}

RESULT = ClassificationResult(
    category=IssueCategory.INFRASTRUCTURE,
    department="Public Works",
    priority=IssuePriority.HIGH,
    confidence=88,
    reasoning="Road surface damage",
    model="gemini-test",
)


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def classification_service():
    service = MagicMock()
    service.classify = AsyncMock(return_value=RESULT)
    service.classify_and_attach = AsyncMock(return_value=RESULT)
    with patch("app.routes.classification.get_classification_service", return_value=service):
        yield service


def test_root_lists_endpoints(client):
    response = client.get("/")

    assert response.status_code == 200
    assert response.json()["classification"] == "/classification"


def test_health_reports_modes(client):
    body = client.get("/health").json()

    assert body["status"] == "healthy"
    assert "classifier_configured" in body
    assert body["email_mode"] in ("function", "simulated")


def test_departments_for_known_and_unknown_category(client):
    known = client.get("/classification/departments", params={"category": "Utilities"}).json()
    unknown = client.get("/classification/departments", params={"category": "Weather"}).json()

    assert known["departments"][0] == "Electricity Board"
    assert unknown["departments"] == ["Public Works"]


def test_classify_returns_routing_decision(client, classification_service):
    response = client.post("/classification", json={"description": "Huge pothole near the school"})

    assert response.status_code == 200
    assert response.json()["department"] == "Public Works"
    request = classification_service.classify.call_args.args[0]
    assert request.description == "Huge pothole near the school"
    assert request.has_image is False


def test_classify_unavailable_offers_manual_fallback(client, classification_service):
    classification_service.classify.side_effect = ClassificationTransportError("HTTP 500")

    response = client.post("/classification", json={"description": "Streetlight out"})

    assert response.status_code == 503
    detail = response.json()["detail"]
    assert detail["error"] == "classification_unavailable"
    assert "Parks & Recreation" in detail["categories"]
    assert detail["fallback_departments"][0] == "Public Works"


def test_classify_content_filtered_asks_to_rephrase(client, classification_service):
    classification_service.classify.side_effect = ContentFilteredError("SAFETY")

    response = client.post("/classification", json={"description": "..."})

    assert response.status_code == 422
    assert "rephrase" in response.json()["detail"]["message"]


def test_classify_rejects_empty_description(client, classification_service):
    response = client.post("/classification", json={"description": ""})

    assert response.status_code == 422
    classification_service.classify.assert_not_called()


def test_second_attach_conflicts(client, classification_service):
    first = client.post("/classification/reports/r-12", json={"description": "Pothole"})
    classification_service.classify_and_attach.side_effect = ClassificationAlreadyAttached("r-12")
    second = client.post("/classification/reports/r-12", json={"description": "Pothole"})

    assert first.status_code == 201
    assert second.status_code == 409


def test_feed_requires_user_header(client):
    assert client.get("/notifications").status_code == 401


def test_feed_returns_recent_and_unread(client, notification_store):
    notification_store.seed("citizen-1")
    notification_store.seed("citizen-1", read=True)

    with patch("app.routes.notifications.get_notification_store", return_value=notification_store):
        body = client.get("/notifications", headers=HEADERS).json()

    assert len(body["notifications"]) == 2
    assert body["unread_count"] == 1


def test_unread_count_degrades_to_zero(client):
    store = MagicMock()
    store.unread_count = AsyncMock(side_effect=RuntimeError("firestore down"))

    with patch("app.routes.notifications.get_notification_store", return_value=store):
        body = client.get("/notifications/unread-count", headers=HEADERS).json()

    assert body == {"unread_count": 0}


def test_mark_read_rejects_other_users_notification(client, notification_store):
    theirs = notification_store.seed("someone-else")

    with patch("app.routes.notifications.get_notification_store", return_value=notification_store):
        response = client.post(f"/notifications/{theirs.id}/read", headers=HEADERS)

    assert response.status_code == 404
    assert notification_store.records[theirs.id].read is False


def test_mark_read_and_read_all(client, notification_store):
    first = notification_store.seed("citizen-1")
    notification_store.seed("citizen-1")
    notification_store.seed("citizen-1")

    with patch("app.routes.notifications.get_notification_store", return_value=notification_store):
        single = client.post(f"/notifications/{first.id}/read", headers=HEADERS)
        remaining = client.post("/notifications/read-all", headers=HEADERS)

    assert single.json() == {"id": first.id, "read": True}
    assert remaining.json() == {"marked": 2}
    assert all(n.read for n in notification_store.records.values())


def test_preferences_round_trip(client, preference_store):
    with patch("app.routes.notifications.get_preference_store", return_value=preference_store):
        defaults = client.get("/notifications/preferences", headers=HEADERS).json()
        updated = client.put(
            "/notifications/preferences", headers=HEADERS, json={"email_enabled": False}
        ).json()

    assert defaults["email_enabled"] is True
    assert updated["email_enabled"] is False
    assert updated["push_enabled"] is True


def test_dispatch_is_accepted(client):
    dispatcher = MagicMock()
    dispatcher.dispatch = AsyncMock(
        return_value=DispatchOutcome(notification_id="n1", channels_attempted=[Channel.PUSH])
    )
    body = {
        "recipient_id": "citizen-1",
        "event": {
            "kind": "status_change",
            "report_id": "r-12",
            "report_title": "Pothole #12",
            "old_status": "open",
            "new_status": "resolved",
        },
    }

    with patch("app.routes.notifications.get_dispatcher", return_value=dispatcher):
        response = client.post("/notifications/dispatch", json=body)

    assert response.status_code == 202
    assert response.json() == {"notification_id": "n1", "channels_attempted": ["push"], "channels_failed": []}
    event, recipient = dispatcher.dispatch.call_args.args
    assert event.new_status == "resolved"
    assert recipient == "citizen-1"


def test_dispatch_rejects_unknown_event_kind(client):
    body = {"recipient_id": "citizen-1", "event": {"kind": "upvote", "report_id": "r-1"}}

    assert client.post("/notifications/dispatch", json=body).status_code == 422


def test_live_feed_websocket(client, notification_store):
    seeded = notification_store.seed("citizen-1")

    with patch("app.services.notifications.live_feed.get_notification_store", return_value=notification_store):
        with client.websocket_connect("/notifications/live", headers=HEADERS) as websocket:
            initial = websocket.receive_json()
            websocket.send_json({"action": "mark_as_read", "id": seeded.id})
            after = websocket.receive_json()

    assert initial["unread_count"] == 1
    assert after["unread_count"] == 0
    assert after["notifications"][0]["read"] is True


def test_live_feed_ignores_user_id_query_without_header(client, notification_store):
    seeded = notification_store.seed("citizen-2")

    with patch("app.services.notifications.live_feed.get_notification_store", return_value=notification_store):
        with pytest.raises(WebSocketDisconnect) as closed:
            with client.websocket_connect("/notifications/live?user_id=citizen-2"):
                pass

    assert closed.value.code == 1008
    assert notification_store.records[seeded.id].read is False
    assert notification_store.streams == {}


def test_live_feed_closes_when_subscription_fails(client):
    store = MagicMock()
    store.subscribe = AsyncMock(side_effect=RuntimeError("firestore unavailable"))

    with patch("app.services.notifications.live_feed.get_notification_store", return_value=store):
        with client.websocket_connect("/notifications/live", headers=HEADERS) as websocket:
            with pytest.raises(WebSocketDisconnect) as closed:
                websocket.receive_json()

    assert closed.value.code == 1011


def test_component_health_does_not_call_out(client):
    with patch("app.routes.health.firebase_app_initialized", return_value=False):
        body = client.get("/health/components").json()

    assert body["push"]["native_available"] is False
    assert body["classifier"]["fallback_model"]
    assert body["email"]["mode"] in ("function", "simulated")


def test_db_health_reports_unreachable_firestore(client):
    with patch("app.routes.health.get_db", side_effect=RuntimeError("no credentials")):
        response = client.get("/health/db")

    assert response.status_code == 503


def test_db_health_samples_pipeline_collections(client):
    db = MagicMock()
    db.collection.return_value.limit.return_value.get.return_value = [object()]

    with patch("app.routes.health.get_db", return_value=db):
        body = client.get("/health/db").json()

    assert body["sampled"] == {"notifications": 1, "notification_preferences": 1}
