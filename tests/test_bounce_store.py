"""Tests for the SQLAlchemy bounce store and the admin routes."""
from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from bouncehook.api.app import create_app
from bouncehook.core.bounce import Bounce
from bouncehook.core.errors import BounceNotFoundError

SUBSCRIBER_UUID = "6a3d2c1b-0f1e-4d5c-9b8a-7e6f5d4c3b2a"


def _seed(store):
    base = datetime(2025, 1, 1, tzinfo=UTC)
    rows = [
        Bounce(email="a@example.com", type="hard", source="ses", campaign_id=1, created_at=base),
        Bounce(email="b@example.com", type="soft", source="sendgrid", campaign_id=1, created_at=base + timedelta(hours=1)),
        Bounce(
            subscriber_uuid=SUBSCRIBER_UUID,
            type="complaint",
            source="",
            campaign_id=2,
            meta={"k": "v"},
            created_at=base + timedelta(hours=2),
        ),
    ]
    return [store.record(row) for row in rows]


def test_record_assigns_ids_and_keeps_fields(bounce_store):
    records = _seed(bounce_store)
    assert [r.id for r in records] == [1, 2, 3]

    loaded = bounce_store.get_by_id(3)
    assert loaded.subscriber_uuid == SUBSCRIBER_UUID
    assert loaded.meta == {"k": "v"}
    assert loaded.type == "complaint"


def test_get_missing_bounce(bounce_store):
    with pytest.raises(BounceNotFoundError):
        bounce_store.get_by_id(42)


def test_query_filters_and_sorts(bounce_store):
    _seed(bounce_store)

    results, total = bounce_store.query(campaign_id=1)
    assert total == 2
    assert [r.email for r in results] == ["b@example.com", "a@example.com"]

    results, total = bounce_store.query(order_by="email", order="asc")
    assert total == 3
    assert [r.email for r in results] == ["", "a@example.com", "b@example.com"]

    results, total = bounce_store.query(source="sendgrid")
    assert [r.email for r in results] == ["b@example.com"]

    results, total = bounce_store.query(subscriber_uuid=SUBSCRIBER_UUID)
    assert total == 1

    results, total = bounce_store.query(offset=1, limit=1, order_by="id", order="asc")
    assert total == 3
    assert [r.id for r in results] == [2]


def test_delete(bounce_store):
    _seed(bounce_store)
    assert bounce_store.delete([1, 2]) == 2
    assert bounce_store.query()[1] == 1
    assert bounce_store.delete(all=True) == 1
    assert bounce_store.query() == ([], 0)


def test_admin_routes(settings, bounce_store):
    _seed(bounce_store)
    client = TestClient(create_app(settings, store=bounce_store))

    response = client.get("/bounces/", params={"campaign_id": 1, "per_page": 1})
    assert response.status_code == 200
    page = response.json()
    assert page["total"] == 2
    assert page["per_page"] == 1
    assert len(page["results"]) == 1

    assert client.get("/bounces/1").json()["email"] == "a@example.com"
    assert client.get("/bounces/99").status_code == 404

    assert client.delete("/bounces/").status_code == 400
    assert client.delete("/bounces/", params={"id": [1, 2]}).json() == {"deleted": 2}
    assert client.delete("/bounces/3").json() == {"deleted": 1}
    assert client.get("/bounces/").json()["results"] == []


def test_webhook_to_store_end_to_end(settings, bounce_store):
    client = TestClient(create_app(settings, store=bounce_store))
    response = client.post("/webhooks/bounce", json={"email": "E2E@example.com", "type": "hard", "source": "api"})
    assert response.status_code == 200

    results, total = bounce_store.query()
    assert total == 1
    assert results[0].email == "e2e@example.com"
    assert results[0].meta == {}
    assert results[0].source == "api"


@pytest.mark.parametrize("params", [{"id": "abc"}, {"id": ["1", "x"]}, {"id": "0"}, {"id": "-3"}])
def test_delete_rejects_invalid_ids(settings, bounce_store, params):
    _seed(bounce_store)
    client = TestClient(create_app(settings, store=bounce_store))

    response = client.delete("/bounces/", params=params)
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid ID"
    assert bounce_store.query()[1] == 3


def test_delete_all_ignores_ids(settings, bounce_store):
    _seed(bounce_store)
    client = TestClient(create_app(settings, store=bounce_store))

    assert client.delete("/bounces/", params={"all": "true", "id": "abc"}).json() == {"deleted": 3}


def test_subscriber_bounces_route(settings, bounce_store):
    _seed(bounce_store)
    bounce_store.record(
        Bounce(subscriber_uuid=SUBSCRIBER_UUID, type="hard", source="ses", created_at=datetime(2025, 2, 1, tzinfo=UTC))
    )
    client = TestClient(create_app(settings, store=bounce_store))

    response = client.get(f"/bounces/subscriber/{SUBSCRIBER_UUID}")
    assert response.status_code == 200
    body = response.json()
    assert [row["id"] for row in body] == [4, 3]
    assert {row["subscriber_uuid"] for row in body} == {SUBSCRIBER_UUID}

    other = "00000000-0000-4000-8000-000000000000"
    assert client.get(f"/bounces/subscriber/{other}").json() == []
    assert client.get("/bounces/subscriber/not-a-uuid").status_code == 400
