import uuid

import pytest
from sqlmodel import Session, select

from sponsordesk.models.conflict import Conflict
from sponsordesk.models.deal import Deliverable
from sponsordesk.models.exclusivity import ExclusivityScope
from sponsordesk.services.rule_repository import RuleFetchError

URL = "/api/v1/deliverables/"


@pytest.fixture
def headers(user_id):
    return {"X-User-Id": str(user_id)}


@pytest.fixture
def deals(user_id, make_deal, make_rule):
    """A deal holding a Jan-2025 smartphone rule and a second deal to post into."""
    protected = make_deal(user_id, title="Phone launch", brand_name="Acme Phones")
    make_rule(protected)
    target = make_deal(user_id, title="Rival collab", brand_name="Rival Mobile")
    return protected, target


def _body(deal, **overrides):
    body = {
        "deal_id": str(deal.id),
        "category_path": "Tech/Smartphones",
        "platform": "INSTAGRAM",
        "type": "REEL",
        "scheduled_at": "2025-01-15T10:00:00Z",
    }
    body.update(overrides)
    return body


def _count(engine, model):
    with Session(engine) as s:
        return len(s.exec(select(model)).all())


class TestCreateDeliverable:
    def test_requires_user_header(self, client, deals):
        r = client.post(URL, json=_body(deals[1]))
        assert r.status_code == 401

    def test_no_conflict_creates(self, client, headers, deals):
        r = client.post(URL, json=_body(deals[1], platform="YOUTUBE"), headers=headers)

        assert r.status_code == 200
        data = r.json()
        assert data["state"] == "NO_CONFLICT"
        assert data["created"]["platform"] == "YOUTUBE"
        assert data["conflicts"] == []
        assert data["requires_acknowledgement"] is False

    def test_conflict_blocks_until_acknowledged(self, client, engine, headers, deals):
        r = client.post(URL, json=_body(deals[1]), headers=headers)

        assert r.status_code == 200
        data = r.json()
        assert data["state"] == "CONFLICTS_DETECTED_PENDING_ACK"
        assert data["created"] is None
        assert data["requires_acknowledgement"] is True
        (conflict,) = data["conflicts"]
        assert conflict["severity"] == "BLOCK"
        assert conflict["auto_resolved"] is False
        assert conflict["overlap"]["category"]["relationship"] == "EXACT"
        assert _count(engine, Deliverable) == 0

    def test_acknowledged_create_proceeds(self, client, engine, headers, deals):
        body = _body(deals[1], acknowledge_conflicts=True, conflict_session_id="draft-7")
        r = client.post(URL, json=body, headers=headers)

        data = r.json()
        assert data["state"] == "CONFLICTS_ACKNOWLEDGED"
        assert data["proceeded_despite_conflict"] is True
        assert data["created"]["category_path"] == "Tech/Smartphones"
        assert data["conflicts"][0]["auto_resolved"] is True
        assert data["conflicts"][0]["correlation_id"] == "draft-7"
        assert _count(engine, Deliverable) == 1

    def test_parent_scope_descendant_warns(self, client, headers, user_id, make_deal, make_rule):
        make_rule(make_deal(user_id), category_path="Tech", scope=ExclusivityScope.PARENT_CATEGORY)
        target = make_deal(user_id, title="Other")

        r = client.post(URL, json=_body(target), headers=headers)
        assert [c["severity"] for c in r.json()["conflicts"]] == ["WARN"]

    @pytest.mark.parametrize("scheduled_at", ["2025-01-15", "2025-01-15T10:00:00"])
    def test_offsetless_schedule_is_checked(self, client, engine, headers, deals, scheduled_at):
        pending = client.post(URL, json=_body(deals[1], scheduled_at=scheduled_at), headers=headers)
        assert pending.status_code == 200
        assert pending.json()["state"] == "CONFLICTS_DETECTED_PENDING_ACK"

        body = _body(deals[1], scheduled_at=scheduled_at, acknowledge_conflicts=True)
        r = client.post(URL, json=body, headers=headers)
        assert r.status_code == 200
        assert r.json()["created"]["scheduled_at"].startswith("2025-01-15")
        assert _count(engine, Deliverable) == 1

    def test_offsetless_schedule_outside_window(self, client, headers, deals):
        r = client.post(URL, json=_body(deals[1], scheduled_at="2025-03-15"), headers=headers)
        assert r.status_code == 200
        assert r.json()["state"] == "NO_CONFLICT"

    def test_malformed_schedule_skips_detection(self, client, headers, deals):
        r = client.post(URL, json=_body(deals[1], scheduled_at="next tuesday"), headers=headers)

        data = r.json()
        assert data["state"] == "NO_CONFLICT"
        assert data["created"]["scheduled_at"] is None

    def test_unknown_deal_is_404(self, client, headers):
        body = {"deal_id": str(uuid.uuid4()), "platform": "INSTAGRAM"}
        r = client.post(URL, json=body, headers=headers)
        assert r.status_code == 404

    def test_other_users_deal_is_404(self, client, deals):
        r = client.post(URL, json=_body(deals[1]), headers={"X-User-Id": str(uuid.uuid4())})
        assert r.status_code == 404

    def test_duplicate_id_is_409(self, client, headers, deals):
        deliverable_id = str(uuid.uuid4())
        body = _body(deals[1], platform="YOUTUBE", deliverable_id=deliverable_id)
        assert client.post(URL, json=body, headers=headers).status_code == 200
        assert client.post(URL, json=body, headers=headers).status_code == 409

    def test_rule_fetch_failure_is_503(self, client, engine, headers, deals, monkeypatch):
        def _fail(*args, **kwargs):
            raise RuleFetchError("database unavailable")

        monkeypatch.setattr("sponsordesk.services.conflicts.workflow.fetch_rules_for_user", _fail)
        r = client.post(URL, json=_body(deals[1], acknowledge_conflicts=True), headers=headers)

        assert r.status_code == 503
        assert r.headers["Retry-After"] == "2"
        assert _count(engine, Deliverable) == 0
        assert _count(engine, Conflict) == 0


class TestIdempotentCreate:
    def test_replay_after_acknowledged_success(self, client, engine, headers, deals):
        body = _body(deals[1], acknowledge_conflicts=True)
        keyed = {**headers, "X-Idempotency-Key": "create-1"}

        first = client.post(URL, json=body, headers=keyed)
        second = client.post(URL, json=body, headers=keyed)

        assert first.status_code == second.status_code == 200
        assert second.json() == first.json()
        assert second.headers["X-Idempotency-Replayed"] == "1"
        assert _count(engine, Deliverable) == 1
        assert _count(engine, Conflict) == 1

    def test_key_reused_with_different_payload(self, client, headers, deals):
        keyed = {**headers, "X-Idempotency-Key": "create-2"}
        client.post(URL, json=_body(deals[1], platform="YOUTUBE"), headers=keyed)

        r = client.post(URL, json=_body(deals[1], platform="TIKTOK"), headers=keyed)

        assert r.status_code == 409
        assert r.json()["detail"]["error"] == "IDEMPOTENCY_KEY_REUSED_WITH_DIFFERENT_PAYLOAD"

    def test_client_errors_are_replayed(self, client, headers):
        keyed = {**headers, "X-Idempotency-Key": "create-3"}
        body = {"deal_id": str(uuid.uuid4()), "platform": "INSTAGRAM"}

        first = client.post(URL, json=body, headers=keyed)
        second = client.post(URL, json=body, headers=keyed)

        assert first.status_code == second.status_code == 404
        assert second.headers["X-Idempotency-Replayed"] == "1"


class TestUpdateDeliverable:
    def _create_clear(self, client, headers, deal):
        r = client.post(
            URL,
            json=_body(deal, scheduled_at="2025-03-10T10:00:00Z"),
            headers=headers,
        )
        assert r.json()["state"] == "NO_CONFLICT"
        return r.json()["created"]["id"]

    def test_moving_into_window_needs_acknowledgement(self, client, headers, deals):
        deliverable_id = self._create_clear(client, headers, deals[1])

        r = client.patch(
            f"{URL}{deliverable_id}",
            json={"scheduled_at": "2025-01-20T10:00:00Z"},
            headers=headers,
        )

        data = r.json()
        assert data["state"] == "CONFLICTS_DETECTED_PENDING_ACK"
        assert data["conflicts"][0]["new_deal_or_deliverable_id"] == deliverable_id

    def test_pending_row_is_unchanged(self, client, engine, headers, deals):
        deliverable_id = self._create_clear(client, headers, deals[1])
        client.patch(
            f"{URL}{deliverable_id}",
            json={"scheduled_at": "2025-01-20T10:00:00Z"},
            headers=headers,
        )

        with Session(engine) as s:
            row = s.get(Deliverable, uuid.UUID(deliverable_id))
            assert row.scheduled_at.month == 3

    def test_acknowledged_update_applies(self, client, headers, deals):
        deliverable_id = self._create_clear(client, headers, deals[1])

        r = client.patch(
            f"{URL}{deliverable_id}",
            json={"scheduled_at": "2025-01-20T10:00:00Z", "acknowledge_conflicts": True},
            headers=headers,
        )

        data = r.json()
        assert data["state"] == "CONFLICTS_ACKNOWLEDGED"
        assert data["created"]["scheduled_at"].startswith("2025-01-20")

    def test_empty_update_rejected(self, client, headers, deals):
        deliverable_id = self._create_clear(client, headers, deals[1])
        r = client.patch(
            f"{URL}{deliverable_id}", json={"acknowledge_conflicts": True}, headers=headers
        )
        assert r.status_code == 422

    def test_unknown_deliverable_is_404(self, client, headers):
        r = client.patch(f"{URL}{uuid.uuid4()}", json={"status": "POSTED"}, headers=headers)
        assert r.status_code == 404
