"""
API tests for the SRP routers.

Tests cover:
- Authentication and role checks
- Claim submission, validation and duplicate killmails
- Review (approve / deny) and transition conflicts
- Payout estimate endpoint
- Payment summary and batch payment
- Fleets, ships and dashboard endpoints
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlmodel import select

from srp.models.user import User
from srp.utils import auth_helper

HAC_CLAIM = {
    "killmail_url": "https://zkillboard.com/kill/123456/",
    "ship_type_id": 12005,
    "isk_amount": 2_000_000_000,
    "operation_type": "solo",
}


@pytest.fixture
def member(make_user):
    return make_user(1001, "member", "Member Pilot")


@pytest.fixture
def other_member(make_user):
    return make_user(1002, "member", "Other Pilot")


@pytest.fixture
def fc(make_user):
    return make_user(2001, "fc", "Fleet Commander")


@pytest.fixture
def admin(make_user):
    return make_user(3001, "admin", "Alliance Admin")


@pytest.fixture
def submitted(client, member):
    response = client.post("/srp-requests", json=HAC_CLAIM, headers=member)
    assert response.status_code == 201
    return response.json()


class TestAuth:
    """Tests for token and role handling."""

    def test_root_is_public(self, client):
        assert client.get("/").json() == {"status": "ok"}

    def test_missing_token(self, client):
        response = client.get("/stats")
        assert response.status_code in (401, 403)

    def test_invalid_token(self, client):
        response = client.get("/stats", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    def test_first_role_lookup_creates_member(self, client, token_headers):
        headers = token_headers(4242, "New Pilot")

        response = client.get("/user/role", headers=headers)

        assert response.status_code == 200
        assert response.json() == {"role": "member"}

    def test_admin_changes_role(self, client, admin, member):
        response = client.patch("/user/1001/role", json={"role": "fc"}, headers=admin)

        assert response.status_code == 200
        assert client.get("/user/role", headers=member).json() == {"role": "fc"}

    def test_member_cannot_change_role(self, client, member):
        response = client.patch("/user/1001/role", json={"role": "admin"}, headers=member)
        assert response.status_code == 403

    def test_parallel_first_lookup_reuses_row(self, session, monkeypatch):
        """Losing the insert race for a new user returns the row that won."""
        real_find = auth_helper._find_user
        raced = []

        def rival_inserts_first(s, seat_user_id):
            if not raced:
                raced.append(True)
                s.add(User(seat_user_id=seat_user_id, main_character_name="Late Pilot", role="fc"))
                s.commit()
                return None
            return real_find(s, seat_user_id)

        monkeypatch.setattr(auth_helper, "_find_user", rival_inserts_first)

        user = auth_helper.get_db_user(session, {"sub": "5151", "name": "Late Pilot"})

        assert user.role == "fc"
        assert len(session.exec(select(User).where(User.seat_user_id == 5151)).all()) == 1


class TestSubmitClaim:
    """Tests for POST /srp-requests."""

    def test_submit_creates_pending_claim(self, submitted):
        assert submitted["status"] == "pending"
        assert submitted["killmail_id"] == 123456
        assert submitted["ship_group_name"] == "Heavy Assault Cruiser"
        assert submitted["claimant_name"] == "Member Pilot"
        assert [log["process_type"] for log in submitted["process_logs"]] == ["created"]
        assert submitted["ship_data"]["typeName"] == "Ishtar"

    def test_duplicate_killmail_conflicts(self, client, submitted, other_member):
        response = client.post("/srp-requests", json=HAC_CLAIM, headers=other_member)

        assert response.status_code == 409

    @pytest.mark.parametrize("url", [
        "https://example.com/kill/123/",
        "https://zkillboard.com/character/123/",
        "not a url",
    ])
    def test_rejects_non_zkillboard_url(self, client, member, url):
        response = client.post("/srp-requests", json={**HAC_CLAIM, "killmail_url": url}, headers=member)

        assert response.status_code == 400

    def test_rejects_zero_value(self, client, member):
        response = client.post("/srp-requests", json={**HAC_CLAIM, "isk_amount": 0}, headers=member)

        assert response.status_code == 400

    @pytest.mark.parametrize("literal", ["NaN", "Infinity", "-Infinity"])
    def test_rejects_non_finite_value(self, client, member, literal):
        body = (
            '{"killmail_url": "https://zkillboard.com/kill/123456/", "ship_type_id": 12005, '
            f'"isk_amount": {literal}, "operation_type": "solo"}}'
        )

        response = client.post(
            "/srp-requests",
            content=body,
            headers={**member, "Content-Type": "application/json"},
        )

        assert response.status_code == 422

    def test_large_value_kept_exact(self, client, member):
        response = client.post("/srp-requests", json={**HAC_CLAIM, "isk_amount": 2**53 + 1}, headers=member)

        assert response.status_code == 201
        assert response.json()["isk_amount"] == 9007199254740993

    def test_fractional_value_rounds_half_up(self, client, member):
        response = client.post("/srp-requests", json={**HAC_CLAIM, "isk_amount": 1000000.5}, headers=member)

        assert response.json()["isk_amount"] == 1000001

    def test_rejects_unknown_operation_type(self, client, member):
        response = client.post("/srp-requests", json={**HAC_CLAIM, "operation_type": "pvp"}, headers=member)

        assert response.status_code == 400

    def test_fleet_loss_needs_fleet_id(self, client, member):
        response = client.post("/srp-requests", json={**HAC_CLAIM, "operation_type": "fleet"}, headers=member)

        assert response.status_code == 400

    def test_fleet_loss_with_unknown_fleet(self, client, member):
        payload = {
            **HAC_CLAIM,
            "operation_type": "fleet",
            "fleet_id": "00000000-0000-0000-0000-000000000001",
        }

        response = client.post("/srp-requests", json=payload, headers=member)

        assert response.status_code == 404


class TestViewClaims:
    """Tests for listing and reading claims."""

    def test_my_requests(self, client, submitted, member, other_member):
        assert [r["id"] for r in client.get("/srp-requests/my", headers=member).json()] == [submitted["id"]]
        assert client.get("/srp-requests/my", headers=other_member).json() == []

    def test_recent_requests(self, client, submitted, member):
        response = client.get("/srp-requests/my/recent", headers=member)

        assert len(response.json()) == 1

    def test_all_requires_fc(self, client, submitted, member, fc):
        assert client.get("/srp-requests/all", headers=member).status_code == 403

        response = client.get("/srp-requests/all?status=pending", headers=fc)
        assert [r["id"] for r in response.json()] == [submitted["id"]]

        response = client.get("/srp-requests/all?status=paid", headers=fc)
        assert response.json() == []

    def test_owner_and_reviewer_can_read(self, client, submitted, member, other_member, fc):
        url = f"/srp-requests/{submitted['id']}"

        assert client.get(url, headers=member).status_code == 200
        assert client.get(url, headers=fc).status_code == 200
        assert client.get(url, headers=other_member).status_code == 403

    def test_unknown_request(self, client, member):
        response = client.get("/srp-requests/00000000-0000-0000-0000-000000000009", headers=member)

        assert response.status_code == 404

    def test_owner_edits_description_while_pending(self, client, submitted, member, other_member):
        url = f"/srp-requests/{submitted['id']}"

        response = client.patch(url, json={"loss_description": "  Caught by a gate camp  "}, headers=member)

        assert response.status_code == 200
        assert response.json()["loss_description"] == "Caught by a gate camp"
        assert response.json()["status"] == "pending"
        assert client.patch(url, json={"loss_description": "x"}, headers=other_member).status_code == 403


class TestReview:
    """Tests for PATCH /srp-requests/{id}/review."""

    def test_member_cannot_review(self, client, submitted, member):
        response = client.patch(
            f"/srp-requests/{submitted['id']}/review", json={"action": "approve"}, headers=member,
        )

        assert response.status_code == 403

    def test_approve_defaults_to_estimate(self, client, submitted, fc):
        """2B solo HAC is capped at the 300M tier ceiling."""
        response = client.patch(
            f"/srp-requests/{submitted['id']}/review",
            json={"action": "approve", "reviewer_note": "fine"},
            headers=fc,
        )

        body = response.json()
        assert response.status_code == 200
        assert body["status"] == "approved"
        assert body["payout_amount"] == 300_000_000
        assert body["reviewer_name"] == "Fleet Commander"
        assert body["reviewer_note"] == "fine"

    def test_approve_with_adjusted_payout(self, client, submitted, fc):
        response = client.patch(
            f"/srp-requests/{submitted['id']}/review",
            json={"action": "approve", "payout_amount": 123_000_000},
            headers=fc,
        )

        assert response.json()["payout_amount"] == 123_000_000

    def test_deny(self, client, submitted, fc):
        response = client.patch(
            f"/srp-requests/{submitted['id']}/review",
            json={"action": "deny", "reviewer_note": "not on grid"},
            headers=fc,
        )

        body = response.json()
        assert body["status"] == "denied"
        assert body["payout_amount"] is None

    def test_second_review_conflicts(self, client, submitted, fc, admin):
        url = f"/srp-requests/{submitted['id']}/review"
        client.patch(url, json={"action": "approve"}, headers=fc)

        assert client.patch(url, json={"action": "approve"}, headers=admin).status_code == 409
        assert client.patch(url, json={"action": "deny"}, headers=admin).status_code == 409

    def test_stale_expected_version_conflicts(self, client, submitted, fc):
        response = client.patch(
            f"/srp-requests/{submitted['id']}/review",
            json={"action": "approve", "expected_version": submitted["log_version"] - 1},
            headers=fc,
        )

        assert response.status_code == 409

    def test_edit_after_review_conflicts(self, client, submitted, member, fc):
        client.patch(f"/srp-requests/{submitted['id']}/review", json={"action": "deny"}, headers=fc)

        response = client.patch(
            f"/srp-requests/{submitted['id']}", json={"loss_description": "late edit"}, headers=member,
        )

        assert response.status_code == 409


class TestCalculate:
    """Tests for POST /killmail/calculate."""

    def test_fleet_estimate(self, client, member):
        response = client.post("/killmail/calculate", json={
            "ship_type_id": 12005,
            "isk_value": 1_000_000_000,
            "operation_type": "fleet",
        }, headers=member)

        body = response.json()
        assert response.status_code == 200
        assert Decimal(body["estimated_payout"]) == Decimal("500000000")
        assert Decimal(body["breakdown"]["operation_multiplier"]) == Decimal("0.5")
        assert body["breakdown"]["is_special_role"] is False

    def test_solo_ceiling(self, client, member):
        response = client.post("/killmail/calculate", json={
            "ship_type_id": 12005,
            "isk_value": 2_000_000_000,
            "operation_type": "solo",
        }, headers=member)

        body = response.json()
        assert Decimal(body["estimated_payout"]) == Decimal("300000000")
        assert Decimal(body["breakdown"]["max_payout"]) == Decimal("300000000")
        assert body["breakdown"]["tier_name"] == "T2 Cruisers"

    def test_special_class_solo(self, client, member):
        response = client.post("/killmail/calculate", json={
            "ship_type_id": 11987,
            "isk_value": 200_000_000,
            "operation_type": "solo",
            "is_special_role": True,
        }, headers=member)

        body = response.json()
        assert body["breakdown"]["is_special_ship_class"] is True
        assert body["breakdown"]["is_special_role"] is False
        assert Decimal(body["estimated_payout"]) == Decimal("200000000")

    def test_negative_value_rejected(self, client, member):
        response = client.post("/killmail/calculate", json={
            "ship_type_id": 12005,
            "isk_value": -5,
            "operation_type": "solo",
        }, headers=member)

        assert response.status_code == 400

    def test_unknown_ship(self, client, member):
        response = client.post("/killmail/calculate", json={
            "ship_type_id": 999999,
            "isk_value": 5,
            "operation_type": "solo",
        }, headers=member)

        assert response.status_code == 404

    @pytest.mark.parametrize("literal", ["NaN", "Infinity"])
    def test_non_finite_value_rejected(self, client, member, literal):
        body = f'{{"ship_type_id": 12005, "isk_value": {literal}, "operation_type": "fleet"}}'

        response = client.post(
            "/killmail/calculate",
            content=body,
            headers={**member, "Content-Type": "application/json"},
        )

        assert response.status_code == 422

    def test_value_above_float_precision(self, client, member):
        response = client.post("/killmail/calculate", json={
            "ship_type_id": 12005,
            "isk_value": 2**53 + 1,
            "operation_type": "fleet",
            "is_special_role": True,
        }, headers=member)

        body = response.json()
        assert response.status_code == 200
        assert Decimal(body["breakdown"]["base_value"]) == Decimal(9007199254740993)


class TestPayment:
    """Tests for payment summary and batch payment."""

    def test_payment_flow(self, client, submitted, member, fc, admin):
        client.patch(f"/srp-requests/{submitted['id']}/review", json={"action": "approve"}, headers=fc)

        summary = client.get("/payment/summary", headers=admin).json()
        assert summary == [{
            "seat_user_id": 1001,
            "claimant_name": "Member Pilot",
            "total_payout": 300_000_000,
            "request_count": 1,
            "request_ids": [submitted["id"]],
        }]

        response = client.post("/payment/mark-paid", json={"request_ids": [submitted["id"]]}, headers=admin)
        assert response.json() == {"success": True, "marked_count": 1, "skipped_count": 0}

        response = client.post("/payment/mark-paid", json={"request_ids": [submitted["id"]]}, headers=admin)
        assert response.json() == {"success": True, "marked_count": 0, "skipped_count": 1}

        assert client.get("/payment/summary", headers=admin).json() == []
        assert client.get(f"/srp-requests/{submitted['id']}", headers=member).json()["status"] == "paid"

    def test_payment_requires_admin(self, client, fc):
        assert client.get("/payment/summary", headers=fc).status_code == 403

    def test_mark_paid_needs_ids(self, client, admin):
        response = client.post("/payment/mark-paid", json={"request_ids": []}, headers=admin)

        assert response.status_code == 422


class TestStats:
    """Tests for GET /stats."""

    def test_stats(self, client, submitted, member, fc):
        stats = client.get("/stats", headers=member).json()
        assert stats["pending_count"] == 1
        assert stats["total_paid_out"] == 0

        client.patch(f"/srp-requests/{submitted['id']}/review", json={"action": "approve"}, headers=fc)

        stats = client.get("/stats", headers=member).json()
        assert stats["pending_count"] == 0
        assert stats["approved_today"] == 1


class TestFleets:
    """Tests for the fleet endpoints."""

    @pytest.fixture
    def fleet(self, client, fc):
        response = client.post("/fleets", json={
            "operation_name": "Home Defense",
            "scheduled_at": datetime.now(timezone.utc).isoformat(),
            "location": "1DQ1-A",
        }, headers=fc)
        assert response.status_code == 201
        return response.json()

    def test_member_cannot_create(self, client, member):
        response = client.post("/fleets", json={
            "operation_name": "Roam",
            "scheduled_at": "2025-01-01T20:00:00Z",
        }, headers=member)

        assert response.status_code == 403

    def test_fleet_listed(self, client, fleet, fc, member):
        assert [f["id"] for f in client.get("/fleets/my/list", headers=fc).json()] == [fleet["id"]]
        assert [f["id"] for f in client.get("/fleets/active", headers=member).json()] == [fleet["id"]]
        assert client.get(f"/fleets/{fleet['id']}", headers=member).json()["fc_character_name"] == "Fleet Commander"

    def test_fleet_claim(self, client, fleet, member):
        payload = {**HAC_CLAIM, "operation_type": "fleet", "fleet_id": fleet["id"], "is_special_role": True}

        response = client.post("/srp-requests", json=payload, headers=member)

        assert response.status_code == 201
        assert response.json()["fleet"]["operation_name"] == "Home Defense"
        assert response.json()["is_special_role"] is True

    def test_status_update_by_owner_or_admin(self, client, fleet, make_user, admin):
        other_fc = make_user(2002, "fc", "Other FC")
        url = f"/fleets/{fleet['id']}/status"

        assert client.patch(url, json={"status": "completed"}, headers=other_fc).status_code == 403

        response = client.patch(url, json={"status": "cancelled"}, headers=admin)
        assert response.json()["status"] == "cancelled"

    def test_closed_fleet_not_active(self, client, fleet, fc, member):
        client.patch(f"/fleets/{fleet['id']}/status", json={"status": "completed"}, headers=fc)

        assert client.get("/fleets/active", headers=member).json() == []

    def test_old_fleet_not_active(self, client, fc, member):
        last_month = datetime.now(timezone.utc) - timedelta(days=30)
        client.post("/fleets", json={
            "operation_name": "Old Roam",
            "scheduled_at": last_month.isoformat(),
        }, headers=fc)

        assert client.get("/fleets/active", headers=member).json() == []

    def test_schedule_needs_timezone(self, client, fc):
        response = client.post("/fleets", json={
            "operation_name": "Roam",
            "scheduled_at": "2025-01-01T20:00:00",
        }, headers=fc)

        assert response.status_code == 422

    def test_schedule_stored_as_utc(self, client, fc):
        response = client.post("/fleets", json={
            "operation_name": "Roam",
            "scheduled_at": "2025-01-01T22:00:00+02:00",
        }, headers=fc)

        scheduled = datetime.fromisoformat(response.json()["scheduled_at"].replace("Z", "+00:00"))
        if scheduled.tzinfo is None:
            scheduled = scheduled.replace(tzinfo=timezone.utc)

        assert response.status_code == 201
        assert scheduled == datetime(2025, 1, 1, 20, tzinfo=timezone.utc)


class TestShips:
    """Tests for the ship reference endpoints."""

    def test_ship_by_type_id(self, client, member):
        assert client.get("/ships/587", headers=member).json()["typeName"] == "Rifter"
        assert client.get("/ships/1", headers=member).status_code == 404

    def test_tiers(self, client, member):
        body = client.get("/ships/tiers", headers=member).json()

        assert "Logistics" in body["special_classes"]
        assert any("Heavy Assault Cruiser" in tier["classes"] for tier in body["tiers"])

    def test_catalog_info(self, client, member):
        body = client.get("/ships/catalog/info", headers=member).json()

        assert body["is_loaded"] is True
        assert body["total_ships"] == 8
