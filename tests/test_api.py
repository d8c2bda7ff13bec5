"""
API tests: routing, actor header, error mapping and the main flow.
"""

import warnings
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from fastapi import HTTPException

from coachpay.api.deps import parse_period
from coachpay.api.errors import status_for
from coachpay.engine import InvalidSplitConfig, InvalidSplitInput, PayoutPeriod
from coachpay.engine.periods import financial_year, quarter
from coachpay.engine.types import ExitStatus

ADMIN = {"X-Actor-Id": "admin-1"}

CONFIG_BODY = {
    "platform_fee_percent": "30",
    "coach_cost_percent": "50",
    "lead_cost_percent": "20",
    "tds_standard_rate": "10",
    "tds_penal_rate": "20",
    "tds_threshold_annual": "30000",
    "effective_from": "2020-01-01T00:00:00Z",
}


# ── revenue config ────────────────────────────────────────


class TestRevenueConfigApi:
    async def test_actor_header_required(self, client):
        response = await client.post("/api/admin/revenue-config", json=CONFIG_BODY)
        assert response.status_code == 422

    async def test_invalid_split_rejected(self, client):
        body = {**CONFIG_BODY, "lead_cost_percent": "25"}
        response = await client.post("/api/admin/revenue-config", json=body, headers=ADMIN)
        assert response.status_code == 422
        assert response.json()["error"] == "InvalidSplitConfig"

    async def test_save_and_read(self, client):
        response = await client.post("/api/admin/revenue-config", json=CONFIG_BODY, headers=ADMIN)
        assert response.status_code == 201
        assert response.json()["created_by"] == "admin-1"

        current = await client.get("/api/admin/revenue-config")
        assert current.status_code == 200
        assert current.json()["id"] == response.json()["id"]

    async def test_no_config_is_unavailable(self, client):
        response = await client.get("/api/admin/revenue-config")
        assert response.status_code == 503
        assert response.json()["error"] == "ConfigurationMissing"


# ── intake and assignment ─────────────────────────────────


class TestIntakeApi:
    async def test_lead_without_coaches_is_pending(self, client):
        response = await client.post("/api/leads", json={"parent_name": "Anita"})
        assert response.status_code == 201
        body = response.json()
        assert body["assignment_type"] == "pending"
        assert body["coach_id"] is None
        assert body["source"] == "platform"

        count = await client.get("/api/admin/leads/pending-count")
        assert count.json() == {"pending_manual": 1}

    async def test_manual_assignment(self, client, make_coach):
        lead = (await client.post("/api/leads", json={"parent_name": "Anita"})).json()
        coach = await make_coach()

        response = await client.post(
            f"/api/admin/leads/{lead['lead_id']}/assign",
            json={"coach_id": coach.id},
            headers=ADMIN,
        )
        assert response.status_code == 200
        assert response.json()["assignment_type"] == "manual"
        assert response.json()["assigned_by"] == "admin-1"

    async def test_assign_to_exited_coach_conflicts(self, client, make_coach):
        lead = (await client.post("/api/leads", json={"parent_name": "Anita"})).json()
        coach = await make_coach(exit_status=ExitStatus.EXITED)

        response = await client.post(
            f"/api/admin/leads/{lead['lead_id']}/assign",
            json={"coach_id": coach.id},
            headers=ADMIN,
        )
        assert response.status_code == 409
        assert response.json()["error"] == "IneligibleCoach"

    async def test_referral_visit(self, client, make_coach):
        coach = await make_coach(referral_code="PRIYA7K2Q")
        response = await client.post("/api/referrals/visits", json={"referral_code": "priya7k2q"})
        assert response.status_code == 201
        assert response.json()["coach_id"] == coach.id


# ── capture and payouts ───────────────────────────────────


class TestSettlementApi:
    async def test_capture_unknown_lead(self, client):
        response = await client.post("/api/payments/captured", json={"lead_id": 42, "gross_fee": "100"})
        assert response.status_code == 404

    async def test_bad_expected_source(self, client):
        response = await client.post(
            "/api/payments/captured",
            json={"lead_id": 1, "gross_fee": "100", "expected_source": "someone"},
        )
        assert response.status_code == 422

    async def test_capture_to_payment(self, client, make_coach, split_config):
        coach = await make_coach(referral_code="PRIYA7K2Q")
        lead = (
            await client.post("/api/leads", json={"parent_name": "Anita", "referral_code": "PRIYA7K2Q"})
        ).json()
        assert lead["source"] == f"coach-referral:{coach.id}"

        captured = await client.post(
            "/api/payments/captured",
            json={
                "lead_id": lead["lead_id"],
                "gross_fee": "5999",
                "deductions": "180",
                "payment_reference": "pay_1",
            },
        )
        assert captured.status_code == 201
        enrollment = captured.json()
        assert enrollment["net_base"] == "5819.00"
        assert enrollment["lead_bonus_recipient"] == "coach"
        assert enrollment["payouts"][0]["gross_amount"] == "4073.30"

        duplicate = await client.post(
            "/api/payments/captured",
            json={"lead_id": lead["lead_id"], "gross_fee": "5999", "payment_reference": "pay_1"},
        )
        assert duplicate.status_code == 409

        period = PayoutPeriod.containing(datetime.now(timezone.utc)).label
        preview = await client.post("/api/admin/payouts/run", json={"period": period}, headers=ADMIN)
        assert preview.status_code == 200
        assert preview.json()["mode"] == "preview"
        assert preview.json()["lines"][0]["line_id"] is None

        committed = await client.post(
            "/api/admin/payouts/run", json={"period": period, "commit": True}, headers=ADMIN,
        )
        line_id = committed.json()["lines"][0]["line_id"]
        assert line_id is not None

        lines = (await client.get(f"/api/admin/payouts/{period}")).json()
        assert lines[0]["tax_id"] == "AB*****34F"
        assert lines[0]["bank_account"].startswith("****")

        paid = await client.post(
            f"/api/admin/payouts/lines/{line_id}/paid",
            json={"payment_reference": "utr-001"},
            headers=ADMIN,
        )
        assert paid.status_code == 200
        assert paid.json()["status"] == "paid"

    async def test_invalid_period(self, client):
        response = await client.post(
            "/api/admin/payouts/run", json={"period": "2026-13"}, headers=ADMIN,
        )
        assert response.status_code == 422

    async def test_clawback_flow(self, client, make_coach, split_config):
        await make_coach()
        lead = (await client.post("/api/leads", json={"parent_name": "Anita"})).json()
        enrollment = (
            await client.post(
                "/api/payments/captured",
                json={"lead_id": lead["lead_id"], "gross_fee": "5999", "deductions": "180"},
            )
        ).json()

        created = await client.post(
            "/api/admin/clawbacks",
            json={"enrollment_id": enrollment["enrollment_id"], "reason": "no_show", "amount": "500"},
            headers=ADMIN,
        )
        assert created.status_code == 201
        assert created.json()["confirmed"] is False

        confirmed = await client.post(
            f"/api/admin/clawbacks/{created.json()['id']}/confirm", headers=ADMIN,
        )
        assert confirmed.json()["confirmed"] is True
        assert confirmed.json()["confirmed_by"] == "admin-1"

        period = PayoutPeriod.containing(datetime.now(timezone.utc)).label
        preview = await client.post("/api/admin/payouts/run", json={"period": period}, headers=ADMIN)
        assert preview.json()["lines"][0]["net_amount"] == "2409.50"


# ── admin supplements ─────────────────────────────────────


class TestAdminSupplementsApi:
    async def test_config_history_newest_first(self, client):
        await client.post("/api/admin/revenue-config", json=CONFIG_BODY, headers=ADMIN)
        newer = {**CONFIG_BODY, "platform_fee_percent": "35", "lead_cost_percent": "15",
                 "effective_from": "2021-01-01T00:00:00Z"}
        await client.post("/api/admin/revenue-config", json=newer, headers=ADMIN)

        history = (await client.get("/api/admin/revenue-config/history")).json()
        assert [Decimal(row["platform_fee_percent"]) for row in history] == [Decimal("35"), Decimal("30")]

    async def test_disputed_enrollment_is_held(self, client, make_coach, split_config):
        await make_coach()
        lead = (await client.post("/api/leads", json={"parent_name": "Anita"})).json()
        enrollment = (
            await client.post(
                "/api/payments/captured", json={"lead_id": lead["lead_id"], "gross_fee": "5999"},
            )
        ).json()

        disputed = await client.post(
            f"/api/admin/enrollments/{enrollment['enrollment_id']}/dispute",
            json={"disputed": True},
            headers=ADMIN,
        )
        assert disputed.json() == {"enrollment_id": enrollment["enrollment_id"], "is_disputed": True}

        period = PayoutPeriod.containing(datetime.now(timezone.utc)).label
        preview = await client.post("/api/admin/payouts/run", json={"period": period}, headers=ADMIN)
        assert preview.json()["lines"] == []

    async def test_dispute_unknown_enrollment(self, client):
        response = await client.post(
            "/api/admin/enrollments/99/dispute", json={"disputed": True}, headers=ADMIN,
        )
        assert response.status_code == 404

    async def test_withholding_summary(self, client, make_coach, split_config):
        await make_coach()
        lead = (await client.post("/api/leads", json={"parent_name": "Anita"})).json()
        await client.post("/api/payments/captured", json={"lead_id": lead["lead_id"], "gross_fee": "5999"})

        now = datetime.now(timezone.utc)
        period = PayoutPeriod.containing(now).label
        await client.post("/api/admin/payouts/run", json={"period": period, "commit": True}, headers=ADMIN)

        summary = await client.get("/api/admin/tds", params={"financial_year": financial_year(now)})
        assert summary.status_code == 200
        rows = summary.json()
        assert len(rows) == 1
        assert rows[0]["tax_id"] == "AB*****34F"
        assert list(rows[0]["quarters"]) == [quarter(now)]

    async def test_issue_referral_code(self, client, make_coach):
        coach = await make_coach(name="Priya Sharma", referral_code=None)

        issued = await client.post(f"/api/admin/coaches/{coach.id}/referral-code", headers=ADMIN)
        assert issued.status_code == 200
        code = issued.json()["referral_code"]
        assert code.startswith("PRIYA")

        again = await client.post(f"/api/admin/coaches/{coach.id}/referral-code", headers=ADMIN)
        assert again.json()["referral_code"] == code

        visit = await client.post("/api/referrals/visits", json={"referral_code": code.lower()})
        assert visit.json()["coach_id"] == coach.id

    async def test_issue_referral_code_unknown_coach(self, client):
        response = await client.post("/api/admin/coaches/404/referral-code", headers=ADMIN)
        assert response.status_code == 404


# ── status codes ──────────────────────────────────────────


def test_bad_period_is_422_without_warnings():
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        with pytest.raises(HTTPException) as exc:
            parse_period("2026-13")
    assert exc.value.status_code == 422


def test_split_errors_map_to_422():
    assert status_for(InvalidSplitConfig("bad")) == 422
    assert status_for(InvalidSplitInput("bad")) == 422
