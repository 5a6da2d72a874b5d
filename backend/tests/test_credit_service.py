"""
CreditService: summary derivation, consumption charging and monthly rollover.
Motor is replaced with AsyncMock collections.
"""
import pytest
from datetime import datetime, timezone, timedelta
from unittest.mock import AsyncMock, patch

from conftest import FakeDb, cursor_of
from qanoon.services.credit_service import credit_service
from qanoon.services.errors import NotFoundError
from qanoon.models.credits import ROLLOVER_POLICY_KEY


def _profile(**overrides):
    profile = {
        "user_id": "u1",
        "email": "u1@example.com",
        "subscription_tier": "essential",
        "queries_used": 10,
        "current_company_id": None,
    }
    profile.update(overrides)
    return profile


class TestCreditSummary:

    @pytest.mark.asyncio
    async def test_missing_profile_is_not_found(self):
        db = FakeDb()
        with patch("qanoon.services.credit_service.database.get_db", return_value=db):
            with pytest.raises(NotFoundError):
                await credit_service.get_credit_summary("nobody")

    @pytest.mark.asyncio
    async def test_individual_summary_includes_bonus_credits(self):
        db = FakeDb()
        db.profiles.find_one = AsyncMock(return_value=_profile(queries_used=45))
        db.credit_transactions.aggregate = cursor_of([{"_id": None, "total": 10}])

        with patch("qanoon.services.credit_service.database.get_db", return_value=db):
            summary = await credit_service.get_credit_summary("u1")

        assert summary.subscription_tier == "essential"
        assert summary.personal.limit == 50
        assert summary.personal.rollover == 10
        assert summary.personal.total == 60
        assert summary.personal.remaining == 15
        assert summary.company is None
        assert summary.alerts[0].level == "warning"

    @pytest.mark.asyncio
    async def test_company_member_summary_uses_membership_allocation(self):
        db = FakeDb()
        db.profiles.find_one = AsyncMock(return_value=_profile(
            subscription_tier="sme", queries_used=18, current_company_id="c1",
        ))
        db.user_company_roles.find_one = AsyncMock(return_value={
            "user_id": "u1", "company_id": "c1", "max_credits_per_period": 20, "used_credits": 18,
        })
        db.companies.find_one = AsyncMock(return_value={"id": "c1", "total_credits": 1000, "used_credits": 950})

        with patch("qanoon.services.credit_service.database.get_db", return_value=db):
            summary = await credit_service.get_credit_summary("u1")

        assert summary.personal.limit == 20
        assert summary.personal.is_near_limit
        assert summary.company.company.used == 950
        assert summary.company.warning_message == "Both your personal and company credits are running low."

    @pytest.mark.asyncio
    async def test_unlimited_tier_has_no_alerts(self):
        db = FakeDb()
        db.profiles.find_one = AsyncMock(return_value=_profile(subscription_tier="enterprise", queries_used=5000))

        with patch("qanoon.services.credit_service.database.get_db", return_value=db):
            summary = await credit_service.get_credit_summary("u1")

        assert summary.personal.is_unlimited
        assert summary.alerts == []


class TestRecordConsumption:

    @pytest.mark.asyncio
    async def test_rejects_non_positive_amount(self):
        with pytest.raises(ValueError, match="Amount must be positive"):
            await credit_service.record_consumption("u1", 0)

    @pytest.mark.asyncio
    async def test_insufficient_credits(self):
        db = FakeDb()
        db.profiles.find_one = AsyncMock(return_value=_profile(subscription_tier="free", queries_used=10))

        with patch("qanoon.services.credit_service.database.get_db", return_value=db):
            with pytest.raises(ValueError, match="Insufficient credits"):
                await credit_service.record_consumption("u1")

        db.profiles.update_one.assert_not_called()
        db.credit_transactions.insert_one.assert_not_called()

    @pytest.mark.asyncio
    async def test_charges_profile_and_writes_ledger(self):
        db = FakeDb()
        db.profiles.find_one = AsyncMock(return_value=_profile(queries_used=10))

        with patch("qanoon.services.credit_service.database.get_db", return_value=db):
            transaction = await credit_service.record_consumption("u1", 2)

        assert transaction.credits_amount == -2
        assert transaction.balance_before == 40
        assert transaction.balance_after == 38
        update = db.profiles.update_one.call_args[0][1]
        assert update["$inc"] == {"queries_used": 2}
        row = db.credit_transactions.insert_one.call_args[0][0]
        assert row["transaction_type"] == "consumption"
        db.companies.update_one.assert_not_called()

    @pytest.mark.asyncio
    async def test_company_member_also_charges_pool(self):
        db = FakeDb()
        db.profiles.find_one = AsyncMock(return_value=_profile(subscription_tier="sme", current_company_id="c1"))
        db.user_company_roles.find_one = AsyncMock(return_value={"max_credits_per_period": 50})

        with patch("qanoon.services.credit_service.database.get_db", return_value=db):
            await credit_service.record_consumption("u1")

        db.companies.update_one.assert_awaited_once_with({"id": "c1"}, {"$inc": {"used_credits": 1}})
        membership_update = db.user_company_roles.update_one.call_args[0]
        assert membership_update[0] == {"user_id": "u1", "company_id": "c1"}
        assert membership_update[1] == {"$inc": {"used_credits": 1}}


class TestRollover:

    @pytest.mark.asyncio
    async def test_disabled_policy(self):
        db = FakeDb()
        db.system_config.find_one = AsyncMock(return_value=None)

        with patch("qanoon.services.credit_service.database.get_db", return_value=db):
            result = await credit_service.process_credit_rollover()

        assert result == {"message": "Rollover disabled"}
        db.credit_transactions.insert_one.assert_not_called()

    @pytest.mark.asyncio
    async def test_rolls_over_percentage_of_remaining(self):
        db = FakeDb()
        db.system_config.find_one = AsyncMock(return_value={
            "config_key": ROLLOVER_POLICY_KEY,
            "config_value": {"enabled": True, "max_rollover_percentage": 50, "rollover_expiry_months": 2},
        })
        db.profiles.find = cursor_of([
            {"user_id": "a", "subscription_tier": "essential", "queries_used": 15},  # 35 left -> 17
            {"user_id": "b", "subscription_tier": "free", "queries_used": 10},       # nothing left
            {"user_id": "c", "subscription_tier": "enterprise", "queries_used": 0},  # unlimited
            {"user_id": "d", "subscription_tier": "free", "queries_used": 9},        # 1 left -> 0
        ])

        with patch("qanoon.services.credit_service.database.get_db", return_value=db):
            result = await credit_service.process_credit_rollover()

        assert result == {"users_processed": 1}
        row = db.credit_transactions.insert_one.call_args[0][0]
        assert row["user_id"] == "a"
        assert row["transaction_type"] == "rollover"
        assert row["credits_amount"] == 17
        expected = datetime.now(timezone.utc) + timedelta(days=60)
        assert abs((row["expires_at"] - expected).total_seconds()) < 60


class TestHistory:

    @pytest.mark.asyncio
    async def test_history_filters_by_type(self):
        db = FakeDb()
        db.credit_transactions.find = cursor_of([{"id": "t1", "transaction_type": "purchase"}])

        from qanoon.models.credits import CreditTransactionType
        with patch("qanoon.services.credit_service.database.get_db", return_value=db):
            rows = await credit_service.get_transaction_history("u1", transaction_type=CreditTransactionType.PURCHASE)

        assert rows == [{"id": "t1", "transaction_type": "purchase"}]
        query = db.credit_transactions.find.call_args[0][0]
        assert query == {"user_id": "u1", "transaction_type": "purchase"}
