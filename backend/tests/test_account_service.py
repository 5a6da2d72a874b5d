"""
AccountService: provisioning, company admin creation, orphan cleanup and
company membership administration.
"""
import pytest
from unittest.mock import AsyncMock, patch

from conftest import FakeDb, cursor_of
from qanoon.models.profiles import RegisterRequest
from qanoon.services.account_service import account_service
from qanoon.services.errors import ForbiddenError, NotFoundError, UnauthorizedError

DB_PATH = "qanoon.services.account_service.database.get_db"
NOTIFY_DB_PATH = "qanoon.services.notification_service.database.get_db"


@pytest.fixture(autouse=True)
def fast_hashing():
    with patch("qanoon.services.account_service.hash_password", return_value="hashed"):
        yield


def _read_back(db):
    """Make profiles.find_one return whatever provision_user inserted."""
    async def find_one(query, projection=None):
        for call in db.profiles.insert_one.call_args_list:
            doc = call[0][0]
            if all(doc.get(k) == v for k, v in query.items()):
                return dict(doc)
        return None
    db.profiles.find_one = AsyncMock(side_effect=find_one)


class TestRegistration:

    @pytest.mark.asyncio
    async def test_individual_signup(self):
        db = FakeDb()
        _read_back(db)
        request = RegisterRequest(email="Sara@Example.com", password="Passw0rd!", full_name="Sara")

        with patch(DB_PATH, return_value=db):
            profile = await account_service.register(request)

        assert profile["email"] == "sara@example.com"
        assert profile["user_role"] == "individual"
        assert profile["subscription_tier"] == "free"
        assert profile["current_company_id"] is None
        db.companies.insert_one.assert_not_called()
        role_row = db.user_roles.insert_one.call_args[0][0]
        assert role_row["role"] == "individual"

    @pytest.mark.asyncio
    async def test_company_signup_provisions_company(self):
        db = FakeDb()
        _read_back(db)
        request = RegisterRequest(
            email="admin@firm.ae", password="Passw0rd!", signup_type="company", company_name="Al Noor Legal",
        )

        with patch(DB_PATH, return_value=db):
            profile = await account_service.register(request)

        company = db.companies.insert_one.call_args[0][0]
        membership = db.user_company_roles.insert_one.call_args[0][0]
        assert company["name"] == "Al Noor Legal"
        assert profile["user_role"] == "company_admin"
        assert profile["current_company_id"] == company["id"]
        assert membership["company_id"] == company["id"]
        assert membership["role"] == "company_admin"

    @pytest.mark.asyncio
    async def test_company_signup_requires_company_name(self):
        request = RegisterRequest(email="a@firm.ae", password="Passw0rd!", signup_type="company")
        with pytest.raises(ValueError, match="Company name is required"):
            await account_service.register(request)

    @pytest.mark.asyncio
    async def test_weak_password_rejected(self):
        request = RegisterRequest(email="a@firm.ae", password="password")
        with pytest.raises(ValueError, match="uppercase"):
            await account_service.register(request)

    @pytest.mark.asyncio
    async def test_duplicate_email_rejected(self):
        db = FakeDb()
        db.auth_users.find_one = AsyncMock(return_value={"user_id": "x", "email": "a@firm.ae"})
        request = RegisterRequest(email="a@firm.ae", password="Passw0rd!")

        with patch(DB_PATH, return_value=db):
            with pytest.raises(ValueError, match="already been registered"):
                await account_service.register(request)

    @pytest.mark.asyncio
    async def test_authenticate_rejects_bad_password(self):
        db = FakeDb()
        db.auth_users.find_one = AsyncMock(return_value={"user_id": "u1", "email": "a@firm.ae", "password_hash": "h"})

        with patch(DB_PATH, return_value=db):
            with patch("qanoon.services.account_service.verify_password", return_value=False):
                with pytest.raises(UnauthorizedError, match="Invalid email or password"):
                    await account_service.authenticate("a@firm.ae", "nope")


class TestCreateCompanyAdmin:

    @pytest.mark.asyncio
    async def test_all_fields_required(self):
        with pytest.raises(ValueError, match="Email, password, and company name are required"):
            await account_service.create_company_admin("a@firm.ae", "Passw0rd!", None)

    @pytest.mark.asyncio
    async def test_creates_confirmed_company_admin(self):
        db = FakeDb()
        _read_back(db)

        with patch(DB_PATH, return_value=db):
            result = await account_service.create_company_admin("boss@firm.ae", "Passw0rd!", "Firm LLC")

        auth_user = db.auth_users.insert_one.call_args[0][0]
        assert auth_user["email_confirmed"] is True
        assert auth_user["user_metadata"]["signup_type"] == "company"
        assert result["message"] == "Company admin account created successfully"
        assert result["user"]["email"] == "boss@firm.ae"
        assert result["user"]["role"] == "company_admin"
        assert result["user"]["company_id"] == db.companies.insert_one.call_args[0][0]["id"]


class TestCleanupOrphanedUsers:

    @pytest.mark.asyncio
    async def test_deletes_only_users_without_profile(self):
        db = FakeDb()
        db.auth_users.find = cursor_of([
            {"user_id": "u1", "email": "kept@x.ae"},
            {"user_id": "u2", "email": "orphan@x.ae"},
        ])
        db.profiles.distinct = AsyncMock(return_value=["u1"])

        with patch(DB_PATH, return_value=db):
            result = await account_service.cleanup_orphaned_users()

        assert result["cleanedUsers"] == [{"email": "orphan@x.ae", "id": "u2"}]
        assert result["message"] == "Cleaned up 1 orphaned auth users"
        db.auth_users.delete_one.assert_awaited_once_with({"user_id": "u2"})

    @pytest.mark.asyncio
    async def test_failed_delete_is_skipped(self):
        db = FakeDb()
        db.auth_users.find = cursor_of([{"user_id": "u2", "email": "a@x.ae"}, {"user_id": "u3", "email": "b@x.ae"}])
        db.auth_users.delete_one = AsyncMock(side_effect=[Exception("locked"), None])

        with patch(DB_PATH, return_value=db):
            result = await account_service.cleanup_orphaned_users()

        assert result["cleanedUsers"] == [{"email": "b@x.ae", "id": "u3"}]


class TestCompanyAdministration:

    @pytest.mark.asyncio
    async def test_update_role_rejects_non_company_role(self):
        with pytest.raises(ValueError, match="Invalid role"):
            await account_service.update_user_role("admin", "r1", "u1", "c1", "super_admin")

    @pytest.mark.asyncio
    async def test_update_role_requires_company_admin(self):
        db = FakeDb()
        db.profiles.find_one = AsyncMock(return_value={"user_id": "staff", "user_role": "company_staff"})

        with patch(DB_PATH, return_value=db):
            with pytest.raises(ForbiddenError, match="Only company admins"):
                await account_service.update_user_role("staff", "r1", "u1", "c1", "company_manager")

    @pytest.mark.asyncio
    async def test_update_role_other_company_forbidden(self):
        db = FakeDb()
        db.profiles.find_one = AsyncMock(return_value={"user_id": "admin", "user_role": "company_admin", "current_company_id": "c2"})

        with patch(DB_PATH, return_value=db):
            with pytest.raises(ForbiddenError, match="your own company"):
                await account_service.update_user_role("admin", "r1", "u1", "c1", "company_manager")

    @pytest.mark.asyncio
    async def test_update_role_updates_rows_and_logs(self):
        db = FakeDb()
        profiles = {
            "admin": {"user_id": "admin", "user_role": "company_admin", "current_company_id": "c1"},
            "u1": {"user_id": "u1", "full_name": "Khalid", "email": "k@firm.ae"},
        }
        db.profiles.find_one = AsyncMock(side_effect=lambda q, p=None: profiles.get(q["user_id"]))
        db.user_company_roles.find_one = AsyncMock(return_value={"id": "r1", "role": "company_staff"})

        with patch(DB_PATH, return_value=db), patch(NOTIFY_DB_PATH, return_value=db):
            result = await account_service.update_user_role("admin", "r1", "u1", "c1", "company_manager")

        assert result == {"message": "User role updated successfully"}
        db.user_company_roles.update_one.assert_awaited_once_with(
            {"id": "r1", "company_id": "c1", "user_id": "u1"}, {"$set": {"role": "company_manager"}}
        )
        db.user_roles.delete_many.assert_awaited_once_with(
            {"user_id": "u1", "role": {"$in": ["company_admin", "company_manager", "company_staff"]}}
        )
        assert db.user_roles.insert_one.call_args[0][0]["role"] == "company_manager"
        log = db.company_activity_logs.insert_one.call_args[0][0]
        assert log["activity_type"] == "role_changed"
        assert log["description"] == "Changed Khalid's role from company_staff to company_manager"
        notification = db.notifications.insert_one.call_args[0][0]
        assert notification["action_url"] == "/dashboard?tab=team"

    @pytest.mark.asyncio
    async def test_update_credits_survives_activity_log_failure(self):
        db = FakeDb()
        db.profiles.find_one = AsyncMock(return_value={"user_id": "root", "user_role": "super_admin"})
        db.user_company_roles.find_one = AsyncMock(return_value={"id": "r1", "max_credits_per_period": 50})
        db.company_activity_logs.insert_one = AsyncMock(side_effect=Exception("write failed"))

        with patch(DB_PATH, return_value=db), patch(NOTIFY_DB_PATH, return_value=db):
            result = await account_service.update_user_credits("root", "r1", "u1", "c1", 120)

        assert result == {"message": "User credits updated successfully"}
        db.user_company_roles.update_one.assert_awaited_once_with(
            {"id": "r1", "company_id": "c1", "user_id": "u1"}, {"$set": {"max_credits_per_period": 120}}
        )

    @staticmethod
    def _tenants(db):
        """admin-a runs company-a; ucr-b ties member-b to company-b; root is a super admin."""
        memberships = [
            {"id": "ucr-a", "user_id": "member-a", "company_id": "company-a", "role": "company_staff"},
            {"id": "ucr-b", "user_id": "member-b", "company_id": "company-b", "role": "company_staff"},
        ]
        profiles = {
            "admin-a": {"user_id": "admin-a", "user_role": "company_admin", "current_company_id": "company-a"},
            "root": {"user_id": "root", "user_role": "super_admin"},
        }

        async def find_membership(query, projection=None):
            for row in memberships:
                if all(row.get(k) == v for k, v in query.items()):
                    return row
            return None

        db.profiles.find_one = AsyncMock(side_effect=lambda q, p=None: profiles.get(q["user_id"]))
        db.user_company_roles.find_one = AsyncMock(side_effect=find_membership)

    @pytest.mark.asyncio
    async def test_update_role_rejects_membership_of_other_company(self):
        db = FakeDb()
        self._tenants(db)

        with patch(DB_PATH, return_value=db):
            with pytest.raises(NotFoundError, match="not a member of this company"):
                await account_service.update_user_role("admin-a", "ucr-b", "member-b", "company-a", "company_staff")

        db.user_company_roles.update_one.assert_not_called()
        db.profiles.update_one.assert_not_called()
        db.user_roles.delete_many.assert_not_called()

    @pytest.mark.asyncio
    async def test_update_role_rejects_user_outside_company(self):
        db = FakeDb()
        self._tenants(db)

        with patch(DB_PATH, return_value=db):
            with pytest.raises(NotFoundError, match="not a member of this company"):
                await account_service.update_user_role("admin-a", "ucr-a", "root", "company-a", "company_staff")

        db.profiles.update_one.assert_not_called()
        db.user_roles.delete_many.assert_not_called()
        db.user_roles.insert_one.assert_not_called()

    @pytest.mark.asyncio
    async def test_update_credits_rejects_membership_of_other_company(self):
        db = FakeDb()
        self._tenants(db)

        with patch(DB_PATH, return_value=db):
            with pytest.raises(NotFoundError, match="not a member of this company"):
                await account_service.update_user_credits("admin-a", "ucr-b", "member-b", "company-a", 500)

        db.user_company_roles.update_one.assert_not_called()

    @pytest.mark.asyncio
    async def test_update_role_within_own_company_is_scoped(self):
        db = FakeDb()
        self._tenants(db)

        with patch(DB_PATH, return_value=db), patch(NOTIFY_DB_PATH, return_value=db):
            await account_service.update_user_role("admin-a", "ucr-a", "member-a", "company-a", "company_manager")

        db.profiles.update_one.assert_awaited_once()
        assert db.profiles.update_one.call_args[0][0] == {"user_id": "member-a", "current_company_id": "company-a"}

    @pytest.mark.asyncio
    async def test_update_credits_rejects_negative(self):
        with pytest.raises(ValueError, match="positive number"):
            await account_service.update_user_credits("root", "r1", "u1", "c1", -5)

    @pytest.mark.asyncio
    async def test_remove_user_requires_super_admin(self):
        db = FakeDb()
        with patch(DB_PATH, return_value=db):
            with pytest.raises(ForbiddenError, match="Super admin access required"):
                await account_service.remove_company_user("admin", "k@firm.ae")

    @pytest.mark.asyncio
    async def test_remove_unknown_user(self):
        db = FakeDb()
        db.user_roles.find_one = AsyncMock(return_value={"user_id": "root", "role": "super_admin"})
        with patch(DB_PATH, return_value=db):
            with pytest.raises(NotFoundError, match="User not found"):
                await account_service.remove_company_user("root", "ghost@firm.ae")

    @pytest.mark.asyncio
    async def test_remove_user_resets_to_individual(self):
        db = FakeDb()
        db.user_roles.find_one = AsyncMock(return_value={"user_id": "root", "role": "super_admin"})
        db.profiles.find_one = AsyncMock(return_value={"user_id": "u1", "email": "k@firm.ae", "current_company_id": "c1"})

        with patch(DB_PATH, return_value=db):
            result = await account_service.remove_company_user("root", "k@firm.ae")

        assert result["userId"] == "u1"
        db.user_company_roles.delete_many.assert_awaited_once_with({"user_id": "u1"})
        profile_update = db.profiles.update_one.call_args[0][1]["$set"]
        assert profile_update["current_company_id"] is None
        assert profile_update["user_role"] == "individual"
        assert db.company_activity_logs.insert_one.call_args[0][0]["activity_type"] == "member_removed"
