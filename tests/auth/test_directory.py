"""Tests for UserDirectory - cross-partition user lookup."""

from auth.directory import ADMINS, LOOKUP_ORDER, USERS, is_inactive, normalize_email
from auth.types import AdminRecord, CompanyUserRecord, UserInvitationStatus, UserType


class TestFindByEmail:
    """First match in admin, manager, employee order."""

    def test_finds_admin_case_insensitively(self, directory):
        """Stored 'Admin@EyeQ.io' matches a lower-case lookup."""
        match = directory.find_by_email("admin@eyeq.io")

        assert match.user_type is UserType.ADMIN
        assert isinstance(match.record, AdminRecord)
        assert match.id == "adm_1"
        assert match.company_id == ""

    def test_finds_manager(self, directory):
        match = directory.find_by_email("MONA@acme.com")

        assert match.user_type is UserType.MANAGER
        assert match.company_id == "co_acme"

    def test_finds_employee(self, directory):
        match = directory.find_by_email("  eve@acme.com ")

        assert match.user_type is UserType.EMPLOYEE
        assert isinstance(match.record, CompanyUserRecord)

    def test_unknown_email_returns_none(self, directory):
        assert directory.find_by_email("nobody@acme.com") is None

    def test_blank_email_never_matches_pre_provisioned_users(self, directory):
        """Users without an email must not match an empty lookup."""
        assert directory.find_by_email("") is None
        assert directory.find_all_by_email("   ") == []

    def test_admin_wins_over_company_user(self, directory, store):
        """Lookup order is admin first even when the email is duplicated."""
        store.create(
            USERS,
            {
                "id": "usr_dup",
                "company_id": "co_acme",
                "email": "admin@eyeq.io",
                "role": "employee",
            },
        )

        match = directory.find_by_email("admin@eyeq.io")

        assert match.user_type is UserType.ADMIN
        assert len(directory.find_all_by_email("admin@eyeq.io")) == 2

    def test_lookup_order(self):
        assert LOOKUP_ORDER == (UserType.ADMIN, UserType.MANAGER, UserType.EMPLOYEE)


class TestRole:
    """Role falls back to the partition when the record has none."""

    def test_record_without_role_is_employee(self, directory):
        match = directory.find_user_by_id("usr_new", UserType.EMPLOYEE)

        assert match.record.role is None
        assert match.role is UserType.EMPLOYEE

    def test_explicit_role_is_used(self, directory):
        match = directory.find_by_email("mona@acme.com")

        assert match.role is UserType.MANAGER


class TestFindUserById:
    """Cross-partition lookup by id."""

    def test_admin(self, directory):
        assert directory.find_user_by_id("adm_1", UserType.ADMIN).id == "adm_1"

    def test_manager(self, directory):
        match = directory.find_user_by_id("usr_mgr2", UserType.MANAGER)

        assert match.company_id == "co_globex"

    def test_wrong_type_returns_none(self, directory):
        """An employee id is not found as a manager."""
        assert directory.find_user_by_id("usr_emp", UserType.MANAGER) is None

    def test_unknown_returns_none(self, directory):
        assert directory.find_user_by_id("usr_missing", UserType.EMPLOYEE) is None


class TestListUsers:
    """Per-role listing and the deactivation check."""

    def test_admins(self, directory):
        assert [m.id for m in directory.list_users(UserType.ADMIN)] == ["adm_1"]

    def test_managers_span_companies(self, directory):
        matches = directory.list_users(UserType.MANAGER)

        assert {m.id for m in matches} == {"usr_mgr", "usr_mgr2", "usr_mgr_new"}
        assert all(m.user_type is UserType.MANAGER for m in matches)

    def test_employees_include_roleless_and_skip_inactive(self, directory):
        assert {m.id for m in directory.list_users(UserType.EMPLOYEE)} == {"usr_emp", "usr_new"}

    def test_is_inactive(self, directory):
        assert is_inactive(directory.find_user_by_id("usr_gone", UserType.EMPLOYEE))
        assert not is_inactive(directory.find_user_by_id("usr_emp", UserType.EMPLOYEE))
        assert not is_inactive(directory.find_user_by_id("adm_1", UserType.ADMIN))


class TestUpdates:
    """Writes through the directory."""

    def test_save_company_user_keeps_unknown_fields(self, directory, store):
        """Fields owned by other services survive a replace."""
        record = directory.get_company_user("usr_new", "co_acme")

        directory.save_company_user(
            record.model_copy(update={"invitation_status": UserInvitationStatus.PENDING})
        )

        doc = store.get(USERS, "usr_new", "co_acme")
        assert doc["department"] == "Warehouse"
        assert doc["invitation_status"] == "pending"
        assert doc["updated_at"] is not None

    def test_record_login_stamps_last_login(self, directory, store):
        match = directory.find_by_email("admin@eyeq.io")

        updated = directory.record_login(match)

        assert updated.record.last_login is not None
        assert store.get(ADMINS, "adm_1", "adm_1")["last_login"] is not None

    def test_company_name(self, directory):
        assert directory.get_company_name("co_acme") == "Acme Corp"
        assert directory.get_company_name("co_missing") is None
        assert directory.get_company_name("") is None


def test_normalize_email():
    assert normalize_email("  Foo@Bar.COM ") == "foo@bar.com"
