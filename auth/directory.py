"""User directory: finds the record owning an email across identity partitions.

Admins live in their own collection; managers and employees share the
`users` collection, partitioned by company and told apart by `role`. A
company user without a role is an employee.

Partitions are not mutually exclusive by construction. The same email in two
partitions is a data-integrity problem this module does not detect; the
invitation email-collision guard is what keeps it from happening.
"""

import logging

from clients.document_store import DocumentStore
from auth.types import (
    AdminRecord,
    Company,
    CompanyUserRecord,
    DirectoryMatch,
    UserType,
)
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

ADMINS = "admins"
USERS = "users"
COMPANIES = "companies"

# Lookup priority. First partition with a match wins.
LOOKUP_ORDER = (UserType.ADMIN, UserType.MANAGER, UserType.EMPLOYEE)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def is_inactive(match: DirectoryMatch) -> bool:
    """Deactivated company user. Admins are never deactivated."""
    return isinstance(match.record, CompanyUserRecord) and not match.record.is_active


class UserDirectory:
    """Read and update user records across the admin and company partitions."""

    def __init__(self, store: DocumentStore):
        self._store = store

    def _matches_in(self, user_type: UserType, email: str) -> list[DirectoryMatch]:
        if user_type is UserType.ADMIN:
            docs = self._store.query(ADMINS, {"email": email}, ignore_case=("email",))
            return [DirectoryMatch(user_type, AdminRecord.model_validate(d)) for d in docs]

        if user_type is UserType.MANAGER:
            docs = self._store.query(
                USERS, {"email": email, "role": UserType.MANAGER.value}, ignore_case=("email",)
            )
        else:
            docs = [
                d
                for d in self._store.query(USERS, {"email": email}, ignore_case=("email",))
                if d.get("role") != UserType.MANAGER.value
            ]
        return [DirectoryMatch(user_type, CompanyUserRecord.model_validate(d)) for d in docs]

    def find_by_email(self, email: str) -> DirectoryMatch | None:
        """First record owning the email, searched in LOOKUP_ORDER.

        Returns None for no match or a blank email (pre-provisioned users
        have no email yet and must never match).
        """
        email = normalize_email(email)
        if not email:
            return None

        for user_type in LOOKUP_ORDER:
            matches = self._matches_in(user_type, email)
            if matches:
                return matches[0]
        return None

    def find_all_by_email(self, email: str) -> list[DirectoryMatch]:
        """Every record in every partition owning the email."""
        email = normalize_email(email)
        if not email:
            return []

        found: list[DirectoryMatch] = []
        for user_type in LOOKUP_ORDER:
            found.extend(self._matches_in(user_type, email))
        return found

    def get_admin(self, admin_id: str) -> AdminRecord | None:
        doc = self._store.get(ADMINS, admin_id, admin_id)
        return AdminRecord.model_validate(doc) if doc else None

    def get_company_user(self, user_id: str, company_id: str) -> CompanyUserRecord | None:
        doc = self._store.get(USERS, user_id, company_id)
        return CompanyUserRecord.model_validate(doc) if doc else None

    def find_user_by_id(self, user_id: str, user_type: UserType) -> DirectoryMatch | None:
        """Look a user up by id when the company is not known (cross-partition)."""
        if user_type is UserType.ADMIN:
            admin = self.get_admin(user_id)
            return DirectoryMatch(user_type, admin) if admin else None

        for doc in self._store.query(USERS, {"id": user_id}):
            record = CompanyUserRecord.model_validate(doc)
            is_manager = record.role is UserType.MANAGER
            if is_manager == (user_type is UserType.MANAGER):
                return DirectoryMatch(user_type, record)
        return None

    def list_users(self, user_type: UserType) -> list[DirectoryMatch]:
        """Every record in one partition. Company users only when active."""
        if user_type is UserType.ADMIN:
            return [
                DirectoryMatch(user_type, AdminRecord.model_validate(d))
                for d in self._store.query(ADMINS, {})
            ]

        matches = []
        for doc in self._store.query(USERS, {"is_active": True}):
            record = CompanyUserRecord.model_validate(doc)
            if (record.role is UserType.MANAGER) == (user_type is UserType.MANAGER):
                matches.append(DirectoryMatch(user_type, record))
        return matches

    def get_company(self, company_id: str) -> Company | None:
        if not company_id:
            return None
        doc = self._store.get(COMPANIES, company_id, company_id)
        return Company.model_validate(doc) if doc else None

    def get_company_name(self, company_id: str) -> str | None:
        """Display-only lookup. None when the company record is missing."""
        company = self.get_company(company_id)
        return company.name if company else None

    def save_company_user(self, record: CompanyUserRecord) -> CompanyUserRecord:
        """Replace a company user record, stamping updated_at."""
        updated = record.model_copy(update={"updated_at": now_utc()})
        self._store.replace(
            USERS,
            updated.id,
            updated.company_id,
            updated.model_dump(mode="json"),
        )
        return updated

    def record_login(self, match: DirectoryMatch) -> DirectoryMatch:
        """Stamp last_login on the matched record."""
        record = match.record.model_copy(update={"last_login": now_utc()})
        if isinstance(record, AdminRecord):
            self._store.replace(ADMINS, record.id, record.id, record.model_dump(mode="json"))
        else:
            self._store.replace(
                USERS, record.id, record.company_id, record.model_dump(mode="json")
            )
        return DirectoryMatch(match.user_type, record)
