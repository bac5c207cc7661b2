"""Data access repositories for the foundation database.

Simple reads and single-row writes for the three tables the import touches:
organizations, grants and activity_log. SqlRecordStore adapts them to the
RecordStore protocol and converts driver errors into StoreError.
"""

import json
import logging
import uuid
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Generator

import pymysql

from ..constants import GRANT_STATUS_APPROVED, GRANT_STATUS_PAID
from ..models import ExistingOrganization, ExistingPaidGrant, ExistingPendingGrant
from .client import execute_query
from .store import ActivityEntry, NewGrant, NewOrganization, StoreError

logger = logging.getLogger(__name__)


def _json_default(obj: Any) -> Any:
    """Handle non-serializable objects for JSON encoding."""
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Decimal):
        return float(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def _serialize_json(value: Any) -> str | None:
    """Serialize a value to JSON string for storage."""
    if value is None:
        return None
    return json.dumps(value, default=_json_default)


def _generate_uuid() -> str:
    """Generate a UUID string."""
    return str(uuid.uuid4())


class OrganizationRepository:
    """Organization table operations."""

    def get_for_foundation(self, foundation_id: str) -> list[dict]:
        """All organizations of a foundation, oldest first."""
        return (
            execute_query(
                "SELECT id, name, ein FROM organizations WHERE foundation_id = %s ORDER BY created_at, id",
                (foundation_id,),
            )
            or []
        )

    def insert(self, organization: NewOrganization) -> str:
        """Insert organization and return its generated id."""
        org_id = _generate_uuid()
        execute_query(
            "INSERT INTO organizations (id, foundation_id, name, ein, address, created_by) "
            "VALUES (%s, %s, %s, %s, %s, %s)",
            (
                org_id,
                organization.foundation_id,
                organization.name,
                organization.ein,
                organization.address,
                organization.created_by,
            ),
            fetch="none",
        )
        return org_id

    def update_name(self, org_id: str, name: str) -> int:
        """Rename an organization. Returns the number of rows updated."""
        return execute_query(
            "UPDATE organizations SET name = %s, updated_at = CURRENT_TIMESTAMP WHERE id = %s",
            (name, org_id),
            fetch="rowcount",
        )


class GrantRepository:
    """Grant table operations."""

    def get_by_status(self, foundation_id: str, status: str) -> list[dict]:
        """Grants of a foundation in one status, oldest first."""
        return (
            execute_query(
                "SELECT id, organization_id, amount, status, start_date, updated_at FROM grants "
                "WHERE foundation_id = %s AND status = %s ORDER BY created_at, id",
                (foundation_id, status),
            )
            or []
        )

    def insert(self, grant: NewGrant) -> str:
        """Insert grant and return its generated id."""
        grant_id = _generate_uuid()
        execute_query(
            "INSERT INTO grants (id, foundation_id, organization_id, status, amount, purpose, "
            "recurrence_type, proposed_by, start_date) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)",
            (
                grant_id,
                grant.foundation_id,
                grant.organization_id,
                grant.status,
                grant.amount,
                grant.purpose,
                grant.recurrence_type,
                grant.proposed_by,
                grant.start_date,
            ),
            fetch="none",
        )
        return grant_id

    def set_status(self, grant_id: str, status: str, updated_at: datetime) -> int:
        """Change a grant's status. Returns the number of rows updated."""
        return execute_query(
            "UPDATE grants SET status = %s, updated_at = %s WHERE id = %s",
            (status, updated_at, grant_id),
            fetch="rowcount",
        )


class ActivityLogRepository:
    """Activity log operations (append only)."""

    def insert(self, entry: ActivityEntry) -> str:
        """Append an activity entry and return its id."""
        entry_id = _generate_uuid()
        execute_query(
            "INSERT INTO activity_log (id, foundation_id, user_id, action, entity_type, entity_id, details) "
            "VALUES (%s, %s, %s, %s, %s, %s, %s)",
            (
                entry_id,
                entry.foundation_id,
                entry.user_id,
                entry.action,
                entry.entity_type,
                entry.entity_id,
                _serialize_json(entry.details),
            ),
            fetch="none",
        )
        return entry_id


@contextmanager
def _store_errors(operation: str) -> Generator[None, None, None]:
    """Re-raise driver errors as StoreError."""
    try:
        yield
    except pymysql.MySQLError as e:
        raise StoreError(f"{operation} failed: {e}") from e


class SqlRecordStore:
    """RecordStore backed by the foundation's MySQL-protocol database."""

    def __init__(
        self,
        organizations: OrganizationRepository | None = None,
        grants: GrantRepository | None = None,
        activity: ActivityLogRepository | None = None,
    ):
        self.organizations = organizations or OrganizationRepository()
        self.grants = grants or GrantRepository()
        self.activity = activity or ActivityLogRepository()

    def fetch_organizations(self, foundation_id: str) -> list[ExistingOrganization]:
        with _store_errors("fetch organizations"):
            rows = self.organizations.get_for_foundation(foundation_id)
        return [ExistingOrganization(id=str(r["id"]), name=r["name"], ein=r.get("ein")) for r in rows]

    def fetch_pending_grants(self, foundation_id: str) -> list[ExistingPendingGrant]:
        with _store_errors("fetch pending grants"):
            rows = self.grants.get_by_status(foundation_id, GRANT_STATUS_APPROVED)
        return [
            ExistingPendingGrant(
                id=str(r["id"]),
                organization_id=str(r["organization_id"]),
                amount=Decimal(str(r["amount"])),
                status=r["status"],
            )
            for r in rows
        ]

    def fetch_paid_grants(self, foundation_id: str) -> list[ExistingPaidGrant]:
        with _store_errors("fetch paid grants"):
            rows = self.grants.get_by_status(foundation_id, GRANT_STATUS_PAID)
        return [
            ExistingPaidGrant(
                id=str(r["id"]),
                organization_id=str(r["organization_id"]),
                amount=Decimal(str(r["amount"])),
                start_date=r.get("start_date"),
                updated_at=r.get("updated_at"),
                status=r["status"],
            )
            for r in rows
        ]

    def insert_organization(self, organization: NewOrganization) -> str:
        with _store_errors(f"insert organization '{organization.name}'"):
            return self.organizations.insert(organization)

    def update_organization_name(self, organization_id: str, name: str) -> None:
        with _store_errors(f"rename organization {organization_id}"):
            updated = self.organizations.update_name(organization_id, name)
        if not updated:
            raise StoreError(f"rename organization {organization_id} failed: no such organization")

    def insert_grant(self, grant: NewGrant) -> str:
        with _store_errors(f"insert grant for organization {grant.organization_id}"):
            return self.grants.insert(grant)

    def update_grant_status(self, grant_id: str, status: str, updated_at: datetime) -> None:
        with _store_errors(f"update grant {grant_id}"):
            updated = self.grants.set_status(grant_id, status, updated_at)
        if not updated:
            raise StoreError(f"update grant {grant_id} failed: no such grant")

    def insert_activity(self, entry: ActivityEntry) -> None:
        with _store_errors(f"log {entry.action}"):
            self.activity.insert(entry)
