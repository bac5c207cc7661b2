"""Record store contract consumed by the import engine.

The store is the foundation's transactional database. Each operation is
atomic on its own; the import never relies on multi-row transactions.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional, Protocol

from ..constants import GRANT_STATUS_PAID, RECURRENCE_ONE_TIME
from ..models import ExistingOrganization, ExistingPaidGrant, ExistingPendingGrant


class StoreError(Exception):
    """A record store operation failed."""


@dataclass
class NewOrganization:
    """Organization insert payload."""

    foundation_id: str
    name: str
    created_by: str
    ein: Optional[str] = None
    address: Optional[str] = None


@dataclass
class NewGrant:
    """Grant insert payload. Imported grants are already paid."""

    foundation_id: str
    organization_id: str
    amount: Decimal
    proposed_by: str
    purpose: Optional[str] = None
    start_date: Optional[date] = None
    status: str = GRANT_STATUS_PAID
    recurrence_type: str = RECURRENCE_ONE_TIME


@dataclass
class ActivityEntry:
    """Audit trail entry shown in the dashboard's activity log."""

    foundation_id: str
    user_id: str
    action: str  # e.g. 'organization_created', 'grant_status_changed'
    entity_type: str  # 'organization' or 'grant'
    entity_id: str
    details: dict[str, Any] = field(default_factory=dict)


class RecordStore(Protocol):
    """Operations the import needs from the foundation's database."""

    def fetch_organizations(self, foundation_id: str) -> list[ExistingOrganization]:
        ...

    def fetch_pending_grants(self, foundation_id: str) -> list[ExistingPendingGrant]:
        ...

    def fetch_paid_grants(self, foundation_id: str) -> list[ExistingPaidGrant]:
        """Paid grants, used to recognize disbursements imported before."""
        ...

    def insert_organization(self, organization: NewOrganization) -> str:
        """Insert and return the new organization id."""
        ...

    def update_organization_name(self, organization_id: str, name: str) -> None:
        ...

    def insert_grant(self, grant: NewGrant) -> str:
        """Insert and return the new grant id."""
        ...

    def update_grant_status(self, grant_id: str, status: str, updated_at: datetime) -> None:
        ...

    def insert_activity(self, entry: ActivityEntry) -> None:
        ...
