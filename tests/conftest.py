"""Shared fixtures for grant import tests.

The record store is replaced by an in-memory fake; nothing here needs a
database. Integration with a real MySQL-compatible server is not exercised.
"""

import sys
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Optional

import pytest

# Add repo root to path so tests can import grant_import without installing
sys.path.insert(0, str(Path(__file__).parent.parent))

from grant_import.db.store import ActivityEntry, NewGrant, NewOrganization, StoreError  # noqa: E402
from grant_import.models import (  # noqa: E402
    CanonicalCsvRow,
    ExistingOrganization,
    ExistingPaidGrant,
    ExistingPendingGrant,
    ImportRow,
    NewGrantMatch,
    NewOrganizationMatch,
)


class FakeRecordStore:
    """In-memory RecordStore that records every call.

    ``fail_on`` maps an operation name to a predicate over the call's payload;
    a truthy result makes that call raise StoreError. ``on_call`` runs before
    every operation (used to advance a fake clock).
    """

    def __init__(self, organizations=None, pending_grants=None, paid_grants=None):
        self.organizations: list[ExistingOrganization] = list(organizations or [])
        self.pending_grants: list[ExistingPendingGrant] = list(pending_grants or [])
        self.paid_grants: list[ExistingPaidGrant] = list(paid_grants or [])
        self.inserted_organizations: dict[str, NewOrganization] = {}
        self.inserted_grants: dict[str, NewGrant] = {}
        self.renames: list[tuple[str, str]] = []
        self.status_updates: list[tuple[str, str]] = []
        self.settled_at: dict[str, datetime] = {}
        self.activity: list[ActivityEntry] = []
        self.calls: list[str] = []
        self.fail_on: dict[str, Callable[[Any], bool]] = {}
        self.on_call: Optional[Callable[[str], None]] = None
        self._next_id = 0

    def _call(self, operation: str, payload: Any = None) -> None:
        self.calls.append(operation)
        if self.on_call is not None:
            self.on_call(operation)
        predicate = self.fail_on.get(operation)
        if predicate is not None and predicate(payload):
            raise StoreError(f"{operation} failed")

    def _new_id(self, prefix: str) -> str:
        self._next_id += 1
        return f"{prefix}-{self._next_id}"

    def fetch_organizations(self, foundation_id):
        self._call("fetch_organizations", foundation_id)
        names = dict(self.renames)
        stored = [org.model_copy(update={"name": names.get(org.id, org.name)}) for org in self.organizations]
        created = [
            ExistingOrganization(id=org_id, name=names.get(org_id, org.name), ein=org.ein)
            for org_id, org in self.inserted_organizations.items()
        ]
        return stored + created

    def fetch_pending_grants(self, foundation_id):
        self._call("fetch_pending_grants", foundation_id)
        return [g for g in self.pending_grants if g.id not in self.settled_at]

    def fetch_paid_grants(self, foundation_id):
        self._call("fetch_paid_grants", foundation_id)
        settled = [
            ExistingPaidGrant(
                id=g.id, organization_id=g.organization_id, amount=g.amount, updated_at=self.settled_at[g.id]
            )
            for g in self.pending_grants
            if g.id in self.settled_at
        ]
        created = [
            ExistingPaidGrant(id=grant_id, organization_id=g.organization_id, amount=g.amount, start_date=g.start_date)
            for grant_id, g in self.inserted_grants.items()
        ]
        return list(self.paid_grants) + settled + created

    def insert_organization(self, organization):
        self._call("insert_organization", organization)
        org_id = self._new_id("new-org")
        self.inserted_organizations[org_id] = organization
        return org_id

    def update_organization_name(self, organization_id, name):
        self._call("update_organization_name", (organization_id, name))
        self.renames.append((organization_id, name))

    def insert_grant(self, grant):
        self._call("insert_grant", grant)
        grant_id = self._new_id("new-grant")
        self.inserted_grants[grant_id] = grant
        return grant_id

    def update_grant_status(self, grant_id, status, updated_at):
        self._call("update_grant_status", (grant_id, status))
        self.status_updates.append((grant_id, status))
        self.settled_at[grant_id] = updated_at

    def insert_activity(self, entry):
        self._call("insert_activity", entry)
        self.activity.append(entry)


class FakeClock:
    """Monotonic clock under test control."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def store():
    return FakeRecordStore()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def pih_org():
    return ExistingOrganization(id="org-pih", name="Partners In Health", ein="04-2694280")


@pytest.fixture
def make_csv_row():
    """Factory for CanonicalCsvRow with sensible defaults."""

    def _make(org_name="Test Charity", amount="100", **overrides):
        defaults = dict(
            org_name=org_name,
            amount=Decimal(str(amount)),
            date_paid=date(2024, 3, 15),
        )
        defaults.update(overrides)
        return CanonicalCsvRow(**defaults)

    return _make


@pytest.fixture
def make_import_row(make_csv_row):
    """Factory for ImportRow; defaults to a new organization and a new grant."""

    def _make(index, org_name="Test Charity", amount="100", org_match=None, grant_match=None, included=True, **csv):
        return ImportRow(
            index=index,
            csv=make_csv_row(org_name=org_name, amount=amount, **csv),
            org_match=org_match or NewOrganizationMatch(),
            grant_match=grant_match or NewGrantMatch(),
            included=included,
        )

    return _make


@pytest.fixture
def morgan_stanley_csv():
    return (
        "Grant Recipient,Tax ID,Amount,Date Paid,Type,Purpose,Address 1,City,State,Postal Code\n"
        'Partners In Health,04-2694280,"$1,000.00",3/15/2024,Grant,General support,'
        "800 Boylston St,Boston,MA,02199\n"
        "Doctors Without Borders,13-3433452,250,2024-04-01,Grant,,,,,\n"
        "Account Fee,,25,4/1/2024,Fee,,,,,\n"
    )


@pytest.fixture
def schwab_csv():
    return (
        "Requested Date,Status,Charity Name,Amount,Submitted By\n"
        '01/15/2024 10:30 AM,Completed,"Partners In Health, A Nonprofit Corporation",$500.00,Jane Donor\n'
        "02/01/2024,Canceled,Partners In Health,$100.00,Jane Donor\n"
        "02/03/2024,Completed,Unknown Charity,$75.00,John Donor\n"
    )


@pytest.fixture
def ein_lookup_csv():
    return "Charity Name,EIN,Type\nPartners In Health,04-2694280,Health\nDoctors Without Borders,13-3433452,Relief\n"
