"""
Pydantic models for a single provider import.

A CSV row is parsed into a CanonicalCsvRow, matched against snapshots of the
foundation's organizations and pending grants, and wrapped in an ImportRow that
the reviewer can include or exclude before the batch is committed.

Match results are discriminated unions keyed on ``type`` so that each variant
only carries the payload it needs:

- ExactEinMatch        -> always high confidence, always has an organization
- FuzzyNameMatch       -> always medium confidence, always has an organization
- NewOrganizationMatch -> medium (same-file EIN duplicate) or low confidence
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from ..constants import GRANT_STATUS_APPROVED, GRANT_STATUS_PAID


class MatchConfidence(str, Enum):
    """How certain the matcher is about an organization decision."""

    HIGH = "high"  # Tax ID matched a stored organization
    MEDIUM = "medium"  # Fuzzy name match, or repeat of an EIN seen earlier in the file
    LOW = "low"  # Nothing matched; reviewer must opt in


class OrgMatchType(str, Enum):
    EXACT_EIN = "exact_ein"
    FUZZY_NAME = "fuzzy_name"
    NEW = "new"


class GrantMatchType(str, Enum):
    TRANSITION = "transition"
    NEW = "new"
    ALREADY_PAID = "already_paid"


# ============================================================================
# Input rows and snapshots
# ============================================================================


class CanonicalCsvRow(BaseModel):
    """One disbursement in provider-independent form."""

    model_config = ConfigDict(frozen=True)

    org_name: str = Field(..., min_length=1, description="Organization name as written in the export")
    ein: Optional[str] = Field(None, description="Tax ID as written in the export or lookup file")
    amount: Decimal = Field(..., gt=0, description="Disbursed amount")
    date_paid: date = Field(..., description="Date the disbursement was paid or requested")
    purpose: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    submitted_by: Optional[str] = Field(None, description="Advisor who requested the grant (Schwab only)")

    def full_address(self) -> Optional[str]:
        """Join the non-empty address parts with ", ", or None if all are empty."""
        parts = [p for p in (self.address, self.city, self.state, self.postal_code) if p]
        return ", ".join(parts) if parts else None


class EinLookupEntry(BaseModel):
    """Row of the auxiliary charity-name -> EIN reference file."""

    model_config = ConfigDict(frozen=True)

    canonical_name: str
    ein: Optional[str] = None
    type: Optional[str] = None


class ExistingOrganization(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    ein: Optional[str] = None


class ExistingPendingGrant(BaseModel):
    """A grant that has been approved but not yet paid."""

    model_config = ConfigDict(frozen=True)

    id: str
    organization_id: str
    amount: Decimal
    status: str = GRANT_STATUS_APPROVED


class ExistingPaidGrant(BaseModel):
    """A grant already marked paid, used to recognize re-imported disbursements."""

    model_config = ConfigDict(frozen=True)

    id: str
    organization_id: str
    amount: Decimal
    start_date: Optional[date] = None
    updated_at: Optional[datetime] = None
    status: str = GRANT_STATUS_PAID

    def records_payment(self, amount: Decimal, date_paid: date) -> bool:
        """Same amount, and either started on the paid date or settled on or after it."""
        if self.amount != amount:
            return False
        if self.start_date == date_paid:
            return True
        return self.updated_at is not None and self.updated_at.date() >= date_paid


# ============================================================================
# Organization match variants
# ============================================================================


class ExactEinMatch(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["exact_ein"] = "exact_ein"
    confidence: Literal[MatchConfidence.HIGH] = MatchConfidence.HIGH
    organization: ExistingOrganization
    name_changed: bool = False

    @property
    def matched_organization(self) -> Optional[ExistingOrganization]:
        return self.organization


class FuzzyNameMatch(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["fuzzy_name"] = "fuzzy_name"
    confidence: Literal[MatchConfidence.MEDIUM] = MatchConfidence.MEDIUM
    organization: ExistingOrganization
    name_changed: bool = False
    score: float = Field(..., ge=0.0, le=1.0, description="Jaccard similarity of the accepted match")

    @property
    def matched_organization(self) -> Optional[ExistingOrganization]:
        return self.organization


class NewOrganizationMatch(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["new"] = "new"
    confidence: Literal[MatchConfidence.MEDIUM, MatchConfidence.LOW] = MatchConfidence.LOW
    batch_duplicate: bool = Field(
        False, description="An earlier row in the same file carried this EIN; commit reuses its organization"
    )

    @property
    def matched_organization(self) -> Optional[ExistingOrganization]:
        return None

    @property
    def name_changed(self) -> bool:
        return False


OrgMatch = Annotated[
    Union[ExactEinMatch, FuzzyNameMatch, NewOrganizationMatch],
    Field(discriminator="type"),
]


# ============================================================================
# Grant match variants
# ============================================================================


class TransitionGrantMatch(BaseModel):
    """Settle an existing pending grant by marking it paid."""

    model_config = ConfigDict(frozen=True)

    type: Literal["transition"] = "transition"
    grant: ExistingPendingGrant

    @property
    def matched_grant(self) -> Optional[ExistingPendingGrant]:
        return self.grant


class NewGrantMatch(BaseModel):
    """Record a brand-new grant already in paid status."""

    model_config = ConfigDict(frozen=True)

    type: Literal["new"] = "new"

    @property
    def matched_grant(self) -> Optional[ExistingPendingGrant]:
        return None


class AlreadyPaidGrantMatch(BaseModel):
    """The disbursement is already recorded by a paid grant; nothing to do by default."""

    model_config = ConfigDict(frozen=True)

    type: Literal["already_paid"] = "already_paid"
    grant: ExistingPaidGrant

    @property
    def matched_grant(self) -> Optional[ExistingPaidGrant]:
        return self.grant


GrantMatch = Annotated[
    Union[TransitionGrantMatch, NewGrantMatch, AlreadyPaidGrantMatch],
    Field(discriminator="type"),
]


# ============================================================================
# Review and commit
# ============================================================================


class ImportRow(BaseModel):
    """A matched row awaiting review. Only ``included`` changes after creation."""

    index: int = Field(..., ge=0, description="Position of the row in the parsed file")
    csv: CanonicalCsvRow
    org_match: OrgMatch
    grant_match: GrantMatch
    included: bool = True


class ReviewSummary(BaseModel):
    """Counts shown to the reviewer before committing."""

    total_rows: int = 0
    included_rows: int = 0
    transitions: int = 0  # Included rows that settle a pending grant
    new_grants: int = 0  # Included rows that create a paid grant
    new_organizations: int = 0  # Included rows without a matched organization
    already_imported: int = 0  # All rows whose disbursement is already a paid grant
    low_confidence: int = 0  # All rows, included or not
    by_match_type: dict[str, int] = Field(default_factory=dict)
    by_confidence: dict[str, int] = Field(default_factory=dict)


class CommitSummary(BaseModel):
    """Outcome of one commit run. Failures are additive; nothing is rolled back."""

    total: int = 0
    processed: int = 0
    grants_transitioned: int = 0
    grants_created: int = 0
    organizations_created: int = 0
    organizations_reused: int = 0
    organizations_renamed: int = 0
    organization_failures: int = 0
    grant_failures: int = 0
    timed_out: int = 0
    cancelled: bool = False

    @property
    def grants_imported(self) -> int:
        return self.grants_transitioned + self.grants_created

    @property
    def failed(self) -> int:
        return self.organization_failures + self.grant_failures + self.timed_out

    def message(self) -> str:
        """One-line summary, e.g. "Imported 5 grants: 2 transitioned to Paid, 3 created"."""
        parts = []
        if self.grants_transitioned:
            parts.append(f"{self.grants_transitioned} transitioned to Paid")
        if self.grants_created:
            parts.append(f"{self.grants_created} created")
        if self.failed:
            parts.append(f"{self.failed} failed")
        text = f"Imported {self.grants_imported} grants"
        if parts:
            text += ": " + ", ".join(parts)
        if self.cancelled:
            text += f" (cancelled after {self.processed}/{self.total} rows)"
        return text
