"""Pydantic models shared by the parsers, matchers and commit orchestrator."""

from .import_rows import (
    AlreadyPaidGrantMatch,
    CanonicalCsvRow,
    CommitSummary,
    EinLookupEntry,
    ExactEinMatch,
    ExistingOrganization,
    ExistingPaidGrant,
    ExistingPendingGrant,
    FuzzyNameMatch,
    GrantMatch,
    GrantMatchType,
    ImportRow,
    MatchConfidence,
    NewGrantMatch,
    NewOrganizationMatch,
    OrgMatch,
    OrgMatchType,
    ReviewSummary,
    TransitionGrantMatch,
)

__all__ = [
    "AlreadyPaidGrantMatch",
    "CanonicalCsvRow",
    "CommitSummary",
    "EinLookupEntry",
    "ExactEinMatch",
    "ExistingOrganization",
    "ExistingPaidGrant",
    "ExistingPendingGrant",
    "FuzzyNameMatch",
    "GrantMatch",
    "GrantMatchType",
    "ImportRow",
    "MatchConfidence",
    "NewGrantMatch",
    "NewOrganizationMatch",
    "OrgMatch",
    "OrgMatchType",
    "ReviewSummary",
    "TransitionGrantMatch",
]
