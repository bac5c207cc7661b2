"""
Import Session - the review phase of one provider import.

Parses a provider export, matches it against snapshots of the foundation's
organizations, pending grants and paid grants, and holds the resulting
ImportRows while a reviewer includes or excludes them. Nothing here writes to the record store;
loading the same file twice yields the same rows.
"""

import logging
from collections import Counter
from typing import Iterable, Optional, Sequence

from ..constants import FUZZY_MATCH_THRESHOLD
from ..db.store import RecordStore
from ..matching import match_grants, match_organizations
from ..models import (
    CanonicalCsvRow,
    EinLookupEntry,
    ExistingOrganization,
    ExistingPaidGrant,
    ExistingPendingGrant,
    GrantMatchType,
    ImportRow,
    MatchConfidence,
    ReviewSummary,
)
from ..parsers import EinLookupIndex, ParseResult, get_parser

logger = logging.getLogger(__name__)


def build_import_rows(
    rows: Sequence[CanonicalCsvRow],
    organizations: Sequence[ExistingOrganization],
    pending_grants: Sequence[ExistingPendingGrant],
    threshold: float = FUZZY_MATCH_THRESHOLD,
    paid_grants: Sequence[ExistingPaidGrant] = (),
) -> list[ImportRow]:
    """
    Run both matchers and wrap the results for review.

    Low-confidence rows and rows already recorded as paid start excluded;
    everything else starts included.
    """
    org_matches = match_organizations(rows, organizations, threshold=threshold)
    grant_matches = match_grants(list(zip(rows, org_matches)), pending_grants, paid_grants)

    return [
        ImportRow(
            index=i,
            csv=row,
            org_match=org_match,
            grant_match=grant_match,
            included=(
                org_match.confidence != MatchConfidence.LOW
                and grant_match.type != GrantMatchType.ALREADY_PAID.value
            ),
        )
        for i, (row, org_match, grant_match) in enumerate(zip(rows, org_matches, grant_matches))
    ]


class ImportSession:
    """
    State for one import: lookup index, parse result, snapshots and rows.

    Usage:
        session = ImportSession("schwab", foundation_id, lookup_entries=entries)
        session.load(csv_text, organizations, pending_grants)
        session.toggle(3)
        orchestrator.commit(session.rows)
    """

    def __init__(
        self,
        provider: str,
        foundation_id: str,
        lookup_entries: Optional[Iterable[EinLookupEntry]] = None,
        threshold: float = FUZZY_MATCH_THRESHOLD,
    ):
        self.parser = get_parser(provider)
        self.provider = provider
        self.foundation_id = foundation_id
        self.threshold = threshold
        self.lookup = EinLookupIndex.from_entries(lookup_entries or [])
        self.parse_result: Optional[ParseResult] = None
        self.organizations: list[ExistingOrganization] = []
        self.pending_grants: list[ExistingPendingGrant] = []
        self.paid_grants: list[ExistingPaidGrant] = []
        self.rows: list[ImportRow] = []

    def load(
        self,
        file_content: str,
        organizations: Sequence[ExistingOrganization],
        pending_grants: Sequence[ExistingPendingGrant],
        paid_grants: Sequence[ExistingPaidGrant] = (),
    ) -> list[ImportRow]:
        """
        Parse the export and match it against the given snapshots.

        Returns:
            The ImportRows (empty when the parse was fatal); parse warnings
            stay available on ``parse_result``
        """
        self.parse_result = self.parser.parse(file_content, lookup=self.lookup)
        self.organizations = list(organizations)
        self.pending_grants = list(pending_grants)
        self.paid_grants = list(paid_grants)

        if self.parse_result.fatal:
            logger.warning(f"No importable rows in {self.provider} file: {'; '.join(self.parse_result.errors)}")
            self.rows = []
            return self.rows

        self.rows = build_import_rows(
            self.parse_result.rows,
            self.organizations,
            self.pending_grants,
            threshold=self.threshold,
            paid_grants=self.paid_grants,
        )
        logger.info(
            f"Loaded {len(self.rows)} {self.provider} rows "
            f"({len(self.parse_result.errors)} warnings, {len(self.parse_result.unmatched_names)} unmatched names)"
        )
        return self.rows

    def load_from_store(self, file_content: str, store: RecordStore) -> list[ImportRow]:
        """Fetch the snapshots for this session's foundation, then load."""
        organizations = store.fetch_organizations(self.foundation_id)
        pending_grants = store.fetch_pending_grants(self.foundation_id)
        paid_grants = store.fetch_paid_grants(self.foundation_id)
        return self.load(file_content, organizations, pending_grants, paid_grants)

    def toggle(self, index: int) -> bool:
        """Flip inclusion of one row. Returns the new value."""
        row = self._row(index)
        row.included = not row.included
        return row.included

    def set_included(self, index: int, included: bool) -> None:
        self._row(index).included = included

    def set_all_included(self, included: bool) -> None:
        for row in self.rows:
            row.included = included

    def included_rows(self) -> list[ImportRow]:
        return [row for row in self.rows if row.included]

    def review_summary(self) -> ReviewSummary:
        """Counts for the review screen."""
        included = self.included_rows()
        return ReviewSummary(
            total_rows=len(self.rows),
            included_rows=len(included),
            transitions=sum(1 for r in included if r.grant_match.type == GrantMatchType.TRANSITION.value),
            new_grants=sum(1 for r in included if r.grant_match.type != GrantMatchType.TRANSITION.value),
            new_organizations=sum(1 for r in included if r.org_match.matched_organization is None),
            already_imported=sum(1 for r in self.rows if r.grant_match.type == GrantMatchType.ALREADY_PAID.value),
            low_confidence=sum(1 for r in self.rows if r.org_match.confidence == MatchConfidence.LOW),
            by_match_type=dict(Counter(r.org_match.type for r in self.rows)),
            by_confidence=dict(Counter(MatchConfidence(r.org_match.confidence).value for r in self.rows)),
        )

    def _row(self, index: int) -> ImportRow:
        if not 0 <= index < len(self.rows):
            raise IndexError(f"Row {index} out of range (0-{len(self.rows) - 1})")
        return self.rows[index]
