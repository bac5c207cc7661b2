"""
Decide what a disbursement does to the organization's grants.

A pending grant is one with status "approved". When the row's organization
resolved to a stored organization:

- a paid grant already records this payment -> already paid (skipped by default)
- no pending grants                         -> create a new paid grant
- one pending grant                         -> transition it to paid, whatever the amount
- several pending grants                    -> transition the one whose amount is nearest
                                               the CSV amount (earliest candidate wins ties)

Each paid grant accounts for at most one row of the file, so a file with two
identical disbursements and one recorded payment still imports the second.
Rows whose organization is new always create a new grant.
"""

from collections import defaultdict
from typing import Iterable, Optional, Sequence

from ..constants import GRANT_STATUS_APPROVED, GRANT_STATUS_PAID
from ..models import (
    AlreadyPaidGrantMatch,
    CanonicalCsvRow,
    ExistingPaidGrant,
    ExistingPendingGrant,
    GrantMatch,
    NewGrantMatch,
    OrgMatch,
    TransitionGrantMatch,
)


def index_pending_grants(
    grants: Iterable[ExistingPendingGrant],
) -> dict[str, list[ExistingPendingGrant]]:
    """Group approved grants by organization id, preserving snapshot order."""
    by_org: dict[str, list[ExistingPendingGrant]] = defaultdict(list)
    for grant in grants:
        if grant.status == GRANT_STATUS_APPROVED:
            by_org[grant.organization_id].append(grant)
    return by_org


def index_paid_grants(grants: Iterable[ExistingPaidGrant]) -> dict[str, list[ExistingPaidGrant]]:
    by_org: dict[str, list[ExistingPaidGrant]] = defaultdict(list)
    for grant in grants:
        if grant.status == GRANT_STATUS_PAID:
            by_org[grant.organization_id].append(grant)
    return by_org


def closest_amount(candidates: Sequence[ExistingPendingGrant], amount) -> ExistingPendingGrant:
    """Candidate with the smallest absolute amount difference; first on ties."""
    best = candidates[0]
    for candidate in candidates[1:]:
        if abs(candidate.amount - amount) < abs(best.amount - amount):
            best = candidate
    return best


def find_recorded_payment(
    row: CanonicalCsvRow,
    candidates: Sequence[ExistingPaidGrant],
    claimed: set[str],
) -> Optional[ExistingPaidGrant]:
    """Unclaimed paid grant recording this row's payment; a start-date match beats a later settlement."""
    available = [g for g in candidates if g.id not in claimed and g.records_payment(row.amount, row.date_paid)]
    if not available:
        return None
    for grant in available:
        if grant.start_date == row.date_paid:
            return grant
    return available[0]


def match_grants(
    pairs: Sequence[tuple[CanonicalCsvRow, OrgMatch]],
    pending_grants: Sequence[ExistingPendingGrant],
    paid_grants: Sequence[ExistingPaidGrant] = (),
) -> list[GrantMatch]:
    """
    Resolve each (row, org match) pair to a grant decision.

    Args:
        pairs: Rows with their organization match, in file order
        pending_grants: Snapshot of the foundation's approved grants
        paid_grants: Snapshot of the foundation's paid grants

    Returns:
        One GrantMatch per pair, same order
    """
    pending_by_org = index_pending_grants(pending_grants)
    paid_by_org = index_paid_grants(paid_grants)
    claimed: set[str] = set()
    matches: list[GrantMatch] = []

    for row, org_match in pairs:
        organization = org_match.matched_organization
        if organization is None:
            matches.append(NewGrantMatch())
            continue

        recorded = find_recorded_payment(row, paid_by_org.get(organization.id, []), claimed)
        if recorded is not None:
            claimed.add(recorded.id)
            matches.append(AlreadyPaidGrantMatch(grant=recorded))
            continue

        candidates = pending_by_org.get(organization.id, [])
        if not candidates:
            matches.append(NewGrantMatch())
        elif len(candidates) == 1:
            matches.append(TransitionGrantMatch(grant=candidates[0]))
        else:
            matches.append(TransitionGrantMatch(grant=closest_amount(candidates, row.amount)))

    return matches
