"""
Resolve each parsed row to an existing organization, or decide it is new.

Rules, evaluated per row in file order:

1. Tax ID matches a stored organization          -> exact_ein / high
2. Tax ID first appeared on an earlier row here  -> new / medium (batch duplicate)
3. Best name similarity >= threshold             -> fuzzy_name / medium
4. Anything else                                 -> new / low

Matching never touches the record store. Rule 2 is the only rule that depends
on row order, and it only looks at rows of the same file.
"""

import logging
from typing import Iterable, Optional, Sequence

from ..constants import FUZZY_MATCH_THRESHOLD
from ..models import (
    CanonicalCsvRow,
    ExactEinMatch,
    ExistingOrganization,
    FuzzyNameMatch,
    MatchConfidence,
    NewOrganizationMatch,
    OrgMatch,
)
from ..utils.ein_utils import ein_match_key
from .name_similarity import names_differ, similarity

logger = logging.getLogger(__name__)


def build_ein_index(organizations: Iterable[ExistingOrganization]) -> dict[str, ExistingOrganization]:
    """Map EIN match key -> organization. The first organization wins on duplicate EINs."""
    index: dict[str, ExistingOrganization] = {}
    for org in organizations:
        key = ein_match_key(org.ein)
        if key and key not in index:
            index[key] = org
    return index


def best_name_match(
    org_name: str, organizations: Sequence[ExistingOrganization]
) -> tuple[Optional[ExistingOrganization], float]:
    """Highest-scoring organization by name similarity; the earliest wins ties."""
    best: Optional[ExistingOrganization] = None
    best_score = 0.0
    for org in organizations:
        score = similarity(org_name, org.name)
        if score > best_score:
            best, best_score = org, score
    return best, best_score


def match_organizations(
    rows: Sequence[CanonicalCsvRow],
    existing_orgs: Sequence[ExistingOrganization],
    threshold: float = FUZZY_MATCH_THRESHOLD,
) -> list[OrgMatch]:
    """
    Match every row against the organization snapshot.

    Args:
        rows: Parsed rows in file order
        existing_orgs: Snapshot of the foundation's organizations
        threshold: Minimum similarity accepted as a fuzzy match (inclusive)

    Returns:
        One OrgMatch per row, same order
    """
    ein_index = build_ein_index(existing_orgs)
    seen_batch_eins: set[str] = set()
    matches: list[OrgMatch] = []

    for row in rows:
        key = ein_match_key(row.ein)
        if key:
            existing = ein_index.get(key)
            if existing is not None:
                matches.append(
                    ExactEinMatch(
                        organization=existing,
                        name_changed=names_differ(existing.name, row.org_name),
                    )
                )
                continue

            if key in seen_batch_eins:
                matches.append(NewOrganizationMatch(confidence=MatchConfidence.MEDIUM, batch_duplicate=True))
                continue
            seen_batch_eins.add(key)

        candidate, score = best_name_match(row.org_name, existing_orgs)
        if candidate is not None and score >= threshold:
            matches.append(
                FuzzyNameMatch(
                    organization=candidate,
                    name_changed=names_differ(candidate.name, row.org_name),
                    score=score,
                )
            )
            continue

        matches.append(NewOrganizationMatch(confidence=MatchConfidence.LOW))

    logger.debug(
        f"Matched {len(rows)} rows against {len(existing_orgs)} organizations "
        f"({len(ein_index)} with EIN)"
    )
    return matches
