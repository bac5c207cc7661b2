"""Entity resolution for imported disbursements.

Provides:
- Name normalization and token-set similarity
- Organization matching (EIN, intra-file duplicates, fuzzy names)
- Grant matching (pending grants to settle, paid grants already recorded)
"""

from .grant_matcher import match_grants
from .name_similarity import normalize_name, similarity
from .organization_matcher import match_organizations

__all__ = [
    "match_grants",
    "match_organizations",
    "normalize_name",
    "similarity",
]
