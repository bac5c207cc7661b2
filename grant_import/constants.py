"""
Global constants for the grant import engine.

Centralizes thresholds, status values and column names used throughout the
parsers, matchers and commit orchestrator.
"""

# Matching
FUZZY_MATCH_THRESHOLD = 0.70  # Minimum Jaccard score accepted as a fuzzy name match

# Legal-entity words removed before name comparison (whole words, case-insensitive)
LEGAL_SUFFIXES = (
    "inc",
    "incorporated",
    "llc",
    "corp",
    "corporation",
    "foundation",
    "fund",
    "trust",
    "org",
    "organization",
    "co",
    "company",
    "ltd",
    "limited",
    "assoc",
    "association",
    "the",
)

# Grant lifecycle
GRANT_STATUS_APPROVED = "approved"  # "Pending": approved but unpaid
GRANT_STATUS_PAID = "paid"
RECURRENCE_ONE_TIME = "one_time"

# Audit trail
IMPORT_SOURCE = "csv_import"
ACTION_ORGANIZATION_CREATED = "organization_created"
ACTION_ORGANIZATION_RENAMED = "organization_renamed"
ACTION_GRANT_CREATED = "grant_created"
ACTION_GRANT_STATUS_CHANGED = "grant_status_changed"

# Commit
DEFAULT_ROW_TIMEOUT_SECONDS = 30  # Per-row deadline for store operations
CONNECTION_TIMEOUT_SECONDS = 10  # Database connect timeout

# Provider status values that mean the disbursement never happened
CANCELED_STATUSES = frozenset({"canceled", "cancelled"})
