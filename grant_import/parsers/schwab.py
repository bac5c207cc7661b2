"""
Schwab Charitable grants history export.

Columns: Requested Date, Status, Charity Name, Amount (required); Submitted By
(optional). The export has no tax IDs, so EINs come from the lookup table.
Canceled requests are not disbursements and are dropped without a warning.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from ..constants import CANCELED_STATUSES
from ..models import CanonicalCsvRow
from .base import DisbursementCsvParser, ParseResult, clean
from .ein_lookup import EinLookupIndex

logger = logging.getLogger(__name__)


class SchwabParser(DisbursementCsvParser):
    provider_name = "schwab"
    required_headers = ("Requested Date", "Status", "Charity Name", "Amount")
    name_header = "Charity Name"
    date_header = "Requested Date"

    def should_skip(self, record: dict[str, str], result: ParseResult) -> bool:
        status = clean(record.get("Status"))
        if status and status.lower() in CANCELED_STATUSES:
            result.skipped_canceled += 1
            return True
        return False

    def build_row(
        self,
        record: dict[str, str],
        row_number: int,
        org_name: str,
        amount: Decimal,
        date_paid: date,
        lookup: Optional[EinLookupIndex],
        result: ParseResult,
    ) -> CanonicalCsvRow:
        entry = lookup.lookup(org_name) if lookup is not None else None
        ein = entry.ein if entry is not None else None

        if not ein and org_name not in result.unmatched_names:
            result.unmatched_names.append(org_name)
            logger.debug(f"No EIN in lookup table [name={org_name}]")

        return CanonicalCsvRow(
            org_name=org_name,
            ein=ein,
            amount=amount,
            date_paid=date_paid,
            submitted_by=clean(record.get("Submitted By")),
        )
