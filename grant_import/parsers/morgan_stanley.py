"""
Morgan Stanley DAF history export.

Columns: Grant Recipient, Tax ID, Amount, Date Paid (required); Type, Purpose,
Address 1, City, State, Postal Code (optional). When a Type column is present
only "Grant" rows are disbursements.
"""

import logging
from datetime import date
from decimal import Decimal

from ..models import CanonicalCsvRow
from ..utils.ein_utils import validate_and_format
from .base import DisbursementCsvParser, ParseResult, clean

logger = logging.getLogger(__name__)


class MorganStanleyParser(DisbursementCsvParser):
    provider_name = "morgan_stanley"
    required_headers = ("Grant Recipient", "Tax ID", "Amount", "Date Paid")
    name_header = "Grant Recipient"
    date_header = "Date Paid"

    def should_skip(self, record: dict[str, str], result: ParseResult) -> bool:
        row_type = clean(record.get("Type"))
        if row_type and row_type.lower() != "grant":
            result.skipped_non_grant += 1
            return True
        return False

    def build_row(
        self,
        record: dict[str, str],
        row_number: int,
        org_name: str,
        amount: Decimal,
        date_paid: date,
        lookup,
        result: ParseResult,
    ) -> CanonicalCsvRow:
        ein = clean(record.get("Tax ID"))
        if ein:
            is_valid, _, error = validate_and_format(ein)
            if not is_valid:
                # Kept verbatim: it may still match an identical value already stored
                result.errors.append(f'Row {row_number}: Tax ID "{ein}" for "{org_name}" is malformed ({error})')
                logger.debug(f"Malformed Tax ID on row {row_number} [name={org_name} ein={ein}]")

        return CanonicalCsvRow(
            org_name=org_name,
            ein=ein,
            amount=amount,
            date_paid=date_paid,
            purpose=clean(record.get("Purpose")),
            address=clean(record.get("Address 1")),
            city=clean(record.get("City")),
            state=clean(record.get("State")),
            postal_code=clean(record.get("Postal Code")),
        )
