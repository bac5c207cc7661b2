"""
Base parser interface for provider disbursement exports.

Every provider export is reduced to CanonicalCsvRow. Subclasses declare their
headers and implement two hooks:

- should_skip(record, result): drop rows that are not disbursements
  (canceled requests, non-grant transactions), counting them on the result
- build_row(...): map the provider's columns onto CanonicalCsvRow

The shared parse() loop handles header validation, amounts, dates and the
warnings list.
"""

import csv
import io
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Optional

from ..models import CanonicalCsvRow

_US_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})(?:\s+.*)?$")
_ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_AMOUNT_NOISE = re.compile(r"[$,\s]")


@dataclass
class ParseResult:
    """Output of a provider parser."""

    rows: list[CanonicalCsvRow] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)  # Fatal header errors and per-row warnings
    unmatched_names: list[str] = field(default_factory=list)  # Names with no EIN, first-seen order
    skipped_canceled: int = 0
    skipped_non_grant: int = 0
    skipped_invalid: int = 0

    @property
    def fatal(self) -> bool:
        """True when nothing can be imported from the file."""
        return not self.rows


@dataclass
class CsvTable:
    """Header names plus (row number, record) pairs of a CSV file."""

    headers: list[str]
    records: list[tuple[int, dict[str, str]]]


def read_csv(file_content: str, errors: list[str], label: str = "Row") -> CsvTable:
    """
    Read a header-first CSV string into records keyed by trimmed header names.

    Blank lines are ignored. Rows with the wrong number of fields are kept but
    reported in ``errors`` as "<label> N: ...", N counting data rows from 1.
    """
    if file_content.startswith("\ufeff"):
        file_content = file_content[1:]

    try:
        lines = [values for values in csv.reader(io.StringIO(file_content)) if any(v.strip() for v in values)]
    except csv.Error as e:
        errors.append(f"{label} ?: {e}")
        return CsvTable(headers=[], records=[])

    if not lines:
        return CsvTable(headers=[], records=[])

    headers = [h.strip() for h in lines[0]]
    records: list[tuple[int, dict[str, str]]] = []
    for row_number, values in enumerate(lines[1:], start=1):
        if len(values) > len(headers):
            errors.append(
                f"{label} {row_number}: Too many fields: expected {len(headers)} fields but parsed {len(values)}"
            )
        elif len(values) < len(headers):
            errors.append(
                f"{label} {row_number}: Too few fields: expected {len(headers)} fields but parsed {len(values)}"
            )
        record = {header: (values[i] if i < len(values) else "") for i, header in enumerate(headers)}
        records.append((row_number, record))

    return CsvTable(headers=headers, records=records)


def clean(value: Optional[str]) -> Optional[str]:
    """Strip a cell; empty cells become None."""
    if value is None:
        return None
    value = value.strip()
    return value or None


def parse_amount(raw: Optional[str]) -> Optional[Decimal]:
    """
    Parse "$1,250.00" style amounts. Returns None unless the value is a
    finite number greater than zero.
    """
    cleaned = _AMOUNT_NOISE.sub("", raw or "")
    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        return None
    if not value.is_finite() or value <= 0:
        return None
    return value


def parse_date(raw: Optional[str]) -> Optional[date]:
    """
    Parse M/D/YYYY (optionally followed by a time) or YYYY-MM-DD.

    Returns None for anything else, including impossible dates like 2/30/2024.
    """
    raw = (raw or "").strip()
    try:
        match = _US_DATE.match(raw)
        if match:
            month, day, year = match.groups()
            return date(int(year), int(month), int(day))
        match = _ISO_DATE.match(raw)
        if match:
            year, month, day = match.groups()
            return date(int(year), int(month), int(day))
    except ValueError:
        return None
    return None


class DisbursementCsvParser(ABC):
    """Base class for provider-specific CSV dialects."""

    amount_header = "Amount"

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Registry key (e.g., 'schwab', 'morgan_stanley')."""
        ...

    @property
    @abstractmethod
    def required_headers(self) -> tuple[str, ...]:
        ...

    @property
    @abstractmethod
    def name_header(self) -> str:
        """Organization-name column. Its absence aborts the parse."""
        ...

    @property
    @abstractmethod
    def date_header(self) -> str:
        ...

    def should_skip(self, record: dict[str, str], result: ParseResult) -> bool:
        """Return True to drop a row before validation. Default keeps every row."""
        return False

    @abstractmethod
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
        ...

    def parse(self, file_content: str, lookup=None) -> ParseResult:
        """
        Parse a provider export.

        Args:
            file_content: Entire CSV file as text
            lookup: Optional EinLookupIndex for providers without tax IDs

        Returns:
            ParseResult; no rows when the organization-name column is missing
        """
        result = ParseResult()
        table = read_csv(file_content, result.errors)

        for required in self.required_headers:
            if required not in table.headers:
                result.errors.append(f'Missing required column: "{required}"')

        if self.name_header not in table.headers:
            return result

        for row_number, record in table.records:
            if self.should_skip(record, result):
                continue

            org_name = clean(record.get(self.name_header))
            if not org_name:
                continue

            amount = parse_amount(record.get(self.amount_header))
            if amount is None:
                result.errors.append(f'Skipped "{org_name}": invalid amount')
                result.skipped_invalid += 1
                continue

            raw_date = record.get(self.date_header) or ""
            date_paid = parse_date(raw_date)
            if date_paid is None:
                result.errors.append(f'Skipped "{org_name}": invalid date "{raw_date.strip()}"')
                result.skipped_invalid += 1
                continue

            result.rows.append(self.build_row(record, row_number, org_name, amount, date_paid, lookup, result))

        if not result.rows and not result.errors:
            result.errors.append("No valid rows found in CSV")

        return result
