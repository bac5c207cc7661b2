"""Tests for the provider CSV dialects and the EIN lookup table."""

from datetime import date
from decimal import Decimal

import pytest
from grant_import.models import EinLookupEntry
from grant_import.parsers import (
    EinLookupIndex,
    MorganStanleyParser,
    SchwabParser,
    detect_provider,
    get_parser,
    normalize_for_lookup,
    parse_ein_lookup_csv,
)
from grant_import.parsers.base import parse_amount, parse_date, read_csv

MS_HEADER = "Grant Recipient,Tax ID,Amount,Date Paid\n"
SCHWAB_HEADER = "Requested Date,Status,Charity Name,Amount\n"


@pytest.fixture
def lookup(ein_lookup_csv):
    entries, errors = parse_ein_lookup_csv(ein_lookup_csv)
    assert errors == []
    return EinLookupIndex.from_entries(entries)


# ─── Shared helpers ───────────────────────────────────────────────────────────


class TestParseAmount:
    @pytest.mark.parametrize(
        "raw,expected",
        [("$1,000.00", Decimal("1000.00")), ("250", Decimal("250")), (" $ 75.5 ", Decimal("75.5"))],
    )
    def test_valid(self, raw, expected):
        assert parse_amount(raw) == expected

    @pytest.mark.parametrize("raw", ["", "abc", "0", "-50", "$0.00", "NaN", "Infinity", None])
    def test_invalid(self, raw):
        assert parse_amount(raw) is None


class TestParseDate:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("3/15/2024", date(2024, 3, 15)),
            ("03/05/2024", date(2024, 3, 5)),
            ("01/15/2024 10:30 AM", date(2024, 1, 15)),
            ("2024-04-01", date(2024, 4, 1)),
        ],
    )
    def test_valid(self, raw, expected):
        assert parse_date(raw) == expected

    @pytest.mark.parametrize("raw", ["", "2/30/2024", "13/01/2024", "March 3, 2024", "2024/04/01", "15.03.2024"])
    def test_invalid(self, raw):
        assert parse_date(raw) is None


class TestReadCsv:
    def test_bom_and_blank_lines(self):
        errors = []
        table = read_csv("\ufeffName , Amount\n\nAcme,10\n\n", errors)
        assert table.headers == ["Name", "Amount"]
        assert table.records == [(1, {"Name": "Acme", "Amount": "10"})]
        assert errors == []

    def test_field_count_warnings(self):
        errors = []
        table = read_csv("A,B\n1,2,3\n4\n", errors)
        assert errors == [
            "Row 1: Too many fields: expected 2 fields but parsed 3",
            "Row 2: Too few fields: expected 2 fields but parsed 1",
        ]
        assert table.records[1] == (2, {"A": "4", "B": ""})


# ─── Morgan Stanley ───────────────────────────────────────────────────────────


class TestMorganStanleyParser:
    def test_parses_rows(self, morgan_stanley_csv):
        result = MorganStanleyParser().parse(morgan_stanley_csv)

        assert result.errors == []
        assert [r.org_name for r in result.rows] == ["Partners In Health", "Doctors Without Borders"]
        pih = result.rows[0]
        assert pih.ein == "04-2694280"
        assert pih.amount == Decimal("1000.00")
        assert pih.date_paid == date(2024, 3, 15)
        assert pih.purpose == "General support"
        assert pih.full_address() == "800 Boylston St, Boston, MA, 02199"
        assert result.rows[1].full_address() is None
        assert result.rows[1].purpose is None

    def test_non_grant_types_skipped(self, morgan_stanley_csv):
        result = MorganStanleyParser().parse(morgan_stanley_csv)
        assert result.skipped_non_grant == 1
        assert "Account Fee" not in [r.org_name for r in result.rows]

    def test_invalid_amount_and_date_are_warnings(self):
        content = MS_HEADER + (
            "Bad Amount Org,12-3456789,abc,1/1/2024\n"
            "Bad Date Org,12-3456789,100,2/30/2024\n"
            "Good Org,12-3456789,100,1/1/2024\n"
        )
        result = MorganStanleyParser().parse(content)
        assert [r.org_name for r in result.rows] == ["Good Org"]
        assert result.errors == [
            'Skipped "Bad Amount Org": invalid amount',
            'Skipped "Bad Date Org": invalid date "2/30/2024"',
        ]
        assert result.skipped_invalid == 2
        assert not result.fatal

    def test_blank_names_skipped_silently(self):
        result = MorganStanleyParser().parse(MS_HEADER + " ,12-3456789,100,1/1/2024\nAcme,,100,1/1/2024\n")
        assert [r.org_name for r in result.rows] == ["Acme"]
        assert result.errors == []
        assert result.rows[0].ein is None

    def test_malformed_tax_id_kept_with_warning(self):
        result = MorganStanleyParser().parse(MS_HEADER + "Acme,12-345,100,1/1/2024\n")
        assert result.rows[0].ein == "12-345"
        assert len(result.errors) == 1
        assert result.errors[0].startswith('Row 1: Tax ID "12-345" for "Acme" is malformed')

    def test_missing_optional_header_is_reported(self):
        result = MorganStanleyParser().parse("Grant Recipient,Amount,Date Paid\nAcme,100,1/1/2024\n")
        assert result.errors == ['Missing required column: "Tax ID"']
        assert len(result.rows) == 1

    def test_missing_name_column_is_fatal(self):
        result = MorganStanleyParser().parse("Recipient,Tax ID,Amount,Date Paid\nAcme,,100,1/1/2024\n")
        assert result.rows == []
        assert 'Missing required column: "Grant Recipient"' in result.errors
        assert result.fatal

    def test_header_only_file(self):
        result = MorganStanleyParser().parse(MS_HEADER)
        assert result.rows == []
        assert result.errors == ["No valid rows found in CSV"]

    def test_bom_header(self):
        result = MorganStanleyParser().parse("\ufeff" + MS_HEADER + "Acme,,100,1/1/2024\n")
        assert len(result.rows) == 1


# ─── Schwab ───────────────────────────────────────────────────────────────────


class TestSchwabParser:
    def test_lookup_resolves_longer_name(self, schwab_csv, lookup):
        """"Partners In Health, A Nonprofit Corporation" resolves through the prefix rule."""
        result = SchwabParser().parse(schwab_csv, lookup=lookup)
        pih = result.rows[0]
        assert pih.org_name == "Partners In Health, A Nonprofit Corporation"
        assert pih.ein == "04-2694280"
        assert pih.amount == Decimal("500.00")
        assert pih.date_paid == date(2024, 1, 15)
        assert pih.submitted_by == "Jane Donor"

    @pytest.mark.parametrize("status", ["Canceled", "Cancelled", "CANCELED", " canceled "])
    def test_canceled_rows_never_appear(self, lookup, status):
        content = SCHWAB_HEADER + f"02/01/2024,{status},Partners In Health,$100.00\n"
        result = SchwabParser().parse(content, lookup=lookup)
        assert result.rows == []
        assert result.skipped_canceled == 1

    def test_canceled_row_with_invalid_amount_is_still_silent(self):
        result = SchwabParser().parse(SCHWAB_HEADER + "not a date,Canceled,,abc\n")
        assert result.skipped_canceled == 1
        assert result.errors == ["No valid rows found in CSV"]

    def test_unmatched_names_deduplicated(self, lookup):
        content = SCHWAB_HEADER + (
            "02/03/2024,Completed,Unknown Charity,$75.00\n"
            "02/04/2024,Completed,Unknown Charity,$25.00\n"
            "02/05/2024,Completed,Another Unknown,$25.00\n"
        )
        result = SchwabParser().parse(content, lookup=lookup)
        assert result.unmatched_names == ["Unknown Charity", "Another Unknown"]
        assert all(r.ein is None for r in result.rows)

    def test_without_lookup_every_name_is_unmatched(self, schwab_csv):
        result = SchwabParser().parse(schwab_csv)
        assert len(result.unmatched_names) == 2
        assert len(result.rows) == 2

    def test_missing_submitted_by_column(self):
        result = SchwabParser().parse(SCHWAB_HEADER + "02/03/2024,Completed,Acme,$75.00\n")
        assert result.rows[0].submitted_by is None


# ─── Registry ─────────────────────────────────────────────────────────────────


class TestRegistry:
    def test_get_parser(self):
        assert isinstance(get_parser("schwab"), SchwabParser)
        assert isinstance(get_parser("morgan_stanley"), MorganStanleyParser)

    def test_unknown_provider(self):
        with pytest.raises(ValueError, match="Unknown provider 'fidelity'"):
            get_parser("fidelity")

    def test_detect_provider(self, morgan_stanley_csv, schwab_csv):
        assert detect_provider(morgan_stanley_csv) == "morgan_stanley"
        assert detect_provider("\ufeff" + schwab_csv) == "schwab"
        assert detect_provider("Name,Amount\nAcme,1\n") is None
        assert detect_provider("") is None


# ─── EIN lookup ───────────────────────────────────────────────────────────────


class TestEinLookup:
    def test_normalize_for_lookup_keeps_legal_words(self):
        assert normalize_for_lookup("  Partners In Health, Inc. ") == "partners in health inc"

    def test_parse_lookup_csv(self):
        entries, errors = parse_ein_lookup_csv("Charity Name,EIN,Type\nAcme,,\n,12-3456789,Health\n")
        assert errors == []
        assert entries == [EinLookupEntry(canonical_name="Acme", ein=None, type=None)]

    def test_exact_match(self, lookup):
        assert lookup.lookup("doctors without borders").ein == "13-3433452"

    def test_reverse_prefix(self, lookup):
        """A shorter export name finds the longer reference name."""
        assert lookup.lookup("Partners In").ein == "04-2694280"

    def test_prefix_must_end_on_a_word(self):
        index = EinLookupIndex.from_entries([EinLookupEntry(canonical_name="Red Cross", ein="53-0196605")])
        assert index.lookup("Red Crossing Ministries") is None
        assert index.lookup("Red Cross of Greater Boston").ein == "53-0196605"

    def test_no_containment_match(self, lookup):
        """Only prefixes match; a name with extra leading words does not."""
        assert lookup.lookup("The Partners In Health") is None

    def test_later_entry_replaces_earlier(self):
        index = EinLookupIndex.from_entries(
            [
                EinLookupEntry(canonical_name="Acme", ein="11-1111112"),
                EinLookupEntry(canonical_name="ACME", ein="22-2222223"),
            ]
        )
        assert len(index) == 1
        assert index.lookup("acme").ein == "22-2222223"

    def test_miss(self, lookup):
        assert lookup.lookup("") is None
        assert lookup.lookup("Unknown Charity") is None
