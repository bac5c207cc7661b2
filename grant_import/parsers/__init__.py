"""
Provider CSV parsers.

This module contains parsers for:
- morgan_stanley: Morgan Stanley DAF history (carries tax IDs)
- schwab: Schwab Charitable grants history (EINs from the lookup table)
- ein_lookup: the charity name -> EIN reference file
"""

from typing import Optional

from .base import DisbursementCsvParser, ParseResult, read_csv
from .ein_lookup import EinLookupIndex, normalize_for_lookup, parse_ein_lookup_csv
from .morgan_stanley import MorganStanleyParser
from .schwab import SchwabParser

PARSERS: dict[str, type[DisbursementCsvParser]] = {
    MorganStanleyParser.provider_name: MorganStanleyParser,
    SchwabParser.provider_name: SchwabParser,
}


def get_parser(provider: str) -> DisbursementCsvParser:
    """Instantiate the parser registered under ``provider``."""
    try:
        return PARSERS[provider]()
    except KeyError:
        raise ValueError(f"Unknown provider '{provider}' (expected one of: {', '.join(sorted(PARSERS))})") from None


def detect_provider(file_content: str) -> Optional[str]:
    """Guess the provider from the header row, by organization-name column."""
    headers = set(read_csv(file_content, []).headers)
    for key, parser_cls in PARSERS.items():
        if parser_cls.name_header in headers:
            return key
    return None


__all__ = [
    "PARSERS",
    "DisbursementCsvParser",
    "EinLookupIndex",
    "MorganStanleyParser",
    "ParseResult",
    "SchwabParser",
    "detect_provider",
    "get_parser",
    "normalize_for_lookup",
    "parse_ein_lookup_csv",
]
