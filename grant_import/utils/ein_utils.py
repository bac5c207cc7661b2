"""
EIN (Employer Identification Number) utilities.

Provider exports are inconsistent about tax ID formatting: some carry
XX-XXXXXXX, some strip the hyphen, some pad with spaces, and a few carry
values that are not EINs at all. Matching only ever compares the hyphen-free
form returned by ein_match_key().
"""

import re
from typing import Optional, Tuple


def normalize_ein(ein: str) -> Optional[str]:
    """
    Normalize EIN to standard XX-XXXXXXX format.

    Args:
        ein: EIN string in any format (with or without hyphen)

    Returns:
        Normalized EIN in XX-XXXXXXX format, or None if invalid

    Examples:
        >>> normalize_ein("042694280")
        '04-2694280'
        >>> normalize_ein("04-2694280")
        '04-2694280'
        >>> normalize_ein("invalid")
    """
    if not ein:
        return None

    digits = re.sub(r"\D", "", str(ein))
    if len(digits) != 9:
        return None

    # 00 is not an IRS campus prefix
    if int(digits[:2]) < 1:
        return None

    return f"{digits[:2]}-{digits[2:]}"


def ein_match_key(ein: Optional[str]) -> Optional[str]:
    """
    Key used to compare tax IDs across the store and CSV rows.

    Hyphens and whitespace are dropped; nothing else is validated, so two
    identical malformed values still match each other.

    Examples:
        >>> ein_match_key("04-2694280")
        '042694280'
        >>> ein_match_key(" 04 2694280 ")
        '042694280'
        >>> ein_match_key("  ")
    """
    if ein is None:
        return None
    key = re.sub(r"[\s-]", "", str(ein))
    return key or None


def compare_eins(ein1: Optional[str], ein2: Optional[str]) -> bool:
    """True if both EINs produce the same non-empty match key."""
    key1 = ein_match_key(ein1)
    return key1 is not None and key1 == ein_match_key(ein2)


def validate_and_format(ein: str) -> Tuple[bool, Optional[str], Optional[str]]:
    """
    Validate EIN and return formatted version with error message.

    Args:
        ein: EIN to validate

    Returns:
        Tuple of (is_valid, formatted_ein, error_message)

    Examples:
        >>> validate_and_format("042694280")
        (True, '04-2694280', None)
        >>> validate_and_format("12345")
        (False, None, 'EIN must be exactly 9 digits (got 5)')
    """
    if not ein:
        return False, None, "EIN is required"

    ein = str(ein).strip()

    if re.search(r"[^\d\s-]", ein):
        return False, None, "EIN may only contain digits and a hyphen"

    digits = re.sub(r"\D", "", ein)
    if len(digits) != 9:
        return False, None, f"EIN must be exactly 9 digits (got {len(digits)})"

    if len(set(digits)) == 1:
        return False, None, "EIN cannot be all same digit"

    formatted = normalize_ein(digits)
    if formatted is None:
        return False, None, "EIN prefix is not a valid IRS prefix"

    return True, formatted, None
