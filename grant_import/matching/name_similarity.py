"""
Organization name normalization and token-set similarity.

Provider exports and the foundation's own records spell the same charity in
different ways ("The Nature Conservancy, Inc." vs "Nature Conservancy").
Names are reduced to their distinctive words and compared as sets, so word
order and legal suffixes do not matter. Single-word names are compared
all-or-nothing, which is accepted.
"""

import re

from ..constants import LEGAL_SUFFIXES

_SUFFIX_PATTERN = re.compile(
    r"\b(?:" + "|".join(re.escape(s) for s in LEGAL_SUFFIXES) + r")\b\.?",
    re.IGNORECASE,
)
_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize_name(name: str) -> str:
    """
    Lowercase, drop legal-entity words and punctuation, collapse whitespace.

    Examples:
        >>> normalize_name("The Nature Conservancy, Inc.")
        'nature conservancy'
        >>> normalize_name("Doctors Without Borders USA")
        'doctors without borders usa'
    """
    if not name:
        return ""
    text = _SUFFIX_PATTERN.sub(" ", name.lower())
    text = _NON_ALNUM.sub("", text)
    return _WHITESPACE.sub(" ", text).strip()


def name_tokens(name: str) -> frozenset[str]:
    """Distinct words of the normalized name."""
    normalized = normalize_name(name)
    return frozenset(normalized.split()) if normalized else frozenset()


def similarity(a: str, b: str) -> float:
    """
    Jaccard index of the two names' token sets, in [0, 1].

    Returns 0.0 when neither name has any distinctive words.
    """
    tokens_a = name_tokens(a)
    tokens_b = name_tokens(b)
    union = tokens_a | tokens_b
    if not union:
        return 0.0
    return len(tokens_a & tokens_b) / len(union)


def names_differ(stored_name: str, csv_name: str) -> bool:
    """True if two names differ beyond case and surrounding whitespace."""
    return stored_name.strip().lower() != csv_name.strip().lower()
