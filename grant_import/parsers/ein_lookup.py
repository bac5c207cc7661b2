"""
Charity name -> EIN reference table.

Schwab exports carry no tax IDs, so the foundation keeps a side file
("Charity Name", "EIN", "Type") that maps the names Schwab prints to EINs.
Names in the export often carry extra words the reference file does not
("Partners In Health, A Nonprofit Corporation" vs "Partners In Health"), so a
miss on the exact name falls back to a word-boundary prefix match in either
direction.

The index is built once per import session and owned by it.
"""

import re
from typing import Iterable, Optional

from ..models import EinLookupEntry
from .base import clean, read_csv

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize_for_lookup(name: str) -> str:
    """Lowercase, drop punctuation, collapse whitespace. Keeps legal suffixes."""
    if not name:
        return ""
    text = _NON_ALNUM.sub("", name.lower())
    return _WHITESPACE.sub(" ", text).strip()


def _is_word_prefix(prefix: str, text: str) -> bool:
    return text.startswith(prefix + " ")


def parse_ein_lookup_csv(file_content: str) -> tuple[list[EinLookupEntry], list[str]]:
    """
    Parse the lookup CSV.

    Returns:
        (entries, errors). Rows without a charity name are skipped; blank
        EIN/Type cells become None.
    """
    errors: list[str] = []
    table = read_csv(file_content, errors, label="EIN lookup row")

    entries = []
    for _, record in table.records:
        name = clean(record.get("Charity Name"))
        if not name:
            continue
        entries.append(
            EinLookupEntry(
                canonical_name=name,
                ein=clean(record.get("EIN")),
                type=clean(record.get("Type")),
            )
        )

    return entries, errors


class EinLookupIndex:
    """Normalized charity name -> EinLookupEntry."""

    def __init__(self, entries: Optional[dict[str, EinLookupEntry]] = None):
        self._entries: dict[str, EinLookupEntry] = entries or {}

    @classmethod
    def from_entries(cls, entries: Iterable[EinLookupEntry]) -> "EinLookupIndex":
        """Build the index; a later entry with the same normalized name replaces the earlier one."""
        index: dict[str, EinLookupEntry] = {}
        for entry in entries:
            key = normalize_for_lookup(entry.canonical_name)
            if key:
                index[key] = entry
        return cls(index)

    def __len__(self) -> int:
        return len(self._entries)

    def lookup(self, charity_name: str) -> Optional[EinLookupEntry]:
        """
        Find the entry for a charity name.

        Exact normalized match first, then the first entry (file order) whose
        name is a whole-word prefix of the charity name or vice versa.
        """
        normalized = normalize_for_lookup(charity_name)
        if not normalized:
            return None

        exact = self._entries.get(normalized)
        if exact is not None:
            return exact

        for key, entry in self._entries.items():
            if _is_word_prefix(key, normalized) or _is_word_prefix(normalized, key):
                return entry

        return None
