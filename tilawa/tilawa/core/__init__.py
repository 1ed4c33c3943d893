"""
Core modules for Tilawa.

This package contains the business logic for:
- Juz boundaries and verse lookup
- The Friday-to-Thursday rotation week
- Juz assignment ledger and transfer requests

Primary API:
    from tilawa.core import JuzLedger, TransferProtocol, juz_of

    juz_of(2, 142)  # 2
    ledger = JuzLedger(db)
    assignment = ledger.join(community_id, member_id=5)
"""

# Reference lookups
from tilawa.core.juz import (
    JuzRange,
    TOTAL_JUZ,
    is_ayah_in_juz,
    iter_juz_verses,
    juz_of,
    juz_range,
    total_ayahs_in_juz,
)
from tilawa.core.verses import VerseRef, format_time, normalize_range, verse_list
from tilawa.core.weekly import week_start, week_start_date

# Ledger and transfers
from tilawa.core.ledger import JuzLedger
from tilawa.core.transfers import TransferProtocol

__all__ = [
    # Reference lookups
    "JuzRange",
    "TOTAL_JUZ",
    "is_ayah_in_juz",
    "iter_juz_verses",
    "juz_of",
    "juz_range",
    "total_ayahs_in_juz",
    "VerseRef",
    "format_time",
    "normalize_range",
    "verse_list",
    "week_start",
    "week_start_date",
    # Ledger and transfers
    "JuzLedger",
    "TransferProtocol",
]
