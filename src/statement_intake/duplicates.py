"""Duplicate detection for freshly parsed transactions.

Each new record is compared against the caller's existing records with three
escalating signals:

1. **Bank identifier** -- the same OFX ``FITID`` is the strongest signal,
   regardless of date, amount or description.
2. **Exact** -- same calendar day, same absolute amount, identical
   normalized description.
3. **Fuzzy** -- dates within a tolerance, amounts within a tolerance, and
   descriptions at least ``min_similarity`` percent similar by edit
   distance. Only computed when no exact match exists.

Detection is advisory: it flags records, the caller decides what to keep.
"""

from __future__ import annotations

import math
from datetime import date

from statement_intake.models import (
    DuplicateDetection,
    DuplicateMatch,
    DuplicateSettings,
    DuplicateStats,
    ParsedTransaction,
    StoredTransaction,
)
from statement_intake.normalize import normalize_description


def levenshtein_distance(s1: str, s2: str) -> int:
    """Classic edit distance (insert, delete, substitute all cost 1)."""
    if len(s1) < len(s2):
        s1, s2 = s2, s1
    previous = list(range(len(s2) + 1))
    for i, c1 in enumerate(s1, start=1):
        current = [i]
        for j, c2 in enumerate(s2, start=1):
            cost = 0 if c1 == c2 else 1
            current.append(
                min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + cost,
                )
            )
        previous = current
    return previous[-1]


def calculate_string_similarity(str1: str, str2: str) -> int:
    """Similarity of two strings as an integer percentage (0-100).

    Compared case-insensitively after trimming. Two empty strings are 100%
    similar; an empty and a non-empty string are 0% similar.
    """
    s1 = str1.lower().strip()
    s2 = str2.lower().strip()
    if s1 == s2:
        return 100
    if not s1 or not s2:
        return 0

    distance = levenshtein_distance(s1, s2)
    max_len = max(len(s1), len(s2))
    return math.floor((1 - distance / max_len) * 100 + 0.5)


def _days_apart(d1: date, d2: date) -> int:
    return abs((d1 - d2).days)


def find_exact_duplicates(
    new: ParsedTransaction,
    existing: list[StoredTransaction],
) -> list[DuplicateMatch]:
    """Existing records with the same day, absolute amount and description."""
    matches: list[DuplicateMatch] = []
    new_desc = normalize_description(new.description)

    for stored in existing:
        if stored.purchase_date != new.purchase_date:
            continue
        if new.amount != abs(stored.amount):
            continue
        if normalize_description(stored.description) == new_desc:
            matches.append(
                DuplicateMatch(
                    existing=stored,
                    new=new,
                    similarity=100,
                    reason="Same date, amount and description",
                )
            )
    return matches


def find_fuzzy_duplicates(
    new: ParsedTransaction,
    existing: list[StoredTransaction],
    settings: DuplicateSettings | None = None,
) -> list[DuplicateMatch]:
    """Existing records that are close in date and amount and similar in text.

    Returns:
        Matches sorted by similarity, highest first. Ties keep the order of
        *existing*.
    """
    if settings is None:
        settings = DuplicateSettings()

    matches: list[DuplicateMatch] = []
    new_desc = normalize_description(new.description)

    for stored in existing:
        if _days_apart(new.purchase_date, stored.purchase_date) > settings.date_tolerance_days:
            continue
        if abs(new.amount - abs(stored.amount)) > settings.amount_tolerance_cents:
            continue

        similarity = calculate_string_similarity(new_desc, normalize_description(stored.description))
        if similarity >= settings.min_similarity:
            matches.append(
                DuplicateMatch(
                    existing=stored,
                    new=new,
                    similarity=similarity,
                    reason=f"Close date, similar amount, description {similarity}% similar",
                )
            )

    matches.sort(key=lambda m: m.similarity, reverse=True)
    return matches


def find_duplicate_by_fit_id(
    fit_id: str,
    existing: list[StoredTransaction],
) -> StoredTransaction | None:
    """First existing record carrying the same bank-issued identifier."""
    for stored in existing:
        if stored.fit_id == fit_id:
            return stored
    return None


def detect_all_duplicates(
    new: ParsedTransaction,
    existing: list[StoredTransaction],
    settings: DuplicateSettings | None = None,
) -> DuplicateDetection:
    """Run all three signals for one new record.

    Exact matches supersede fuzzy ones: fuzzy matching only runs when no
    exact match was found.
    """
    fit_id_match = None
    if new.fit_id:
        fit_id_match = find_duplicate_by_fit_id(new.fit_id, existing)

    exact = find_exact_duplicates(new, existing)
    fuzzy = [] if exact else find_fuzzy_duplicates(new, existing, settings)

    return DuplicateDetection(
        exact_matches=exact,
        fuzzy_matches=fuzzy,
        fit_id_match=fit_id_match,
    )


def detect_duplicates_batch(
    new_transactions: list[ParsedTransaction],
    existing: list[StoredTransaction],
    settings: DuplicateSettings | None = None,
) -> dict[int, DuplicateDetection]:
    """Detect duplicates for a batch of new records.

    Returns:
        A dict from the index of each flagged record in *new_transactions*
        to its detection. Records with no signal are absent.
    """
    results: dict[int, DuplicateDetection] = {}
    for index, new in enumerate(new_transactions):
        detection = detect_all_duplicates(new, existing, settings)
        if detection.has_duplicates:
            results[index] = detection
    return results


def get_duplicate_stats(batch: dict[int, DuplicateDetection]) -> DuplicateStats:
    """Count flagged records per signal type."""
    stats = DuplicateStats(total=len(batch))
    for detection in batch.values():
        if detection.fit_id_match is not None:
            stats.fit_id_count += 1
        if detection.exact_matches:
            stats.exact_count += 1
        if detection.fuzzy_matches:
            stats.fuzzy_count += 1
    return stats
