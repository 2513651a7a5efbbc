"""Installment (parcel) detection and date reconstruction.

Card statements describe each parcel of a split purchase with a marker such
as ``UBER 3/6`` or ``LOJA PARC 02/10``. This module finds the marker, strips
it from the description, and rebuilds the original purchase date from the
parcel's payment date:

- ``original = payment - (current - 1) months``
- ``payment  = original + (current - 1) months``

The two are inverses, so re-projecting the original date forward yields the
same payment date for every parcel of the purchase.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date

from statement_intake.normalize import add_months

# Order matters: the parenthesized form must win over the bare form.
INSTALLMENT_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"\((\d{1,2})/(\d{1,2})\)"),
    re.compile(r"(\d{1,2})/(\d{1,2})"),
    re.compile(r"(\d{1,2})\s*DE\s*(\d{1,2})", re.IGNORECASE),
    re.compile(r"PARC\s*(\d{1,2})/(\d{1,2})", re.IGNORECASE),
]


@dataclass
class InstallmentInfo:
    """Result of scanning a description for a parcel marker."""

    is_installment: bool
    clean_description: str
    current: int | None = None
    total: int | None = None


def detect_installment(description: str) -> InstallmentInfo:
    """Look for a ``current/total`` parcel marker in *description*.

    A match is accepted only when ``1 <= current <= total``; otherwise the
    next pattern is tried.

    Returns:
        An :class:`InstallmentInfo`. When no marker is accepted,
        ``clean_description`` is the input unchanged.
    """
    for pattern in INSTALLMENT_PATTERNS:
        match = pattern.search(description)
        if match is None:
            continue
        current = int(match.group(1))
        total = int(match.group(2))
        if 0 < current <= total:
            clean = pattern.sub("", description, count=1).strip()
            return InstallmentInfo(
                is_installment=True,
                clean_description=clean,
                current=current,
                total=total,
            )
    return InstallmentInfo(is_installment=False, clean_description=description)


def original_purchase_date(payment_date: date, current: int) -> date:
    """Date of the first parcel, given parcel *current*'s payment date."""
    return add_months(payment_date, -(current - 1))


def installment_payment_date(original_date: date, current: int) -> date:
    """Payment date of parcel *current* for a purchase made on *original_date*."""
    return add_months(original_date, current - 1)


def apply_installment_dates(
    description: str,
    txn_date: date,
) -> tuple[InstallmentInfo, date, date, date | None]:
    """Detect a parcel marker and derive the record's dates.

    Returns:
        ``(info, purchase_date, payment_date, original_purchase_date)``.
        Without a marker both dates are *txn_date* and the original date is
        None.
    """
    info = detect_installment(description)
    if not info.is_installment or info.current is None:
        return info, txn_date, txn_date, None

    original = original_purchase_date(txn_date, info.current)
    payment = installment_payment_date(original, info.current)
    return info, original, payment, original
