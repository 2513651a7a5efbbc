"""Sign normalization by file source.

Each account exports its statement with its own sign convention. A
file-source tag (configured per account) selects one of three rules:

- **natural**: the sign in the file is the economic sign.
- **always_expense**: every line is money going out (internal cash
  withdrawal ledgers), whatever sign the file shows.
- **inverted**: credit cards report spending as positive numbers; it is an
  expense in this system's convention, so the sign is flipped.

An unknown tag is a configuration error, not bad input, and raises
immediately.
"""

from __future__ import annotations

from dataclasses import dataclass

from statement_intake.models import EXPENSE, INCOME

NATURAL = "natural"
ALWAYS_EXPENSE = "always_expense"
INVERTED = "inverted"

DEFAULT_SIGN_GROUPS: dict[str, list[str]] = {
    NATURAL: ["itau", "nubank_pj", "nubank_pessoal", "inter"],
    ALWAYS_EXPENSE: ["sangria"],
    INVERTED: ["cartao_master", "cartao_visa"],
}


class UnknownFileSourceError(ValueError):
    """Raised for a file-source tag that belongs to no sign group."""


@dataclass
class SignedAmount:
    """A signed amount in cents and the transaction type it implies."""

    amount: int
    transaction_type: str


def sign_group(file_source: str, groups: dict[str, list[str]] | None = None) -> str:
    """Return the sign group a file-source tag belongs to.

    Raises:
        UnknownFileSourceError: If the tag is in no group.
    """
    if groups is None:
        groups = DEFAULT_SIGN_GROUPS
    for group in (NATURAL, ALWAYS_EXPENSE, INVERTED):
        if file_source in groups.get(group, []):
            return group
    raise UnknownFileSourceError(f"Unknown file source: {file_source!r}")


def normalize_sign(
    amount: int,
    file_source: str,
    groups: dict[str, list[str]] | None = None,
) -> SignedAmount:
    """Map a raw signed amount to its economic sign for *file_source*.

    Args:
        amount: Amount in cents with the sign as it appears in the file.
        file_source: Account file-source tag, e.g. ``"cartao_visa"``.
        groups: Sign-group membership. Defaults to
            :data:`DEFAULT_SIGN_GROUPS`.

    Returns:
        The signed amount (negative for expenses) and its type.

    Raises:
        UnknownFileSourceError: If *file_source* is not configured.
    """
    group = sign_group(file_source, groups)

    if group == NATURAL:
        return SignedAmount(amount, INCOME if amount >= 0 else EXPENSE)
    if group == ALWAYS_EXPENSE:
        return SignedAmount(-abs(amount), EXPENSE)
    return SignedAmount(-amount, EXPENSE if amount >= 0 else INCOME)
