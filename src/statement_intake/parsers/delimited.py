"""Helpers shared by the delimited-text statement parsers."""

from __future__ import annotations

from statement_intake.models import EXPENSE, INCOME
from statement_intake.normalize import strip_accents
from statement_intake.signs import normalize_sign, sign_group


def split_line(line: str, delimiter: str) -> list[str]:
    """Split one line into trimmed fields.

    A double quote toggles an "inside quotes" state; while inside quotes the
    delimiter is literal. Quote characters themselves are dropped.
    """
    fields: list[str] = []
    current: list[str] = []
    in_quotes = False
    for char in line:
        if char == '"':
            in_quotes = not in_quotes
        elif char == delimiter and not in_quotes:
            fields.append("".join(current).strip())
            current = []
        else:
            current.append(char)
    fields.append("".join(current).strip())
    return fields


def non_blank_lines(content: str) -> list[str]:
    """Split *content* into lines, dropping blank ones."""
    return [line for line in content.split("\n") if line.strip()]


def has_header(lines: list[str], keywords: tuple[str, ...]) -> bool:
    """True if the first line contains any keyword (case and accent blind)."""
    if not lines:
        return False
    first = strip_accents(lines[0].lower())
    return any(strip_accents(kw.lower()) in first for kw in keywords)


def check_file_source(file_source: str | None, groups: dict[str, list[str]] | None) -> None:
    """Fail fast on an unconfigured file source before any row is read."""
    if file_source:
        sign_group(file_source, groups)


def signed_to_record(
    cents: int,
    file_source: str | None,
    groups: dict[str, list[str]] | None,
) -> tuple[int, str]:
    """Turn a raw signed amount into ``(absolute_cents, transaction_type)``.

    Without a file source the file's own sign is used (non-negative is
    income).
    """
    if file_source:
        signed = normalize_sign(cents, file_source, groups)
        return abs(signed.amount), signed.transaction_type
    return abs(cents), INCOME if cents >= 0 else EXPENSE
