"""Learned classification history.

Every time a person assigns or corrects a category, the (description,
category) pair is recorded: created at count 1 the first time, incremented
afterwards. The history tier of the cascade reads these counts.

:class:`HistoryStore` keeps the patterns in memory and serializes the
insert-or-increment under a lock, so concurrent corrections of the same
description never lose an update. Loading and saving to ``history.toml``
lives in :mod:`statement_intake.config`.
"""

from __future__ import annotations

import threading
from datetime import datetime

from statement_intake.models import LearnedPattern


def _same_description(a: str, b: str) -> bool:
    return a.strip().lower() == b.strip().lower()


class HistoryStore:
    """In-memory learned patterns with atomic insert-or-increment.

    Args:
        patterns: Initial patterns, e.g. from ``config.load_history()``.
    """

    def __init__(self, patterns: list[LearnedPattern] | None = None) -> None:
        self._patterns: list[LearnedPattern] = list(patterns or [])
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._patterns)

    def patterns(self) -> list[LearnedPattern]:
        """Snapshot of all patterns, most used first."""
        with self._lock:
            return sorted(self._patterns, key=lambda p: p.count, reverse=True)

    def record(
        self,
        description: str,
        category_id: int,
        now: datetime | None = None,
    ) -> LearnedPattern:
        """Insert the pair at count 1, or increment its count.

        ``last_used`` is refreshed either way. Counts never decrease.

        Returns:
            The created or updated pattern.
        """
        if now is None:
            now = datetime.now()
        description = description.strip()

        with self._lock:
            for pattern in self._patterns:
                if pattern.category_id == category_id and _same_description(
                    pattern.description, description
                ):
                    pattern.count += 1
                    pattern.last_used = now
                    return pattern

            next_id = max((p.id for p in self._patterns), default=0) + 1
            pattern = LearnedPattern(
                id=next_id,
                description=description,
                category_id=category_id,
                count=1,
                last_used=now,
                created_at=now,
            )
            self._patterns.append(pattern)
            return pattern

    def delete(self, pattern_id: int) -> None:
        """Remove a pattern.

        Raises:
            KeyError: If no pattern has that id.
        """
        with self._lock:
            for i, pattern in enumerate(self._patterns):
                if pattern.id == pattern_id:
                    del self._patterns[i]
                    return
        raise KeyError(pattern_id)

    def update(self, pattern_id: int, description: str, category_id: int) -> LearnedPattern:
        """Edit a pattern's description and category, keeping its count.

        Raises:
            ValueError: If *description* is blank.
            KeyError: If no pattern has that id.
        """
        if not description.strip():
            raise ValueError("Description cannot be empty")
        with self._lock:
            for pattern in self._patterns:
                if pattern.id == pattern_id:
                    pattern.description = description.strip()
                    pattern.category_id = category_id
                    return pattern
        raise KeyError(pattern_id)
