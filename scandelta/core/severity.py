"""Scanner severity levels and bucket counting."""

from __future__ import annotations

from collections.abc import Iterable
from enum import IntEnum


class Severity(IntEnum):
    INFO = 0
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4

    @property
    def label(self) -> str:
        return self.name.capitalize()

    @property
    def bucket(self) -> str:
        return self.name.lower()

    @classmethod
    def coerce(cls, value: int) -> "Severity":
        """Map any integer onto a level; out-of-range values count as info."""
        try:
            return cls(value)
        except ValueError:
            return cls.INFO


BUCKETS: tuple[str, ...] = ("critical", "high", "medium", "low", "info")


def count_buckets(severities: Iterable[int]) -> dict[str, int]:
    """Count severities per bucket name (critical, high, medium, low, info)."""
    counts = dict.fromkeys(BUCKETS, 0)
    for value in severities:
        counts[Severity.coerce(value).bucket] += 1
    return counts


def severity_label(value: int) -> str:
    try:
        return Severity(value).label
    except ValueError:
        return "Unknown"
