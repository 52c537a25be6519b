"""Time-of-day range helpers shared by the conflict detector."""

from __future__ import annotations

DEFAULT_DURATION_MINUTES = 120


def time_to_minutes(value: str) -> int:
    """Convert an ``HH:MM`` string to minutes since midnight."""
    hours, _, minutes = value.partition(":")
    return int(hours or 0) * 60 + int(minutes or 0)


def resolve_range(
    start_time: str,
    end_time: str | None,
    default_duration_minutes: int = DEFAULT_DURATION_MINUTES,
) -> tuple[int, int]:
    """Return the half-open ``[start, end)`` minute range of a time slot.

    A missing *end_time* means the slot lasts *default_duration_minutes*.
    """
    start = time_to_minutes(start_time)
    if end_time is None:
        return start, start + default_duration_minutes
    return start, time_to_minutes(end_time)


def ranges_overlap(first: tuple[int, int], second: tuple[int, int]) -> bool:
    """Overlap rule: conflict if first.start < second.end AND second.start < first.end.

    Exact boundary touches (end == start) are NOT considered conflicts.
    """
    return first[0] < second[1] and second[0] < first[1]
