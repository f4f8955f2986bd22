from __future__ import annotations

DAYS: tuple[str, ...] = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday")

TIME_SLOTS: tuple[str, ...] = ("09:00", "10:00", "11:00", "12:00", "13:00", "14:00", "15:00", "16:00")

LUNCH_SLOT = "12:00"

SLOT_MINUTES = 60

DAY_SHORT_MAP = {
    "Mon": "Monday",
    "Tue": "Tuesday",
    "Wed": "Wednesday",
    "Thu": "Thursday",
    "Fri": "Friday",
}

DAY_INDEX = {day: index for index, day in enumerate(DAYS)}
SLOT_INDEX = {slot: index for index, slot in enumerate(TIME_SLOTS)}


def normalize_day(value: str) -> str:
    day = value.strip()
    return DAY_SHORT_MAP.get(day, day)


def teaching_slots(max_daily_hours: int | None = None) -> tuple[str, ...]:
    """Non-lunch slots of a day in chronological order, capped at max_daily_hours."""
    slots = tuple(slot for slot in TIME_SLOTS if slot != LUNCH_SLOT)
    if max_daily_hours is None:
        return slots
    return slots[: max(0, max_daily_hours)]


def lab_slot_pairs(max_daily_hours: int | None = None) -> tuple[tuple[str, str], ...]:
    """Pairs of chronologically consecutive teaching slots (13:00 does not follow 11:00)."""
    eligible = set(teaching_slots(max_daily_hours))
    pairs = []
    for first, second in zip(TIME_SLOTS, TIME_SLOTS[1:]):
        if first in eligible and second in eligible:
            pairs.append((first, second))
    return tuple(pairs)


def next_slot(start_time: str) -> str | None:
    index = SLOT_INDEX.get(start_time)
    if index is None or index + 1 >= len(TIME_SLOTS):
        return None
    return TIME_SLOTS[index + 1]


def bucket_sort_key(day: str, start_time: str) -> tuple[int, int]:
    return (
        DAY_INDEX.get(day, len(DAYS)),
        SLOT_INDEX.get(start_time, len(TIME_SLOTS)),
    )
