from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Mapping

from prayer_dispatch.errors import FormatError
from prayer_dispatch.timewindow import MINUTES_PER_DAY, parse_to_offset, rollover_adjust

logger = logging.getLogger(__name__)

START_WINDOW_MINUTES = 5
ENDING_SOON_MIN = 17
ENDING_SOON_MAX = 23
ENDING_SOON_WINDOW_MINUTES = ENDING_SOON_MAX - ENDING_SOON_MIN + 1

PRAYERS = ("Fajr", "Dhuhr", "Asr", "Maghrib", "Isha")

# A prayer ends when its successor begins. Fixed table, not derived from sorted times.
PRAYER_END_SUCCESSOR = {
    "Fajr": "Sunrise",
    "Dhuhr": "Asr",
    "Asr": "Maghrib",
    "Maghrib": "Isha",
    "Isha": "Fajr",
}

DUA_SLOTS = (
    ("morning", 7),
    ("midday", 13),
    ("evening", 17),
    ("night", 21),
)

PRAYER_START = "prayer_start"
PRAYER_ENDING = "prayer_ending"
DUA_REMINDERS = "dua_reminders"
OPT_IN_FLAGS = (PRAYER_START, PRAYER_ENDING, DUA_REMINDERS)


class WindowKind(enum.Enum):
    START = "start"
    ENDING_SOON = "ending"
    PERIODIC = "periodic"


@dataclass(frozen=True)
class ActiveWindow:
    kind: WindowKind
    name: str
    category: str

    @property
    def detail_type(self) -> str:
        if self.kind is WindowKind.PERIODIC:
            return self.category
        return f"{self.name}_{self.kind.value}"


def is_start_active(now: int, event_start: int) -> bool:
    return (now - event_start) % MINUTES_PER_DAY < START_WINDOW_MINUTES


def is_ending_soon_active(now: int, next_event_start: int, current_event_start: int) -> bool:
    adjusted_next = rollover_adjust(next_event_start, current_event_start)
    if now < current_event_start:
        # now already belongs to the day after the current event began
        now += MINUTES_PER_DAY
    minutes_until_end = adjusted_next - now
    return ENDING_SOON_MIN <= minutes_until_end <= ENDING_SOON_MAX


def is_periodic_active(now: int, target_hour: int) -> bool:
    return (now - target_hour * 60) % MINUTES_PER_DAY < START_WINDOW_MINUTES


def to_event_set(timings: Mapping[str, str]) -> dict[str, int]:
    """Convert raw ``HH:MM`` timings to offsets, dropping unparseable entries."""
    events: dict[str, int] = {}
    for name, raw in timings.items():
        try:
            events[name] = parse_to_offset(raw)
        except FormatError as exc:
            logger.warning("Skipping event %s: %s", name, exc)
    return events


def _prayer_windows(now: int, prayer: str, events: Mapping[str, int], flags: Mapping[str, bool]) -> list[ActiveWindow]:
    found: list[ActiveWindow] = []
    start = events.get(prayer)
    if start is None:
        logger.warning("No start time for %s; skipping", prayer)
        return found

    if flags.get(PRAYER_START) and is_start_active(now, start):
        found.append(ActiveWindow(WindowKind.START, prayer, PRAYER_START))

    if flags.get(PRAYER_ENDING):
        successor = PRAYER_END_SUCCESSOR[prayer]
        end = events.get(successor)
        if end is None:
            logger.warning("No end time (%s) for %s; skipping ending-soon check", successor, prayer)
        elif is_ending_soon_active(now, end, start):
            found.append(ActiveWindow(WindowKind.ENDING_SOON, prayer, PRAYER_ENDING))
    return found


def evaluate_windows(now: int, events: Mapping[str, int], flags: Mapping[str, bool]) -> list[ActiveWindow]:
    """Every window that is hot at ``now`` for the categories the recipient opted into.

    Start and ending-soon bands are disjoint for sane timings, but a malformed
    event set can make both true for one prayer; both are returned.
    """
    active: list[ActiveWindow] = []
    for prayer in PRAYERS:
        active.extend(_prayer_windows(now, prayer, events, flags))

    if flags.get(DUA_REMINDERS):
        for slot, hour in DUA_SLOTS:
            if is_periodic_active(now, hour):
                active.append(ActiveWindow(WindowKind.PERIODIC, slot, f"dua_{slot}"))
    return active
