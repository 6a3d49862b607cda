"""Ovulation detection and derived views over a snapshot of records.

Everything here is pure: callers pass in the records (and the clock/time zone
where a calendar day matters) and get a fresh result back.
"""
from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Iterable, Sequence

from .const import MIN_RECORDS_FOR_DETECTION, RISE_THRESHOLD_HUNDREDTHS
from .helpers import CycleRecord, TemperatureRecord, calendar_day


def sorted_by_time(records: Iterable[TemperatureRecord]) -> list[TemperatureRecord]:
    return sorted(records, key=lambda r: r.timestamp)


def detect_ovulation(records: Iterable[TemperatureRecord]) -> dt.datetime | None:
    """Return the timestamp of the first reading of the earliest sustained rise.

    A window of three consecutive readings (by record, not by calendar day)
    qualifies when both the second and third readings are at least 0.4°F above
    the first. The first qualifying window wins and the second reading's
    timestamp is reported.
    """
    ordered = sorted_by_time(records)
    if len(ordered) < MIN_RECORDS_FOR_DETECTION:
        return None

    for i in range(len(ordered) - 2):
        baseline = ordered[i].temperature
        t2 = ordered[i + 1].temperature
        t3 = ordered[i + 2].temperature
        if (
            t2 - baseline >= RISE_THRESHOLD_HUNDREDTHS
            and t3 - baseline >= RISE_THRESHOLD_HUNDREDTHS
        ):
            return ordered[i + 1].timestamp

    return None


def last_cycle(cycles: Iterable[CycleRecord]) -> CycleRecord | None:
    return max(cycles, key=lambda c: c.start_date, default=None)


def days_since_last_cycle(
    cycles: Iterable[CycleRecord], now: dt.datetime, tz: dt.tzinfo
) -> int | None:
    """Calendar days between the most recent cycle start and `now`."""
    latest = last_cycle(cycles)
    if latest is None:
        return None
    return (calendar_day(now, tz) - latest.start_date).days


def temperature_series(
    records: Iterable[TemperatureRecord],
) -> list[tuple[dt.datetime, float]]:
    """(timestamp, °F) pairs in ascending time order, unmodified."""
    return [(r.timestamp, r.degrees) for r in sorted_by_time(records)]


@dataclass
class Metrics:
    date: dt.date
    latest: TemperatureRecord | None
    reading_count: int
    logged_today: bool
    ovulation_timestamp: dt.datetime | None
    ovulation_date: dt.date | None
    last_cycle_start: dt.date | None
    days_since_last_cycle: int | None


def calculate_metrics(
    records: Sequence[TemperatureRecord],
    cycles: Sequence[CycleRecord],
    now: dt.datetime,
    tz: dt.tzinfo,
) -> Metrics:
    today = calendar_day(now, tz)
    ordered = sorted_by_time(records)
    ovulation = detect_ovulation(ordered)
    latest_cycle = last_cycle(cycles)

    return Metrics(
        date=today,
        latest=ordered[-1] if ordered else None,
        reading_count=len(ordered),
        logged_today=any(calendar_day(r.timestamp, tz) == today for r in ordered),
        ovulation_timestamp=ovulation,
        ovulation_date=calendar_day(ovulation, tz) if ovulation else None,
        last_cycle_start=latest_cycle.start_date if latest_cycle else None,
        days_since_last_cycle=days_since_last_cycle(cycles, now, tz),
    )
