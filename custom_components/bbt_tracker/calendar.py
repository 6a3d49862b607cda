from __future__ import annotations

import datetime as dt
from typing import List, Optional

from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers.entity import DeviceInfo
from homeassistant.helpers.device_registry import DeviceEntryType
from homeassistant.util import dt as dt_util
from homeassistant.components.calendar import CalendarEntity, CalendarEvent

from .const import DOMAIN
from .helpers import format_temperature

# How far ahead we look when choosing the current/next event for .event
_LOOKAHEAD_DAYS_FOR_EVENT = 60


def _as_local_datetime(d: dt.date | dt.datetime, tz: dt.tzinfo) -> dt.datetime:
    """Return a timezone-aware local datetime for either a date or datetime."""
    if isinstance(d, dt.datetime):
        if d.tzinfo is None:
            return d.replace(tzinfo=tz)
        return d.astimezone(tz)
    # date -> local midnight
    return dt.datetime(d.year, d.month, d.day, tzinfo=tz)


def _all_day_event(day: dt.date, summary: str, description: str) -> CalendarEvent:
    # HA calendar uses an exclusive end, so an all-day event ends the next day
    return CalendarEvent(
        summary=summary,
        start=day,
        end=day + dt.timedelta(days=1),
        description=description,
    )


class BbtTrackerCalendar(CalendarEntity):
    """Calendar exposing logged cycle starts and the detected ovulation day."""

    _attr_has_entity_name = True

    def __init__(self, hass: HomeAssistant, entry_id: str, runtime) -> None:
        self.hass = hass
        self._entry_id = entry_id
        self._runtime = runtime
        self._attr_unique_id = f"{entry_id}_calendar"
        self._attr_name = "Calendar"
        self._event: Optional[CalendarEvent] = None

        self._attr_device_info = DeviceInfo(
            identifiers={(DOMAIN, entry_id)},
            name=runtime.name,
            manufacturer="Custom",
            model="BBT Tracker",
            entry_type=DeviceEntryType.SERVICE,
        )

    # ---------- Core Calendar API ----------

    @property
    def event(self) -> CalendarEvent | None:
        """Return the current or next event for HA to show as entity state."""
        return self._event

    async def async_added_to_hass(self) -> None:
        self.async_on_remove(self._runtime.records.async_add_listener(self._handle_records_changed))

    @callback
    def _handle_records_changed(self) -> None:
        self.async_schedule_update_ha_state(True)

    async def async_update(self) -> None:
        """Set .event to the current ongoing or next upcoming event."""
        tz = self._runtime.records.time_zone
        now = dt_util.now(tz)
        start = now - dt.timedelta(days=1)
        end = now + dt.timedelta(days=_LOOKAHEAD_DAYS_FOR_EVENT)
        events = await self.async_get_events(self.hass, start, end)

        current: Optional[CalendarEvent] = None
        upcoming: Optional[CalendarEvent] = None
        for ev in events:
            ev_start = _as_local_datetime(ev.start, tz)
            ev_end = _as_local_datetime(ev.end, tz)
            if ev_start <= now < ev_end and current is None:
                current = ev
            if ev_start >= now and upcoming is None:
                upcoming = ev
            if current and upcoming:
                break

        self._event = current or upcoming

    async def async_get_events(
        self,
        hass: HomeAssistant,
        start_date: dt.datetime,
        end_date: dt.datetime,
    ) -> List[CalendarEvent]:
        """Return events between start_date (inclusive) and end_date (exclusive)."""
        tz = self._runtime.records.time_zone

        start_date = _as_local_datetime(start_date, tz)
        end_date = _as_local_datetime(end_date, tz)

        candidates: List[CalendarEvent] = []

        for c in self._runtime.records.cycles:
            candidates.append(
                _all_day_event(c.start_date, "Cycle start", "First day of the menstrual cycle")
            )

        metrics = self._runtime.metrics()
        if metrics.ovulation_date:
            record = self._runtime.records.get_temperature(metrics.ovulation_date)
            description = "First day of a sustained temperature rise"
            if record:
                description += f" ({format_temperature(record.temperature)})"
            candidates.append(_all_day_event(metrics.ovulation_date, "Detected ovulation", description))

        events = [
            ev
            for ev in candidates
            if _as_local_datetime(ev.start, tz) < end_date
            and _as_local_datetime(ev.end, tz) > start_date
        ]
        events.sort(key=lambda ev: _as_local_datetime(ev.start, tz))
        return events


# ---------- Platform setup ----------

async def async_setup_entry(hass: HomeAssistant, entry, async_add_entities):
    """Set up the calendar entity for an entry."""
    runtime = hass.data[DOMAIN][entry.entry_id]
    async_add_entities([BbtTrackerCalendar(hass, entry.entry_id, runtime)], True)
