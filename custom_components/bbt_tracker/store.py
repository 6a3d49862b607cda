from __future__ import annotations

import asyncio
import dataclasses
import datetime as dt
import logging
from typing import Any, Callable, Dict, Optional

from homeassistant.core import HomeAssistant, callback
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.storage import Store
from homeassistant.util import dt as dt_util

from .analyzer import days_since_last_cycle, detect_ovulation, temperature_series
from .const import STORAGE_KEY_CYCLES, STORAGE_KEY_TEMPERATURES, STORAGE_VERSION
from .helpers import CycleRecord, TemperatureRecord, calendar_day, coerce_datetime

_LOGGER = logging.getLogger(__name__)

_DECODE_ERRORS = (HomeAssistantError, KeyError, TypeError, ValueError)
# Store logs its own serialization and write errors; these are what still reach us
_WRITE_ERRORS = (HomeAssistantError, OSError)


class RecordStore:
    """Authoritative temperature and cycle collections with write-through persistence.

    Same-day comparisons use the time zone handed in at construction, never
    the process default.
    """

    def __init__(
        self,
        hass: HomeAssistant,
        time_zone: dt.tzinfo,
        temperature_store: Optional[Store] = None,
        cycle_store: Optional[Store] = None,
    ) -> None:
        self.hass = hass
        self.time_zone = time_zone
        self._temperature_store = temperature_store or Store(
            hass, STORAGE_VERSION, STORAGE_KEY_TEMPERATURES
        )
        self._cycle_store = cycle_store or Store(hass, STORAGE_VERSION, STORAGE_KEY_CYCLES)
        self._temperatures: list[TemperatureRecord] = []
        self._cycles: list[CycleRecord] = []
        self._temperature_lock = asyncio.Lock()
        self._cycle_lock = asyncio.Lock()
        self._listeners: list[Callable[[], None]] = []

    # ---------- Snapshots ----------

    @property
    def temperatures(self) -> tuple[TemperatureRecord, ...]:
        return tuple(self._temperatures)

    @property
    def cycles(self) -> tuple[CycleRecord, ...]:
        return tuple(self._cycles)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "temperatures": [r.as_dict() for r in self._temperatures],
            "cycles": [c.as_dict() for c in self._cycles],
        }

    # ---------- Persistence ----------

    async def async_load(self) -> None:
        self._temperatures = await self._async_load_slot(
            self._temperature_store, TemperatureRecord.from_dict
        )
        self._cycles = await self._async_load_slot(self._cycle_store, CycleRecord.from_dict)
        _LOGGER.debug(
            "Loaded %d temperature and %d cycle records",
            len(self._temperatures),
            len(self._cycles),
        )

    async def _async_load_slot(self, store: Store, decode: Callable[[Dict[str, Any]], Any]) -> list:
        try:
            saved = await store.async_load()
            if saved is None:
                return []
            return [decode(item) for item in saved["records"]]
        except _DECODE_ERRORS as err:
            _LOGGER.warning(
                "Discarding unreadable data in storage slot %s: %s", store.key, err
            )
            return []

    async def _async_write_slot(self, store: Store, records: list) -> None:
        try:
            await store.async_save({"records": [r.as_dict() for r in records]})
        except _WRITE_ERRORS as err:
            _LOGGER.warning(
                "Failed to write storage slot %s; keeping in-memory data: %s",
                store.key,
                err,
            )
        else:
            _LOGGER.debug("Saved %d records to %s", len(records), store.key)

    # ---------- Change notification ----------

    @callback
    def async_add_listener(self, update_callback: Callable[[], None]) -> Callable[[], None]:
        """Register a callback fired after every mutation; returns an unsubscribe."""
        self._listeners.append(update_callback)

        @callback
        def remove_listener() -> None:
            if update_callback in self._listeners:
                self._listeners.remove(update_callback)

        return remove_listener

    @callback
    def _async_notify(self) -> None:
        for update_callback in list(self._listeners):
            update_callback()

    # ---------- Temperatures ----------

    def _day_index(self, day: dt.date) -> int | None:
        for i, r in enumerate(self._temperatures):
            if calendar_day(r.timestamp, self.time_zone) == day:
                return i
        return None

    async def async_save_temperature(self, record: TemperatureRecord) -> TemperatureRecord:
        """Insert the reading, replacing any other reading on the same calendar day."""
        # Naive timestamps are wall time in the store zone
        record = dataclasses.replace(
            record, timestamp=coerce_datetime(record.timestamp, self.time_zone)
        )
        async with self._temperature_lock:
            index = self._day_index(calendar_day(record.timestamp, self.time_zone))
            if index is None:
                self._temperatures.append(record)
            else:
                self._temperatures[index] = record
            await self._async_write_slot(self._temperature_store, self._temperatures)
        self._async_notify()
        return record

    def get_temperature(self, for_date: dt.date | dt.datetime) -> TemperatureRecord | None:
        index = self._day_index(calendar_day(for_date, self.time_zone))
        return self._temperatures[index] if index is not None else None

    async def async_delete_temperature(self, record_id: str) -> bool:
        async with self._temperature_lock:
            for i, r in enumerate(self._temperatures):
                if r.id == record_id:
                    del self._temperatures[i]
                    break
            else:
                return False
            await self._async_write_slot(self._temperature_store, self._temperatures)
        self._async_notify()
        return True

    # ---------- Cycles ----------

    async def async_record_cycle_start(self, record: CycleRecord) -> CycleRecord:
        async with self._cycle_lock:
            self._cycles.append(record)
            await self._async_write_slot(self._cycle_store, self._cycles)
        self._async_notify()
        return record

    def days_since_last_cycle(self, now: dt.datetime | None = None) -> int | None:
        if now is None:
            now = dt_util.now(self.time_zone)
        return days_since_last_cycle(self._cycles, now, self.time_zone)

    # ---------- Analysis ----------

    def detect_ovulation(self) -> dt.datetime | None:
        return detect_ovulation(self.temperatures)

    def temperature_series(self) -> list[tuple[dt.datetime, float]]:
        return temperature_series(self.temperatures)
