from __future__ import annotations

import datetime as dt

from homeassistant.components.sensor import SensorDeviceClass, SensorEntity, SensorStateClass
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import UnitOfTime
from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers.entity import DeviceInfo
from homeassistant.helpers.device_registry import DeviceEntryType

from .const import (
    DOMAIN,
    ATTR_TIMESTAMP,
    ATTR_FORMATTED,
    ATTR_RECORD_ID,
    ATTR_LAST_CYCLE_START,
    ATTR_OVULATION_TIMESTAMP,
    ATTR_READING_COUNT,
)


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry, async_add_entities) -> None:
    runtime = hass.data[DOMAIN][entry.entry_id]
    async_add_entities(
        [
            LatestTemperatureSensor(hass, entry.entry_id, runtime),
            DetectedOvulationSensor(hass, entry.entry_id, runtime),
            DaysSinceCycleStartSensor(hass, entry.entry_id, runtime),
        ],
        True,
    )


class _BaseBbtSensor(SensorEntity):
    _attr_has_entity_name = True

    def __init__(self, hass: HomeAssistant, entry_id: str, runtime) -> None:
        self.hass = hass
        self._runtime = runtime
        self._entry_id = entry_id

    @property
    def device_info(self) -> DeviceInfo:
        return DeviceInfo(
            identifiers={(DOMAIN, self._entry_id)},
            name=self._runtime.name,
            manufacturer="Custom",
            model="BBT Tracker",
            entry_type=DeviceEntryType.SERVICE,
        )

    async def async_added_to_hass(self) -> None:
        self.async_on_remove(self._runtime.records.async_add_listener(self._handle_records_changed))

    @callback
    def _handle_records_changed(self) -> None:
        self.async_schedule_update_ha_state(True)


class LatestTemperatureSensor(_BaseBbtSensor):
    """Most recent reading in °F."""

    _attr_icon = "mdi:thermometer"
    _attr_native_unit_of_measurement = "°F"
    _attr_state_class = SensorStateClass.MEASUREMENT
    _attr_suggested_display_precision = 2

    def __init__(self, hass: HomeAssistant, entry_id: str, runtime) -> None:
        super().__init__(hass, entry_id, runtime)
        self._attr_name = "Latest temperature"
        self._attr_unique_id = f"{entry_id}_latest_temperature"

    async def async_update(self) -> None:
        metrics = self._runtime.metrics()
        latest = metrics.latest
        self._attr_native_value = latest.degrees if latest else None
        self._attr_extra_state_attributes = {
            ATTR_TIMESTAMP: latest.timestamp.isoformat() if latest else None,
            ATTR_FORMATTED: latest.formatted if latest else None,
            ATTR_RECORD_ID: latest.id if latest else None,
            ATTR_READING_COUNT: metrics.reading_count,
        }


class DetectedOvulationSensor(_BaseBbtSensor):
    """Date of the first sustained temperature rise, if any."""

    _attr_icon = "mdi:egg-outline"
    _attr_device_class = SensorDeviceClass.DATE
    _attr_native_value: dt.date | None = None

    def __init__(self, hass: HomeAssistant, entry_id: str, runtime) -> None:
        super().__init__(hass, entry_id, runtime)
        self._attr_name = "Detected ovulation"
        self._attr_unique_id = f"{entry_id}_detected_ovulation"

    async def async_update(self) -> None:
        metrics = self._runtime.metrics()
        self._attr_native_value = metrics.ovulation_date
        self._attr_extra_state_attributes = {
            ATTR_OVULATION_TIMESTAMP: (
                metrics.ovulation_timestamp.isoformat() if metrics.ovulation_timestamp else None
            ),
        }


class DaysSinceCycleStartSensor(_BaseBbtSensor):
    _attr_icon = "mdi:calendar-heart"
    _attr_native_unit_of_measurement = UnitOfTime.DAYS
    _attr_native_value: int | None = None

    def __init__(self, hass: HomeAssistant, entry_id: str, runtime) -> None:
        super().__init__(hass, entry_id, runtime)
        self._attr_name = "Days since cycle start"
        self._attr_unique_id = f"{entry_id}_days_since_cycle_start"

    async def async_update(self) -> None:
        metrics = self._runtime.metrics()
        self._attr_native_value = metrics.days_since_last_cycle
        self._attr_extra_state_attributes = {
            ATTR_LAST_CYCLE_START: (
                metrics.last_cycle_start.isoformat() if metrics.last_cycle_start else None
            ),
        }
