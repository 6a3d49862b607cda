from __future__ import annotations

from homeassistant.components.binary_sensor import BinarySensorEntity
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers.entity import DeviceInfo
from homeassistant.helpers.device_registry import DeviceEntryType

from .const import DOMAIN


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry, async_add_entities) -> None:
    runtime = hass.data[DOMAIN][entry.entry_id]
    async_add_entities([TemperatureLoggedTodayBinary(hass, entry.entry_id, runtime)], True)


class TemperatureLoggedTodayBinary(BinarySensorEntity):
    """On once today's morning reading has been recorded."""

    _attr_has_entity_name = True
    _attr_icon = "mdi:thermometer-check"

    def __init__(self, hass: HomeAssistant, entry_id: str, runtime) -> None:
        self.hass = hass
        self._runtime = runtime
        self._entry_id = entry_id
        self._attr_name = "Temperature logged today"
        self._attr_unique_id = f"{entry_id}_temperature_logged_today"
        self._attr_is_on = False

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

    async def async_update(self) -> None:
        self._attr_is_on = self._runtime.metrics().logged_today
