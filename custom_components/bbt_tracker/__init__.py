from __future__ import annotations

import datetime as dt
import logging
from typing import Optional, Callable, Any, Dict

import voluptuous as vol

from homeassistant.core import HomeAssistant, callback, ServiceCall
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import EVENT_HOMEASSISTANT_STOP
from homeassistant.helpers import event as hass_event
from homeassistant.components import websocket_api
from homeassistant.helpers import config_validation as cv

from .analyzer import calculate_metrics
from .const import (
    DOMAIN,
    PLATFORMS,
    CONF_NAME,
    CONF_NOTIFY_SERVICES,
    CONF_DAILY_REMINDER_TIME,
    DEFAULT_NAME,
    DEFAULT_DAILY_REMINDER_TIME,
    PRE_OVULATION_RANGE,
    POST_OVULATION_RANGE,
    SERVICE_RECORD_TEMPERATURE,
    SERVICE_DELETE_TEMPERATURE,
    SERVICE_RECORD_CYCLE_START,
)
from .helpers import (
    CycleRecord,
    TemperatureRecord,
    coerce_date,
    coerce_datetime,
    get_local_tz,
    parse_time,
    to_hundredths,
    today_local,
)
from .store import RecordStore

_LOGGER = logging.getLogger(__name__)

CONFIG_SCHEMA = cv.config_entry_only_config_schema(DOMAIN)

RECORD_TEMPERATURE_SCHEMA = vol.Schema(
    {
        vol.Optional("entry_id"): cv.string,
        vol.Required("temperature"): vol.Coerce(float),
        vol.Optional("timestamp"): cv.datetime,
    }
)
DELETE_TEMPERATURE_SCHEMA = vol.Schema(
    {
        vol.Optional("entry_id"): cv.string,
        vol.Required("record_id"): cv.string,
    }
)
RECORD_CYCLE_START_SCHEMA = vol.Schema(
    {
        vol.Optional("entry_id"): cv.string,
        vol.Optional("date"): cv.date,
    }
)


class EntryRuntime:
    """Runtime state per config entry."""

    def __init__(self, hass: HomeAssistant, entry: ConfigEntry) -> None:
        self.hass = hass
        self.entry = entry
        self.name: str = entry.data.get(CONF_NAME, entry.title or DEFAULT_NAME)
        self.records = RecordStore(hass, get_local_tz(hass))
        self._timer_unsub: Optional[Callable[[], None]] = None

    @property
    def notify_services(self) -> list[str]:
        return list(self.entry.options.get(CONF_NOTIFY_SERVICES, []))

    @property
    def daily_reminder_time(self) -> str:
        return self.entry.options.get(CONF_DAILY_REMINDER_TIME, DEFAULT_DAILY_REMINDER_TIME)

    async def async_load(self) -> None:
        await self.records.async_load()
        _LOGGER.debug("Loaded BBT data for %s", self.entry.entry_id)

    def metrics(self):
        now = today_local(self.hass)
        return calculate_metrics(
            self.records.temperatures, self.records.cycles, now, self.records.time_zone
        )

    async def async_setup_timers(self) -> None:
        if self._timer_unsub:
            self._timer_unsub()
            self._timer_unsub = None

        target_time = parse_time(self.daily_reminder_time) or parse_time(
            DEFAULT_DAILY_REMINDER_TIME
        )

        @callback
        def _daily_reminder(now: dt.datetime) -> None:
            self.hass.async_create_task(self._maybe_send_reading_reminder())

        self._timer_unsub = hass_event.async_track_time_change(
            self.hass,
            _daily_reminder,
            hour=target_time.hour,
            minute=target_time.minute,
            second=target_time.second,
        )

    async def async_unload(self) -> None:
        if self._timer_unsub:
            self._timer_unsub()
            self._timer_unsub = None

    async def _maybe_send_reading_reminder(self) -> None:
        """If nothing has been logged for today, nudge via notify.*"""
        if self.records.get_temperature(today_local(self.hass)) is not None:
            return
        metrics = self.metrics()
        message = "Take your basal body temperature before getting up and log it."
        if metrics.days_since_last_cycle is not None:
            message += f" Day {metrics.days_since_last_cycle} of cycle."
        await self._send_notifications(title=f"{self.name}: Morning temperature", message=message)

    async def _send_notifications(self, title: str, message: str) -> None:
        for svc in self.notify_services:
            try:
                domain, service = svc.split(".")
            except ValueError:
                domain, service = "notify", svc
            await self.hass.services.async_call(
                domain,
                service,
                {"title": title, "message": message},
                blocking=True,
            )


async def async_setup(hass: HomeAssistant, config: dict) -> bool:
    """Set up the WS API and domain services."""

    # ---------- WebSocket API ----------
    websocket_api.async_register_command(hass, ws_discover_entry)
    websocket_api.async_register_command(hass, ws_list_records)
    websocket_api.async_register_command(hass, ws_get_temperature)
    websocket_api.async_register_command(hass, ws_save_temperature)
    websocket_api.async_register_command(hass, ws_delete_temperature)
    websocket_api.async_register_command(hass, ws_record_cycle_start)
    websocket_api.async_register_command(hass, ws_analysis)
    websocket_api.async_register_command(hass, ws_temperature_series)
    websocket_api.async_register_command(hass, ws_export_data)

    # ---------- Domain services ----------
    def _get_runtime_for_service(call: ServiceCall) -> EntryRuntime | None:
        entry_id = call.data.get("entry_id")
        runtime = _find_runtime(hass, entry_id)
        if runtime is None:
            _LOGGER.warning(
                "bbt_tracker service called but entry not found. entry_id=%s",
                entry_id,
            )
        return runtime

    async def _svc_record_temperature(call: ServiceCall) -> None:
        runtime = _get_runtime_for_service(call)
        if not runtime:
            return
        tz = runtime.records.time_zone
        timestamp = coerce_datetime(call.data.get("timestamp") or today_local(hass), tz)
        await runtime.records.async_save_temperature(
            TemperatureRecord(timestamp=timestamp, temperature=to_hundredths(call.data["temperature"]))
        )

    async def _svc_delete_temperature(call: ServiceCall) -> None:
        runtime = _get_runtime_for_service(call)
        if not runtime:
            return
        removed = await runtime.records.async_delete_temperature(call.data["record_id"])
        if not removed:
            _LOGGER.debug("record_id %s not found for delete", call.data["record_id"])

    async def _svc_record_cycle_start(call: ServiceCall) -> None:
        runtime = _get_runtime_for_service(call)
        if not runtime:
            return
        start = coerce_date(call.data.get("date") or today_local(hass))
        await runtime.records.async_record_cycle_start(CycleRecord(start_date=start))

    hass.services.async_register(
        DOMAIN, SERVICE_RECORD_TEMPERATURE, _svc_record_temperature, schema=RECORD_TEMPERATURE_SCHEMA
    )
    hass.services.async_register(
        DOMAIN, SERVICE_DELETE_TEMPERATURE, _svc_delete_temperature, schema=DELETE_TEMPERATURE_SCHEMA
    )
    hass.services.async_register(
        DOMAIN, SERVICE_RECORD_CYCLE_START, _svc_record_cycle_start, schema=RECORD_CYCLE_START_SCHEMA
    )

    return True


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    runtime = EntryRuntime(hass, entry)
    await runtime.async_load()
    hass.data.setdefault(DOMAIN, {})[entry.entry_id] = runtime

    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)
    await runtime.async_setup_timers()

    entry.async_on_unload(entry.add_update_listener(_async_options_updated))

    @callback
    def _on_stop(event):
        hass.async_create_task(runtime.async_unload())

    entry.async_on_unload(hass.bus.async_listen_once(EVENT_HOMEASSISTANT_STOP, _on_stop))
    return True


async def _async_options_updated(hass: HomeAssistant, entry: ConfigEntry) -> None:
    runtime: EntryRuntime = hass.data[DOMAIN][entry.entry_id]
    await runtime.async_setup_timers()


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    unload_ok = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)
    if unload_ok:
        runtime: EntryRuntime = hass.data[DOMAIN].pop(entry.entry_id)
        await runtime.async_unload()
    return unload_ok


def _find_runtime(hass: HomeAssistant, entry_id: str | None) -> EntryRuntime | None:
    entries: dict[str, EntryRuntime] = hass.data.get(DOMAIN, {})
    if entry_id:
        return entries.get(entry_id)
    if len(entries) == 1:
        return next(iter(entries.values()))
    return None


def _iso(value: dt.date | dt.datetime | None) -> str | None:
    return value.isoformat() if value else None


# ==================== WebSocket API ====================

@websocket_api.websocket_command(
    {vol.Required("type"): "bbt_tracker/discover_entry"}
)
@websocket_api.async_response
async def ws_discover_entry(hass: HomeAssistant, connection, msg: Dict[str, Any]):
    """Return the first (or only) entry we have; not admin-only."""
    entries: dict[str, EntryRuntime] = hass.data.get(DOMAIN, {})
    if not entries:
        connection.send_result(msg["id"], {"found": False})
        return
    entry_id, runtime = next(iter(entries.items()))
    connection.send_result(
        msg["id"],
        {"found": True, "entry_id": entry_id, "name": runtime.name},
    )


def _runtime_or_error(hass: HomeAssistant, connection, msg) -> EntryRuntime | None:
    runtime = _find_runtime(hass, msg["entry_id"])
    if runtime is None:
        connection.send_error(msg["id"], websocket_api.ERR_NOT_FOUND, "Entry not found")
    return runtime


@websocket_api.websocket_command(
    {vol.Required("type"): "bbt_tracker/list_records", vol.Required("entry_id"): str}
)
@websocket_api.async_response
async def ws_list_records(hass, connection, msg):
    runtime = _runtime_or_error(hass, connection, msg)
    if runtime is None:
        return
    connection.send_result(msg["id"], runtime.records.as_dict())


@websocket_api.websocket_command(
    {
        vol.Required("type"): "bbt_tracker/get_temperature",
        vol.Required("entry_id"): str,
        vol.Required("date"): vol.Any(cv.date, cv.datetime),
    }
)
@websocket_api.async_response
async def ws_get_temperature(hass, connection, msg):
    runtime = _runtime_or_error(hass, connection, msg)
    if runtime is None:
        return
    record = runtime.records.get_temperature(msg["date"])
    connection.send_result(msg["id"], {"record": record.as_dict() if record else None})


@websocket_api.websocket_command(
    {
        vol.Required("type"): "bbt_tracker/save_temperature",
        vol.Required("entry_id"): str,
        vol.Required("timestamp"): str,
        vol.Required("temperature"): int,
    }
)
@websocket_api.async_response
async def ws_save_temperature(hass, connection, msg):
    """Save a reading given in hundredths of a degree F."""
    runtime = _runtime_or_error(hass, connection, msg)
    if runtime is None:
        return
    record = await runtime.records.async_save_temperature(
        TemperatureRecord(
            timestamp=coerce_datetime(msg["timestamp"], runtime.records.time_zone),
            temperature=msg["temperature"],
        )
    )
    connection.send_result(msg["id"], {"ok": True, "record": record.as_dict()})


@websocket_api.websocket_command(
    {
        vol.Required("type"): "bbt_tracker/delete_temperature",
        vol.Required("entry_id"): str,
        vol.Required("record_id"): str,
    }
)
@websocket_api.async_response
async def ws_delete_temperature(hass, connection, msg):
    runtime = _runtime_or_error(hass, connection, msg)
    if runtime is None:
        return
    ok = await runtime.records.async_delete_temperature(msg["record_id"])
    connection.send_result(msg["id"], {"ok": ok})


@websocket_api.websocket_command(
    {
        vol.Required("type"): "bbt_tracker/record_cycle_start",
        vol.Required("entry_id"): str,
        vol.Required("date"): cv.date,
    }
)
@websocket_api.async_response
async def ws_record_cycle_start(hass, connection, msg):
    runtime = _runtime_or_error(hass, connection, msg)
    if runtime is None:
        return
    record = await runtime.records.async_record_cycle_start(
        CycleRecord(start_date=coerce_date(msg["date"]))
    )
    connection.send_result(msg["id"], {"ok": True, "record": record.as_dict()})


@websocket_api.websocket_command(
    {vol.Required("type"): "bbt_tracker/analysis", vol.Required("entry_id"): str}
)
@websocket_api.async_response
async def ws_analysis(hass, connection, msg):
    runtime = _runtime_or_error(hass, connection, msg)
    if runtime is None:
        return
    metrics = runtime.metrics()
    connection.send_result(
        msg["id"],
        {
            "ovulation_date": _iso(metrics.ovulation_date),
            "ovulation_timestamp": _iso(metrics.ovulation_timestamp),
            "days_since_last_cycle": metrics.days_since_last_cycle,
            "last_cycle_start": _iso(metrics.last_cycle_start),
        },
    )


@websocket_api.websocket_command(
    {vol.Required("type"): "bbt_tracker/temperature_series", vol.Required("entry_id"): str}
)
@websocket_api.async_response
async def ws_temperature_series(hass, connection, msg):
    runtime = _runtime_or_error(hass, connection, msg)
    if runtime is None:
        return
    connection.send_result(
        msg["id"],
        {
            "points": [
                {"timestamp": ts.isoformat(), "temperature": degrees}
                for ts, degrees in runtime.records.temperature_series()
            ],
            "pre_ovulation_range": list(PRE_OVULATION_RANGE),
            "post_ovulation_range": list(POST_OVULATION_RANGE),
        },
    )


@websocket_api.websocket_command(
    {vol.Required("type"): "bbt_tracker/export_data", vol.Required("entry_id"): str}
)
@websocket_api.async_response
async def ws_export_data(hass, connection, msg):
    runtime = _runtime_or_error(hass, connection, msg)
    if runtime is None:
        return
    connection.send_result(msg["id"], {"name": runtime.name, **runtime.records.as_dict()})
