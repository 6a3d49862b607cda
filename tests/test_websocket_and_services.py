from __future__ import annotations

import datetime as dt

import pytest
from homeassistant.core import HomeAssistant
from pytest_homeassistant_custom_component.common import async_fire_time_changed, async_mock_service

from custom_components.bbt_tracker.const import DOMAIN, STORAGE_KEY_TEMPERATURES
from custom_components.bbt_tracker.helpers import CycleRecord, today_local

pytestmark = pytest.mark.asyncio


async def test_ws_save_get_delete(hass: HomeAssistant, hass_ws_client, hass_storage, setup_integration, config_entry):
    client = await hass_ws_client(hass)
    entry_id = config_entry.entry_id

    await client.send_json({"id": 1, "type": "bbt_tracker/discover_entry"})
    resp = await client.receive_json()
    assert resp["result"] == {"found": True, "entry_id": entry_id, "name": "BBT Tracker"}

    await client.send_json({"id": 2, "type": "bbt_tracker/list_records", "entry_id": entry_id})
    resp = await client.receive_json()
    assert resp["success"] is True
    assert resp["result"] == {"temperatures": [], "cycles": []}

    readings = [
        ("2025-06-01T06:30:00", 9700),
        ("2025-06-02T06:30:00", 9745),
        ("2025-06-03T06:30:00", 9760),
        ("2025-06-03T07:10:00", 9755),  # same day, replaces the previous
    ]
    for msg_id, (timestamp, temperature) in enumerate(readings, start=10):
        await client.send_json(
            {
                "id": msg_id,
                "type": "bbt_tracker/save_temperature",
                "entry_id": entry_id,
                "timestamp": timestamp,
                "temperature": temperature,
            }
        )
        resp = await client.receive_json()
        assert resp["success"] is True
        assert resp["result"]["ok"] is True

    assert len(hass_storage[STORAGE_KEY_TEMPERATURES]["data"]["records"]) == 3

    await client.send_json(
        {"id": 20, "type": "bbt_tracker/get_temperature", "entry_id": entry_id, "date": "2025-06-03"}
    )
    resp = await client.receive_json()
    record = resp["result"]["record"]
    assert record["temperature"] == 9755

    await client.send_json(
        {"id": 21, "type": "bbt_tracker/get_temperature", "entry_id": entry_id, "date": "2025-06-09"}
    )
    resp = await client.receive_json()
    assert resp["result"] == {"record": None}

    await client.send_json(
        {"id": 30, "type": "bbt_tracker/get_temperature", "entry_id": entry_id, "date": "2025-06-03T21:00"}
    )
    resp = await client.receive_json()
    assert resp["result"]["record"]["id"] == record["id"]

    await client.send_json(
        {"id": 31, "type": "bbt_tracker/get_temperature", "entry_id": entry_id, "date": "June 3rd"}
    )
    resp = await client.receive_json()
    assert resp["success"] is False
    assert resp["error"]["code"] == "invalid_format"

    await client.send_json({"id": 42, "type": "bbt_tracker/temperature_series", "entry_id": entry_id})
    resp = await client.receive_json()
    series = resp["result"]
    assert [p["temperature"] for p in series["points"]] == [97.0, 97.45, 97.55]
    assert series["pre_ovulation_range"] == [96.0, 98.0]
    assert series["post_ovulation_range"] == [97.0, 99.0]

    await client.send_json(
        {"id": 43, "type": "bbt_tracker/record_cycle_start", "entry_id": entry_id, "date": "2025-05-20"}
    )
    resp = await client.receive_json()
    assert resp["result"]["record"]["startDate"] == "2025-05-20"

    await client.send_json({"id": 44, "type": "bbt_tracker/analysis", "entry_id": entry_id})
    resp = await client.receive_json()
    assert resp["result"]["ovulation_date"] == "2025-06-02"
    assert resp["result"]["last_cycle_start"] == "2025-05-20"
    assert isinstance(resp["result"]["days_since_last_cycle"], int)

    await client.send_json(
        {"id": 45, "type": "bbt_tracker/delete_temperature", "entry_id": entry_id, "record_id": record["id"]}
    )
    resp = await client.receive_json()
    assert resp["result"] == {"ok": True}

    await client.send_json(
        {"id": 46, "type": "bbt_tracker/delete_temperature", "entry_id": entry_id, "record_id": record["id"]}
    )
    resp = await client.receive_json()
    assert resp["result"] == {"ok": False}

    await client.send_json({"id": 47, "type": "bbt_tracker/export_data", "entry_id": entry_id})
    resp = await client.receive_json()
    assert resp["result"]["name"] == "BBT Tracker"
    assert len(resp["result"]["temperatures"]) == 2
    assert len(resp["result"]["cycles"]) == 1

    await client.send_json({"id": 48, "type": "bbt_tracker/list_records", "entry_id": "nope"})
    resp = await client.receive_json()
    assert resp["success"] is False
    assert resp["error"]["code"] == "not_found"


async def test_domain_services(hass: HomeAssistant, setup_integration, config_entry):
    runtime = hass.data[DOMAIN][config_entry.entry_id]

    await hass.services.async_call(
        DOMAIN,
        "record_temperature",
        {"temperature": 97.4, "timestamp": "2025-06-01 06:30:00"},
        blocking=True,
    )
    await hass.services.async_call(
        DOMAIN,
        "record_temperature",
        {"entry_id": config_entry.entry_id, "temperature": "97.55", "timestamp": "2025-06-01 07:00:00"},
        blocking=True,
    )
    assert [r.temperature for r in runtime.records.temperatures] == [9755]

    await hass.services.async_call(DOMAIN, "record_temperature", {"temperature": 97.1}, blocking=True)
    assert runtime.records.get_temperature(today_local(hass)).temperature == 9710

    await hass.services.async_call(DOMAIN, "record_cycle_start", {"date": "2025-05-28"}, blocking=True)
    await hass.services.async_call(DOMAIN, "record_cycle_start", {}, blocking=True)
    assert [c.start_date for c in runtime.records.cycles] == [
        dt.date(2025, 5, 28),
        today_local(hass).date(),
    ]
    assert runtime.records.days_since_last_cycle() == 0

    record_id = runtime.records.temperatures[0].id
    await hass.services.async_call(DOMAIN, "delete_temperature", {"record_id": record_id}, blocking=True)
    await hass.services.async_call(DOMAIN, "delete_temperature", {"record_id": "unknown"}, blocking=True)
    assert len(runtime.records.temperatures) == 1

    # Unknown entry is logged and ignored
    await hass.services.async_call(
        DOMAIN, "record_temperature", {"entry_id": "nope", "temperature": 98.0}, blocking=True
    )
    assert len(runtime.records.temperatures) == 1


async def test_daily_reminder_only_when_not_logged(hass: HomeAssistant, setup_integration, config_entry):
    calls = async_mock_service(hass, "notify", "mobile_app_test")
    hass.config_entries.async_update_entry(
        config_entry,
        options={"notify_services": ["notify.mobile_app_test"], "daily_reminder_time": "07:00:00"},
    )
    await hass.async_block_till_done()
    runtime = hass.data[DOMAIN][config_entry.entry_id]
    await runtime.records.async_record_cycle_start(
        CycleRecord(start_date=today_local(hass).date() - dt.timedelta(days=3))
    )

    await runtime._maybe_send_reading_reminder()  # noqa: SLF001
    await hass.async_block_till_done()
    assert len(calls) == 1
    assert "basal body temperature" in calls[0].data["message"]
    assert "Day 3 of cycle" in calls[0].data["message"]

    await hass.services.async_call(DOMAIN, "record_temperature", {"temperature": 97.3}, blocking=True)
    await runtime._maybe_send_reading_reminder()  # noqa: SLF001
    await hass.async_block_till_done()
    assert len(calls) == 1


async def test_reminder_timer_fires(hass: HomeAssistant, setup_integration, config_entry):
    calls = async_mock_service(hass, "notify", "mobile_app_test")
    hass.config_entries.async_update_entry(
        config_entry,
        options={"notify_services": ["notify.mobile_app_test"], "daily_reminder_time": "07:00:00"},
    )
    await hass.async_block_till_done()

    next_fire = today_local(hass).replace(hour=7, minute=0, second=0, microsecond=0) + dt.timedelta(days=1)
    async_fire_time_changed(hass, next_fire)
    await hass.async_block_till_done()
    assert len(calls) == 1
