from __future__ import annotations

import datetime as dt
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict

from homeassistant.core import HomeAssistant
from homeassistant.util import dt as dt_util

# ---------------- Utilities ----------------

def get_local_tz(hass: HomeAssistant) -> dt.tzinfo:
    """Return Home Assistant's configured tzinfo."""
    return dt_util.get_time_zone(hass.config.time_zone) or dt_util.UTC

def today_local(hass: HomeAssistant) -> dt.datetime:
    """Return timezone-aware 'now' in Home Assistant's configured timezone."""
    tz = get_local_tz(hass)
    return dt_util.now(tz)

def parse_time(s: str | None) -> dt.time | None:
    if not s:
        return None
    try:
        h, m, sec = s.split(":")
        return dt.time(int(h), int(m), int(sec))
    except ValueError:
        return None

def coerce_date(s: str | dt.date | dt.datetime) -> dt.date:
    if isinstance(s, dt.datetime):
        return s.date()
    if isinstance(s, dt.date):
        return s
    return dt.date.fromisoformat(str(s))

def coerce_datetime(value: str | dt.datetime, tz: dt.tzinfo) -> dt.datetime:
    """Return an aware datetime; naive input is read as wall time in `tz`."""
    if not isinstance(value, dt.datetime):
        value = dt.datetime.fromisoformat(str(value))
    if value.tzinfo is None:
        return value.replace(tzinfo=tz)
    return value

def calendar_day(value: dt.date | dt.datetime, tz: dt.tzinfo) -> dt.date:
    """Calendar day of `value` as seen in `tz`."""
    if isinstance(value, dt.datetime):
        return coerce_datetime(value, tz).astimezone(tz).date()
    return value

def to_hundredths(degrees: float) -> int:
    """97.4 -> 9740."""
    return int(round(float(degrees) * 100))

def format_temperature(hundredths: int) -> str:
    whole, decimal = divmod(hundredths, 100)
    return f"{whole}.{decimal:02d}°F"

def _new_id() -> str:
    return str(uuid.uuid4())

# ---------------- Data Models ----------------

@dataclass(frozen=True)
class TemperatureRecord:
    timestamp: dt.datetime
    temperature: int  # hundredths of a degree F
    id: str = field(default_factory=_new_id)

    @property
    def degrees(self) -> float:
        return self.temperature / 100

    @property
    def formatted(self) -> str:
        return format_temperature(self.temperature)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "dateTime": self.timestamp.isoformat(),
            "temperature": self.temperature,
        }

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "TemperatureRecord":
        ts = dt.datetime.fromisoformat(d["dateTime"])
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=dt_util.UTC)
        temperature = d["temperature"]
        if not isinstance(temperature, int) or isinstance(temperature, bool):
            raise ValueError(f"temperature must be an integer, got {temperature!r}")
        return TemperatureRecord(id=str(d["id"]), timestamp=ts, temperature=temperature)


@dataclass(frozen=True)
class CycleRecord:
    start_date: dt.date
    id: str = field(default_factory=_new_id)

    def as_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "startDate": self.start_date.isoformat()}

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "CycleRecord":
        return CycleRecord(id=str(d["id"]), start_date=coerce_date(d["startDate"]))
