from __future__ import annotations

DOMAIN = "bbt_tracker"

PLATFORMS = ["sensor", "binary_sensor", "calendar"]

STORAGE_VERSION = 1
STORAGE_KEY_TEMPERATURES = f"{DOMAIN}.SavedTemperatures"
STORAGE_KEY_CYCLES = f"{DOMAIN}.SavedCycleRecords"

CONF_NAME = "name"
CONF_NOTIFY_SERVICES = "notify_services"
CONF_DAILY_REMINDER_TIME = "daily_reminder_time"

DEFAULT_NAME = "BBT Tracker"
DEFAULT_DAILY_REMINDER_TIME = "07:00:00"  # local time; "did you take your temperature?"

# Sustained rise over the pre-rise baseline, in hundredths of a degree F (0.4°F)
RISE_THRESHOLD_HUNDREDTHS = 40
MIN_RECORDS_FOR_DETECTION = 3

# Reference bands drawn behind the chart
PRE_OVULATION_RANGE = (96.0, 98.0)
POST_OVULATION_RANGE = (97.0, 99.0)

ATTR_TIMESTAMP = "timestamp"
ATTR_FORMATTED = "formatted"
ATTR_RECORD_ID = "record_id"
ATTR_LAST_CYCLE_START = "last_cycle_start"
ATTR_OVULATION_TIMESTAMP = "ovulation_timestamp"
ATTR_READING_COUNT = "reading_count"

SERVICE_RECORD_TEMPERATURE = "record_temperature"
SERVICE_DELETE_TEMPERATURE = "delete_temperature"
SERVICE_RECORD_CYCLE_START = "record_cycle_start"
