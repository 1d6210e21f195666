import os
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

BOOKING_DB = os.getenv("BOOKING_DB")
DB_ECHO = (os.getenv("DB_ECHO") or "false").lower() == "true"

RABBIT_URL = os.getenv("RABBIT_URL")  # optional in dev, required if you want events
EXCHANGE_NAME = os.getenv("EXCHANGE_NAME") or "domain_events"

LOG_LEVEL = os.getenv("LOG_LEVEL") or "INFO"

# all slot boundaries are local wall-clock times in this zone
BOOKING_TIMEZONE = os.getenv("BOOKING_TIMEZONE") or "Europe/Stockholm"

try:
    LOCAL_TZ = ZoneInfo(BOOKING_TIMEZONE)
except (ZoneInfoNotFoundError, ValueError):
    raise RuntimeError(f"Unknown BOOKING_TIMEZONE: {BOOKING_TIMEZONE}")
