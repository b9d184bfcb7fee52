from __future__ import annotations
import logging
import math
import re
from datetime import date
from typing import Any, Dict, List, Mapping, Optional

from dateutil.parser import isoparse

from .errors import ValidationError
from .store import METRIC_COLUMNS, WeatherStore

log = logging.getLogger(__name__)

DEFAULT_METRIC = "temperature"
METRICS = tuple(METRIC_COLUMNS)
FULL_DATE = re.compile(r"\d{4}-\d{2}-\d{2}(?:T|$)")

# request field -> value passed to the store
NUMERIC_FIELDS = {
    "temperature": "temperature",
    "humidity": "humidity",
    "windSpeed": "wind_speed",
}


def parse_number(value: Any) -> Optional[float]:
    """Return ``value`` as a finite float, or None if it is not one."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        # float() also takes digit separators like "1_000"
        if not value or "_" in value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


def parse_date(value: Any) -> Optional[date]:
    """Parse a full ``YYYY-MM-DD`` date, optionally followed by a ``T`` time part."""
    if not isinstance(value, str):
        return None
    value = value.strip()
    # isoparse fills in missing month/day for "2024" and "2024-01"
    if not FULL_DATE.match(value):
        return None
    try:
        return isoparse(value).date()
    except (ValueError, OverflowError):
        return None


def submit_observation(store: WeatherStore, payload: Any) -> Dict[str, Any]:
    """Validate a submitted observation and record it.

    Raises ValidationError before touching the store; ConflictError and
    StoreError come from the store.
    """
    if not isinstance(payload, Mapping):
        raise ValidationError("Missing or invalid required fields.", details={"fields": ["body"]})

    invalid: List[str] = []
    city = payload.get("city")
    city = city.strip() if isinstance(city, str) else ""
    if not city:
        invalid.append("city")
    record_date = parse_date(payload.get("date"))
    if record_date is None:
        invalid.append("date")
    values = {}
    for field, column in NUMERIC_FIELDS.items():
        number = parse_number(payload.get(field))
        if number is None:
            invalid.append(field)
        values[column] = number

    if invalid:
        log.info("Rejected observation, invalid fields: %s", ", ".join(invalid))
        raise ValidationError("Missing or invalid required fields.", details={"fields": invalid})

    city_id = store.record_observation(city, record_date, **values)
    return {"message": "Data successfully recorded.", "cityId": city_id}


def query_aggregate(store: WeatherStore, metric: Optional[str] = None) -> List[Dict[str, Any]]:
    metric = metric or DEFAULT_METRIC
    if metric not in METRIC_COLUMNS:
        log.info("Rejected analysis request for metric %r", metric)
        raise ValidationError("Invalid metric selected.", details={"allowed": list(METRICS)})
    return store.city_averages(metric)


def query_history(store: WeatherStore) -> List[Dict[str, Any]]:
    return store.recent_history()
