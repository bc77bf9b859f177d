import json
import logging
import math
from typing import Any, Optional

from lightwatch.exceptions import ParseError
from lightwatch.models import Reading

log = logging.getLogger(__name__)

UNKNOWN = "unknown"


# ---------------------------------------------------------------------------
# Field coercion helpers
# ---------------------------------------------------------------------------

def _to_float(v: Any) -> Optional[float]:
    if v is None or isinstance(v, bool):
        return None
    try:
        return float(v)
    except (TypeError, ValueError, OverflowError):
        return None


def _to_int(v: Any) -> Optional[int]:
    if v is None or isinstance(v, bool):
        return None
    try:
        return int(float(v))
    except (TypeError, ValueError, OverflowError):
        return None


def _to_str(v: Any, default: str = UNKNOWN) -> str:
    if v is None or isinstance(v, (dict, list)):
        return default
    return str(v)


def parse(payload: bytes) -> list[Reading]:
    """
    Decode a feed body into the list of valid readings it carries.

    Expected shape:
        {"data": [{"timestamp": 1700000000, "label": "light1",
                   "value": 212.5, "mote": "9.138"}, ...]}

    Raises ParseError when the body is not JSON or has no `data` array.
    Individual entries are lenient: missing or unusable fields fall back to
    defaults, and an entry is dropped only when its value is not a finite
    number or its mote is missing.
    """
    try:
        root = json.loads(payload)
    except (TypeError, ValueError) as exc:
        raise ParseError(f"Invalid JSON: {exc}") from exc

    if not isinstance(root, dict):
        raise ParseError(f"Expected a JSON object, got {type(root).__name__}")
    entries = root.get("data")
    if not isinstance(entries, list):
        raise ParseError("Missing 'data' array")

    log.debug("Parsing %d sensor entries", len(entries))
    readings = []
    for entry in entries:
        reading = _parse_entry(entry)
        if reading is None:
            log.warning("Skipping invalid sensor entry: %r", entry)
            continue
        readings.append(reading)
    return readings


def _parse_entry(entry: Any) -> Optional[Reading]:
    if not isinstance(entry, dict):
        return None

    value = _to_float(entry.get("value"))
    if value is None:
        value = math.nan
    mote = _to_str(entry.get("mote"))

    if not math.isfinite(value) or mote == UNKNOWN:
        return None

    timestamp = _to_int(entry.get("timestamp"))
    return Reading(
        mote_id     = mote,
        label       = _to_str(entry.get("label")),
        value       = value,
        observed_at = timestamp if timestamp is not None else 0,
    )
