from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Optional


class Direction(Enum):
    TURNED_ON  = "turned_on"
    TURNED_OFF = "turned_off"


class DispatchOutcome(Enum):
    DELIVERED   = "delivered"
    SUPPRESSED  = "suppressed"     # cooldown window still open
    UNAVAILABLE = "unavailable"    # sink reported permission denied
    FAILED      = "failed"         # sink reported / raised any other failure
    DISABLED    = "disabled"       # notifications switched off in settings


class DeliveryResult(Enum):
    DELIVERED         = "delivered"
    PERMISSION_DENIED = "permission_denied"
    FAILED            = "failed"


@dataclass(frozen=True)
class Reading:
    """One valid entry from the poll feed. Never reaches the store if invalid."""
    mote_id: str
    label: str
    value: float
    observed_at: int               # feed timestamp, passed through as-is


@dataclass(frozen=True)
class SensorState:
    """
    Latest known state of a single mote.

    Instances are immutable: the store replaces the whole entry on every
    update so that value and light state are always observed together.
    """
    mote_id: str
    label: str
    last_value: float
    last_observed_at: int
    light_on: bool

    def updated(self, reading: Reading, light_on: bool) -> "SensorState":
        return replace(
            self,
            label            = reading.label,
            last_value       = reading.value,
            last_observed_at = reading.observed_at,
            light_on         = light_on,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "mote":      self.mote_id,
            "label":     self.label,
            "value":     self.last_value,
            "timestamp": self.last_observed_at,
            "lightOn":   self.light_on,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SensorState":
        return cls(
            mote_id          = str(data["mote"]),
            label            = str(data.get("label", "unknown")),
            last_value       = float(data["value"]),
            last_observed_at = int(data.get("timestamp", 0)),
            light_on         = bool(data.get("lightOn", False)),
        )


@dataclass(frozen=True)
class Transition:
    mote_id: str
    direction: Direction


@dataclass(frozen=True)
class Alert:
    """A single grouped notification, as handed to a delivery sink."""
    title: str
    body: str
    expanded_body: str
    requires_permission_check: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "title":                     self.title,
            "body":                      self.body,
            "expanded_body":             self.expanded_body,
            "requires_permission_check": self.requires_permission_check,
        }


@dataclass(frozen=True)
class AggregateView:
    """Point-in-time view of every tracked sensor."""
    sensor_count: int
    lights_on_count: int
    per_sensor: tuple[SensorState, ...]
    status_message: str
    generated_at: int              # epoch milliseconds
    raw_payload: Optional[str] = field(default=None, compare=False)
