import json
import logging
import time
from typing import Any, Callable, Optional

from lightwatch.bus import SnapshotBus
from lightwatch.models import AggregateView, SensorState
from lightwatch.store import SensorStateStore

log = logging.getLogger(__name__)

CURRENT_STATE = "Current state"


def _now_millis() -> int:
    return int(time.time() * 1000)


class SnapshotPublisher:
    """
    Builds AggregateViews from the store and fans them out over the bus.

    snapshot() is a pure read over one point-in-time copy of the store, so
    the counts and the per-sensor list always agree with each other even
    while a poll cycle is running.
    """

    def __init__(
        self,
        store: SensorStateStore,
        bus: Optional[SnapshotBus] = None,
        clock_millis: Callable[[], int] = _now_millis,
    ) -> None:
        self._store = store
        self._bus   = bus or SnapshotBus()
        self._clock_millis = clock_millis

    @property
    def bus(self) -> SnapshotBus:
        return self._bus

    def snapshot(self, status: str = CURRENT_STATE, raw_payload: Optional[str] = None) -> AggregateView:
        states = tuple(self._store.snapshot())
        return AggregateView(
            sensor_count    = len(states),
            lights_on_count = sum(1 for s in states if s.light_on),
            per_sensor      = states,
            status_message  = status,
            generated_at    = self._clock_millis(),
            raw_payload     = raw_payload,
        )

    def publish(self, status: str = CURRENT_STATE, raw_payload: Optional[str] = None) -> AggregateView:
        view = self.snapshot(status, raw_payload)
        self._bus.publish(view)
        log.debug("Snapshot published — sensors=%d, lights_on=%d",
                  view.sensor_count, view.lights_on_count)
        return view


# ---------------------------------------------------------------------------
# Wire format for observers outside the process
# ---------------------------------------------------------------------------

def encode_per_sensor(states: tuple[SensorState, ...]) -> str:
    return json.dumps([s.to_dict() for s in states])


def decode_per_sensor(per_sensor_json: str) -> list[SensorState]:
    """Inverse of encode_per_sensor. Raises ValueError on malformed input."""
    items = json.loads(per_sensor_json)
    if not isinstance(items, list):
        raise ValueError("per_sensor_json must encode a list")
    try:
        return [SensorState.from_dict(item) for item in items]
    except (KeyError, TypeError) as exc:
        raise ValueError(f"Malformed sensor entry: {exc}") from exc


def to_payload(view: AggregateView) -> dict[str, Any]:
    """Flatten a view into the change-of-state feed payload."""
    payload: dict[str, Any] = {
        "status":          view.status_message,
        "timestamp":       view.generated_at,
        "sensor_count":    view.sensor_count,
        "lights_on_count": view.lights_on_count,
        "per_sensor_json": encode_per_sensor(view.per_sensor),
    }
    if view.raw_payload is not None:
        payload["data"] = view.raw_payload
    return payload
