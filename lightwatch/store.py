import logging
from threading import Lock
from typing import Optional

from lightwatch.models import Direction, Reading, SensorState, Transition

log = logging.getLogger(__name__)

DEFAULT_LIGHT_THRESHOLD = 200.0
DELTA_ON  = 25.0
DELTA_OFF = -25.0


def next_light_state(current: bool, previous_value: float, new_value: float,
                     delta_on: float = DELTA_ON, delta_off: float = DELTA_OFF) -> bool:
    """
    Delta hysteresis: a rise of at least delta_on switches the light on, a
    fall of at least |delta_off| switches it off, anything in between keeps
    the current state.
    """
    delta = new_value - previous_value
    if delta >= delta_on:
        return True
    if delta <= delta_off:
        return False
    return current


class SensorStateStore:
    """
    Thread-safe mapping of mote id -> SensorState.

    Each entry is an immutable SensorState that apply() replaces as a unit,
    so a concurrent reader sees either the previous or the next state of a
    mote, never a mix of the two. Writers for the same mote serialise on a
    per-mote lock; writers for different motes proceed in parallel. The
    shared _guard lock is only held long enough to look up or create a
    per-mote lock.

    Thresholds are read per call so runtime configuration changes take
    effect on the next reading.
    """

    def __init__(
        self,
        threshold: float = DEFAULT_LIGHT_THRESHOLD,
        delta_on: float  = DELTA_ON,
        delta_off: float = DELTA_OFF,
    ) -> None:
        self.threshold = threshold
        self.delta_on  = delta_on
        self.delta_off = delta_off
        self._states: dict[str, SensorState] = {}
        self._locks:  dict[str, Lock]        = {}
        self._guard = Lock()

    def configure(self, threshold: float, delta_on: float, delta_off: float) -> None:
        self.threshold = threshold
        self.delta_on  = delta_on
        self.delta_off = delta_off

    def apply(self, reading: Reading) -> Optional[Transition]:
        """Fold one reading into the store and return the transition it caused, if any."""
        with self._lock_for(reading.mote_id):
            existing = self._states.get(reading.mote_id)

            if existing is None:
                state = SensorState(
                    mote_id          = reading.mote_id,
                    label            = reading.label,
                    last_value       = reading.value,
                    last_observed_at = reading.observed_at,
                    light_on         = reading.value > self.threshold,
                )
                # New keys change the dict's size, so they go in under _guard
                with self._guard:
                    self._states[reading.mote_id] = state
                if state.light_on:
                    log.info("New sensor detected with light ON: %s (value=%s)",
                             reading.mote_id, reading.value)
                    return Transition(reading.mote_id, Direction.TURNED_ON)
                log.debug("New sensor detected: %s (value=%s)", reading.mote_id, reading.value)
                return None

            light_on = next_light_state(
                existing.light_on, existing.last_value, reading.value,
                self.delta_on, self.delta_off,
            )
            self._states[reading.mote_id] = existing.updated(reading, light_on)

        if light_on == existing.light_on:
            return None
        direction = Direction.TURNED_ON if light_on else Direction.TURNED_OFF
        log.info("Light turned %s: %s (value=%s)",
                 "ON" if light_on else "OFF", reading.mote_id, reading.value)
        return Transition(reading.mote_id, direction)

    def get(self, mote_id: str) -> Optional[SensorState]:
        return self._states.get(mote_id)

    def snapshot(self) -> list[SensorState]:
        """Immutable copies of every entry, ordered by mote id."""
        with self._guard:
            states = list(self._states.values())
        return sorted(states, key=lambda s: s.mote_id)

    def lights_on_count(self) -> int:
        return sum(1 for s in self.snapshot() if s.light_on)

    def __len__(self) -> int:
        return len(self._states)

    def __contains__(self, mote_id: object) -> bool:
        return mote_id in self._states

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _lock_for(self, mote_id: str) -> Lock:
        with self._guard:
            lock = self._locks.get(mote_id)
            if lock is None:
                lock = self._locks[mote_id] = Lock()
            return lock
