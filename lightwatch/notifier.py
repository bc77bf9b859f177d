import logging
import time
from threading import Lock
from typing import Callable, Optional, Sequence

from lightwatch.models import Alert, DeliveryResult, Direction, DispatchOutcome, Transition
from lightwatch.sinks.base import DeliverySink

log = logging.getLogger(__name__)

GROUPED_KEY = "grouped_notification"

DEFAULT_COOLDOWN_SECONDS = 5.0
DEFAULT_VIBRATE_MILLIS   = 200

_ON_ICON   = "\U0001F4A1"   # light bulb
_OFF_ICON  = "\U0001F319"   # crescent moon
_MANY_ICON = "\U0001F504"   # arrows


# ---------------------------------------------------------------------------
# Alert formatting
# ---------------------------------------------------------------------------

def build_title(motes_on: Sequence[str], motes_off: Sequence[str]) -> str:
    total = len(motes_on) + len(motes_off)
    if total == 1:
        if motes_on:
            return f"{_ON_ICON} Light turned on: {motes_on[0]}"
        return f"{_OFF_ICON} Light turned off: {motes_off[0]}"
    return f"{_MANY_ICON} {total} changes detected"


def build_body(motes_on: Sequence[str], motes_off: Sequence[str]) -> str:
    """Compact text: one line per direction."""
    lines = []
    if motes_on:
        lines.append(f"{_ON_ICON} ON: " + ", ".join(motes_on))
    if motes_off:
        lines.append(f"{_OFF_ICON} OFF: " + ", ".join(motes_off))
    return "\n".join(lines)


def build_expanded_body(motes_on: Sequence[str], motes_off: Sequence[str]) -> str:
    """Expanded text: a bulleted section per direction."""
    sections = []
    if motes_on:
        sections.append(f"{_ON_ICON} LIGHTS ON:\n" + "".join(f"  • {m}\n" for m in motes_on))
    if motes_off:
        sections.append(f"{_OFF_ICON} LIGHTS OFF:\n" + "".join(f"  • {m}\n" for m in motes_off))
    return "\n".join(sections)


def build_alert(transitions: Sequence[Transition]) -> Alert:
    motes_on  = [t.mote_id for t in transitions if t.direction is Direction.TURNED_ON]
    motes_off = [t.mote_id for t in transitions if t.direction is Direction.TURNED_OFF]
    return Alert(
        title         = build_title(motes_on, motes_off),
        body          = build_body(motes_on, motes_off),
        expanded_body = build_expanded_body(motes_on, motes_off),
    )


# ---------------------------------------------------------------------------
# Cooldown
# ---------------------------------------------------------------------------

class CooldownLedger:
    """Last successful dispatch time per notification key (clock seconds)."""

    def __init__(self) -> None:
        self._last: dict[str, float] = {}
        self._lock = Lock()

    def last(self, key: str) -> Optional[float]:
        with self._lock:
            return self._last.get(key)

    def remaining(self, key: str, now: float, window: float) -> float:
        """Seconds left before `key` may fire again; 0.0 when it may fire now."""
        last = self.last(key)
        if last is None:
            return 0.0
        return max(0.0, window - (now - last))

    def record(self, key: str, now: float) -> None:
        with self._lock:
            self._last[key] = now


class NotificationDispatcher:
    """
    Turns one poll cycle's transitions into at most one grouped alert.

    All grouped alerts share a single cooldown key: while fewer than
    cooldown_seconds have passed since the last delivered alert, notify()
    returns SUPPRESSED without touching the sink. The ledger only moves
    when the sink reports DELIVERED, so a denied or failed delivery is
    retried by the next cycle that has changes.

    Each dispatcher owns its ledger; independent instances never share
    cooldown state.
    """

    def __init__(
        self,
        sink: DeliverySink,
        cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
        enabled: bool = True,
        vibrate_millis: int = DEFAULT_VIBRATE_MILLIS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.sink             = sink
        self.cooldown_seconds = cooldown_seconds
        self.enabled          = enabled
        self.vibrate_millis   = vibrate_millis
        self.ledger           = CooldownLedger()
        self._clock           = clock
        self._lock            = Lock()

    def configure(self, cooldown_seconds: float, enabled: bool, vibrate_millis: int) -> None:
        self.cooldown_seconds = cooldown_seconds
        self.enabled          = enabled
        self.vibrate_millis   = vibrate_millis

    def notify(self, transitions: Sequence[Transition]) -> Optional[DispatchOutcome]:
        if not transitions:
            return None

        on  = sum(1 for t in transitions if t.direction is Direction.TURNED_ON)
        off = len(transitions) - on
        log.debug("Grouped notification requested (ON:%d, OFF:%d)", on, off)

        if not self.enabled:
            log.debug("Notifications disabled in settings — skipping")
            return DispatchOutcome.DISABLED

        # Held across check, deliver and record so two callers cannot both
        # pass the cooldown check.
        with self._lock:
            now = self._clock()
            remaining = self.ledger.remaining(GROUPED_KEY, now, self.cooldown_seconds)
            if remaining > 0:
                log.debug("Notification cooldown active — wait %.1fs", remaining)
                return DispatchOutcome.SUPPRESSED

            alert = build_alert(transitions)
            try:
                result = self.sink.deliver(alert)
            except Exception as exc:
                log.error("Sink %r raised during delivery: %s", self.sink.name, exc)
                return DispatchOutcome.FAILED

            if result is DeliveryResult.PERMISSION_DENIED:
                log.warning("Notification permission not granted — alert dropped")
                return DispatchOutcome.UNAVAILABLE
            if result is not DeliveryResult.DELIVERED:
                log.error("Notification delivery failed (ON:%d, OFF:%d)", on, off)
                return DispatchOutcome.FAILED

            self.ledger.record(GROUPED_KEY, now)

        log.info("Grouped notification posted (ON:%d, OFF:%d)", on, off)
        try:
            self.sink.vibrate(self.vibrate_millis)
        except Exception as exc:
            log.warning("Vibration failed: %s", exc)
        return DispatchOutcome.DELIVERED
