import logging
import math
import signal
import threading
import time
from enum import Enum
from typing import Any, Optional

from lightwatch.models import AggregateView
from lightwatch.monitor import LightMonitor

log = logging.getLogger(__name__)


class SchedulerState(Enum):
    IDLE    = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


class PollScheduler:
    """
    Fixed-rate poll scheduler. Runs monitor.run_cycle() immediately on
    start, then on every interval boundary until stopped.

    Overlap policy: cycles are serialised by a cycle lock. When a cycle
    runs past one or more tick boundaries, those ticks are skipped and the
    schedule resumes at the next boundary still in the future. Out-of-band
    run_once() calls take the same lock, so they wait for an in-flight
    cycle rather than racing it.

    stop() only prevents future ticks. A cycle already in progress runs to
    completion; the stop event is checked between cycles and wakes the
    inter-cycle wait early.

    The interval is re-read from the monitor's settings after each cycle
    unless one was fixed at construction time.
    """

    def __init__(self, monitor: LightMonitor, interval_secs: Optional[float] = None) -> None:
        self._monitor     = monitor
        self._interval    = interval_secs
        self._stop_event  = threading.Event()
        self._cycle_lock  = threading.Lock()
        self._state_lock  = threading.Lock()
        self._state       = SchedulerState.IDLE
        self._thread: Optional[threading.Thread] = None
        self._cycle_count = 0
        self._skipped     = 0

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def cycle_count(self) -> int:
        return self._cycle_count

    @property
    def skipped_ticks(self) -> int:
        return self._skipped

    @property
    def interval(self) -> float:
        return self._interval or self._monitor.poll_interval_seconds

    def run_once(self) -> dict[str, Any]:
        """Execute exactly one cycle, serialised with any scheduled cycle."""
        with self._cycle_lock:
            cycle = self._cycle_count + 1
            log.info("=== Cycle %d starting ===", cycle)
            start = time.monotonic()
            stats = self._monitor.run_cycle()
            elapsed = time.monotonic() - start
            self._cycle_count = cycle
        log.info(
            "=== Cycle %d complete in %.2fs | %s | readings=%d on=%d off=%d dispatch=%s ===",
            cycle,
            elapsed,
            stats["status"],
            stats["readings"],
            len(stats["turned_on"]),
            len(stats["turned_off"]),
            stats["dispatch"].value if stats["dispatch"] else "-",
        )
        return stats

    def request_update(self) -> AggregateView:
        """Publish the current snapshot now. Does not touch the tick schedule."""
        return self._monitor.request_update()

    def start(self) -> None:
        """Start ticking on a background thread."""
        self._transition_to_running()
        self._thread = threading.Thread(target=self._loop, name="lightwatch-poll", daemon=True)
        self._thread.start()

    def stop(self, wait: bool = False, timeout: Optional[float] = None) -> None:
        """Prevent further ticks. With wait=True, also join the worker thread."""
        with self._state_lock:
            if self._state is SchedulerState.STOPPED:
                return
            self._state = SchedulerState.STOPPED
        self._stop_event.set()
        if wait and self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)

    def run_forever(self) -> None:
        """
        Tick in the calling thread until stop() is called or SIGINT/SIGTERM
        is received.
        """
        self._register_signals()
        self._transition_to_running()
        log.info("Scheduler starting — poll interval: %.1fs. Press Ctrl+C to stop.", self.interval)
        self._loop()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _transition_to_running(self) -> None:
        with self._state_lock:
            if self._state is not SchedulerState.IDLE:
                raise RuntimeError(f"Scheduler cannot start from state {self._state.value!r}")
            self._state = SchedulerState.RUNNING

    def _loop(self) -> None:
        next_due = time.monotonic()
        while not self._stop_event.is_set():
            try:
                self.run_once()
            except Exception:
                # run_cycle contains its own failures; this guards the tick loop
                log.exception("Unexpected error in poll cycle")

            interval = self.interval
            next_due += interval
            now = time.monotonic()
            if now > next_due:
                missed = math.ceil((now - next_due) / interval)
                self._skipped += missed
                next_due += missed * interval
                log.warning("Cycle overran its interval — skipping %d tick(s)", missed)

            self._stop_event.wait(max(0.0, next_due - now))

        log.info("Scheduler stopped after %d cycle(s).", self._cycle_count)

    def _register_signals(self) -> None:
        signal.signal(signal.SIGINT,  self._handle_shutdown)
        signal.signal(signal.SIGTERM, self._handle_shutdown)

    def _handle_shutdown(self, signum: int, frame: Any) -> None:
        log.info("Signal %d received — stopping after current cycle.", signum)
        self.stop()
