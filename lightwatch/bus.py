"""
Snapshot bus — pub/sub fan-out of AggregateView updates to observers.

Observers register a callable; the monitor publishes one view per poll
cycle (and one per on-demand refresh) without knowing how many observers
exist. Dispatch is synchronous by default; async dispatch uses a background
thread queue so the poll cycle never waits on a slow observer.
"""
import logging
import queue
import threading
from typing import Callable, Optional

from lightwatch.models import AggregateView

log = logging.getLogger(__name__)

Observer = Callable[[AggregateView], None]


class SnapshotBus:
    def __init__(self, async_dispatch: bool = False):
        self._observers: list[Observer] = []
        self._observers_lock = threading.Lock()
        self._async = async_dispatch
        self._queue: queue.Queue[Optional[AggregateView]] = queue.Queue()
        self._dispatch_thread: Optional[threading.Thread] = None
        self._running = False

        if async_dispatch:
            self._start_dispatch_thread()

    def _start_dispatch_thread(self):
        self._running = True
        self._dispatch_thread = threading.Thread(
            target=self._dispatch_loop, name="lightwatch-bus", daemon=True,
        )
        self._dispatch_thread.start()

    def _dispatch_loop(self):
        while self._running:
            try:
                view = self._queue.get(timeout=0.1)
            except queue.Empty:
                continue
            if view is None:
                break
            self._dispatch_sync(view)
            self._queue.task_done()

    def _dispatch_sync(self, view: AggregateView):
        with self._observers_lock:
            observers = list(self._observers)
        for observer in observers:
            try:
                observer(view)
            except Exception as exc:
                log.error("SnapshotBus observer error [%s]: %s",
                          getattr(observer, "__name__", observer), exc)

    def publish(self, view: AggregateView):
        if self._async:
            self._queue.put(view)
        else:
            self._dispatch_sync(view)

    def subscribe(self, observer: Observer):
        with self._observers_lock:
            self._observers.append(observer)

    def unsubscribe(self, observer: Observer):
        with self._observers_lock:
            try:
                self._observers.remove(observer)
            except ValueError:
                pass

    @property
    def observer_count(self) -> int:
        with self._observers_lock:
            return len(self._observers)

    def stop(self):
        # The sentinel queues behind any pending views, so those still go out
        if self._async and self._running:
            self._queue.put(None)
            if self._dispatch_thread:
                self._dispatch_thread.join(timeout=2)
        self._running = False
