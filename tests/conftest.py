import json

import pytest

from lightwatch.bus import SnapshotBus
from lightwatch.models import DeliveryResult
from lightwatch.monitor import LightMonitor
from lightwatch.notifier import NotificationDispatcher
from lightwatch.publisher import SnapshotPublisher
from lightwatch.settings import ConfigStore, Settings
from lightwatch.sinks.base import DeliverySink
from lightwatch.store import SensorStateStore


class FakeFeedClient:
    """Returns queued bodies / raises queued errors, one per fetch()."""

    def __init__(self) -> None:
        self.queue = []
        self.calls = 0

    def push_entries(self, *entries) -> None:
        self.queue.append(json.dumps({"data": list(entries)}).encode("utf-8"))

    def push(self, item) -> None:
        self.queue.append(item)

    def fetch(self, url, connect_timeout, read_timeout):
        self.calls += 1
        item = self.queue.pop(0) if self.queue else b'{"data": []}'
        if isinstance(item, Exception):
            raise item
        return item

    def close(self):
        pass


class RecordingSink(DeliverySink):
    name = "recording"

    def __init__(self) -> None:
        super().__init__({})
        self.alerts = []

    def deliver(self, alert):
        self.alerts.append(alert)
        return DeliveryResult.DELIVERED


class ManualClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def feed():
    return FakeFeedClient()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def published():
    return []


@pytest.fixture
def monitor(feed, sink, clock, published):
    config = ConfigStore(settings=Settings(server_url="http://sensors.example.com/AMIO-API"))
    store  = SensorStateStore()
    bus    = SnapshotBus()
    bus.subscribe(published.append)
    dispatcher = NotificationDispatcher(sink, clock=clock)
    return LightMonitor(
        config     = config,
        client     = feed,
        store      = store,
        dispatcher = dispatcher,
        publisher  = SnapshotPublisher(store, bus),
    )
