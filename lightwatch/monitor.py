import logging
from typing import Any, Optional

from lightwatch.bus import SnapshotBus
from lightwatch.exceptions import FetchError, HttpStatusError, ParseError
from lightwatch.fetcher import FeedClient
from lightwatch.models import AggregateView, Direction, DispatchOutcome, Transition
from lightwatch.notifier import NotificationDispatcher
from lightwatch.parser import parse
from lightwatch.publisher import CURRENT_STATE, SnapshotPublisher
from lightwatch.settings import ConfigStore
from lightwatch.sinks import build_sink
from lightwatch.store import SensorStateStore

log = logging.getLogger(__name__)

STATUS_OK = "Data fetched successfully"


class LightMonitor:
    """
    One detect-and-alert pipeline: fetch -> parse -> apply -> notify -> publish.

    run_cycle() always runs to the end. A fetch or parse failure yields zero
    readings and a status-only snapshot; the store keeps whatever it already
    held. Settings are re-read at the start of every cycle so runtime
    overrides apply from the next cycle on.

    LightMonitor does not serialise cycles itself; PollScheduler does.
    """

    def __init__(
        self,
        config: ConfigStore,
        client: FeedClient,
        store: SensorStateStore,
        dispatcher: NotificationDispatcher,
        publisher: SnapshotPublisher,
    ) -> None:
        self.config     = config
        self.client     = client
        self.store      = store
        self.dispatcher = dispatcher
        self.publisher  = publisher

    @classmethod
    def from_config(cls, config: ConfigStore, bus: Optional[SnapshotBus] = None) -> "LightMonitor":
        """Wire up the default components from the current settings."""
        settings = config.get()
        store = SensorStateStore(settings.light_threshold, settings.delta_on, settings.delta_off)
        dispatcher = NotificationDispatcher(
            sink             = build_sink(settings.sink),
            cooldown_seconds = settings.notification_cooldown_seconds,
            enabled          = settings.notifications_enabled,
            vibrate_millis   = settings.vibrate_millis,
        )
        return cls(
            config     = config,
            client     = FeedClient(),
            store      = store,
            dispatcher = dispatcher,
            publisher  = SnapshotPublisher(store, bus),
        )

    @property
    def poll_interval_seconds(self) -> float:
        return self.config.get().poll_interval_seconds

    def run_cycle(self) -> dict[str, Any]:
        """
        Execute one poll cycle.

        Returns a stats dict:
        {
            "fetch_ok":    bool,
            "status":      str,
            "readings":    int,
            "transitions": int,
            "turned_on":   [mote_id, ...],
            "turned_off":  [mote_id, ...],
            "dispatch":    DispatchOutcome | None,
            "snapshot":    AggregateView,
        }
        """
        settings = self.config.get()
        self.store.configure(settings.light_threshold, settings.delta_on, settings.delta_off)
        self.dispatcher.configure(
            settings.notification_cooldown_seconds,
            settings.notifications_enabled,
            settings.vibrate_millis,
        )

        log.debug("Fetching data from %s", settings.server_url)
        raw_text: Optional[str] = None
        readings = []
        try:
            body = self.client.fetch(
                settings.server_url,
                settings.connect_timeout_seconds,
                settings.read_timeout_seconds,
            )
            raw_text = body.decode("utf-8", errors="replace")
            readings = parse(body)
            status = STATUS_OK
        except HttpStatusError as exc:
            log.error("HTTP request failed with code: %d", exc.status_code)
            status = str(exc)
        except FetchError as exc:
            log.error("Error fetching data from server: %s", exc)
            status = f"Fetch error: {exc}"
        except ParseError as exc:
            log.error("Error parsing feed payload: %s", exc)
            status = f"Parse error: {exc}"
        except ValueError as exc:
            # Invalid URL or timeouts from a bad runtime override
            log.error("Invalid feed configuration: %s", exc)
            status = f"Fetch error: {exc}"

        transitions: list[Transition] = []
        for reading in readings:
            transition = self.store.apply(reading)
            if transition is not None:
                transitions.append(transition)

        turned_on  = [t.mote_id for t in transitions if t.direction is Direction.TURNED_ON]
        turned_off = [t.mote_id for t in transitions if t.direction is Direction.TURNED_OFF]

        outcome: Optional[DispatchOutcome] = None
        if transitions:
            outcome = self.dispatcher.notify(transitions)

        snapshot = self.publisher.publish(status, raw_text if status == STATUS_OK else None)

        log.debug(
            "Parsing complete. Total sensors tracked: %d, Turned ON: %d, Turned OFF: %d",
            snapshot.sensor_count, len(turned_on), len(turned_off),
        )
        return {
            "fetch_ok":    status == STATUS_OK,
            "status":      status,
            "readings":    len(readings),
            "transitions": len(transitions),
            "turned_on":   turned_on,
            "turned_off":  turned_off,
            "dispatch":    outcome,
            "snapshot":    snapshot,
        }

    def request_update(self) -> AggregateView:
        """Publish the current state out of band, without fetching."""
        log.debug("Received request for immediate update")
        return self.publisher.publish(CURRENT_STATE)

    def close(self) -> None:
        self.client.close()
        self.publisher.bus.stop()
