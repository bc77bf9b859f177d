"""
Unit tests for grouped alert formatting and the cooldown-gated dispatcher.
"""
import pytest

from lightwatch.models import DeliveryResult, Direction, DispatchOutcome, Transition
from lightwatch.notifier import (
    GROUPED_KEY,
    CooldownLedger,
    NotificationDispatcher,
    build_alert,
    build_body,
    build_expanded_body,
    build_title,
)
from lightwatch.sinks.base import DeliverySink


class _RecordingSink(DeliverySink):
    name = "recording"

    def __init__(self, result: DeliveryResult = DeliveryResult.DELIVERED) -> None:
        super().__init__({})
        self.result    = result
        self.alerts    = []
        self.vibrations = []

    def deliver(self, alert):
        self.alerts.append(alert)
        return self.result

    def vibrate(self, millis):
        self.vibrations.append(millis)


class _RaisingSink(_RecordingSink):
    def deliver(self, alert):
        raise RuntimeError("channel gone")


class _Clock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def _on(mote):
    return Transition(mote, Direction.TURNED_ON)


def _off(mote):
    return Transition(mote, Direction.TURNED_OFF)


def _dispatcher(sink=None, clock=None, **kwargs):
    return NotificationDispatcher(sink or _RecordingSink(), clock=clock or _Clock(), **kwargs)


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------

class TestFormatting:
    def test_single_on_title_names_mote(self):
        title = build_title(["9.138"], [])
        assert "9.138" in title
        assert "on" in title

    def test_single_off_title_names_mote(self):
        title = build_title([], ["9.138"])
        assert "9.138" in title
        assert "off" in title

    def test_multiple_title_has_count(self):
        assert "3 changes detected" in build_title(["a", "b"], ["c"])

    def test_body_lists_each_direction_on_its_own_line(self):
        body = build_body(["a", "b"], ["c"])
        lines = body.split("\n")
        assert len(lines) == 2
        assert lines[0].endswith("ON: a, b")
        assert lines[1].endswith("OFF: c")

    def test_body_only_on(self):
        assert "\n" not in build_body(["a"], [])

    def test_expanded_body_bullets(self):
        expanded = build_expanded_body(["a"], ["b", "c"])
        assert "LIGHTS ON:\n  • a\n" in expanded
        assert "LIGHTS OFF:\n  • b\n  • c\n" in expanded

    def test_build_alert_groups_by_direction(self):
        alert = build_alert([_on("a"), _off("b"), _on("c")])
        assert "ON: a, c" in alert.body
        assert "OFF: b" in alert.body
        assert alert.requires_permission_check is True


# ---------------------------------------------------------------------------
# CooldownLedger
# ---------------------------------------------------------------------------

class TestCooldownLedger:
    def test_empty_ledger_has_no_remaining(self):
        assert CooldownLedger().remaining(GROUPED_KEY, 10.0, 5.0) == 0.0

    def test_remaining_after_record(self):
        ledger = CooldownLedger()
        ledger.record(GROUPED_KEY, 10.0)
        assert ledger.remaining(GROUPED_KEY, 12.0, 5.0) == pytest.approx(3.0)

    def test_window_elapsed(self):
        ledger = CooldownLedger()
        ledger.record(GROUPED_KEY, 10.0)
        assert ledger.remaining(GROUPED_KEY, 15.0, 5.0) == 0.0


# ---------------------------------------------------------------------------
# NotificationDispatcher
# ---------------------------------------------------------------------------

class TestDispatcher:
    def test_empty_transitions_is_noop(self):
        sink = _RecordingSink()
        dispatcher = _dispatcher(sink)
        assert dispatcher.notify([]) is None
        assert sink.alerts == []
        assert dispatcher.ledger.last(GROUPED_KEY) is None

    def test_two_transitions_one_grouped_call(self):
        sink = _RecordingSink()
        outcome = _dispatcher(sink).notify([_on("a"), _off("b")])
        assert outcome is DispatchOutcome.DELIVERED
        assert len(sink.alerts) == 1
        assert "a" in sink.alerts[0].body and "b" in sink.alerts[0].body

    def test_delivery_records_ledger_and_vibrates(self):
        sink = _RecordingSink()
        clock = _Clock(42.0)
        dispatcher = _dispatcher(sink, clock, vibrate_millis=150)
        dispatcher.notify([_on("a")])
        assert dispatcher.ledger.last(GROUPED_KEY) == 42.0
        assert sink.vibrations == [150]

    def test_second_call_within_cooldown_suppressed(self):
        sink = _RecordingSink()
        clock = _Clock(100.0)
        dispatcher = _dispatcher(sink, clock, cooldown_seconds=5.0)

        first = dispatcher.notify([_on("a")])
        clock.now = 103.0
        second = dispatcher.notify([_off("a")])

        assert first is DispatchOutcome.DELIVERED
        assert second is DispatchOutcome.SUPPRESSED
        assert len(sink.alerts) == 1
        assert dispatcher.ledger.last(GROUPED_KEY) == 100.0

    def test_call_after_cooldown_delivered(self):
        sink = _RecordingSink()
        clock = _Clock(100.0)
        dispatcher = _dispatcher(sink, clock, cooldown_seconds=5.0)
        dispatcher.notify([_on("a")])
        clock.now = 105.0
        assert dispatcher.notify([_off("a")]) is DispatchOutcome.DELIVERED
        assert dispatcher.ledger.last(GROUPED_KEY) == 105.0

    def test_permission_denied_is_unavailable_and_ledger_untouched(self):
        sink = _RecordingSink(DeliveryResult.PERMISSION_DENIED)
        dispatcher = _dispatcher(sink)
        assert dispatcher.notify([_on("a")]) is DispatchOutcome.UNAVAILABLE
        assert dispatcher.ledger.last(GROUPED_KEY) is None
        assert sink.vibrations == []

    def test_unavailable_allows_immediate_retry(self):
        sink = _RecordingSink(DeliveryResult.PERMISSION_DENIED)
        dispatcher = _dispatcher(sink)
        dispatcher.notify([_on("a")])
        sink.result = DeliveryResult.DELIVERED
        assert dispatcher.notify([_on("b")]) is DispatchOutcome.DELIVERED

    def test_sink_failure_is_failed(self):
        sink = _RecordingSink(DeliveryResult.FAILED)
        dispatcher = _dispatcher(sink)
        assert dispatcher.notify([_on("a")]) is DispatchOutcome.FAILED
        assert dispatcher.ledger.last(GROUPED_KEY) is None

    def test_sink_exception_is_failed(self):
        dispatcher = _dispatcher(_RaisingSink())
        assert dispatcher.notify([_on("a")]) is DispatchOutcome.FAILED
        assert dispatcher.ledger.last(GROUPED_KEY) is None

    def test_disabled_skips_sink(self):
        sink = _RecordingSink()
        dispatcher = _dispatcher(sink, enabled=False)
        assert dispatcher.notify([_on("a")]) is DispatchOutcome.DISABLED
        assert sink.alerts == []

    def test_independent_dispatchers_do_not_share_cooldown(self):
        clock = _Clock()
        first  = _dispatcher(clock=clock)
        second = _dispatcher(clock=clock)
        assert first.notify([_on("a")]) is DispatchOutcome.DELIVERED
        assert second.notify([_on("a")]) is DispatchOutcome.DELIVERED
