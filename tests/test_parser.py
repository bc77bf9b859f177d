"""
Unit tests for feed payload parsing.

Run with:  pytest tests/ -v
"""
import json
import math

import pytest

from lightwatch.exceptions import ParseError
from lightwatch.parser import _to_float, _to_int, parse


def _payload(*entries) -> bytes:
    return json.dumps({"data": list(entries)}).encode("utf-8")


# ---------------------------------------------------------------------------
# Top-level shape
# ---------------------------------------------------------------------------

class TestTopLevel:
    def test_valid_payload(self):
        readings = parse(_payload(
            {"timestamp": 1700000000, "label": "light1", "value": 212.5, "mote": "9.138"},
        ))
        assert len(readings) == 1
        r = readings[0]
        assert r.mote_id == "9.138"
        assert r.label == "light1"
        assert r.value == 212.5
        assert r.observed_at == 1700000000

    def test_empty_data_array(self):
        assert parse(_payload()) == []

    def test_invalid_json_raises(self):
        with pytest.raises(ParseError):
            parse(b"<html>502 Bad Gateway</html>")

    def test_top_level_list_raises(self):
        with pytest.raises(ParseError):
            parse(b'[{"mote": "a", "value": 1}]')

    def test_missing_data_key_raises(self):
        with pytest.raises(ParseError):
            parse(b'{"results": []}')

    def test_data_not_a_list_raises(self):
        with pytest.raises(ParseError):
            parse(b'{"data": {"mote": "a"}}')

    def test_order_preserved(self):
        readings = parse(_payload(
            {"mote": "b", "value": 1},
            {"mote": "a", "value": 2},
        ))
        assert [r.mote_id for r in readings] == ["b", "a"]


# ---------------------------------------------------------------------------
# Per-entry leniency
# ---------------------------------------------------------------------------

class TestEntries:
    def test_missing_value_dropped(self):
        assert parse(_payload({"mote": "a", "label": "light1"})) == []

    def test_nan_value_dropped(self):
        assert parse(b'{"data": [{"mote": "a", "value": NaN}]}') == []

    def test_infinite_value_dropped(self):
        assert parse(b'{"data": [{"mote": "a", "value": Infinity}]}') == []

    def test_non_numeric_value_dropped(self):
        assert parse(_payload({"mote": "a", "value": "bright"})) == []

    def test_boolean_value_dropped(self):
        assert parse(_payload({"mote": "a", "value": True})) == []

    def test_missing_mote_dropped(self):
        assert parse(_payload({"value": 10.0})) == []

    def test_unknown_mote_dropped(self):
        assert parse(_payload({"mote": "unknown", "value": 10.0})) == []

    def test_non_object_entry_dropped(self):
        readings = parse(_payload("garbage", 42, {"mote": "a", "value": 1.0}))
        assert [r.mote_id for r in readings] == ["a"]

    def test_missing_timestamp_defaults_to_zero(self):
        readings = parse(_payload({"mote": "a", "value": 1.0}))
        assert readings[0].observed_at == 0

    def test_bad_timestamp_defaults_to_zero(self):
        readings = parse(_payload({"mote": "a", "value": 1.0, "timestamp": "yesterday"}))
        assert readings[0].observed_at == 0

    def test_missing_label_defaults_to_unknown(self):
        readings = parse(_payload({"mote": "a", "value": 1.0}))
        assert readings[0].label == "unknown"

    def test_numeric_string_value_accepted(self):
        readings = parse(_payload({"mote": "a", "value": "230.5"}))
        assert readings[0].value == 230.5

    def test_numeric_mote_coerced_to_string(self):
        readings = parse(_payload({"mote": 153, "value": 1.0}))
        assert readings[0].mote_id == "153"

    def test_bad_entry_does_not_drop_neighbours(self):
        readings = parse(_payload(
            {"mote": "a", "value": 1.0},
            {"mote": "b"},
            {"mote": "c", "value": 3.0, "timestamp": None},
        ))
        assert [r.mote_id for r in readings] == ["a", "c"]


# ---------------------------------------------------------------------------
# Coercion helpers
# ---------------------------------------------------------------------------

class TestCoercion:
    def test_to_float_none(self):
        assert _to_float(None) is None

    def test_to_float_string(self):
        assert _to_float("3.5") == 3.5

    def test_to_float_nan_string(self):
        assert math.isnan(_to_float("nan"))

    def test_to_int_float_truncated(self):
        assert _to_int(1700000000.9) == 1700000000

    def test_to_int_garbage(self):
        assert _to_int("n/a") is None


class TestOversizedNumbers:
    def test_integer_too_large_for_float_is_dropped(self):
        huge = "1" + "0" * 400
        body = ('{"data": [{"mote": "a", "value": %s}, {"mote": "b", "value": 250.0}]}' % huge).encode()
        readings = parse(body)
        assert [r.mote_id for r in readings] == ["b"]

    def test_to_float_overflow_returns_none(self):
        assert _to_float(10 ** 400) is None
