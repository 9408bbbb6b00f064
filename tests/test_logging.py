"""Tests for the structured event logging system."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from dealcalc.formulas import CustomCalculator, FormulaSettings, FormulaValidationError
from dealcalc.logging import (
    EventLevel,
    EventSink,
    EventType,
    FormulaEvent,
    emit,
    emit_info,
    make_formula_event,
    truncate_context,
)


@pytest.fixture
def sink(tmp_path: Path) -> EventSink:
    return EventSink(tmp_path / "logs")


# ---------------------------------------------------------------------------
# Event schema
# ---------------------------------------------------------------------------


class TestFormulaEvent:
    def test_event_defaults(self) -> None:
        evt = FormulaEvent(
            level=EventLevel.info,
            event_type=EventType.formula_saved,
            message="hello",
        )
        assert evt.schema_version == 1
        assert evt.ts.endswith("Z")
        assert evt.level == "info"
        assert evt.event_type == "formula_saved"
        assert evt.context == {}
        assert evt.error_code is None

    def test_make_formula_event(self) -> None:
        evt = make_formula_event(
            EventType.formula_saved,
            EventLevel.info,
            "saved",
            slot="mao",
            expression="ARV",
            is_default=False,
        )
        assert evt.context == {"slot": "mao", "expression": "ARV", "is_default": False}

    def test_truncate_context(self) -> None:
        ctx = truncate_context({"expression": "A" * 1000, "nested": {"x": "B" * 300}, "n": 1})
        assert ctx["expression"].endswith("...[truncated]")
        assert len(ctx["expression"]) < 300
        assert ctx["nested"]["x"].endswith("...[truncated]")
        assert ctx["n"] == 1


# ---------------------------------------------------------------------------
# Sink
# ---------------------------------------------------------------------------


class TestEventSink:
    def test_write_and_read(self, sink: EventSink) -> None:
        sink.write(FormulaEvent(level=EventLevel.info, event_type=EventType.formulas_reset))
        sink.write(FormulaEvent(
            level=EventLevel.warning,
            event_type=EventType.formula_rejected,
            context={"slot": "mao"},
        ))
        events = sink.read_events()
        assert [e["event_type"] for e in events] == ["formula_rejected", "formulas_reset"]

    def test_lines_are_sorted_json(self, sink: EventSink) -> None:
        sink.write(FormulaEvent(level=EventLevel.info, event_type=EventType.formulas_reset))
        line = sink.path.read_text().strip()
        data = json.loads(line)
        assert list(data) == sorted(data)

    def test_filters(self, sink: EventSink) -> None:
        for slot in ("mao", "rule70"):
            sink.write(make_formula_event(
                EventType.formula_saved, EventLevel.info, "saved", slot=slot
            ))
        assert len(sink.read_events(slot="rule70")) == 1
        assert len(sink.read_events(level="warning")) == 0
        assert len(sink.read_events(event_type="formula_saved")) == 2
        assert len(sink.read_events(limit=1)) == 1

    def test_skips_corrupt_lines(self, sink: EventSink) -> None:
        sink.path.write_text("not json\n")
        sink.write(FormulaEvent(level=EventLevel.info, event_type=EventType.formulas_reset))
        assert len(sink.read_events()) == 1

    def test_missing_file(self, sink: EventSink) -> None:
        assert sink.read_events() == []

    def test_tail_read(self, tmp_path: Path) -> None:
        small = EventSink(tmp_path / "tail", tail_bytes=400)
        for _ in range(20):
            small.write(FormulaEvent(level=EventLevel.info, event_type=EventType.formulas_reset))
        events = small.read_events()
        assert 0 < len(events) < 20


# ---------------------------------------------------------------------------
# Emit helpers
# ---------------------------------------------------------------------------


class TestEmit:
    def test_no_sink_is_silent(self) -> None:
        emit_info(EventType.formulas_reset, "nothing configured")

    def test_attribution_downgrade(self, log_dir: Path) -> None:
        emit(FormulaEvent(
            level=EventLevel.info,
            event_type=EventType.formula_saved,
            message="no slot",
        ))
        events = EventSink(log_dir).read_events()
        assert events[0]["level"] == "warning"
        assert events[0]["context"]["_missing_attribution"] == ["slot"]

    def test_emit_truncates(self, log_dir: Path) -> None:
        emit(make_formula_event(
            EventType.formula_saved, EventLevel.info, "saved", slot="mao", expression="1+" * 500
        ))
        events = EventSink(log_dir).read_events()
        assert events[0]["context"]["expression"].endswith("...[truncated]")


class TestModelEvents:
    def test_save_formula(self, log_dir: Path) -> None:
        FormulaSettings().save_formula("mao", "ARV * 0.5")
        (evt,) = EventSink(log_dir).read_events()
        assert evt["event_type"] == "formula_saved"
        assert evt["context"] == {"slot": "mao", "expression": "ARV * 0.5", "is_default": False}

    def test_rejected_formula(self, log_dir: Path) -> None:
        with pytest.raises(FormulaValidationError):
            FormulaSettings().save_formula("rule70", "ARV * Foo")
        (evt,) = EventSink(log_dir).read_events()
        assert evt["event_type"] == "formula_rejected"
        assert evt["level"] == "warning"
        assert evt["error_code"] == "formula_invalid"
        assert evt["message"] == "Unknown variable: Foo"

    def test_reset(self, log_dir: Path) -> None:
        settings = FormulaSettings()
        settings.save_custom_calculator(CustomCalculator.create("Q", "ARV"))
        settings.reset_to_defaults()
        evt = EventSink(log_dir).read_events(event_type="formulas_reset")[0]
        assert evt["context"] == {"kept_custom_calculator": True}

    def test_calculator_events(self, log_dir: Path) -> None:
        settings = FormulaSettings()
        calc = CustomCalculator.create("Q", "ARV", ["arv"])
        settings.save_custom_calculator(calc)
        settings.delete_custom_calculator()
        events = EventSink(log_dir).read_events()
        assert [e["event_type"] for e in events] == ["calculator_deleted", "calculator_saved"]
        assert events[1]["context"]["inputs"] == ["arv"]
        assert all(e["context"]["calculator_id"] == calc.id for e in events)
