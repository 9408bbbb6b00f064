"""Structured event logging for dealcalc.

Provides a unified event schema, filesystem NDJSON sink, and safe
emit helpers that never raise uncaught exceptions.
"""

from dealcalc.logging.events import (
    EventLevel,
    EventType,
    FormulaEvent,
    emit,
    emit_info,
    get_sink,
    make_calculator_event,
    make_formula_event,
    set_log_dir,
    truncate_context,
)
from dealcalc.logging.sink import EventSink

__all__ = [
    "EventLevel",
    "EventSink",
    "EventType",
    "FormulaEvent",
    "emit",
    "emit_info",
    "get_sink",
    "make_calculator_event",
    "make_formula_event",
    "set_log_dir",
    "truncate_context",
]
