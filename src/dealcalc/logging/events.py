"""Unified event schema and module-level emit helpers.

All timestamps use UTC ISO-8601 with ``Z`` suffix.  The ``emit()``
family of functions is safe to call from any context -- failures are
swallowed and printed to stderr.
"""

from __future__ import annotations

import sys
import time
import traceback
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class EventLevel(str, Enum):
    info = "info"
    warning = "warning"
    error = "error"


class EventType(str, Enum):
    # Named formula slots
    formula_saved = "formula_saved"
    formula_rejected = "formula_rejected"
    formulas_reset = "formulas_reset"

    # Custom calculator
    calculator_saved = "calculator_saved"
    calculator_rejected = "calculator_rejected"
    calculator_deleted = "calculator_deleted"


# ---------------------------------------------------------------------------
# Error codes
# ---------------------------------------------------------------------------

FORMULA_INVALID = "formula_invalid"
CALCULATOR_INVALID = "calculator_invalid"


# ---------------------------------------------------------------------------
# Context truncation
# ---------------------------------------------------------------------------

_MAX_VALUE_LEN = 256


def truncate_context(context: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of *context* with long strings truncated.

    Formula text is user-authored and unbounded; log lines are not.
    """
    out: dict[str, Any] = {}
    for k, v in context.items():
        if isinstance(v, dict):
            out[k] = truncate_context(v)
        elif isinstance(v, list):
            out[k] = [_truncate_value(item) for item in v]
        else:
            out[k] = _truncate_value(v)
    return out


def _truncate_value(v: Any) -> Any:
    if isinstance(v, dict):
        return truncate_context(v)
    if isinstance(v, str) and len(v) > _MAX_VALUE_LEN:
        return v[:_MAX_VALUE_LEN] + "...[truncated]"
    return v


# ---------------------------------------------------------------------------
# Attribution invariants
# ---------------------------------------------------------------------------

_FORMULA_EVENT_REQUIRED = {"slot"}
_CALCULATOR_EVENT_REQUIRED = {"calculator_id"}

_EVENT_REQUIRED_KEYS: dict[str, set[str]] = {
    EventType.formula_saved.value: _FORMULA_EVENT_REQUIRED,
    EventType.formula_rejected.value: _FORMULA_EVENT_REQUIRED,
    EventType.formulas_reset.value: set(),
    EventType.calculator_saved.value: _CALCULATOR_EVENT_REQUIRED,
    EventType.calculator_rejected.value: set(),  # id may not exist yet
    EventType.calculator_deleted.value: _CALCULATOR_EVENT_REQUIRED,
}


def _validate_attribution(event: FormulaEvent) -> FormulaEvent:
    """Check required context keys; downgrade to warning if missing."""
    required = _EVENT_REQUIRED_KEYS.get(event.event_type.value, set())
    if not required:
        return event
    missing = required - set(event.context.keys())
    if missing:
        ctx = dict(event.context)
        ctx["_missing_attribution"] = sorted(missing)
        return event.model_copy(update={"level": EventLevel.warning, "context": ctx})
    return event


# ---------------------------------------------------------------------------
# Helper constructors for consistent attribution
# ---------------------------------------------------------------------------


def make_formula_event(
    event_type: EventType,
    level: EventLevel,
    message: str,
    *,
    slot: str,
    expression: str | None = None,
    is_default: bool | None = None,
    error_code: str | None = None,
    extra: dict[str, Any] | None = None,
) -> FormulaEvent:
    """Build an event with guaranteed formula-slot attribution context."""
    ctx: dict[str, Any] = {"slot": slot}
    if expression is not None:
        ctx["expression"] = expression
    if is_default is not None:
        ctx["is_default"] = is_default
    if extra:
        ctx.update(extra)
    return FormulaEvent(
        level=level,
        event_type=event_type,
        message=message,
        context=ctx,
        error_code=error_code,
    )


def make_calculator_event(
    event_type: EventType,
    level: EventLevel,
    message: str,
    *,
    calculator_id: str | None = None,
    formula: str | None = None,
    error_code: str | None = None,
    extra: dict[str, Any] | None = None,
) -> FormulaEvent:
    """Build an event with custom calculator attribution context."""
    ctx: dict[str, Any] = {}
    if calculator_id is not None:
        ctx["calculator_id"] = calculator_id
    if formula is not None:
        ctx["formula"] = formula
    if extra:
        ctx.update(extra)
    return FormulaEvent(
        level=level,
        event_type=event_type,
        message=message,
        context=ctx,
        error_code=error_code,
    )


# ---------------------------------------------------------------------------
# Event model
# ---------------------------------------------------------------------------


def _utc_now() -> str:
    """Return current UTC timestamp in ISO-8601 with Z suffix."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class FormulaEvent(BaseModel):
    """A single structured log event."""

    schema_version: int = 1
    ts: str = Field(default_factory=_utc_now)
    level: EventLevel
    event_type: EventType
    context: dict[str, Any] = Field(default_factory=dict)
    message: str = ""
    error_code: str | None = None


# ---------------------------------------------------------------------------
# Module-level sink reference
# ---------------------------------------------------------------------------

# Set by ``set_log_dir``; ``None`` means events are discarded.
_sink: Any = None  # EventSink | None


def set_log_dir(log_dir: Any, *, fsync: bool = False, tail_bytes: int | None = None) -> None:
    """Configure the module-level event sink.

    This should be called early in a CLI command or host application
    startup.  If it is never called, ``emit()`` silently discards events.
    Passing ``None`` disables the sink again.
    """
    global _sink
    from pathlib import Path

    from dealcalc.logging.sink import EventSink

    if log_dir is None:
        _sink = None
        return
    _sink = EventSink(Path(log_dir), fsync=fsync, tail_bytes=tail_bytes)


def get_sink() -> Any:
    """Return the module-level sink, or None."""
    return _sink


# ---------------------------------------------------------------------------
# Rate-limited stderr warnings
# ---------------------------------------------------------------------------

_last_stderr_ts: float = 0.0
_STDERR_INTERVAL_SECS = 60.0


def _stderr_warning(msg: str) -> None:
    """Print a warning to stderr, rate-limited to one per 60 seconds."""
    global _last_stderr_ts
    now = time.monotonic()
    if now - _last_stderr_ts < _STDERR_INTERVAL_SECS:
        return
    _last_stderr_ts = now
    try:
        print(f"[dealcalc] {msg}", file=sys.stderr)
    except Exception:
        pass


# ---------------------------------------------------------------------------
# Safe emit helpers
# ---------------------------------------------------------------------------


def emit(event: FormulaEvent) -> None:
    """Write an event to the configured log.

    **Never raises.**  On failure, prints a rate-limited warning to stderr.

    Applies truncation and attribution validation before writing.
    """
    try:
        sink = get_sink()
        if sink is None:
            return
        event = event.model_copy(update={"context": truncate_context(event.context)})
        event = _validate_attribution(event)
        sink.write(event)
    except Exception:
        _stderr_warning(f"logging failed: {traceback.format_exc()}")


def emit_info(
    event_type: EventType,
    message: str,
    context: dict[str, Any] | None = None,
) -> None:
    """Convenience: emit an info-level event."""
    emit(
        FormulaEvent(
            level=EventLevel.info,
            event_type=event_type,
            message=message,
            context=context or {},
        )
    )
