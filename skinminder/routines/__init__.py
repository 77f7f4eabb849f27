"""Routine extraction from assistant replies."""

from skinminder.routines.parser import (
    PlainMessage,
    RoutinePlan,
    ParseResult,
    parse_routine_text,
)

__all__ = [
    "PlainMessage",
    "RoutinePlan",
    "ParseResult",
    "parse_routine_text",
]
