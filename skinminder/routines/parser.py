"""
Tool: Routine Text Parser
Purpose: Pull morning/evening/weekly steps out of a freeform assistant reply

Usage:
    from skinminder.routines.parser import parse_routine_text, RoutinePlan

    result = parse_routine_text(reply)
    if isinstance(result, RoutinePlan):
        render_routine_card(result.morning, result.evening, result.weekly)
    else:
        render_bubble(result.text)

Format recognised:
    Morning Routine:
    - Cleanser
    - SPF
    **Tip:** ...            <- any line with ** closes the section

Headers are matched case-insensitively anywhere in a line. Replies without
any captured step come back unchanged as PlainMessage.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union


MORNING_HEADER = "Morning Routine:"
EVENING_HEADER = "Evening Routine:"
WEEKLY_HEADER = "Weekly Treatments:"

SECTION_HEADERS = {
    "morning": MORNING_HEADER.lower(),
    "evening": EVENING_HEADER.lower(),
    "weekly": WEEKLY_HEADER.lower(),
}

EMPHASIS_MARKER = "**"
BULLET_MARKER = "- "


@dataclass(frozen=True)
class PlainMessage:
    """No routine found; render as a normal chat message."""

    text: str


@dataclass(frozen=True)
class RoutinePlan:
    """Itemised steps per section, in source order. Missing sections are empty."""

    morning: list[str] = field(default_factory=list)
    evening: list[str] = field(default_factory=list)
    weekly: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, list[str]]:
        return {
            "morning": list(self.morning),
            "evening": list(self.evening),
            "weekly": list(self.weekly),
        }


ParseResult = Union[PlainMessage, RoutinePlan]


def _match_header(line: str) -> str | None:
    lowered = line.lower()
    for section, header in SECTION_HEADERS.items():
        if header in lowered:
            return section
    return None


def _clean_step(line: str) -> str:
    step = line.strip()
    if step.startswith(BULLET_MARKER):
        step = step[len(BULLET_MARKER):]
    return step.strip()


def parse_routine_text(text: str) -> ParseResult:
    """
    Classify a reply as a routine or a plain message.

    Single pass over the lines. Each section captures only its first window:
    a header opens it, a `**` line or a different section's header closes it,
    its own header repeated while open is skipped, and a later header for a
    section that already closed is ignored.

    Args:
        text: Assistant reply

    Returns:
        RoutinePlan if any step was captured, else PlainMessage(text)
    """
    sections: dict[str, list[str]] = {name: [] for name in SECTION_HEADERS}
    closed: set[str] = set()
    capturing: str | None = None

    for line in text.splitlines():
        header = _match_header(line)
        if header is not None:
            if header == capturing:
                # Repeated header inside the open section (e.g. an intro line then a bold title)
                continue
            if capturing is not None:
                closed.add(capturing)
            capturing = header if header not in closed else None
            continue

        if capturing is None:
            continue

        if EMPHASIS_MARKER in line:
            closed.add(capturing)
            capturing = None
            continue

        step = _clean_step(line)
        if step:
            sections[capturing].append(step)

    if not any(sections.values()):
        return PlainMessage(text)

    return RoutinePlan(
        morning=sections["morning"],
        evening=sections["evening"],
        weekly=sections["weekly"],
    )
