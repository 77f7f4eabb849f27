"""Shared test fixtures for Skinminder tests.

This module provides common fixtures used across all test modules:
- Database isolation with temporary files
- In-memory record stores and delivery authorities
- A fixed clock so fire times are deterministic

Usage:
    def test_something(temp_db):
        # temp_db is automatically cleaned up after the test
        ...
"""

import logging
import os
import tempfile
import time
from collections.abc import Generator
from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest
import structlog

from skinminder.notifications.authorization import (
    AuthorizationController,
    StaticPermissionAuthority,
)
from skinminder.notifications.delivery import InMemoryDeliveryAuthority
from skinminder.notifications.dispatcher import NotificationDispatcher
from skinminder.notifications.engine import NotificationEngine
from skinminder.notifications.models import AuthorizationState
from skinminder.notifications.preferences import PreferenceStore
from skinminder.notifications.storage import MemoryRecordStore


# ─────────────────────────────────────────────────────────────────────────────
# Path Constants
# ─────────────────────────────────────────────────────────────────────────────

PROJECT_ROOT = Path(__file__).parent.parent
PACKAGE_DIR = PROJECT_ROOT / "skinminder"

UTC = ZoneInfo("UTC")


# ─────────────────────────────────────────────────────────────────────────────
# Database Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def temp_db() -> Generator[Path, None, None]:
    """Create a temporary database file for testing.

    The database file is automatically deleted after the test completes.

    Yields:
        Path to the temporary database file
    """
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)

    yield db_path

    # Cleanup
    if db_path.exists():
        os.unlink(db_path)


@pytest.fixture
def memory_records() -> MemoryRecordStore:
    """Empty in-memory record store."""
    return MemoryRecordStore()


# ─────────────────────────────────────────────────────────────────────────────
# Clock Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def morning_now() -> datetime:
    """Wednesday 2024-05-15 10:00 UTC, an hour after the default anchor."""
    return datetime(2024, 5, 15, 10, 0, tzinfo=UTC)


@pytest.fixture
def new_york_system_tz(monkeypatch) -> Generator[None, None, None]:
    """Run the test with the process timezone set to America/New_York."""
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset not available on this platform")
    monkeypatch.setenv("TZ", "America/New_York")
    time.tzset()
    yield
    monkeypatch.undo()
    time.tzset()


@pytest.fixture
def early_now() -> datetime:
    """Wednesday 2024-05-15 07:30 UTC, before the default anchor."""
    return datetime(2024, 5, 15, 7, 30, tzinfo=UTC)


# ─────────────────────────────────────────────────────────────────────────────
# Engine Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def delivery_authority() -> InMemoryDeliveryAuthority:
    """Recording delivery authority."""
    return InMemoryDeliveryAuthority()


@pytest.fixture
def permission_authority() -> StaticPermissionAuthority:
    """Permission authority that grants on prompt."""
    return StaticPermissionAuthority(AuthorizationState.NOT_DETERMINED, grant=True)


@pytest.fixture
def preference_store(memory_records) -> PreferenceStore:
    return PreferenceStore(memory_records)


@pytest.fixture
def dispatcher(delivery_authority, morning_now) -> NotificationDispatcher:
    return NotificationDispatcher(delivery_authority, clock=lambda: morning_now)


@pytest.fixture
def engine(preference_store, permission_authority, dispatcher) -> NotificationEngine:
    """Engine wired to in-memory collaborators and a fixed clock."""
    return NotificationEngine(
        preference_store,
        AuthorizationController(permission_authority),
        dispatcher,
    )


# ─────────────────────────────────────────────────────────────────────────────
# Text Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def routine_reply() -> str:
    """Typical assistant reply containing all three sections."""
    return (
        "Here's a routine tailored to your combination skin.\n"
        "\n"
        "**Morning Routine:**\n"
        "- Gentle cleanser\n"
        "- Niacinamide serum\n"
        "- SPF 50\n"
        "\n"
        "**Evening Routine:**\n"
        "- Oil cleanser\n"
        "- Retinol (start twice a week)\n"
        "- Moisturizer\n"
        "\n"
        "**Weekly Treatments:**\n"
        "- Clay mask\n"
        "- Exfoliating toner\n"
        "\n"
        "**Tip:** Introduce one product at a time.\n"
    )


# ─────────────────────────────────────────────────────────────────────────────
# Logging Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def reset_logging(monkeypatch) -> Generator[None, None, None]:
    """Undo setup_logging() so handlers do not outlive the test's streams."""
    monkeypatch.delenv("SKINMINDER_LOG_LEVEL", raising=False)
    monkeypatch.delenv("SKINMINDER_LOG_FORMAT", raising=False)
    root = logging.getLogger()
    level = root.level
    yield
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()
    for handler in list(root.handlers):
        if isinstance(handler.formatter, structlog.stdlib.ProcessorFormatter):
            root.removeHandler(handler)
    root.setLevel(level)
