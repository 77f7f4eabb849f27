"""
Tool: Notification Authorization
Purpose: Track whether reminders may be delivered and run the consent handshake

Usage:
    from skinminder.notifications.authorization import (
        AuthorizationController,
        StoredPermissionAuthority,
    )

    controller = AuthorizationController(StoredPermissionAuthority(records))
    await controller.refresh()
    granted = await controller.request_authorization()

Rules:
    - The consent prompt is shown at most once per undetermined state
    - Denied is terminal for the app: the user has to change it in system settings
    - Concurrent requests share a single in-flight prompt
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable

from skinminder.notifications.models import AuthorizationState, PersistError
from skinminder.notifications.storage import RecordStore

logger = logging.getLogger(__name__)

AuthorizationListener = Callable[[AuthorizationState], None]


class PermissionAuthority(ABC):
    """The platform component that grants or denies local notifications."""

    @abstractmethod
    async def query_authorization(self) -> AuthorizationState:
        """Current permission as the platform sees it."""

    @abstractmethod
    async def present_consent_prompt(self) -> bool:
        """Show the consent dialog and return the user's answer."""


class StaticPermissionAuthority(PermissionAuthority):
    """
    Scripted authority for simulation and tests.

    Args:
        state: State reported by query_authorization()
        grant: Answer given when the prompt is shown
        prompt_delay: Seconds the prompt stays open
    """

    def __init__(
        self,
        state: AuthorizationState = AuthorizationState.NOT_DETERMINED,
        grant: bool = True,
        prompt_delay: float = 0.0,
    ):
        self.state = state
        self.grant = grant
        self.prompt_delay = prompt_delay
        self.prompt_count = 0
        self.query_count = 0

    async def query_authorization(self) -> AuthorizationState:
        self.query_count += 1
        return self.state

    async def present_consent_prompt(self) -> bool:
        self.prompt_count += 1
        if self.prompt_delay:
            await asyncio.sleep(self.prompt_delay)
        self.state = AuthorizationState.AUTHORIZED if self.grant else AuthorizationState.DENIED
        return self.grant


def _console_prompt() -> bool:
    answer = input("Allow skincare reminders? [y/N] ")
    return answer.strip().lower() in {"y", "yes"}


class StoredPermissionAuthority(PermissionAuthority):
    """
    Authority that remembers the user's answer in a record store.

    The prompt callable runs in a worker thread so a blocking console prompt
    does not stall the event loop.
    """

    def __init__(
        self,
        records: RecordStore,
        key: str = "authorization_state",
        prompt: Callable[[], bool] | None = None,
    ):
        self.records = records
        self.key = key
        self.prompt = prompt or _console_prompt

    async def query_authorization(self) -> AuthorizationState:
        raw = self.records.read_record(self.key)
        if raw is None:
            return AuthorizationState.NOT_DETERMINED
        try:
            return AuthorizationState(raw.decode("utf-8"))
        except (UnicodeDecodeError, ValueError):
            logger.warning(f"Unrecognised stored authorization state: {raw!r}")
            return AuthorizationState.NOT_DETERMINED

    async def present_consent_prompt(self) -> bool:
        granted = await asyncio.to_thread(self.prompt)
        state = AuthorizationState.AUTHORIZED if granted else AuthorizationState.DENIED
        self.records.write_record(self.key, state.value.encode("utf-8"))
        return granted


class AuthorizationController:
    """Single source of truth for the cached authorization state."""

    def __init__(
        self,
        authority: PermissionAuthority,
        initial_state: AuthorizationState = AuthorizationState.NOT_DETERMINED,
    ):
        self.authority = authority
        self._state = initial_state
        self._inflight: asyncio.Task[bool] | None = None
        self._listeners: list[AuthorizationListener] = []

    def current_state(self) -> AuthorizationState:
        """Cached snapshot; may lag behind changes made in system settings."""
        return self._state

    async def refresh(self) -> AuthorizationState:
        """Re-query the authority and update the cached state."""
        try:
            state = await self.authority.query_authorization()
        except (PersistError, OSError) as e:
            logger.warning(f"Authorization query failed, keeping {self._state.value}: {e}")
            return self._state
        self._set_state(state)
        return self._state

    async def request_authorization(self) -> bool:
        """
        Ask the user for permission if it has not been decided yet.

        Returns:
            True if authorized. Denied returns False without prompting again.
        """
        if self._state == AuthorizationState.AUTHORIZED:
            return True
        if self._state == AuthorizationState.DENIED:
            logger.info("Authorization previously denied; direct the user to system settings")
            return False

        if self._inflight is None:
            self._inflight = asyncio.ensure_future(self._prompt())
            self._inflight.add_done_callback(self._clear_inflight)

        # Shield so one cancelled caller does not cancel the prompt for the others
        return await asyncio.shield(self._inflight)

    async def _prompt(self) -> bool:
        logger.info("Presenting notification consent prompt")
        try:
            granted = await self.authority.present_consent_prompt()
        except (PersistError, OSError, EOFError) as e:
            logger.error(f"Failed to request notification authorization: {e}")
            return False

        self._set_state(AuthorizationState.AUTHORIZED if granted else AuthorizationState.DENIED)
        return granted

    def _clear_inflight(self, task: Awaitable[bool]) -> None:
        if self._inflight is task:
            self._inflight = None

    def _set_state(self, state: AuthorizationState) -> None:
        state = AuthorizationState(state)
        if state == self._state:
            return
        previous, self._state = self._state, state
        logger.info(f"Notification authorization: {previous.value} -> {state.value}")
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("Authorization listener failed")

    def subscribe(self, listener: AuthorizationListener) -> Callable[[], None]:
        """Register a callback for state transitions."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe
