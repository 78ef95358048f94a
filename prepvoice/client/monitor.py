"""
Tab-switch monitor.

Feeds visibility changes of the interview view to the API and ends the
interview when the server reports the switch limit was reached.
"""

import logging
import time
from typing import Awaitable, Callable

import httpx

from prepvoice.client.api_client import InterviewApiClient

logger = logging.getLogger(__name__)

DEBOUNCE_SECONDS = 2.0


class TabSwitchMonitor:
    """
    Debounced visibility observer.

    A "hidden" event counts unless another counted event happened within
    the debounce window. Once the server answers ``shouldTerminate`` the
    termination handler runs exactly once and later events are ignored.
    """

    def __init__(
        self,
        api: InterviewApiClient,
        session_id: str,
        on_terminate: Callable[[], Awaitable[None]],
        debounce_seconds: float = DEBOUNCE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.api = api
        self.session_id = session_id
        self.on_terminate = on_terminate
        self.debounce_seconds = debounce_seconds
        self.clock = clock
        self.tab_switches = 0
        self.terminated = False
        self._last_counted: float | None = None

    async def on_visibility_change(self, hidden: bool) -> bool:
        """
        Handle a visibility change.

        Returns:
            True if the event was reported as a tab switch
        """
        if not hidden or self.terminated:
            return False

        now = self.clock()
        if self._last_counted is not None and now - self._last_counted < self.debounce_seconds:
            logger.debug("Tab switch ignored (debounced)")
            return False
        self._last_counted = now

        try:
            result = await self.api.record_tab_switch(self.session_id)
        except httpx.HTTPError as e:
            logger.error(f"Failed to record tab switch: {e}")
            return True

        self.tab_switches = result.get("tabSwitches", self.tab_switches)
        logger.warning(f"Tab switch {self.tab_switches} recorded for session {self.session_id}")

        if result.get("shouldTerminate") and not self.terminated:
            self.terminated = True
            logger.warning(f"Session {self.session_id} terminated for tab switching")
            await self.on_terminate()

        return True
