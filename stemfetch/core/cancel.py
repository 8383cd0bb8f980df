"""
Cooperative cancellation for separation runs.
"""

import asyncio


class CancelToken:
    """
    A cancellation flag checked at suspension points.

    Setting the token never interrupts work in flight; it wakes a pending
    `sleep()` early and makes the next check report True.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def sleep(self, seconds: float) -> bool:
        """
        Sleeps for up to `seconds`, returning early if the token is cancelled.

        Returns:
            True if the sleep was cut short by cancellation.
        """
        if self._event.is_set():
            return True
        if seconds <= 0:
            return False
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True
