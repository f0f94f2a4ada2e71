"""
Cooperative Cancellation

A CancellationToken is handed to a sync when it starts. The network call races
against it and the batch writer checks it between records, so cancelling stops
further progress without undoing writes that already happened.
"""

import asyncio
from typing import Awaitable, TypeVar

from catalog_errors import SyncCancelledError

T = TypeVar("T")


class CancellationToken:
    """Cancellation signal for one sync run

    Must be created and used on the event loop that runs the sync.
    """

    def __init__(self):
        self._event = asyncio.Event()

    def cancel(self) -> None:
        """Request cancellation"""
        self._event.set()

    def raise_if_cancelled(self, applied: int = 0) -> None:
        if self._event.is_set():
            raise SyncCancelledError(applied=applied)

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await `awaitable` unless cancellation arrives first

        On cancellation the pending work is cancelled and SyncCancelledError
        is raised.
        """
        self.raise_if_cancelled()

        work = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            work.cancel()
            waiter.cancel()
            raise

        if work in done:
            waiter.cancel()
            return work.result()

        work.cancel()
        try:
            await work
        except asyncio.CancelledError:
            pass
        raise SyncCancelledError("Sync cancelled while waiting for Artifactory")
