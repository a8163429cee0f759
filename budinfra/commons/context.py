#  -----------------------------------------------------------------------------
#  Copyright (c) 2024 Bud Ecosystem Inc.
#  #
#  Licensed under the Apache License, Version 2.0 (the "License");
#  you may not use this file except in compliance with the License.
#  You may obtain a copy of the License at
#  #
#      http://www.apache.org/licenses/LICENSE-2.0
#  #
#  Unless required by applicable law or agreed to in writing, software
#  distributed under the License is distributed on an "AS IS" BASIS,
#  WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#  See the License for the specific language governing permissions and
#  limitations under the License.
#  -----------------------------------------------------------------------------

"""Request-scoped cancellation and deadline handling for backend calls."""

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

from .exceptions import RequestCancelled


T = TypeVar("T")


class RequestContext:
    """Cancellation handle for one request, with an optional deadline.

    Every backend call made on behalf of a request goes through `run`, which refuses to start once the context is
    done and abandons the call as soon as the context is cancelled or the deadline passes.

    Example:
        ```python
        context = RequestContext.with_timeout(30)
        result = await context.run(lambda: client.search(index="metrics-*", size=0))
        ```
    """

    def __init__(self, deadline: Optional[float] = None) -> None:
        """Create a context.

        Args:
            deadline: Absolute deadline on the event loop clock (`loop.time()`), or None for no deadline.
        """
        self.deadline = deadline
        self._reason: Optional[str] = None
        self._cancelled: Optional[asyncio.Event] = None

    @classmethod
    def with_timeout(cls, timeout: Optional[float]) -> "RequestContext":
        """Create a context whose deadline is `timeout` seconds from now; None means no deadline."""
        if timeout is None:
            return cls()
        return cls(deadline=asyncio.get_running_loop().time() + timeout)

    @property
    def _event(self) -> asyncio.Event:
        if self._cancelled is None:
            self._cancelled = asyncio.Event()
        return self._cancelled

    @property
    def cancelled(self) -> bool:
        return self._reason is not None

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def cancel(self, reason: str = "request cancelled") -> None:
        """Cancel the context; calls in flight are abandoned and new calls fail."""
        if self._reason is None:
            self._reason = reason
            self._event.set()

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None when there is no deadline."""
        if self.deadline is None:
            return None
        return self.deadline - asyncio.get_running_loop().time()

    def raise_if_done(self) -> None:
        """Raise `RequestCancelled` if the context is cancelled or past its deadline."""
        if self._reason is not None:
            raise RequestCancelled(self._reason)
        if self.expired:
            raise RequestCancelled("request deadline exceeded")

    async def run(self, call: Callable[[], Awaitable[T]]) -> T:
        """Run `call()` unless the context is done, abandoning it if the context finishes first.

        Args:
            call: Zero argument callable returning the awaitable to run. It is not invoked when the context is
                already done, so no I/O is started.

        Returns:
            The result of the awaitable.

        Raises:
            RequestCancelled: If the context is cancelled or the deadline elapses before the call completes.
        """
        self.raise_if_done()

        task = asyncio.ensure_future(call())
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait({task, waiter}, timeout=self.remaining(), return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            raise
        finally:
            waiter.cancel()

        if task in done:
            return task.result()

        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        raise RequestCancelled(self._reason or "request deadline exceeded")
