"""
Bounded polling utility shared by every wait step of the relay.
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

from ..config import PollPolicy
from ..exceptions import PollTimeoutError, RelayError, TransientUnavailable

T = TypeVar("T")

FetchResult = T | None | Awaitable[T | None]


class PollingWaiter(Generic[T]):
    """
    Utility for waiting on a value that appears on chain eventually.

    The fetch callable is invoked at the policy interval until it returns
    something other than None. Errors raised by the fetch are treated as
    "not yet available", except RelayError subclasses, which are fatal and
    propagate on the attempt that raised them.

    The deadline is local to one wait() call. It does not shrink to fit an
    outer deadline, so a caller wrapping several waits must budget for each
    of them running to its own full timeout.

    The deadline is checked between attempts only. A fetch that is already
    running when the budget expires is not interrupted, so a blocking call
    can overrun the timeout by its own request timeout.
    """

    def __init__(self, policy: PollPolicy | None = None, operation: str = "poll"):
        """
        Initialize the polling waiter.

        Args:
            policy: Interval and timeout to poll with
            operation: Name used in log lines and timeout errors
        """
        self.policy = policy or PollPolicy()
        self.operation = operation
        self.attempts = 0

        # Setup logging
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    async def _attempt(self, fetch: Callable[[], FetchResult]) -> T | None:
        try:
            result = fetch()
            if inspect.isawaitable(result):
                result = await result
            return result
        except TransientUnavailable as e:
            self.logger.debug(f"{self.operation}: not yet available (attempt {self.attempts}): {e}")
            return None
        except RelayError:
            raise
        except Exception as e:
            self.logger.debug(f"{self.operation}: transient error (attempt {self.attempts}): {e}")
            return None

    async def wait(self, fetch: Callable[[], FetchResult]) -> T:
        """
        Poll until fetch returns a value or the timeout elapses.

        Args:
            fetch: Zero-argument callable, sync or async, returning the value or None

        Returns:
            The first value fetch returned

        Raises:
            PollTimeoutError: If the timeout elapsed without a value
            RelayError: Any fatal error raised by fetch
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.policy.timeout
        self.attempts = 0
        self.logger.debug(
            f"{self.operation}: polling every {self.policy.interval}s for up to "
            f"{self.policy.timeout}s (about {self.policy.max_attempts} attempts)"
        )

        while True:
            self.attempts += 1
            value = await self._attempt(fetch)
            if value is not None:
                self.logger.debug(f"{self.operation}: done after {self.attempts} attempts")
                return value

            remaining = deadline - loop.time()
            if remaining <= 0:
                self.logger.warning(
                    f"{self.operation}: timed out after {self.policy.timeout}s "
                    f"({self.attempts} attempts)"
                )
                raise PollTimeoutError(self.operation, self.policy.timeout, self.attempts)

            await asyncio.sleep(min(self.policy.interval, remaining))
