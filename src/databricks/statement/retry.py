import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from databricks.statement.exc import TransportError

logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFunc = Callable[[float], Awaitable[None]]


class RetryPolicy:
    """
    Bounded exponential backoff for network-level failures.

    Only TransportError is retried. HTTP error statuses, protocol errors and
    statement failures propagate on the first occurrence.

    :param max_retries:
        Integer maximum number of retries after the first attempt. The failure
        following the last retry is raised to the caller.

    :param delay_base:
        Float base of the backoff. Retry number ``n`` (starting at 1) waits
        ``delay_base ** n`` seconds, i.e. 2s, 4s, 8s with the defaults.

    :param sleep:
        Coroutine function used to wait between attempts. Tests inject a fake
        to observe the delays without waiting.
    """

    def __init__(
        self,
        max_retries: int = 3,
        delay_base: float = 2.0,
        sleep: SleepFunc = asyncio.sleep,
    ):
        if max_retries < 0:
            raise ValueError("max_retries must not be negative")
        self.max_retries = max_retries
        self.delay_base = delay_base
        self._sleep = sleep

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait before retry number ``attempt`` (1-based)."""
        return self.delay_base ** attempt

    async def run(
        self, operation_name: str, operation: Callable[[], Awaitable[T]]
    ) -> T:
        """
        Await ``operation()`` until it succeeds or the retry budget is exhausted.

        ``operation`` is a factory so that every attempt issues a fresh request.
        """

        retry_count = 0
        while True:
            try:
                return await operation()
            except TransportError as e:
                if retry_count >= self.max_retries:
                    logger.error(
                        "Operation '%s' failed after %s attempts: %s",
                        operation_name,
                        retry_count + 1,
                        e,
                    )
                    e.context["attempt"] = "{}/{}".format(
                        retry_count + 1, self.max_retries + 1
                    )
                    raise

                retry_count += 1
                delay = self.delay_for(retry_count)
                logger.warning(
                    "Operation '%s' failed (attempt %s/%s): %s. Retrying in %ss...",
                    operation_name,
                    retry_count,
                    self.max_retries,
                    e,
                    delay,
                )
                await self._sleep(delay)
