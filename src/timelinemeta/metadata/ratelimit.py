"""Per-provider throttling state and bounded retry for provider calls."""

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
)
from tenacity.stop import stop_base

from timelinemeta.config import RateLimitConfig
from timelinemeta.errors import RateLimitError
from timelinemeta.models.update import Provider

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RateLimitState:
    """Throttling state of one provider."""

    is_limited: bool = False
    retry_after: Optional[float] = None  # seconds
    reset_time: Optional[float] = None  # clock() value when the backoff ends


class _StopWhenBlocked(stop_base):
    """Stop retrying once the next backoff is longer than we are willing to sleep."""

    def __init__(self, governor: "RateLimitGovernor", provider: Provider):
        self.governor = governor
        self.provider = provider

    def __call__(self, retry_state: RetryCallState) -> bool:
        return self.governor.backoff_for(self.provider, retry_state.attempt_number + 1) > (
            self.governor.config.max_wait_seconds
        )


class RateLimitGovernor:
    """Tracks throttled providers and wraps calls with retry/backoff.

    One governor is shared by all records of a run; providers are keyed by
    the Provider enum. State is cleared on a provider's next success.
    """

    def __init__(
        self,
        config: Optional[RateLimitConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize governor.

        Args:
            config: Attempts and backoff defaults
            clock: Monotonic clock in seconds
            sleep: Async sleep used between attempts
        """
        self.config = config or RateLimitConfig()
        self._clock = clock
        self._sleep = sleep
        self._states: dict[Provider, RateLimitState] = {}

    def state(self, provider: Provider) -> RateLimitState:
        return self._states.get(provider, RateLimitState())

    def is_limited(self, provider: Provider) -> bool:
        """Whether the provider is inside a recorded backoff window."""
        state = self.state(provider)
        if not state.is_limited:
            return False
        return state.reset_time is None or self._clock() < state.reset_time

    def remaining(self, provider: Provider) -> float:
        """Seconds left in the provider's backoff window."""
        state = self.state(provider)
        if not self.is_limited(provider) or state.reset_time is None:
            return 0.0
        return max(state.reset_time - self._clock(), 0.0)

    def mark_limited(self, provider: Provider, retry_after: Optional[float] = None) -> RateLimitState:
        """Record a rate-limit response.

        Args:
            provider: Throttled provider
            retry_after: Explicit retry-after from the response, if any

        Returns:
            New state
        """
        backoff = retry_after if retry_after is not None else self.config.backoff_for(provider)
        state = RateLimitState(
            is_limited=True,
            retry_after=backoff,
            reset_time=self._clock() + backoff,
        )
        self._states[provider] = state
        logger.warning(
            "Provider rate limited",
            provider=provider.value,
            retry_after=backoff,
            explicit=retry_after is not None,
        )
        return state

    def clear(self, provider: Provider) -> None:
        if self._states.pop(provider, None) is not None:
            logger.info("Provider rate limit cleared", provider=provider.value)

    def reset(self) -> None:
        """Forget all throttling state."""
        self._states.clear()

    def backoff_for(self, provider: Provider, attempt_number: int) -> float:
        """Seconds to wait before the given attempt."""
        state = self.state(provider)
        if state.is_limited and state.retry_after is not None:
            return state.retry_after
        return float(2 ** (attempt_number - 1))

    async def call(self, provider: Provider, fn: Callable[[], Awaitable[T]]) -> T:
        """Run a provider call under the governor.

        Up to ``max_attempts`` attempts; only RateLimitError is retried.
        A provider whose backoff exceeds ``max_wait_seconds`` is refused
        without calling it.

        Args:
            provider: Provider being called
            fn: Zero-argument coroutine factory performing the call

        Returns:
            Whatever fn returns

        Raises:
            RateLimitError: When attempts are exhausted or the provider is blocked
            Exception: Any other error from fn, unretried
        """
        if self.is_limited(provider):
            remaining = self.remaining(provider)
            if remaining > self.config.max_wait_seconds:
                logger.info(
                    "Skipping blocked provider",
                    provider=provider.value,
                    remaining=round(remaining, 1),
                )
                raise RateLimitError(provider, remaining, message="backoff in effect")
            logger.debug("Waiting for provider backoff", provider=provider.value, wait=remaining)
            await self._sleep(remaining)

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.config.max_attempts) | _StopWhenBlocked(self, provider),
            wait=lambda retry_state: self.backoff_for(provider, retry_state.attempt_number + 1),
            retry=retry_if_exception_type(RateLimitError),
            sleep=self._sleep,
            before_sleep=lambda retry_state: logger.info(
                "Retrying rate limited provider",
                provider=provider.value,
                attempt=retry_state.attempt_number,
            ),
            reraise=True,
        )
        return await retrying(self._attempt, provider, fn)

    async def _attempt(self, provider: Provider, fn: Callable[[], Awaitable[T]]) -> T:
        try:
            result = await fn()
        except RateLimitError as e:
            self.mark_limited(provider, e.retry_after)
            raise
        self.clear(provider)
        return result
