"""
Retrying operation executor.

Each call runs an explicit state machine on its own ``RetryRun``:

    IDLE -> RUNNING -> (success) IDLE
                    -> (failure, attempts left) BACKOFF -> RUNNING ...
                    -> (failure, budget spent) EXHAUSTED

Between attempts the browser session is torn down and a fresh one (new
fingerprint, next proxy) is created. Errors flagged ``retryable = False``
propagate immediately.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Protocol, TypeVar

from shared.errors import MatchScoutError, ScrapingFailed
from shared.utils.logging import get_logger
from shared.utils.metrics import SCRAPE_ATTEMPTS, SESSION_RESETS

from scraper.config import ScraperSettings

logger = get_logger(__name__)

T = TypeVar("T")


class SessionFactory(Protocol):
    async def create_session(self) -> Any: ...

    async def close_session(self, session: Any) -> None: ...


class RetryState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    BACKOFF = "backoff"
    EXHAUSTED = "exhausted"


@dataclass
class RetryRun:
    """Bookkeeping for one ``with_retry`` call."""
    label: str
    max_attempts: int
    state: RetryState = RetryState.IDLE
    attempts: int = 0
    resets: int = 0
    history: list[RetryState] = field(default_factory=lambda: [RetryState.IDLE])
    errors: list[str] = field(default_factory=list)

    def transition(self, state: RetryState) -> None:
        self.state = state
        self.history.append(state)


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, MatchScoutError):
        return exc.retryable
    return True


class RetryExecutor:
    """Runs ``operation(session)`` up to ``max_attempts`` times with a fixed delay."""

    def __init__(
        self,
        sessions: SessionFactory,
        max_attempts: int = 3,
        delay_s: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self._sessions = sessions
        self._max_attempts = max_attempts
        self._delay_s = delay_s
        self._sleep = sleep

    @classmethod
    def from_settings(cls, sessions: SessionFactory, settings: ScraperSettings) -> "RetryExecutor":
        return cls(sessions, max_attempts=settings.retry_max_attempts, delay_s=settings.retry_delay_s)

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    async def with_retry(
        self,
        operation: Callable[[Any], Awaitable[T]],
        label: str,
        run: Optional[RetryRun] = None,
    ) -> T:
        """
        Run ``operation`` with a dedicated browser session.

        Raises:
            ScrapingFailed: every attempt failed; chained from the last error.
            MatchScoutError: a non-retryable error raised by the operation.
        """
        run = run or RetryRun(label=label, max_attempts=self._max_attempts)
        session: Any = None
        last_error: Optional[BaseException] = None

        try:
            for attempt in range(1, self._max_attempts + 1):
                run.attempts = attempt
                run.transition(RetryState.RUNNING)
                try:
                    if session is None:
                        session = await self._sessions.create_session()
                    result = await operation(session)
                except Exception as exc:
                    last_error = exc
                    run.errors.append(str(exc))
                    if not _is_retryable(exc):
                        SCRAPE_ATTEMPTS.labels(label=label, outcome="fatal").inc()
                        run.transition(RetryState.IDLE)
                        raise
                    SCRAPE_ATTEMPTS.labels(label=label, outcome="failure").inc()
                    logger.warning(
                        "scrape_attempt_failed",
                        label=label,
                        attempt=attempt,
                        max_attempts=self._max_attempts,
                        error=str(exc),
                        error_type=type(exc).__name__,
                    )
                    if attempt < self._max_attempts:
                        run.transition(RetryState.BACKOFF)
                        if session is not None:
                            await self._sessions.close_session(session)
                            session = None
                        await self._sleep(self._delay_s)
                        run.resets += 1
                        SESSION_RESETS.inc()
                    continue

                SCRAPE_ATTEMPTS.labels(label=label, outcome="success").inc()
                run.transition(RetryState.IDLE)
                return result

            run.transition(RetryState.EXHAUSTED)
            logger.error("scrape_retries_exhausted", label=label, attempts=run.attempts)
            raise ScrapingFailed(label, last_error) from last_error
        finally:
            if session is not None:
                await self._sessions.close_session(session)
