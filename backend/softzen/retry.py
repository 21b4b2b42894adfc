# backend/softzen/retry.py
"""
Retry with exponential backoff for operations that may fail transiently.

A failure is transient when something in its cause chain looks like a
transport problem: connection reset/refused, DNS lookup failure, a timeout,
a message mentioning "timeout" or "connection", or a 5xx status code.
Everything else fails immediately. Either way the caller sees a
:class:`~softzen.errors.NetworkError`, except for domain errors
(validation, auth, not-found, conflict) which pass through untouched.
"""
from __future__ import annotations
import asyncio
import errno
import inspect
import socket
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Iterator, Optional, TypeVar, Union

import structlog

from softzen.errors import DOMAIN_ERRORS, NetworkError

logger = structlog.get_logger(__name__)

T = TypeVar("T")
Operation = Callable[[], Union[Awaitable[T], T]]
Sleeper = Callable[[float], Awaitable[Any]]

RETRYABLE_EXCEPTIONS = (
    ConnectionResetError,
    ConnectionRefusedError,
    TimeoutError,
    asyncio.TimeoutError,
    socket.gaierror,
    socket.timeout,
)
RETRYABLE_ERRNOS = frozenset({errno.ECONNRESET, errno.ECONNREFUSED, errno.ETIMEDOUT})
RETRYABLE_MESSAGE_MARKERS = ("timeout", "connection")


class RetryState(str, Enum):
    ATTEMPTING = "attempting"
    WAITING = "waiting"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    base_delay: float = 1.0
    multiplier: float = 2.0
    max_delay: float = 5.0

    def delay_for(self, attempt_index: int) -> float:
        """Delay before retry number ``attempt_index`` (0 for the first retry)."""
        return min(self.max_delay, self.base_delay * self.multiplier ** attempt_index)


DEFAULT_POLICY = RetryPolicy()


def _iter_causes(exc: BaseException) -> Iterator[BaseException]:
    seen = set()
    pending = [exc]
    while pending:
        current = pending.pop(0)
        if current is None or id(current) in seen:
            continue
        seen.add(id(current))
        yield current
        # SQLAlchemy wraps the driver exception in ``.orig``
        pending.extend(
            c for c in (getattr(current, "orig", None), current.__cause__, current.__context__)
            if isinstance(c, BaseException)
        )


def _status_of(exc: BaseException) -> Optional[int]:
    for attr in ("status_code", "status"):
        value = getattr(exc, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


def status_code_for(exc: BaseException) -> int:
    for err in _iter_causes(exc):
        status = _status_of(err)
        if status is not None and 400 <= status <= 599:
            return status
    return 500


def is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, DOMAIN_ERRORS):
        return False
    if isinstance(exc, NetworkError):
        return exc.is_retryable
    for err in _iter_causes(exc):
        if isinstance(err, RETRYABLE_EXCEPTIONS):
            return True
        if getattr(err, "connection_invalidated", False):
            return True
        if getattr(err, "errno", None) in RETRYABLE_ERRNOS:
            return True
        status = _status_of(err)
        if status is not None and 500 <= status <= 599:
            return True
        message = str(err).lower()
        if any(marker in message for marker in RETRYABLE_MESSAGE_MARKERS):
            return True
    return False


class Retrier:
    """Runs one operation to completion under a :class:`RetryPolicy`."""

    def __init__(
        self,
        policy: RetryPolicy = DEFAULT_POLICY,
        *,
        max_retries: Optional[int] = None,
        sleep: Sleeper = asyncio.sleep,
        name: Optional[str] = None,
    ):
        self.policy = policy
        self.max_retries = policy.max_retries if max_retries is None else max_retries
        self.sleep = sleep
        self.name = name
        self.state = RetryState.ATTEMPTING
        self.attempts = 0

    async def run(self, operation: Operation[T]) -> T:
        name = self.name or getattr(operation, "__name__", "operation")
        while True:
            self.state = RetryState.ATTEMPTING
            self.attempts += 1
            try:
                result = operation()
                if inspect.isawaitable(result):
                    result = await result
            except DOMAIN_ERRORS:
                self.state = RetryState.EXHAUSTED
                raise
            except Exception as exc:
                retryable = is_retryable(exc)
                retry_index = self.attempts - 1
                if retryable and retry_index < self.max_retries:
                    delay = self.policy.delay_for(retry_index)
                    self.state = RetryState.WAITING
                    logger.warning(
                        "retrying_operation",
                        operation=name,
                        attempt=retry_index + 1,
                        max_retries=self.max_retries,
                        delay=delay,
                        error=str(exc),
                    )
                    await self.sleep(delay)
                    continue
                self.state = RetryState.EXHAUSTED
                logger.error(
                    "operation_failed",
                    operation=name,
                    attempts=self.attempts,
                    retryable=retryable,
                    error=str(exc),
                )
                raise NetworkError(
                    f"{exc} (after {self.attempts} attempts)",
                    is_retryable=retryable,
                    status_code=status_code_for(exc),
                ) from exc
            self.state = RetryState.SUCCEEDED
            return result


async def with_retry(
    operation: Operation[T],
    max_retries: Optional[int] = None,
    *,
    policy: RetryPolicy = DEFAULT_POLICY,
    sleep: Sleeper = asyncio.sleep,
    name: Optional[str] = None,
) -> T:
    """Invoke ``operation`` and retry transient failures with exponential backoff."""
    return await Retrier(policy, max_retries=max_retries, sleep=sleep, name=name).run(operation)
