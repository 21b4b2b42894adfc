# backend/softzen/api/deps.py
from __future__ import annotations
from functools import partial
from typing import Any, Awaitable, Callable, Optional

from fastapi import Depends, Request
from fastapi.encoders import jsonable_encoder

from softzen.cache import ResponseCache
from softzen.config import Settings
from softzen.db import Database
from softzen.retry import RetryPolicy, with_retry

Retry = Callable[..., Awaitable[Any]]


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_db(request: Request) -> Database:
    return request.app.state.database


def get_cache(request: Request) -> ResponseCache:
    return request.app.state.cache


def retry_policy(settings: Settings) -> RetryPolicy:
    return RetryPolicy(
        max_retries=settings.retry_attempts,
        base_delay=settings.retry_base_delay,
        multiplier=settings.retry_multiplier,
        max_delay=settings.retry_max_delay,
    )


def get_retry(settings: Settings = Depends(get_settings)) -> Retry:
    """``await retry(lambda: ...)`` runs a data-access call under the app's retry policy."""
    return partial(with_retry, policy=retry_policy(settings))


async def cached_json(
    cache: ResponseCache,
    request: Request,
    user_id: Optional[int],
    build: Callable[[], Awaitable[Any]],
    ttl: Optional[float] = None,
) -> Any:
    key = cache.make_key(request.method, request.url.path, user_id)
    hit = cache.get(key)
    if hit is not None:
        return hit
    payload = jsonable_encoder(await build())
    cache.set(key, payload, ttl)
    return payload
