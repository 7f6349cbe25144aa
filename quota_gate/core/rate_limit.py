"""Quota guard dependency for FastAPI routes.

This module wires the rate gate into the HTTP layer.

Per request the guard:
- derives the caller key (client IP, namespaced by ``QUOTA_KEY_PREFIX``)
- asks the rate gate for an admission decision
- sets ``X-RateLimit-Limit``, ``X-RateLimit-Remaining`` and
  ``X-RateLimit-Reset`` from the returned record (not on store errors)
- dispatches to one of three injectable handlers: ``on_ok``, ``on_reject``
  or ``on_error``

Handlers receive the request and the quota record (or the error) and may be
plain functions or coroutines. Raising from a handler aborts the request.
"""

import inspect
import logging
from datetime import timedelta
from typing import Any, Awaitable, Callable, Union

from fastapi import HTTPException, Request, Response, status

from quota_gate.adapters.quota_store.factory import create_quota_store
from quota_gate.core.config import settings
from quota_gate.core.errors import AppError
from quota_gate.core.logging import hash_caller_key
from quota_gate.schemas.quota import QuotaEntity
from quota_gate.services.rate_gate import GateConfig, RateGate

logger = logging.getLogger(__name__)

REJECT_MESSAGE = "access limit exceeded, please check the headers and try again later"

EntityHandler = Callable[[Request, QuotaEntity], Union[None, Awaitable[None]]]
ErrorHandler = Callable[[Request, AppError], Union[None, Awaitable[None]]]
KeyFunc = Callable[[Request], str]


def client_ip_key(request: Request) -> str:
    """Build the caller key from the client address."""
    client_host = request.client.host if request.client else "unknown"
    return f"ip:{client_host}"


def rate_limit_headers(entity: QuotaEntity) -> dict[str, str]:
    """Render the X-RateLimit-* headers for a quota record."""
    return {
        "X-RateLimit-Limit": str(entity.total_limit),
        "X-RateLimit-Remaining": str(entity.times_remaining),
        "X-RateLimit-Reset": str(entity.reset_timestamp),
    }


def default_reject(request: Request, entity: QuotaEntity) -> None:
    """Abort with 403."""
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail=REJECT_MESSAGE,
    )


def default_error(request: Request, error: AppError) -> None:
    """Re-raise so the exception handlers answer with a non-public 500."""
    raise error


def default_ok(request: Request, entity: QuotaEntity) -> None:
    """Let the request continue to the route."""
    return None


async def _dispatch(handler: Callable[..., Any], request: Request, arg: Any) -> None:
    result = handler(request, arg)
    if inspect.isawaitable(result):
        await result


async def _dispatch_with_headers(
    handler: EntityHandler, request: Request, entity: QuotaEntity
) -> None:
    """Run an entity handler, carrying the quota headers onto any abort.

    Headers set on the dependency's response are dropped when an
    HTTPException aborts the request, so they are merged into the exception.
    Headers the handler set itself take precedence.
    """
    try:
        await _dispatch(handler, request, entity)
    except HTTPException as exc:
        exc.headers = {**rate_limit_headers(entity), **(exc.headers or {})}
        raise


class QuotaGuard:
    """FastAPI dependency enforcing a rate gate on every request.

    Attributes:
        gate: Rate gate making the admission decisions.
        on_reject: Called when the request is not admitted.
        on_error: Called when the gate fails (store or codec error).
        on_ok: Called when the request is admitted.
        key_func: Derives the caller key from the request.
        key_prefix: Namespace prepended to every caller key.
    """

    def __init__(
        self,
        gate: RateGate,
        *,
        on_reject: EntityHandler = default_reject,
        on_error: ErrorHandler = default_error,
        on_ok: EntityHandler = default_ok,
        key_func: KeyFunc = client_ip_key,
        key_prefix: str = "",
    ) -> None:
        self.gate = gate
        self.on_reject = on_reject
        self.on_error = on_error
        self.on_ok = on_ok
        self.key_func = key_func
        self.key_prefix = key_prefix

    async def __call__(self, request: Request, response: Response) -> QuotaEntity | None:
        """Run the gate for the current request.

        Returns:
            The caller's quota record, or None when the gate failed and
            ``on_error`` chose not to abort.
        """
        key = f"{self.key_prefix}{self.key_func(request)}"

        try:
            admitted, entity = await self.gate.validate(key)
        except AppError as exc:
            logger.error(
                "quota.gate_failed",
                extra={"key_hash": hash_caller_key(key), "error_code": exc.code},
            )
            await _dispatch(self.on_error, request, exc)
            return None

        response.headers.update(rate_limit_headers(entity))

        if not admitted:
            logger.warning(
                "quota.rejected",
                extra={
                    "key_hash": hash_caller_key(key),
                    "limit": entity.total_limit,
                    "reset_at": entity.reset_timestamp,
                },
            )
            await _dispatch_with_headers(self.on_reject, request, entity)
            return entity

        await _dispatch_with_headers(self.on_ok, request, entity)
        return entity


_guard: QuotaGuard | None = None
_guard_config: tuple[Any, ...] | None = None


def _current_config() -> tuple[Any, ...]:
    return (
        settings.quota.restriction_count,
        settings.quota.restriction_time_seconds,
        settings.quota.log,
        settings.quota.key_prefix,
        settings.quota.store_backend,
        settings.redis.url,
    )


async def get_quota_guard() -> QuotaGuard:
    """Return the process-wide quota guard.

    The store connection is long-lived, so the guard is cached in-module and
    only rebuilt if configuration changes (primarily in tests). The replaced
    guard's store is closed before the new one is built.

    Returns:
        QuotaGuard: Guard built from the current settings.
    """

    global _guard, _guard_config

    config = _current_config()
    if _guard is None or _guard_config != config:
        if _guard is not None:
            await _guard.gate.store.close()
        gate = RateGate(
            GateConfig(
                restriction_count=settings.quota.restriction_count,
                restriction_time=timedelta(seconds=settings.quota.restriction_time_seconds),
                log=settings.quota.log,
            ),
            create_quota_store(settings),
        )
        _guard = QuotaGuard(gate, key_prefix=settings.quota.key_prefix)
        _guard_config = config

    return _guard


async def close_quota_guard() -> None:
    """Close the cached guard's store and drop the guard."""

    global _guard, _guard_config

    if _guard is not None:
        await _guard.gate.store.close()
    _guard = None
    _guard_config = None


async def enforce_quota(request: Request, response: Response) -> QuotaEntity | None:
    """FastAPI dependency applying the configured quota guard.

    Returns:
        The caller's quota record, or None when quotas are disabled.
    """

    if not settings.quota.enabled:
        return None

    guard = await get_quota_guard()
    return await guard(request, response)
