"""Deadline-bounded backend calls.

Every remote operation is awaited under a caller-assigned timeout.  Expiry
is reported as ``RemoteTimeoutError`` so callers treat it exactly like an
authoritative failure; any other non-``RemoteCallError`` exception is
wrapped so the operation name travels with it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, TypeVar

import anyio

from libmirror.client.backend.base import RemoteCallError, RemoteTimeoutError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

T = TypeVar("T")


async def call_remote(operation: str, call: Callable[[], Awaitable[T]], timeout: float) -> T:
    """Await ``call()`` with a deadline of *timeout* seconds.

    Raises ``RemoteTimeoutError`` on expiry and ``RemoteCallError`` for any
    other failure.
    """
    try:
        with anyio.fail_after(timeout):
            return await call()
    except TimeoutError:
        raise RemoteTimeoutError(operation, timeout) from None
    except RemoteCallError:
        raise
    except Exception as exc:
        raise RemoteCallError(operation, str(exc) or type(exc).__name__) from exc


def describe_error(exc: BaseException) -> str:
    """Human-readable message for a failed remote call."""
    if isinstance(exc, RemoteCallError):
        return exc.message
    return str(exc) or type(exc).__name__
