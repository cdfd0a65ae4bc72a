"""Cancellation primitives for socketry.

Cancellation tokens are bridged onto AnyIO cancel scopes, which allows for
consistent behavior across asyncio and trio backends.
"""

from socketry.concurrency.cancellation import (
    Cancellation,
    CompositeCancellation,
    DeferredCancellation,
    NullCancellation,
    TimeoutCancellation,
    open_cancel_scope,
)

__all__ = [
    "Cancellation",
    "CompositeCancellation",
    "DeferredCancellation",
    "NullCancellation",
    "TimeoutCancellation",
    "open_cancel_scope",
]
