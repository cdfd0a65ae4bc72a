"""Cancellation tokens and their bridge onto AnyIO cancel scopes."""

import itertools
import math
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, Optional

import anyio

from socketry.errors import OperationCancelledError

CancellationCallback = Callable[[OperationCancelledError], None]


class Cancellation(ABC):
    """A signal an operation observes to abort early.

    ``deadline`` is an absolute time on the AnyIO clock after which the
    cancellation counts as requested; ``math.inf`` means no deadline.
    """

    deadline: float = math.inf

    @abstractmethod
    def subscribe(self, callback: CancellationCallback) -> str:
        """Register a callback invoked once the cancellation is requested.

        Returns:
            An identifier for ``unsubscribe``.
        """

    @abstractmethod
    def unsubscribe(self, subscription_id: str) -> None:
        """Remove a previously registered callback."""

    @abstractmethod
    def is_requested(self) -> bool:
        """Whether cancellation has been requested."""

    def throw_if_requested(self) -> None:
        """Raise OperationCancelledError if cancellation has been requested."""
        if self.is_requested():
            raise self._exception()

    def _exception(self) -> OperationCancelledError:
        return OperationCancelledError()


class NullCancellation(Cancellation):
    """A cancellation that is never requested."""

    def subscribe(self, callback: CancellationCallback) -> str:
        return ""

    def unsubscribe(self, subscription_id: str) -> None:
        pass

    def is_requested(self) -> bool:
        return False


class DeferredCancellation(Cancellation):
    """A cancellation requested explicitly by calling ``cancel``."""

    def __init__(self):
        self._callbacks: Dict[str, CancellationCallback] = {}
        self._ids = itertools.count()
        self._error: Optional[OperationCancelledError] = None

    def cancel(self, reason: Optional[BaseException] = None) -> None:
        """Request cancellation, notifying all subscribers once."""
        if self._error is not None:
            return

        self._error = OperationCancelledError(reason)
        callbacks = list(self._callbacks.values())
        self._callbacks.clear()
        for callback in callbacks:
            callback(self._error)

    def subscribe(self, callback: CancellationCallback) -> str:
        subscription_id = str(next(self._ids))
        if self._error is not None:
            callback(self._error)
        else:
            self._callbacks[subscription_id] = callback
        return subscription_id

    def unsubscribe(self, subscription_id: str) -> None:
        self._callbacks.pop(subscription_id, None)

    def is_requested(self) -> bool:
        return self._error is not None

    def _exception(self) -> OperationCancelledError:
        return self._error or OperationCancelledError()


class TimeoutCancellation(Cancellation):
    """A cancellation requested once ``timeout`` seconds have elapsed.

    Must be created inside a running event loop since the deadline is taken
    from the AnyIO clock. The deadline is enforced by ``open_cancel_scope``;
    subscribers are not called when it passes.
    """

    def __init__(self, timeout: float, message: str = "Operation timed out"):
        self.deadline = anyio.current_time() + timeout
        self.message = message

    def subscribe(self, callback: CancellationCallback) -> str:
        return ""

    def unsubscribe(self, subscription_id: str) -> None:
        pass

    def is_requested(self) -> bool:
        return anyio.current_time() >= self.deadline

    def _exception(self) -> OperationCancelledError:
        return OperationCancelledError(TimeoutError(self.message))


class CompositeCancellation(Cancellation):
    """A cancellation requested as soon as any of its members is."""

    def __init__(self, *cancellations: Cancellation):
        self._cancellations = cancellations
        self.deadline = min((c.deadline for c in cancellations), default=math.inf)
        self._ids = itertools.count()
        self._subscriptions: Dict[str, list] = {}

    def subscribe(self, callback: CancellationCallback) -> str:
        subscription_id = str(next(self._ids))
        self._subscriptions[subscription_id] = [
            (cancellation, cancellation.subscribe(callback))
            for cancellation in self._cancellations
        ]
        return subscription_id

    def unsubscribe(self, subscription_id: str) -> None:
        for cancellation, member_id in self._subscriptions.pop(subscription_id, []):
            cancellation.unsubscribe(member_id)

    def is_requested(self) -> bool:
        return any(c.is_requested() for c in self._cancellations)

    def _exception(self) -> OperationCancelledError:
        for cancellation in self._cancellations:
            if cancellation.is_requested():
                return cancellation._exception()
        return OperationCancelledError()


@contextmanager
def open_cancel_scope(cancellation: Optional[Cancellation]) -> Iterator[Optional[anyio.CancelScope]]:
    """Run the enclosed block under a cancel scope driven by ``cancellation``.

    The scope is cancelled when a subscriber callback fires or the
    cancellation's deadline passes. The subscription is removed on every exit
    path. A block interrupted this way raises OperationCancelledError.

    Args:
        cancellation: The cancellation to observe, or None for no cancellation.

    Raises:
        OperationCancelledError: If the cancellation was requested before or
            while the block ran.
    """
    if cancellation is None:
        yield None
        return

    cancellation.throw_if_requested()

    with anyio.CancelScope(deadline=cancellation.deadline) as scope:
        subscription_id = cancellation.subscribe(lambda _: scope.cancel())
        try:
            yield scope
        finally:
            cancellation.unsubscribe(subscription_id)

    if scope.cancelled_caught:
        if cancellation.is_requested():
            raise cancellation._exception()
        raise OperationCancelledError()
