"""Transport interface.

This is the (small) contract that transport implementations follow. The
session layer only ever talks to a transport through these methods, so the
resilience logic stays independent of any particular network.
"""

from __future__ import annotations

import enum
import itertools
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional


# Transport agnostic exceptions

class TransportError(Exception):
    """Base class for all transport-layer errors."""


class AcquisitionError(TransportError):
    """The transport could not be brought online."""


class SubscriptionError(TransportError):
    """A subscription could not be registered."""


class PublishError(TransportError):
    """A single publish attempt failed."""


class FetchError(TransportError):
    """Pending messages could not be retrieved."""


class QueryError(TransportError):
    """A status query (peer count, health) failed."""


class Capability(enum.Enum):
    """Features a transport may or may not offer once acquired."""

    PUBLISH = 'publish'
    SUBSCRIBE = 'subscribe'
    FETCH = 'fetch'


_subscription_ids = itertools.count(1)


class Subscription:
    """Handle for a registered topic subscription."""

    def __init__(self, topic: str, callback: Optional[Callable] = None,
                 failure: Optional[Callable] = None):
        self.id = next(_subscription_ids)
        self.topic = topic
        self.callback = callback
        self.failure = failure
        self.active = True

    def __repr__(self):
        return 'Subscription(%d, %r)' % (self.id, self.topic)


class Transport(ABC):
    """Minimal contract for a publish/subscribe transport.

    A transport instance carries its own settings; :meth:`acquire` returns an
    opaque handle that every other call takes as its first argument. Only
    one session owns a handle at a time.
    """

    name = 'abstract'

    @abstractmethod
    def acquire(self, cancel: Optional[threading.Event] = None) -> Any:
        """Bring the transport online; raise AcquisitionError on failure.

        If *cancel* is set while acquisition is waiting on the network, the
        attempt is abandoned with AcquisitionError.
        """

    @abstractmethod
    def has_capability(self, handle: Any, capability: Capability) -> bool:
        """Whether the acquired transport offers *capability*."""

    @abstractmethod
    def subscribe(self, handle: Any, topic: str, callback: Optional[Callable] = None,
                  failure: Optional[Callable] = None) -> Subscription:
        """Register interest in *topic*.

        With a *callback* every arriving wire message for the topic is passed
        to it (push delivery). Without one the subscription only registers
        interest, for transports that retain messages for :meth:`fetch_pending`.
        *failure* is invoked with an exception if the subscription breaks
        after it was established.
        """

    @abstractmethod
    def unsubscribe(self, handle: Any, subscription: Subscription) -> None:
        """Cancel a subscription; no callback fires after this returns."""

    @abstractmethod
    def publish_once(self, handle: Any, topic: str, payload: bytes) -> None:
        """Publish a single message; raise PublishError on failure."""

    def fetch_pending(self, handle: Any, topic: str) -> List[Dict[str, Any]]:
        """Return the wire messages currently available for *topic*."""
        raise FetchError(self.name + ' transport does not support fetching')

    @abstractmethod
    def peer_count(self, handle: Any) -> int:
        """Return the number of connected peers; raise QueryError on failure."""

    def healthy(self, handle: Any) -> bool:
        """Whether the transport considers itself usable."""
        try:
            return self.peer_count(handle) > 0
        except QueryError:
            return False

    @abstractmethod
    def release(self, handle: Any) -> None:
        """Tear down everything behind *handle*; idempotent."""
