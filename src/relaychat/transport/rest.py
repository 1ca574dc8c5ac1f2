"""REST transport for an nwaku-style relay node.

The node retains recent messages for every topic it has been asked to
subscribe to; clients register interest once and then poll. There is no push
delivery over this transport.
"""

from __future__ import annotations

import logging
import threading
import urllib.parse
from typing import Any, Callable, Dict, List, Optional

import requests

from .. import json
from .base import (
    AcquisitionError,
    Capability,
    FetchError,
    PublishError,
    QueryError,
    Subscription,
    SubscriptionError,
    Transport,
)
from ..message import Message

log = logging.getLogger(__name__)


HEALTH = '/health'
PEERS = '/admin/v1/peers'
SUBSCRIPTIONS = '/relay/v1/auto/subscriptions'
MESSAGES = '/relay/v1/auto/messages'


class Handle:
    """An HTTP session bound to one node."""

    def __init__(self, session: requests.Session):
        self.session = session
        self.topics = set()
        self.closed = False


class RestTransport(Transport):
    """Poll-delivery transport over HTTP.

    *url* is the base URL of the node's REST API. Every request uses a
    *timeout* of that many seconds. *session_factory* builds the
    :class:`requests.Session` behind each handle.
    """

    name = 'rest'

    def __init__(self, url: str, timeout: float = 5.0,
                 session_factory: Callable[[], requests.Session] = requests.Session):

        self.url = url.rstrip('/')
        self.timeout = float(timeout)
        self.session_factory = session_factory


    def _request(self, handle: Handle, method: str, path: str, error, **kwargs) -> requests.Response:
        """Issue one request, translating any failure into *error*."""

        if handle.closed:
            raise error('transport handle is closed')

        url = self.url + path
        kwargs.setdefault('timeout', self.timeout)

        try:
            response = handle.session.request(method, url, **kwargs)
        except requests.RequestException as e:
            raise error('%s %s failed: %s' % (method, path, e)) from e

        if response.status_code >= 300:
            raise error('%s %s returned HTTP %d' % (method, path, response.status_code))

        return response


    def _json(self, response: requests.Response, error) -> Any:

        try:
            return json.loads(response.content)
        except json.DecodeError as e:
            raise error('undecodable response from ' + response.url) from e


    def acquire(self, cancel: Optional[threading.Event] = None) -> Handle:

        # A single health request, bounded by the request timeout; only
        # checked for cancellation up front.

        if cancel is not None and cancel.is_set():
            raise AcquisitionError('acquisition cancelled')

        handle = Handle(self.session_factory())

        try:
            self._request(handle, 'GET', HEALTH, AcquisitionError,
                          headers={'accept': 'text/plain'})
        except AcquisitionError:
            handle.session.close()
            raise

        return handle


    def has_capability(self, handle: Handle, capability: Capability) -> bool:
        return isinstance(capability, Capability)


    def healthy(self, handle: Handle) -> bool:
        try:
            self._request(handle, 'GET', HEALTH, QueryError,
                          headers={'accept': 'text/plain'})
        except QueryError as e:
            log.debug('health check failed: %s', e)
            return False

        return True


    def subscribe(self, handle: Handle, topic: str, callback: Optional[Callable] = None,
                  failure: Optional[Callable] = None) -> Subscription:

        if callback is not None:
            raise SubscriptionError('push delivery is not available over REST, poll instead')

        self._request(handle, 'POST', SUBSCRIPTIONS, SubscriptionError,
                      data=json.dumps([topic]),
                      headers={'accept': 'text/plain', 'content-type': 'application/json'})

        handle.topics.add(topic)
        return Subscription(topic, None, failure)


    def unsubscribe(self, handle: Handle, subscription: Subscription) -> None:

        subscription.active = False
        handle.topics.discard(subscription.topic)

        if handle.closed:
            return

        try:
            self._request(handle, 'DELETE', SUBSCRIPTIONS, SubscriptionError,
                          data=json.dumps([subscription.topic]),
                          headers={'accept': 'text/plain', 'content-type': 'application/json'})
        except SubscriptionError as e:
            log.warning('cannot remove subscription to %s: %s', subscription.topic, e)


    def publish_once(self, handle: Handle, topic: str, payload: bytes) -> None:

        message = Message.create(topic, payload)

        self._request(handle, 'POST', MESSAGES, PublishError,
                      data=json.dumps(message.to_wire()),
                      headers={'content-type': 'application/json'})


    def fetch_pending(self, handle: Handle, topic: str) -> List[Dict[str, Any]]:

        path = MESSAGES + '/' + urllib.parse.quote(topic, safe='')
        response = self._request(handle, 'GET', path, FetchError,
                                 headers={'accept': 'application/json'})

        messages = self._json(response, FetchError)

        if messages is None:
            return []

        if isinstance(messages, list):
            return messages

        raise FetchError('expected a list of messages, got ' + type(messages).__name__)


    def peer_count(self, handle: Handle) -> int:

        response = self._request(handle, 'GET', PEERS, QueryError,
                                 headers={'accept': 'application/json'})

        peers = self._json(response, QueryError)

        if isinstance(peers, list):
            pass
        else:
            raise QueryError('expected a list of peers, got ' + type(peers).__name__)

        count = 0
        for peer in peers:
            if isinstance(peer, dict) and peer.get('connected') is False:
                continue
            count += 1

        return count


    def release(self, handle: Handle) -> None:

        if handle.closed:
            return

        handle.closed = True
        handle.topics.clear()
        handle.session.close()
