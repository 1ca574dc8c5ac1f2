"""ZeroMQ publish/subscribe transport.

Each handle owns a PUB socket connected to the publish side of every
configured relay, and a SUB socket connected to the subscribe side. A single
background thread per handle owns the SUB socket: it receives broadcasts,
applies subscription changes, and follows the socket monitor to keep the
current peer count.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import zmq
from zmq.utils.monitor import recv_monitor_message

from ..base import (
    AcquisitionError,
    Capability,
    PublishError,
    QueryError,
    Subscription,
    SubscriptionError,
    Transport,
)
from .framing import from_frames, to_frames, topic_frame
from ...message import Message, WireFormatError

log = logging.getLogger(__name__)

zmq_context = zmq.Context()

_MONITOR_EVENTS = zmq.EVENT_CONNECTED | zmq.EVENT_DISCONNECTED


def parse_relay(relay: str) -> Tuple[str, str]:
    """Translate ``host:port`` into the (publish, subscribe) endpoints.

    A relay accepts publishers on *port* and subscribers on *port* + 1.
    """

    try:
        host, port = relay.rsplit(':', 1)
        port = int(port)
    except ValueError as e:
        raise ValueError('relay must be host:port, not ' + repr(relay)) from e

    publish = 'tcp://%s:%d' % (host, port)
    subscribe = 'tcp://%s:%d' % (host, port + 1)
    return publish, subscribe


class Handle:
    """Sockets and bookkeeping for one acquired ZeroMQ transport."""

    def __init__(self, relays: Sequence[str]):

        self.endpoints = [parse_relay(relay) for relay in relays]
        self.peers = set()
        self.peers_lock = threading.Lock()
        self.connected = threading.Event()

        self.subscriptions: Dict[bytes, List[Subscription]] = dict()
        self.subscriptions_lock = threading.Lock()
        self.dispatch_lock = threading.RLock()

        self.publisher = zmq_context.socket(zmq.PUB)
        self.publisher.setsockopt(zmq.LINGER, 0)
        self.publisher_lock = threading.Lock()

        self.subscriber = zmq_context.socket(zmq.SUB)
        self.subscriber.setsockopt(zmq.LINGER, 0)
        self.monitor = self.subscriber.get_monitor_socket(_MONITOR_EVENTS)

        # Subscription changes are handed to the receive thread through an
        # internal queue; the inproc PAIR sockets wake it up.

        self._queue = queue.SimpleQueue()

        internal = 'inproc://relaychat.zmq.Handle:signal:%d' % (id(self))
        self._sig_rx = zmq_context.socket(zmq.PAIR)
        self._sig_rx.bind(internal)
        self._sig_tx = zmq_context.socket(zmq.PAIR)
        self._sig_tx.connect(internal)
        self._sig_lock = threading.Lock()

        self.closed = False
        self.shutdown = False
        self.thread = threading.Thread(target=self.run, name='zmq-receive')
        self.thread.daemon = True


    def connect(self) -> None:
        for publish, subscribe in self.endpoints:
            self.publisher.connect(publish)
            self.subscriber.connect(subscribe)

        self.thread.start()


    def command(self, *command) -> None:
        with self._sig_lock:
            if self.closed:
                return
            self._queue.put(command)
            self._signal()


    def _signal(self) -> None:

        # The receive thread may already be gone; never block on it.

        try:
            self._sig_tx.send(b'', zmq.NOBLOCK)
        except zmq.Again:
            pass


    def peer_count(self) -> int:
        with self.peers_lock:
            return len(self.peers)


    def run(self) -> None:

        poller = zmq.Poller()
        poller.register(self.subscriber, zmq.POLLIN)
        poller.register(self.monitor, zmq.POLLIN)
        poller.register(self._sig_rx, zmq.POLLIN)

        error = None

        while self.shutdown == False:
            try:
                sockets = dict(poller.poll(1000))

                if self.monitor in sockets:
                    self._monitor_event(recv_monitor_message(self.monitor))

                if self._sig_rx in sockets:
                    self._sig_rx.recv()
                    self._commands()

                if self.subscriber in sockets:
                    parts = self.subscriber.recv_multipart()
                    self._sub_incoming(parts)

            except zmq.ZMQError as e:
                if self.shutdown == False:
                    error = e
                break

        self._cleanup()

        if error is not None:
            log.error('ZeroMQ receive loop failed: %s', error)
            self._fail(error)


    def _cleanup(self) -> None:

        with self.peers_lock:
            self.peers.clear()
        self.connected.clear()

        try:
            self.subscriber.disable_monitor()
        except zmq.ZMQError:
            pass

        self.monitor.close()
        self.subscriber.close()
        self._sig_rx.close()


    def _commands(self) -> None:

        while True:
            try:
                command = self._queue.get(block=False)
            except queue.Empty:
                break

            action = command[0]

            if action == 'stop':
                self.shutdown = True
            elif action == 'subscribe':
                self.subscriber.setsockopt(zmq.SUBSCRIBE, command[1])
            elif action == 'unsubscribe':
                self.subscriber.setsockopt(zmq.UNSUBSCRIBE, command[1])


    def _fail(self, error: Exception) -> None:

        with self.subscriptions_lock:
            subscriptions = [s for group in self.subscriptions.values() for s in group]

        for subscription in subscriptions:
            if subscription.active and subscription.failure is not None:
                try:
                    subscription.failure(error)
                except Exception:
                    log.exception('subscription failure callback raised')


    def _monitor_event(self, event: dict) -> None:

        endpoint = event.get('endpoint', b'')
        if isinstance(endpoint, bytes):
            endpoint = endpoint.decode()

        with self.peers_lock:
            if event['event'] == zmq.EVENT_CONNECTED:
                self.peers.add(endpoint)
            elif event['event'] == zmq.EVENT_DISCONNECTED:
                self.peers.discard(endpoint)

            count = len(self.peers)

        if count > 0:
            self.connected.set()
        else:
            self.connected.clear()

        log.debug('relay peers now %d (%s)', count, endpoint)


    def _sub_incoming(self, parts: Sequence[bytes]) -> None:

        topic = parts[0]

        with self.subscriptions_lock:
            try:
                subscriptions = list(self.subscriptions[topic])
            except KeyError:
                return

        try:
            wire = from_frames(parts)
        except WireFormatError as e:
            log.warning('dropping malformed broadcast on %r: %s', topic, e)
            return

        with self.dispatch_lock:
            for subscription in subscriptions:
                if subscription.active == False:
                    continue
                try:
                    subscription.callback(wire)
                except Exception:
                    log.exception('subscription callback raised')


    def close(self) -> None:

        with self._sig_lock:
            if self.closed:
                return
            self.shutdown = True
            self._queue.put(('stop',))
            self._signal()
            self.closed = True
            self._sig_tx.close()

        if self.thread.ident is None:
            self._cleanup()
        elif self.thread.is_alive() and self.thread is not threading.current_thread():
            self.thread.join()

        with self.publisher_lock:
            self.publisher.close()


# end of class Handle



class ZmqTransport(Transport):
    """Push-delivery transport over ZeroMQ relay nodes.

    *relays* is a sequence of ``host:port`` strings, see :func:`parse_relay`.
    :meth:`acquire` waits up to *connect_timeout* seconds for at least one
    relay to accept the subscriber connection.
    """

    name = 'zmq'

    def __init__(self, relays: Sequence[str], connect_timeout: float = 10.0):

        if isinstance(relays, str):
            relays = [relays]

        relays = list(relays)
        if len(relays) == 0:
            raise ValueError('at least one relay must be specified')

        for relay in relays:
            parse_relay(relay)

        self.relays = relays
        self.connect_timeout = float(connect_timeout)


    def acquire(self, cancel: Optional[threading.Event] = None) -> Handle:

        try:
            handle = Handle(self.relays)
        except zmq.ZMQError as e:
            raise AcquisitionError('cannot open ZeroMQ sockets: ' + str(e)) from e

        try:
            handle.connect()
        except zmq.ZMQError as e:
            handle.close()
            raise AcquisitionError('cannot open ZeroMQ sockets: ' + str(e)) from e

        expiration = time.monotonic() + self.connect_timeout

        while True:
            remaining = expiration - time.monotonic()
            if remaining <= 0:
                break

            if handle.connected.wait(min(remaining, 0.05)):
                return handle

            if cancel is not None and cancel.is_set():
                handle.close()
                raise AcquisitionError('acquisition cancelled')

        handle.close()
        raise AcquisitionError('no relay reachable within %.1f seconds' % (self.connect_timeout))


    def has_capability(self, handle: Handle, capability: Capability) -> bool:
        return capability in (Capability.PUBLISH, Capability.SUBSCRIBE)


    def subscribe(self, handle: Handle, topic: str, callback: Optional[Callable] = None,
                  failure: Optional[Callable] = None) -> Subscription:

        if handle.closed:
            raise SubscriptionError('transport handle is closed')

        if callback is not None and not callable(callback):
            raise SubscriptionError('callback must be callable')

        subscription = Subscription(topic, callback, failure)
        frame = topic_frame(topic)

        if callback is not None:
            with handle.subscriptions_lock:
                try:
                    handle.subscriptions[frame].append(subscription)
                except KeyError:
                    handle.subscriptions[frame] = [subscription]

        handle.command('subscribe', frame)
        return subscription


    def unsubscribe(self, handle: Handle, subscription: Subscription) -> None:

        frame = topic_frame(subscription.topic)

        # Holding the dispatch lock means any in-flight callback has returned.

        with handle.dispatch_lock:
            subscription.active = False

        with handle.subscriptions_lock:
            try:
                subscriptions = handle.subscriptions[frame]
            except KeyError:
                subscriptions = []

            if subscription in subscriptions:
                subscriptions.remove(subscription)

            if len(subscriptions) == 0:
                handle.subscriptions.pop(frame, None)

        handle.command('unsubscribe', frame)


    def publish_once(self, handle: Handle, topic: str, payload: bytes) -> None:

        if handle.closed:
            raise PublishError('transport handle is closed')

        if handle.peer_count() == 0:
            raise PublishError('no relay peers connected')

        message = Message.create(topic, payload)
        frames = to_frames(message.to_wire())

        # The lock around the ZeroMQ socket is necessary in a multithreaded
        # application; otherwise, if two different threads both invoke
        # send_multipart(), the message parts can and will get mixed together.

        try:
            with handle.publisher_lock:
                handle.publisher.send_multipart(frames)
        except zmq.ZMQError as e:
            raise PublishError('send failed: ' + str(e)) from e


    def peer_count(self, handle: Handle) -> int:

        if handle.closed:
            raise QueryError('transport handle is closed')

        return handle.peer_count()


    def release(self, handle: Handle) -> None:
        handle.close()
