""" The resilient session layer. A :class:`TransportSession` owns one
    transport connection from :func:`TransportSession.start` to
    :func:`TransportSession.stop`: it acquires the transport, confirms the
    capabilities it needs, registers message ingestion, watches the peer
    count, and goes back to connecting whenever the link is lost.

    All state transitions happen on a single supervisor thread. Reconnection
    is a transition driven by that thread's loop, never a recursive call, and
    every wait in the loop is cut short by the session's cancellation token
    when the session is stopped.
"""

import enum
import logging
import threading

from . import ingest
from .dedup import DedupStore
from .monitor import PeerMonitor
from .transport import AcquisitionError, Capability, PublishError, QueryError, TransportError

log = logging.getLogger(__name__)


class SessionState(enum.Enum):
    DISCONNECTED = 'disconnected'
    CONNECTING = 'connecting'
    CONNECTED = 'connected'
    ERROR = 'error'


class CapabilityError(AcquisitionError):
    """ The acquired transport lacks a capability the session requires.
    """


class TransportSession:
    """ Maintain a live connection to *transport*, ingesting messages from
        the *inbound* topic. The *outbound* topic is where this participant
        publishes; it must differ from *inbound*.

        *mode* selects the delivery model, either 'push' (transport
        callbacks) or 'poll' (periodic fetches every *poll_interval*
        seconds). Accepted messages are handed to *deliver*, and to any
        other callbacks added with :func:`register`. State changes are
        reported to *on_state*, and to any other callbacks added with
        :func:`listen`, as (old, new) pairs of :class:`SessionState`.

        After a failed connection attempt the session waits *retry_delay*
        seconds before trying again. A *max_retries* of zero retries
        forever; otherwise the session stays in the ERROR state after that
        many consecutive failures, until it is stopped.

        The remaining arguments tune the :class:`~relaychat.monitor.PeerMonitor`
        and the poll adapter; see those classes for details.

        :ivar state: The current :class:`SessionState`.
        :ivar last_error: Text describing the most recent failure, if any.
        :ivar store: The :class:`~relaychat.dedup.DedupStore` for this session.
    """

    def __init__(self, transport, inbound, outbound, mode='push', deliver=None,
                 on_state=None, store=None, retry_delay=2.0, max_retries=0,
                 poll_interval=1.0, monitor_fast=1.0, monitor_settle=10.0,
                 monitor_steady=5.0, query_failure_limit=None,
                 fetch_failure_limit=None):

        if inbound == outbound:
            raise ValueError('inbound and outbound topics must differ: ' + repr(inbound))

        if store is None:
            store = DedupStore()

        self.transport = transport
        self.inbound = inbound
        self.outbound = outbound
        self.mode = mode
        self.store = store
        self.retry_delay = float(retry_delay)
        self.max_retries = int(max_retries)

        self.state = SessionState.DISCONNECTED
        self.last_error = None
        self.handle = None

        self.observers = list()
        self.listeners = list()

        if deliver is not None:
            self.register(deliver)
        if on_state is not None:
            self.listen(on_state)

        if mode == 'push':
            self.adapter = ingest.PushAdapter(transport, inbound, store, self._deliver, self._failure)
        elif mode == 'poll':
            self.adapter = ingest.PollAdapter(transport, inbound, store, self._deliver, self._failure,
                                              interval=poll_interval, active=self.connected,
                                              failure_limit=fetch_failure_limit)
        else:
            raise ValueError('unknown delivery mode: ' + repr(mode))

        self.monitor = PeerMonitor(self._sample, self._link_lost, connected=self.connected,
                                   fast=monitor_fast, settle=monitor_settle,
                                   steady=monitor_steady, failure_limit=query_failure_limit,
                                   health=self._health)

        self._lock = threading.RLock()
        self._changed = threading.Condition(self._lock)
        self._wake = threading.Event()
        self._lost = None
        self._thread = None
        self._local = threading.local()

        # Each run of the supervisor gets its own cancellation token. A
        # session that has never been started has an already-cancelled one.

        self._token = threading.Event()
        self._token.set()


    def connected(self):
        return self.state is SessionState.CONNECTED


    def healthy(self):
        """ Return True if the session is connected and the transport reports
            itself healthy.
        """

        with self._lock:
            handle = self.handle
            connected = self.connected()

        if connected == False or handle is None:
            return False

        return self.transport.healthy(handle)


    def listen(self, callback):
        """ Add a state change callback, invoked with (old, new).
        """

        if callable(callback):
            pass
        else:
            raise TypeError('callback must be callable')

        self.listeners.append(callback)


    def publish_once(self, topic, payload):
        """ Publish *payload* on *topic* exactly once through the current
            transport handle. Raises :class:`~relaychat.transport.PublishError`
            if the session is not connected, or if the transport fails.
        """

        with self._lock:
            handle = self.handle
            connected = self.connected()

        if connected == False or handle is None:
            raise PublishError('session is not connected')

        self.transport.publish_once(handle, topic, payload)


    def register(self, callback):
        """ Add a message callback, invoked with each accepted
            :class:`~relaychat.message.Message` in acceptance order.
        """

        if callable(callback):
            pass
        else:
            raise TypeError('callback must be callable')

        self.observers.append(callback)


    def start(self):
        """ Begin connecting in the background. This returns immediately;
            progress is reported through the state callbacks. Calling
            :func:`start` on a session that is not disconnected is a no-op.
        """

        with self._lock:
            if self._thread is not None:
                return

            token = threading.Event()
            self._token = token
            self._lost = None
            self._wake.clear()
            self.last_error = None

            thread = threading.Thread(target=self.run, args=(token,), name='session')
            thread.daemon = True
            self._thread = thread

        thread.start()


    def stop(self):
        """ Disconnect: cancel any pending retry, stop monitoring and
            ingestion, and release the transport. Once this returns no
            further state or message callbacks will be invoked. Stopping a
            session that is already disconnected is a no-op, and stopping
            from within a state or message callback is allowed.
        """

        with self._lock:
            thread = self._thread
            if thread is None:
                return

            self._thread = None
            token = self._token
            token.set()
            self._wake.set()

        # Message callbacks run on transport and poller threads that the
        # supervisor's teardown waits for.

        if thread is threading.current_thread() or self._delivering():
            pass
        else:
            thread.join()

        self._teardown()
        self._set_state(SessionState.DISCONNECTED, token)


    def wait(self, state, timeout=None):
        """ Block until the session reaches *state*, or *timeout* seconds
            elapse. Returns True if the state was reached.
        """

        with self._changed:
            return self._changed.wait_for(lambda: self.state is state, timeout)


    def run(self, token):
        """ The supervisor loop. Each pass through the outer loop is one
            connection attempt; a failed attempt waits out the retry delay,
            a successful one waits for the link to be lost.
        """

        failures = 0

        while token.is_set() == False:
            self._set_state(SessionState.CONNECTING, token)

            try:
                self._connect(token)
            except Exception as e:
                if isinstance(e, TransportError):
                    log.warning('connection attempt failed: %s', e)
                else:
                    log.exception('connection attempt raised unexpectedly')

                self._teardown()
                self.last_error = str(e)
                self._set_state(SessionState.ERROR, token)

                failures += 1
                if self.max_retries > 0 and failures >= self.max_retries:
                    log.error('giving up after %d failed connection attempts', failures)
                    token.wait()
                    break

                if token.wait(self.retry_delay):
                    break

                continue

            if token.is_set():
                break

            failures = 0
            self._set_state(SessionState.CONNECTED, token)

            if token.is_set():
                break

            self.monitor.start()

            while token.is_set() == False and self._lost is None:
                self._wake.wait()
                self._wake.clear()

            if token.is_set():
                break

            with self._lock:
                reason = self._lost
                self._lost = None

            log.warning('reconnecting: %s', reason)
            self.last_error = reason
            self._teardown()

        # A stop() issued from one of our own callbacks cannot join this
        # thread; release anything acquired after its teardown ran.

        if self._token is token:
            self._teardown()


    def _connect(self, token):
        """ One connection attempt: acquire the transport, confirm its
            capabilities, and register ingestion.
        """

        with self._lock:
            self._lost = None
        self._wake.clear()

        if token.is_set():
            return

        handle = self.transport.acquire(token)

        with self._lock:
            self.handle = handle

        if token.is_set():
            return

        required = [Capability.PUBLISH]
        required.extend(self.adapter.requires)

        for capability in required:
            if self.transport.has_capability(handle, capability):
                continue
            raise CapabilityError('transport lacks required capability: ' + capability.value)

        self.adapter.start(handle)


    def _deliver(self, message):

        if self._token.is_set():
            return

        self._local.delivering = True

        try:
            for observer in list(self.observers):
                if self._token.is_set():
                    break
                try:
                    observer(message)
                except Exception:
                    log.exception('message callback raised')
        finally:
            self._local.delivering = False


    def _delivering(self):
        return getattr(self._local, 'delivering', False)


    def _failure(self, error):
        self._link_lost('transport failure: ' + str(error))


    def _link_lost(self, reason):
        """ Ask the supervisor to reconnect. This is ignored unless the
            session is currently connected.
        """

        with self._lock:
            if self.connected() == False or self._lost is not None:
                return
            self._lost = reason

        self._wake.set()


    def _sample(self):

        handle = self.handle
        if handle is None:
            raise QueryError('no transport handle')

        return self.transport.peer_count(handle)


    def _health(self):

        handle = self.handle
        if handle is None:
            raise QueryError('no transport handle')

        return self.transport.healthy(handle)


    def _set_state(self, state, token):

        with self._lock:
            if token.is_set() and state is not SessionState.DISCONNECTED:
                return

            old = self.state
            if old is state:
                return

            self.state = state
            self._changed.notify_all()

        log.info('session state %s -> %s', old.value, state.value)

        for listener in list(self.listeners):
            if token.is_set() and state is not SessionState.DISCONNECTED:
                break
            try:
                listener(old, state)
            except Exception:
                log.exception('state callback raised')


    def _teardown(self):
        """ Stop monitoring and ingestion, and release the transport handle.
            Safe to call repeatedly.
        """

        self.monitor.stop()
        self.adapter.stop()

        with self._lock:
            handle = self.handle
            self.handle = None

        if handle is None:
            return

        try:
            self.transport.release(handle)
        except Exception:
            log.exception('releasing the transport raised')


# end of class TransportSession


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
