""" Ingestion adapters. The two delivery models offered by transports, push
    callbacks and client-side polling, are normalized here: both decode the
    wire shape into :class:`~relaychat.message.Message` instances, pass them
    through a :class:`~relaychat.dedup.DedupStore`, and hand the survivors to
    a single *deliver* callback. Nothing above this layer needs to know which
    delivery model is in use.
"""

import logging
import threading

from . import poll
from .message import Message, WireFormatError
from .transport import Capability, TransportError

log = logging.getLogger(__name__)


class Adapter:
    """ Common machinery for the ingestion adapters. *transport* is the
        :class:`~relaychat.transport.Transport` to ingest from, *topic* the
        inbound topic, *store* the session's dedup store, and *deliver* is
        invoked with each accepted message. *failure* is invoked with an
        exception when the adapter concludes the transport has failed.
    """

    mode = None
    requires = (Capability.SUBSCRIBE,)

    def __init__(self, transport, topic, store, deliver, failure=None):

        self.transport = transport
        self.topic = topic
        self.store = store
        self.deliver = deliver
        self.failure = failure

        self.handle = None
        self.subscription = None

        # Held across accept() and deliver() so that delivery order matches
        # the order in which the store first accepted each message.

        self._ingest_lock = threading.Lock()
        self._stop_lock = threading.Lock()


    def ingest(self, raw):
        """ Decode one raw wire message and deliver it if it is novel.
            Returns True if the message was delivered.
        """

        try:
            message = Message.from_wire(raw)
        except WireFormatError as e:
            log.warning('dropping undecodable message on %s: %s', self.topic, e)
            return False

        if message.topic != self.topic:
            log.debug('ignoring message for %s on %s', message.topic, self.topic)
            return False

        with self._ingest_lock:
            if self.store.accept(message.key):
                self.deliver(message)
                return True

        return False


    def start(self, handle):
        raise NotImplementedError('start() must be implemented by subclasses')


    def stop(self):
        """ Cancel the subscription, if any. Once this returns *deliver* will
            not be invoked again by this adapter.
        """

        with self._stop_lock:
            subscription = self.subscription
            handle = self.handle

            self.subscription = None
            self.handle = None

        if subscription is None:
            return

        try:
            self.transport.unsubscribe(handle, subscription)
        except TransportError as e:
            log.warning('cannot cancel subscription to %s: %s', self.topic, e)


    def _failed(self, error):

        if self.failure is None:
            return

        self.failure(error)


# end of class Adapter



class PushAdapter(Adapter):
    """ Register a single transport subscription per connection; every
        transport callback carries one wire message.
    """

    mode = 'push'

    def start(self, handle):
        """ Subscribe to the inbound topic. Raises
            :class:`~relaychat.transport.SubscriptionError` on failure.
        """

        self.handle = handle
        self.subscription = self.transport.subscribe(handle, self.topic, self.receive, self._failed)


    def receive(self, raw):
        self.ingest(raw)


# end of class PushAdapter



class PollAdapter(Adapter):
    """ Fetch every currently available message for the inbound topic on an
        interval of *interval* seconds. Fetching is skipped whenever
        *active*, a callable, returns False. Fetch failures count as a missed
        cycle; if *failure_limit* is set, that many consecutive failures are
        reported through the *failure* callback.
    """

    mode = 'poll'
    requires = (Capability.SUBSCRIBE, Capability.FETCH)

    def __init__(self, transport, topic, store, deliver, failure=None,
                 interval=1.0, active=None, failure_limit=None):

        Adapter.__init__(self, transport, topic, store, deliver, failure)

        if failure_limit is not None and int(failure_limit) < 1:
            failure_limit = None

        self.active = active
        self.failure_limit = failure_limit
        self.failures = 0
        self._poller = poll.Poller(self.fetch, interval, name='poll-ingest')


    def start(self, handle):
        """ Register interest in the inbound topic, then start polling.
            Raises :class:`~relaychat.transport.SubscriptionError` if the
            registration fails.
        """

        self.handle = handle
        self.failures = 0
        self.subscription = self.transport.subscribe(handle, self.topic, None, self._failed)
        self._poller.start()


    def stop(self):
        self._poller.stop()
        Adapter.stop(self)


    def fetch(self):
        """ Run one polling cycle. Returns the number of messages delivered.
        """

        handle = self.handle
        if handle is None:
            return 0

        if self.active is not None and self.active() == False:
            return 0

        try:
            pending = self.transport.fetch_pending(handle, self.topic)
        except TransportError as e:
            self.failures += 1
            log.warning('fetch from %s failed (%d in a row): %s', self.topic, self.failures, e)

            if self.failure_limit is not None and self.failures >= self.failure_limit:
                self.failures = 0
                self._failed(e)
            return 0

        self.failures = 0

        delivered = 0
        for raw in pending:
            if self.ingest(raw):
                delivered += 1

        return delivered


# end of class PollAdapter


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
