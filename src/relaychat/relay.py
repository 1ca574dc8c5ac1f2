""" The :class:`Relay` is the facade an owning process uses: it builds a
    transport, a session, a publisher and, for the responder role, the
    automated responder, all from one :class:`~relaychat.config.Configuration`.
    The process only needs :func:`Relay.start` and :func:`Relay.stop`.
"""

import logging

from . import generate
from . import transport as transport_module
from .config import Configuration
from .dedup import DedupStore
from .publisher import RetryingPublisher
from .responder import ResponderPipeline
from .session import SessionState, TransportSession

log = logging.getLogger(__name__)


class Relay:
    """ One chat participant. With *role* 'responder' the relay listens on
        the client topic and answers on the server topic; with *role*
        'client' it listens for answers and sends on the client topic.

        *transport* and *generator* default to whatever the configuration
        names; they can be supplied directly instead, which is how tests
        substitute fakes. Callbacks added with :func:`register` receive
        every accepted inbound message.
    """

    def __init__(self, config=None, role='responder', transport=None, generator=None):

        if config is None:
            config = Configuration()

        self.config = config
        self.role = role

        inbound, outbound = config.topics(role)
        self.inbound = inbound
        self.outbound = outbound

        if transport is None:
            transport = transport_module.create(config)

        self.transport = transport

        def limit(key):
            value = config[key]
            if value == 0:
                return None
            return value

        self.store = DedupStore(config['dedup_capacity'], limit('dedup_retention'))

        self.session = TransportSession(transport, inbound, outbound,
                                        mode=config['mode'],
                                        store=self.store,
                                        retry_delay=config['retry_delay'],
                                        max_retries=config['max_retries'],
                                        poll_interval=config['poll_interval'],
                                        monitor_fast=config['monitor_fast'],
                                        monitor_settle=config['monitor_settle'],
                                        monitor_steady=config['monitor_steady'],
                                        query_failure_limit=limit('query_failure_limit'),
                                        fetch_failure_limit=limit('fetch_failure_limit'))

        self.publisher = RetryingPublisher(self.session.publish_once,
                                           attempts=config['publish_attempts'],
                                           delay=config['publish_delay'])

        self.responder = None

        if role == 'responder':
            if generator is None:
                generator = generate.create(config)

            self.responder = ResponderPipeline(generator, self.publisher, outbound,
                                               enabled=config['responder'],
                                               fallback=config['fallback'])
            self.session.register(self.responder.handle)

        self.session.listen(self._state_changed)


    @property
    def state(self):
        return self.session.state


    def register(self, callback):
        """ Add a callback for accepted inbound messages.
        """

        self.session.register(callback)


    def listen(self, callback):
        """ Add a callback for session state changes.
        """

        self.session.listen(callback)


    def send(self, text):
        """ Publish *text* on the outbound topic, retrying per the
            configuration. Returns True if the message was published.
        """

        return self.publisher.publish(self.outbound, text)


    def start(self):
        self.publisher.reset()
        if self.responder is not None:
            self.responder.reset()
        self.session.start()


    def stop(self):
        """ Stop the session. Any publish waiting out a retry delay gives up
            immediately. An in-flight automated reply is not published, but
            this waits for its generation call to return.
        """

        self.publisher.cancel()
        self.session.stop()

        if self.responder is not None:
            self.responder.join()


    def _state_changed(self, old, new):

        if new is not SessionState.CONNECTED:
            return

        announce = self.config['announce']
        if announce:
            # Single attempt, this runs on the supervisor thread.
            self.publisher.publish(self.outbound, announce, attempts=1)


# end of class Relay


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
