""" The automated responder: inbound messages go to a generation
    collaborator, and the generated reply is published on the outbound
    topic. At most one generation cycle runs at a time; messages that arrive
    while a cycle is in flight get no automated reply.
"""

import logging
import threading

from .generate import GenerationError

log = logging.getLogger(__name__)


class ResponderPipeline:
    """ Reply to inbound messages. *generator* provides ``generate(text)``,
        *publisher* is a :class:`~relaychat.publisher.RetryingPublisher`, and
        replies are published on *topic*. If *fallback* is set, it is
        published in place of a reply whenever generation fails; otherwise a
        failed cycle is silent.

        :ivar pending: True while a generation cycle is in flight.
    """

    def __init__(self, generator, publisher, topic, enabled=True, fallback=None):

        self.generator = generator
        self.publisher = publisher
        self.topic = topic
        self.enabled = enabled
        self.fallback = fallback or None

        self.pending = False
        self.worker = None
        self._lock = threading.Lock()


    def handle(self, message):
        """ Consider *message* for an automated reply. If the responder is
            enabled and idle, a generation cycle is started on a background
            thread and True is returned; otherwise the message is ignored and
            False is returned.
        """

        if self.enabled == False:
            return False

        with self._lock:
            if self.pending == True:
                log.debug('generation in flight, not replying to %r', message.key)
                return False

            self.pending = True

            worker = threading.Thread(target=self.cycle, args=(message,), name='responder')
            worker.daemon = True
            self.worker = worker

        worker.start()
        return True


    def join(self, timeout=None):
        """ Wait for the in-flight cycle, if any, to complete. Returns True
            if no cycle is in flight when this returns.
        """

        worker = self.worker
        if worker is not None and worker is not threading.current_thread():
            worker.join(timeout)

        return self.pending == False


    def reset(self):
        """ Clear the pending flag, for instance after a restart. Returns
            False and changes nothing while a worker is still running; that
            worker clears the flag itself when its cycle ends.
        """

        with self._lock:
            worker = self.worker
            if worker is not None and worker.is_alive():
                return False

            self.pending = False

        return True


    def cycle(self, message):
        """ Run one generation and publish cycle for *message*. The caller is
            expected to have set :attr:`pending`; it is always cleared on the
            way out, regardless of how the cycle ends. Returns True if a
            reply was published.
        """

        try:
            return self._cycle(message)
        finally:
            with self._lock:
                self.pending = False


    def _cycle(self, message):

        text = message.text
        log.info('generating reply to: %s', text)

        try:
            reply = self.generator.generate(text)
        except GenerationError as e:
            log.error('generation failed: %s', e)
            reply = self.fallback
        except Exception:
            log.exception('generator raised unexpectedly')
            reply = self.fallback

        if reply is None:
            return False

        if self.publisher.publish(self.topic, reply):
            log.info('reply published on %s', self.topic)
            return True

        log.error('reply to %r was not published', message.key)
        return False


# end of class ResponderPipeline


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
