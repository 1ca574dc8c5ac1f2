""" Bounded retry around a raw publish primitive. Failure is reported as a
    boolean rather than an exception so that the caller, typically a user
    interface or the automated responder, decides what to do next.
"""

import logging
import threading

log = logging.getLogger(__name__)


class RetryingPublisher:
    """ Wrap *publish_once*, a callable accepting (topic, payload) that
        raises on failure. The *attempts* and *delay* (seconds) arguments set
        the defaults for :func:`publish`. *sleep*, if provided, replaces the
        interruptible wait between attempts; it is called with the delay in
        seconds and returns True if the wait was cut short.
    """

    def __init__(self, publish_once, attempts=3, delay=2.0, sleep=None):

        if callable(publish_once):
            pass
        else:
            raise TypeError('publish_once must be callable')

        self.publish_once = publish_once
        self.attempts = int(attempts)
        self.delay = float(delay)

        self._cancel = threading.Event()

        if sleep is None:
            sleep = self._cancel.wait

        self.sleep = sleep


    def cancel(self):
        """ Interrupt any backoff in progress, and make any further backoff
            return immediately; the interrupted :func:`publish` returns False.
            Use :func:`reset` to resume normal operation.
        """

        self._cancel.set()


    def reset(self):
        self._cancel.clear()


    def publish(self, topic, payload, attempts=None, delay=None):
        """ Attempt to publish *payload* on *topic* up to *attempts* times,
            waiting *delay* seconds between attempts but not after the final
            one. Text payloads are encoded as UTF-8. Returns True on the first
            success, False once every attempt has failed. This method never
            raises.
        """

        if attempts is None:
            attempts = self.attempts
        if delay is None:
            delay = self.delay

        attempts = max(int(attempts), 1)

        if isinstance(payload, str):
            payload = payload.encode('utf-8')

        for attempt in range(1, attempts + 1):
            try:
                self.publish_once(topic, payload)
            except Exception as e:
                log.warning('publish to %s failed (attempt %d of %d): %s',
                            topic, attempt, attempts, e)
            else:
                if attempt > 1:
                    log.info('publish to %s succeeded on attempt %d', topic, attempt)
                return True

            if attempt == attempts:
                break

            if delay > 0 and self.sleep(delay) == True:
                log.info('publish to %s cancelled during backoff', topic)
                return False

        log.error('giving up on publish to %s after %d attempts', topic, attempts)
        return False


# end of class RetryingPublisher


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
