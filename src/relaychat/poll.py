""" Background threads that invoke a method on a fixed cadence. These are
    the timers behind peer monitoring and poll-mode ingestion; each
    :class:`Poller` owns exactly one thread, and stopping a poller is
    synchronous: once :func:`Poller.stop` returns the method will not be
    invoked again.
"""

import logging
import threading
import time

log = logging.getLogger(__name__)


class Poller:
    """ Call the provided *method* on an interval of *period* seconds. The
        first call happens as soon as the poller is started; subsequent calls
        honor the requested cadence regardless of how long each call takes,
        unless a call overruns the interval entirely.

        Exceptions raised by *method* are logged and otherwise ignored; the
        cadence continues.
    """

    def __init__(self, method, period, name=None):

        if callable(method):
            pass
        else:
            raise TypeError('method must be callable')

        self.method = method
        self.name = name
        self.interval = None
        self.shutdown = False
        self.thread = None

        self.alarm = threading.Event()
        self.period(period)


    def period(self, period):
        """ Update the polling interval to *period* seconds. If the poller
            is running the new cadence starts immediately, with a fresh call
            to the method.
        """

        period = float(period)
        if period <= 0:
            raise ValueError('polling period must be positive')

        self.interval = period
        self.wake()


    def run(self):

        interval = self.interval
        next = time.monotonic()

        while True:
            begin = time.monotonic()

            if self.shutdown == True:
                break

            if self.alarm.is_set() == True:
                self.alarm.clear()

                # The interval only changes when the alarm is set, including
                # when it is set upon startup. That's our cue to load a new
                # interval for this loop, and start an entirely new cadence.

                interval = self.interval
                next = begin + interval

            else:
                next += interval

            try:
                self.method()
            except Exception:
                log.exception('poller %s: unhandled exception', self.name)

            end = time.monotonic()

            delay = next - end
            if delay > 0:
                self.alarm.wait(delay)


    def running(self):
        thread = self.thread
        return thread is not None and thread.is_alive()


    def start(self):
        """ Start the background thread. Starting a poller that is already
            running is a no-op; a stopped poller can be started again.
        """

        if self.running():
            return

        self.shutdown = False
        self.alarm.set()

        self.thread = threading.Thread(target=self.run, name=self.name)
        self.thread.daemon = True
        self.thread.start()


    def stop(self):
        """ Discontinue calling the method. This blocks until the background
            thread exits, unless it is invoked from within the polled method
            itself, in which case no further calls will be made after the
            current one returns. Stopping an idle poller is a no-op.
        """

        self.shutdown = True
        self.wake()

        thread = self.thread
        if thread is None:
            return

        if thread is threading.current_thread():
            return

        thread.join()
        self.thread = None


    def wake(self):
        self.alarm.set()


# end of class Poller


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
