""" Peer-count monitoring for an established transport connection. The
    :class:`PeerMonitor` samples frequently right after a connection comes
    up, when a lost link is most likely, and relaxes to a slower cadence once
    the connection has settled.
"""

import collections
import logging
import threading
import time

from . import poll

log = logging.getLogger(__name__)


PeerSample = collections.namedtuple('PeerSample', ('count', 'observed_at'))


class PeerMonitor:
    """ Periodically invoke *sample*, a callable returning the current peer
        count, and invoke *lost* (with a short reason string) when the count
        drops to zero. *connected* is a callable returning whether the owning
        session currently considers itself connected; zero samples are
        ignored otherwise.

        The monitor samples every *fast* seconds for the first *settle*
        seconds after :func:`start`, then every *steady* seconds. The
        *lost* callback fires at most once per :func:`start`; the owning
        session restarts the monitor each time it becomes connected, which
        re-arms it.

        If *health* is provided it is called alongside each sample, and a
        False result while connected is a lost link just as zero peers is.

        A sample that raises is logged and treated as unknown. If
        *failure_limit* is set, that many consecutive failed samples are
        treated as a lost link.
    """

    def __init__(self, sample, lost, connected=None, fast=1.0, settle=10.0,
                 steady=5.0, failure_limit=None, health=None, clock=time.monotonic):

        self.sample = sample
        self.health = health
        self.lost = lost
        self.connected = connected
        self.fast = float(fast)
        self.settle = float(settle)
        self.steady = float(steady)
        self.clock = clock

        if failure_limit is not None and int(failure_limit) < 1:
            failure_limit = None
        self.failure_limit = failure_limit

        self.last = None
        self.armed = False
        self.failures = 0
        self.started = None
        self.settled = False

        self._lock = threading.Lock()
        self._poller = poll.Poller(self.tick, self.fast, name='peer-monitor')


    def start(self):
        """ Begin sampling on the fast cadence, and arm the loss signal.
        """

        with self._lock:
            self.armed = True
            self.failures = 0
            self.last = None
            self.started = self.clock()
            self.settled = False

        self._poller.stop()
        self._poller.period(self.fast)
        self._poller.start()


    def stop(self):
        """ Stop sampling. Once this returns neither *sample* nor *lost* will
            be invoked again.
        """

        with self._lock:
            self.armed = False

        self._poller.stop()


    def tick(self):
        """ Take one sample and act on it. This is normally invoked by the
            background poller, but can be called directly.
        """

        if self.settled == False and self.started is not None:
            if self.clock() - self.started >= self.settle:
                self.settled = True
                self._poller.period(self.steady)

        try:
            count = int(self.sample())
            healthy = True
            if self.health is not None:
                healthy = self.health()
        except Exception as e:
            self._failed(e)
            return

        sample = PeerSample(count, self.clock())

        with self._lock:
            self.last = sample
            self.failures = 0

        log.debug('peer count %d', count)

        if count > 0 and healthy:
            return

        if self.connected is not None and self.connected() == False:
            return

        if count > 0:
            self._signal('transport reports unhealthy')
        else:
            self._signal('no peers connected')


    def _failed(self, error):

        log.warning('peer count query failed: %s', error)

        with self._lock:
            self.failures += 1
            failures = self.failures

        if self.failure_limit is None or failures < self.failure_limit:
            return

        self._signal('peer count unavailable after %d attempts' % (failures))


    def _signal(self, reason):

        with self._lock:
            if self.armed == False:
                return
            self.armed = False

        log.warning('link lost: %s', reason)
        self.lost(reason)


# end of class PeerMonitor


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
