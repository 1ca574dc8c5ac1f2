""" Duplicate suppression for inbound messages. Push delivery can replay a
    message after a reconnect, and poll delivery returns overlapping windows
    from one fetch to the next; the :class:`DedupStore` is what makes
    ingestion idempotent in both cases.
"""

import collections
import threading
import time


class DedupStore:
    """ Track identity keys that have already been observed. The store is
        bounded two ways: once more than *capacity* keys are held the oldest
        inserted keys are dropped, and if *retention* is set (in seconds),
        keys older than that are aged out. Either way, an evicted key will
        be accepted again if it is seen again.

        All methods are safe to call from multiple threads.
    """

    def __init__(self, capacity=4096, retention=None, clock=time.monotonic):

        capacity = int(capacity)
        if capacity < 1:
            raise ValueError('capacity must be at least 1')

        if retention is not None:
            retention = float(retention)
            if retention <= 0:
                retention = None

        self.capacity = capacity
        self.retention = retention
        self.clock = clock

        self._lock = threading.Lock()
        self._seen = collections.OrderedDict()


    def __contains__(self, key):
        return self.seen(key)


    def __len__(self):
        with self._lock:
            self._expire(self.clock())
            return len(self._seen)


    def accept(self, key):
        """ Return True if *key* has not been seen before (or has since been
            evicted), recording it as seen; return False otherwise.
        """

        now = self.clock()

        with self._lock:
            self._expire(now)

            if key in self._seen:
                return False

            self._seen[key] = now

            while len(self._seen) > self.capacity:
                self._seen.popitem(last=False)

        return True


    def clear(self):
        with self._lock:
            self._seen.clear()


    def seen(self, key):
        """ Return True if *key* is currently known, without recording it.
        """

        with self._lock:
            self._expire(self.clock())
            return key in self._seen


    def _expire(self, now):
        """ Drop entries older than the retention window. Insertion order is
            arrival order, so the scan stops at the first entry still inside
            the window.
        """

        if self.retention is None:
            return

        horizon = now - self.retention

        while self._seen:
            key, arrival = next(iter(self._seen.items()))
            if arrival > horizon:
                break
            del self._seen[key]


# end of class DedupStore


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
