"""A minimal ZeroMQ relay node.

The relay is the remote peer for :class:`~relaychat.transport.zmq.ZmqTransport`:
publishers connect to its XSUB socket, subscribers to its XPUB socket, and
every broadcast arriving on one side is forwarded to the other. Subscription
messages flow the opposite direction so that filtering still happens at the
edge.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

import zmq

from .publish import zmq_context

log = logging.getLogger(__name__)

minimum_port = 10139
maximum_port = 13679


class Relay:
    """Forward broadcasts between an XSUB and an XPUB socket.

    The default behavior is to listen on all available network interfaces
    on the first available pair of adjacent ports; publishers use *port*,
    subscribers use *port* + 1. A fixed *port* can be requested instead.

    :ivar port: The port on which this relay accepts publishers.
    """

    def __init__(self, port: Optional[int] = None, address: str = '*'):

        self.address = address
        self.frontend = zmq_context.socket(zmq.XSUB)
        self.frontend.setsockopt(zmq.LINGER, 0)
        self.backend = zmq_context.socket(zmq.XPUB)
        self.backend.setsockopt(zmq.LINGER, 0)

        if port is None:
            minimum = minimum_port
            maximum = maximum_port
        else:
            port = int(port)
            minimum = port
            maximum = port

        trial = minimum
        while trial <= maximum:
            if self._bind(trial):
                break
            trial += 1

        if trial > maximum:
            self.frontend.close()
            self.backend.close()

            if port is None:
                error = "no ports available in range %d:%d" % (minimum, maximum)
            else:
                error = 'port already in use: ' + str(port)
            raise zmq.error.ZMQError(msg=error)

        self.port = trial
        self.shutdown = False
        self.thread = None


    def _bind(self, port: int) -> bool:

        frontend = 'tcp://%s:%d' % (self.address, port)
        backend = 'tcp://%s:%d' % (self.address, port + 1)

        try:
            self.frontend.bind(frontend)
        except zmq.error.ZMQError:
            return False

        try:
            self.backend.bind(backend)
        except zmq.error.ZMQError:
            self.frontend.unbind(frontend)
            return False

        return True


    @property
    def endpoint(self) -> str:
        """The ``host:port`` string a transport uses to reach this relay."""

        address = self.address
        if address == '*':
            address = '127.0.0.1'

        return '%s:%d' % (address, self.port)


    def run(self) -> None:

        poller = zmq.Poller()
        poller.register(self.frontend, zmq.POLLIN)
        poller.register(self.backend, zmq.POLLIN)

        while self.shutdown == False:
            try:
                sockets = dict(poller.poll(200))

                if self.frontend in sockets:
                    self.backend.send_multipart(self.frontend.recv_multipart())

                if self.backend in sockets:
                    self.frontend.send_multipart(self.backend.recv_multipart())

            except zmq.ZMQError:
                if self.shutdown == False:
                    log.exception('relay on port %d failed', self.port)
                break

        self.frontend.close()
        self.backend.close()


    def start(self) -> None:

        if self.thread is not None:
            return

        log.info('relay accepting publishers on %d, subscribers on %d', self.port, self.port + 1)

        self.thread = threading.Thread(target=self.run, name='zmq-relay')
        self.thread.daemon = True
        self.thread.start()


    def stop(self) -> None:
        """Stop forwarding and close both sockets; idempotent."""

        self.shutdown = True

        thread = self.thread
        if thread is None:
            self.frontend.close()
            self.backend.close()
            return

        thread.join()


# end of class Relay
