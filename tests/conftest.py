import pytest

from relaychat.transport.zmq import Relay


@pytest.fixture
def relay_node():
    """ A ZeroMQ relay node on the loopback interface, running for the
        duration of one test.
    """

    node = Relay(address='127.0.0.1')
    node.start()

    yield node

    node.stop()

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
