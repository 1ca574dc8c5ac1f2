import threading
import time

import pytest
import zmq
import relaychat
from relaychat.message import WireFormatError
from relaychat.transport import AcquisitionError, Capability, PublishError
from relaychat.transport.zmq import Relay, ZmqTransport, from_frames, parse_relay, to_frames

import faketransport


TOPIC = '/waku-chat/1/client-message/proto'


def test_parse_relay():

    publish, subscribe = parse_relay('127.0.0.1:10139')
    assert publish == 'tcp://127.0.0.1:10139'
    assert subscribe == 'tcp://127.0.0.1:10140'

    with pytest.raises(ValueError):
        parse_relay('no-port-here')

    with pytest.raises(ValueError):
        ZmqTransport([])


def test_frames():

    message = relaychat.Message.create(TOPIC, 'hello', timestamp=12)
    topic, body = to_frames(message.to_wire())

    assert topic == (TOPIC + '.').encode()
    assert isinstance(body, bytes)

    wire = from_frames((topic, body))
    assert relaychat.Message.from_wire(wire) == message


def test_frames_topic_fallback():

    body = relaychat.json.dumps({'payload': 'aGk=', 'timestamp': 3})
    wire = from_frames(((TOPIC + '.').encode(), body))

    assert wire['contentTopic'] == TOPIC


def test_malformed_frames():

    with pytest.raises(WireFormatError):
        from_frames((b'/topic.',))

    with pytest.raises(WireFormatError):
        from_frames((b'/topic.', b'{not json'))

    with pytest.raises(WireFormatError):
        from_frames((b'/topic.', b'[1, 2, 3]'))


def test_acquire_timeout():

    # Nothing listens on this port; acquisition gives up on schedule.

    transport = ZmqTransport(['127.0.0.1:1'], connect_timeout=0.2)

    begin = time.monotonic()
    with pytest.raises(AcquisitionError):
        transport.acquire()

    assert time.monotonic() - begin < 5


def test_round_trip(relay_node):

    transport = ZmqTransport([relay_node.endpoint], connect_timeout=5)
    handle = transport.acquire()

    assert transport.has_capability(handle, Capability.PUBLISH)
    assert transport.has_capability(handle, Capability.SUBSCRIBE)
    assert transport.has_capability(handle, Capability.FETCH) == False
    assert transport.peer_count(handle) >= 1

    received = list()
    received_lock = threading.Lock()

    def callback(wire):
        with received_lock:
            received.append(wire)

    subscription = transport.subscribe(handle, TOPIC, callback)

    # Subscriptions propagate through the relay asynchronously; keep
    # publishing until one makes it all the way around.

    def arrived():
        transport.publish_once(handle, TOPIC, b'hello')
        with received_lock:
            return len(received) > 0

    assert faketransport.until(arrived, timeout=5, interval=0.05)

    message = relaychat.Message.from_wire(received[0])
    assert message.text == 'hello'
    assert message.topic == TOPIC

    transport.unsubscribe(handle, subscription)
    assert subscription.active == False

    transport.release(handle)

    with pytest.raises(PublishError):
        transport.publish_once(handle, TOPIC, b'too late')


def test_session_over_zmq(relay_node):

    transport = ZmqTransport([relay_node.endpoint], connect_timeout=5)

    inbound = '/waku-chat/1/server-response/proto'
    listener = relaychat.TransportSession(transport, TOPIC, inbound, retry_delay=0.1)
    sender = relaychat.TransportSession(transport, inbound, TOPIC, retry_delay=0.1)

    received = list()
    listener.register(received.append)

    listener.start()
    sender.start()

    try:
        assert listener.wait(relaychat.SessionState.CONNECTED, 5)
        assert sender.wait(relaychat.SessionState.CONNECTED, 5)

        publisher = relaychat.RetryingPublisher(sender.publish_once, attempts=1, delay=0)

        def arrived():
            publisher.publish(TOPIC, 'over the wire')
            return len(received) > 0

        assert faketransport.until(arrived, timeout=5, interval=0.05)
    finally:
        listener.stop()
        sender.stop()

    assert received[0].text == 'over the wire'


def test_stop_from_message_callback(relay_node):

    transport = ZmqTransport([relay_node.endpoint], connect_timeout=5)

    inbound = '/waku-chat/1/server-response/proto'
    listener = relaychat.TransportSession(transport, TOPIC, inbound, retry_delay=0.1)
    sender = relaychat.TransportSession(transport, inbound, TOPIC, retry_delay=0.1)

    entered = threading.Event()
    returned = threading.Event()

    def stopper(message):
        if message.payload == b'bye':
            entered.set()
            listener.stop()
            returned.set()

    listener.register(stopper)

    listener.start()
    sender.start()

    try:
        assert listener.wait(relaychat.SessionState.CONNECTED, 5)
        assert sender.wait(relaychat.SessionState.CONNECTED, 5)

        def arrived():
            try:
                sender.publish_once(TOPIC, b'bye')
            except PublishError:
                pass
            return entered.is_set()

        assert faketransport.until(arrived, timeout=5, interval=0.05)
        assert returned.wait(5)
        assert listener.state is relaychat.SessionState.DISCONNECTED
    finally:
        sender.stop()
        listener.stop()


def test_acquire_cancelled():

    transport = ZmqTransport(['127.0.0.1:1'], connect_timeout=30)
    cancel = threading.Event()

    timer = threading.Timer(0.1, cancel.set)
    timer.start()

    begin = time.monotonic()
    with pytest.raises(AcquisitionError):
        transport.acquire(cancel)

    assert time.monotonic() - begin < 5


def test_session_stop_during_connect():

    transport = ZmqTransport(['127.0.0.1:1'], connect_timeout=30)
    session = relaychat.TransportSession(transport, TOPIC, '/other/topic')

    session.start()
    assert session.wait(relaychat.SessionState.CONNECTING, 2)
    time.sleep(0.2)

    begin = time.monotonic()
    session.stop()

    assert time.monotonic() - begin < 2
    assert session.state is relaychat.SessionState.DISCONNECTED


def test_relay_port_in_use(relay_node):

    with pytest.raises(zmq.ZMQError):
        Relay(port=relay_node.port, address='127.0.0.1')


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
