import threading
import time

import pytest
import relaychat

try:
    import numpy
except ImportError:
    numpy = None


def test_basics():

    test_basics.polled = False
    assert test_basics.polled == False

    def callback():
        test_basics.polled = True

    poller = relaychat.poll.Poller(callback, 0.1)
    assert poller.running() == False

    poller.start()
    time.sleep(0.12)

    assert test_basics.polled == True
    assert poller.running() == True


    poller.stop()
    test_basics.polled = False
    time.sleep(0.12)

    assert test_basics.polled == False
    assert poller.running() == False


    poller.start()
    time.sleep(0.12)

    assert test_basics.polled == True

    # Redundant calls should be a no-op.

    poller.start()
    poller.stop()
    poller.stop()


def test_invalid_period():

    def callback():
        pass

    with pytest.raises(ValueError):
        relaychat.poll.Poller(callback, 0)

    with pytest.raises(TypeError):
        relaychat.poll.Poller(None, 1)


def test_stop_guarantee():
    """ Once stop() returns the method must never be invoked again, even if
        the method was in flight when stop() was called.
    """

    calls = list()
    entered = threading.Event()

    def callback():
        entered.set()
        time.sleep(0.05)
        calls.append(time.monotonic())

    poller = relaychat.poll.Poller(callback, 0.01)
    poller.start()

    assert entered.wait(1)
    poller.stop()
    stopped = time.monotonic()

    time.sleep(0.1)

    for call in calls:
        assert call <= stopped


def test_stop_from_method():

    calls = list()

    def callback():
        calls.append(True)
        poller.stop()

    poller = relaychat.poll.Poller(callback, 0.01)
    poller.start()

    time.sleep(0.1)

    assert len(calls) == 1
    assert poller.running() == False


def test_exceptions_do_not_stop_polling():

    calls = list()

    def callback():
        calls.append(True)
        raise RuntimeError('intentional failure')

    poller = relaychat.poll.Poller(callback, 0.01)
    poller.start()
    time.sleep(0.1)
    poller.stop()

    assert len(calls) > 2


def test_period_change():

    calls = list()

    def callback():
        calls.append(time.monotonic())

    poller = relaychat.poll.Poller(callback, 10)
    poller.start()
    time.sleep(0.05)

    assert len(calls) == 1

    poller.period(0.01)
    time.sleep(0.1)
    poller.stop()

    assert len(calls) > 4


def test_low_frequency():
    test_low_frequency.calls = list()

    def callback():
        test_low_frequency.calls.append(time.time())

    # Polling at 0.1 kilohertz is well beyond what the session layer needs.
    # The jitter should be measurable and low.

    frequency = 100
    period = 1.0 / frequency
    window = 0.2

    poller = relaychat.poll.Poller(callback, period)
    poller.start()
    time.sleep(window)
    poller.stop()

    calls = len(test_low_frequency.calls)
    expected_calls = window * frequency
    assert calls > expected_calls - 2
    assert calls <= expected_calls + 2


    if numpy is not None:
        timestamps = list(test_low_frequency.calls)
        previous = timestamps.pop(0)

        deltas = list()
        for timestamp in timestamps:
            delta = timestamp - previous
            previous = timestamp
            deltas.append(delta)

        deltas = numpy.array(deltas)
        standard_deviation = numpy.std(deltas)

        assert standard_deviation < 0.002


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
