"""Transport layer implementations."""

from .base import (
    TransportError,
    AcquisitionError,
    SubscriptionError,
    PublishError,
    FetchError,
    QueryError,
    Capability,
    Subscription,
    Transport,
)


def create(config):
    """Factory for the transport named by ``config['transport']``."""

    backend = config['transport']

    if backend == 'zmq':
        from .zmq import ZmqTransport
        return ZmqTransport(config['relays'], connect_timeout=config['connect_timeout'])

    if backend == 'rest':
        from .rest import RestTransport
        return RestTransport(config['rest_url'], timeout=config['request_timeout'])

    raise ValueError(f"unknown transport backend: {backend!r}")
