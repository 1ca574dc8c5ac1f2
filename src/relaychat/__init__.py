""" Python implementation of relaychat, a chat relay over publish/subscribe
    transports. This includes the resilient session layer (connection
    lifecycle, peer monitoring, retrying publication, and duplicate
    suppression across push and poll delivery) and an optional automated
    responder that answers inbound messages with generated text.
"""

# Utility components.

from . import json
from . import poll

# Submodules used by multiple other components.

from . import config
from . import message
from . import transport
from .message import Message

# Session layer, leaves first.

from .dedup import DedupStore
from .publisher import RetryingPublisher
from .monitor import PeerMonitor, PeerSample
from .ingest import PushAdapter, PollAdapter
from .session import SessionState, TransportSession
from .generate import GenerationError
from .responder import ResponderPipeline

# Primary public-facing interface.

from .relay import Relay

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
