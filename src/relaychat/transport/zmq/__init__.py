"""ZeroMQ transport: PUB/SUB sockets connected to one or more relay nodes."""

from .framing import to_frames, from_frames
from .publish import ZmqTransport, parse_relay
from .relay import Relay
