"""ZMQ multipart framing for chat messages.

Publish (PUB/SUB)
    topic_with_trailing_dot, wire_json

The trailing dot on the topic frame keeps ZeroMQ's prefix-based subscription
matching from delivering ``/chat/1`` traffic to a ``/chat`` subscriber.
"""

from __future__ import annotations

from typing import Any, Dict, Sequence, Tuple

from ... import json
from ...message import WireFormatError


def topic_frame(topic: str) -> bytes:
    return (topic + '.').encode()


def to_frames(wire: Dict[str, Any]) -> Tuple[bytes, bytes]:
    """Encode a wire dictionary to PUB/SUB multipart frames."""

    return (topic_frame(wire['contentTopic']), json.dumps(wire))


def from_frames(parts: Sequence[bytes]) -> Dict[str, Any]:
    """Decode PUB/SUB multipart frames into a wire dictionary."""

    if len(parts) != 2:
        raise WireFormatError('expected 2 frames, got %d' % (len(parts)))

    topic, body = parts

    try:
        wire = json.loads(body)
    except json.DecodeError as e:
        raise WireFormatError('undecodable message body') from e

    if isinstance(wire, dict):
        pass
    else:
        raise WireFormatError('message body is not an object')

    # Fall back on the topic frame when the body omits its own copy.

    wire.setdefault('contentTopic', topic.decode()[:-1])
    return wire
