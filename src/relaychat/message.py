""" A class representation of a chat message as it crosses the transport
    boundary, along with the conversion to and from the wire shape shared by
    every transport::

        {"payload": <base64 str>, "contentTopic": <str>, "timestamp": <int ms>}
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Tuple, Union


IdentityKey = Tuple[int, str, str]


class WireFormatError(ValueError):
    """ Raised when a raw transport message cannot be interpreted as a
        :class:`Message`.
    """


def now():
    """ Return the current time as integer milliseconds since the epoch.
    """

    return int(time.time() * 1000)


@dataclass(frozen=True)
class Message:
    """ The :class:`Message` is immutable once constructed. The *payload* is
        always bytes, the *timestamp* is integer epoch milliseconds, and the
        *topic* is the content topic the message was published on.
    """

    payload: bytes
    timestamp: int
    topic: str
    digest: str = field(init=False, repr=False, compare=False)

    def __post_init__(self):

        if isinstance(self.payload, (bytes, bytearray)):
            pass
        else:
            raise TypeError('message payload must be bytes')

        payload = bytes(self.payload)
        object.__setattr__(self, 'payload', payload)
        object.__setattr__(self, 'timestamp', int(self.timestamp))
        object.__setattr__(self, 'topic', str(self.topic))

        digest = hashlib.sha256(payload).hexdigest()
        object.__setattr__(self, 'digest', digest)


    @classmethod
    def create(cls, topic: str, content: Union[str, bytes], timestamp=None) -> 'Message':
        """ Build a new outbound message; *content* can be text, which is
            encoded as UTF-8, or bytes. The timestamp defaults to now.
        """

        if isinstance(content, str):
            content = content.encode('utf-8')

        if timestamp is None:
            timestamp = now()

        return cls(content, timestamp, topic)


    @classmethod
    def from_wire(cls, raw: Dict[str, Any]) -> 'Message':
        """ Decode a raw wire dictionary. The payload may be a base64 string
            (the REST and ZeroMQ representations) or bytes. A missing timestamp
            is treated as zero.
        """

        try:
            payload = raw['payload']
            topic = raw['contentTopic']
        except (KeyError, TypeError) as e:
            raise WireFormatError('missing field in wire message: ' + str(e)) from e

        if payload is None:
            raise WireFormatError('wire message has no payload')

        if isinstance(payload, str):
            try:
                payload = base64.b64decode(payload, validate=True)
            except (binascii.Error, ValueError) as e:
                raise WireFormatError('payload is not valid base64') from e

        # A missing timestamp decodes to zero, keeping the identity key
        # stable across repeated fetches.

        timestamp = raw.get('timestamp')
        if timestamp is None:
            timestamp = 0

        try:
            timestamp = int(timestamp)
        except (TypeError, ValueError) as e:
            raise WireFormatError('invalid timestamp: ' + repr(timestamp)) from e

        try:
            return cls(payload, timestamp, topic)
        except TypeError as e:
            raise WireFormatError(str(e)) from e


    def to_wire(self) -> Dict[str, Any]:

        wire = dict()
        wire['payload'] = base64.b64encode(self.payload).decode('ascii')
        wire['contentTopic'] = self.topic
        wire['timestamp'] = self.timestamp
        return wire


    @property
    def key(self) -> IdentityKey:
        """ The identity key used for duplicate detection: the timestamp,
            the topic, and a hash of the payload. Two messages sent in the
            same millisecond with different content are distinct.
        """

        return (self.timestamp, self.topic, self.digest)


    @property
    def text(self) -> str:
        return self.payload.decode('utf-8', errors='replace')


# end of class Message


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
