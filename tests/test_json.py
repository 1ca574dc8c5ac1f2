import json

import pytest
import relaychat


def test_json_encode_and_decode():
    encode_and_decode(json.dumps, json.loads, dump_is_bytes=False)


def test_relaychat_encode_and_decode():
    encode_and_decode(relaychat.json.dumps, relaychat.json.loads)


def test_decode_error():

    with pytest.raises(relaychat.json.DecodeError):
        relaychat.json.loads(b'{"unterminated": ')

    # Configuration and transport code catch DecodeError as a ValueError
    # subclass no matter which backend is loaded.

    assert issubclass(relaychat.json.DecodeError, ValueError)


def test_wire_message():

    message = relaychat.Message.create('/waku-chat/1/client-message/proto', 'hi', timestamp=7)
    encoded = relaychat.json.dumps(message.to_wire())
    decoded = relaychat.json.loads(encoded)

    assert relaychat.Message.from_wire(decoded) == message


def encode_and_decode(dumps, loads, dump_is_bytes=True):

    input_dictionary = dict()
    input_dictionary['list'] = [1, 2, 3, 'a', 'b', None, 'c', 'z']
    input_dictionary['dict'] = {'one': 1, 'two': 2}
    input_dictionary['none'] = None
    input_dictionary['true'] = True
    input_dictionary['false'] = False

    encoded = dumps(input_dictionary)

    if dump_is_bytes:
        assert isinstance(encoded, bytes)
    else:
        assert isinstance(encoded, str)

    # It won't do to compare the encoded JSON against a pre-set notion of
    # what the encoded output should look like, as there is variance in
    # the handling of whitespace between the different JSON modules.

    decoded = loads(encoded)
    assert isinstance(decoded, dict)
    assert decoded == input_dictionary


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
