""" Configuration handling. Settings come from, in increasing order of
    precedence: the built-in :data:`defaults`, the ``relaychat.json`` file in
    the configuration :func:`directory` or an explicitly named file,
    ``RELAYCHAT_<NAME>`` environment variables, and explicit overrides passed
    by the caller.
"""

import os

from . import json


defaults = dict()
defaults['transport'] = 'zmq'
defaults['mode'] = 'push'
defaults['relays'] = ['127.0.0.1:10139']
defaults['rest_url'] = 'http://127.0.0.1:8645'
defaults['client_topic'] = '/waku-chat/1/client-message/proto'
defaults['server_topic'] = '/waku-chat/1/server-response/proto'
defaults['connect_timeout'] = 10.0
defaults['request_timeout'] = 5.0
defaults['retry_delay'] = 2.0
defaults['max_retries'] = 0
defaults['poll_interval'] = 1.0
defaults['monitor_fast'] = 1.0
defaults['monitor_settle'] = 10.0
defaults['monitor_steady'] = 5.0
defaults['query_failure_limit'] = 0
defaults['fetch_failure_limit'] = 0
defaults['publish_attempts'] = 3
defaults['publish_delay'] = 2.0
defaults['dedup_capacity'] = 4096
defaults['dedup_retention'] = 3600.0
defaults['generator'] = 'ollama'
defaults['generation_timeout'] = 120.0
defaults['responder'] = True
defaults['ollama_url'] = 'http://127.0.0.1:11434'
defaults['model'] = 'dolphin-llama3'
defaults['fallback'] = ''
defaults['announce'] = ''

choices = dict()
choices['transport'] = ('zmq', 'rest')
choices['mode'] = ('push', 'poll')
choices['generator'] = ('ollama', 'echo')

filename = 'relaychat.json'
prefix = 'RELAYCHAT_'


class Configuration:
    """ A convenience class to represent relaychat configuration data. To
        first order an instance acts like a read-only dictionary. Every value
        is coerced to the type of its default; unknown keys and invalid
        values raise ValueError.
    """

    def __init__(self, overrides=None, load=True, environment=None):

        self._values = dict(defaults)
        self._given = set()

        if environment is None:
            environment = os.environ

        self.environment = environment

        if load == True:
            self.load()
            self.update(from_environment(environment))

        if overrides:
            self.update(overrides)


    def __contains__(self, key):
        return key in self._values


    def __getitem__(self, key):
        return self._values[key]


    def __iter__(self):
        return iter(self._values)


    def __len__(self):
        return len(self._values)


    def __repr__(self):
        return 'Configuration(%r)' % (self._values,)


    def get(self, key, default=None):
        return self._values.get(key, default)


    def load(self, path=None):
        """ Update this configuration from a JSON file. The default is the
            ``relaychat.json`` file in the configuration :func:`directory`; a
            missing default file is not an error.
        """

        if path is None:
            base_dir = directory(self.environment)
            path = os.path.join(base_dir, filename)
            if os.path.exists(path):
                pass
            else:
                return

        raw_json = open(path, 'rb').read()

        try:
            block = json.loads(raw_json)
        except json.DecodeError as e:
            raise ValueError('cannot parse configuration file ' + path) from e

        if isinstance(block, dict):
            pass
        else:
            raise ValueError('configuration file must contain an object: ' + path)

        self.update(block)


    def update(self, block):
        """ Update the configuration with the contents of *block*, a
            dictionary. Keys with a value of None are ignored.
        """

        values = dict(self._values)
        given = set(self._given)

        for key, value in block.items():
            if value is None:
                continue
            values[key] = coerce(key, value)
            given.add(key)

        # The REST transport only offers poll delivery. Unless a mode was
        # chosen explicitly it follows the transport.

        if 'mode' not in given:
            if values['transport'] == 'rest':
                values['mode'] = 'poll'
            else:
                values['mode'] = defaults['mode']
        elif values['transport'] == 'rest' and values['mode'] == 'push':
            raise ValueError('the rest transport does not support push delivery')

        if values['client_topic'] == values['server_topic']:
            raise ValueError('client_topic and server_topic must differ')

        self._values = values
        self._given = given


    def topics(self, role):
        """ Return the (inbound, outbound) topic pair for *role*, either
            'responder' or 'client'.
        """

        client = self['client_topic']
        server = self['server_topic']

        if role == 'responder':
            return client, server
        if role == 'client':
            return server, client

        raise ValueError('unknown role: ' + repr(role))


# end of class Configuration



def coerce(key, value):
    """ Translate *value* to the type of the default for *key*. String
        values are accepted for every type, which is what arrives from the
        environment.
    """

    try:
        default = defaults[key]
    except KeyError:
        raise ValueError('unknown configuration key: ' + repr(key))

    try:
        if isinstance(default, bool):
            if isinstance(value, str):
                lowered = value.strip().lower()
                if lowered in ('1', 'true', 'yes', 'on'):
                    value = True
                elif lowered in ('0', 'false', 'no', 'off', ''):
                    value = False
                else:
                    raise ValueError(value)
            else:
                value = bool(value)

        elif isinstance(default, int):
            value = int(value)
            if value < 0:
                raise ValueError(value)

        elif isinstance(default, float):
            value = float(value)
            if value < 0:
                raise ValueError(value)

        elif isinstance(default, list):
            if isinstance(value, str):
                value = [item.strip() for item in value.split(',') if item.strip()]
            else:
                value = [str(item) for item in value]

        else:
            value = str(value)

    except (TypeError, ValueError):
        raise ValueError('invalid value for %s: %r' % (key, value))

    try:
        allowed = choices[key]
    except KeyError:
        pass
    else:
        if value not in allowed:
            raise ValueError('%s must be one of %s, not %r' % (key, ', '.join(allowed), value))

    return value



def from_environment(environment):
    """ Collect ``RELAYCHAT_<NAME>`` variables for every known key.
    """

    found = dict()

    for key in defaults.keys():
        try:
            found[key] = environment[prefix + key.upper()]
        except KeyError:
            continue

    return found



def directory(environment=None):
    """ Return the directory holding the default configuration file:
        ``$RELAYCHAT_HOME`` when set, otherwise ``~/.relaychat``.
    """

    if environment is None:
        environment = os.environ

    try:
        return environment['RELAYCHAT_HOME']
    except KeyError:
        return os.path.join(os.path.expanduser('~'), '.relaychat')


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
