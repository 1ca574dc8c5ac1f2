import os

import pytest
from relaychat import config


def test_defaults():

    configuration = config.Configuration(load=False)

    assert configuration['transport'] == 'zmq'
    assert configuration['mode'] == 'push'
    assert configuration['client_topic'] == '/waku-chat/1/client-message/proto'
    assert configuration['server_topic'] == '/waku-chat/1/server-response/proto'
    assert configuration['model'] == 'dolphin-llama3'
    assert configuration['retry_delay'] == 2.0
    assert configuration['publish_attempts'] == 3
    assert 'relays' in configuration
    assert len(configuration) == len(config.defaults)


def test_overrides():

    overrides = {'mode': 'poll', 'retry_delay': '0.5', 'relays': 'a:1, b:2', 'responder': 'off'}
    configuration = config.Configuration(overrides, load=False)

    assert configuration['mode'] == 'poll'
    assert configuration['retry_delay'] == 0.5
    assert configuration['relays'] == ['a:1', 'b:2']
    assert configuration['responder'] == False

    # None means "not specified" and leaves the default alone.

    configuration.update({'model': None})
    assert configuration['model'] == 'dolphin-llama3'


def test_invalid_values():

    configuration = config.Configuration(load=False)

    with pytest.raises(ValueError):
        configuration.update({'no_such_key': 1})

    with pytest.raises(ValueError):
        configuration.update({'transport': 'smoke-signals'})

    with pytest.raises(ValueError):
        configuration.update({'retry_delay': -1})

    with pytest.raises(ValueError):
        configuration.update({'publish_attempts': 'three'})

    with pytest.raises(ValueError):
        configuration.update({'responder': 'perhaps'})

    with pytest.raises(ValueError):
        configuration.update({'server_topic': configuration['client_topic']})

    # A rejected update leaves the configuration untouched.

    assert configuration['transport'] == 'zmq'
    assert configuration['retry_delay'] == 2.0


def test_environment():

    environment = dict()
    environment['RELAYCHAT_TRANSPORT'] = 'rest'
    environment['RELAYCHAT_MAX_RETRIES'] = '4'
    environment['UNRELATED'] = 'ignored'

    found = config.from_environment(environment)
    assert found == {'transport': 'rest', 'max_retries': '4'}


def test_precedence(tmp_path):

    path = tmp_path / config.filename
    path.write_text('{"transport": "rest", "model": "from-file", "max_retries": 1}')

    environment = {'RELAYCHAT_MODEL': 'from-environment', 'RELAYCHAT_HOME': str(tmp_path)}
    configuration = config.Configuration({'max_retries': 7}, environment=environment)

    assert configuration['transport'] == 'rest'
    assert configuration['model'] == 'from-environment'
    assert configuration['max_retries'] == 7


def test_missing_default_file(tmp_path):

    configuration = config.Configuration(environment={'RELAYCHAT_HOME': str(tmp_path)})

    assert configuration['transport'] == 'zmq'


def test_load_explicit(tmp_path):

    configuration = config.Configuration(load=False)

    missing = tmp_path / 'missing.json'
    with pytest.raises(OSError):
        configuration.load(str(missing))

    broken = tmp_path / 'broken.json'
    broken.write_text('{"transport": ')
    with pytest.raises(ValueError):
        configuration.load(str(broken))

    listed = tmp_path / 'list.json'
    listed.write_text('["zmq"]')
    with pytest.raises(ValueError):
        configuration.load(str(listed))


def test_topics():

    configuration = config.Configuration(load=False)
    client = configuration['client_topic']
    server = configuration['server_topic']

    assert configuration.topics('responder') == (client, server)
    assert configuration.topics('client') == (server, client)

    with pytest.raises(ValueError):
        configuration.topics('bystander')


def test_directory(tmp_path):

    environment = {'RELAYCHAT_HOME': str(tmp_path)}
    assert config.directory(environment) == str(tmp_path)

    default = config.directory(dict())
    assert default == os.path.join(os.path.expanduser('~'), '.relaychat')


def test_rest_implies_poll():

    configuration = config.Configuration({'transport': 'rest'}, load=False)
    assert configuration['mode'] == 'poll'

    # Moving back to ZeroMQ restores the default delivery mode.

    configuration.update({'transport': 'zmq'})
    assert configuration['mode'] == 'push'

    environment = {'RELAYCHAT_TRANSPORT': 'rest', 'RELAYCHAT_HOME': '/nonexistent'}
    configuration = config.Configuration(environment=environment)
    assert configuration['mode'] == 'poll'


def test_rest_rejects_push():

    with pytest.raises(ValueError):
        config.Configuration({'transport': 'rest', 'mode': 'push'}, load=False)

    configuration = config.Configuration({'mode': 'push'}, load=False)
    with pytest.raises(ValueError):
        configuration.update({'transport': 'rest'})

    assert configuration['transport'] == 'zmq'


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
