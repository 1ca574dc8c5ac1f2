import pytest
import requests
import relaychat
from relaychat import config, generate
from relaychat.generate import GenerationError


class Response:

    def __init__(self, status_code=200, content=b'', reason='OK'):
        self.status_code = status_code
        self.content = content
        self.reason = reason


class Session:

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.posts = list()

    def post(self, url, **kwargs):
        self.posts.append((url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response


def ollama(response=None, error=None):
    session = Session(response, error)
    generator = generate.OllamaGenerator('http://ollama.example:11434/', 'dolphin-llama3',
                                         timeout=30, session=session)
    return generator, session


def test_ollama_request():

    body = relaychat.json.dumps({'model': 'dolphin-llama3', 'response': '  Hello there!\n', 'done': True})
    generator, session = ollama(Response(200, body))

    assert generator.generate('hi') == 'Hello there!'

    url, kwargs = session.posts[0]
    assert url == 'http://ollama.example:11434/api/generate'
    assert kwargs['timeout'] == 30

    request = relaychat.json.loads(kwargs['data'])
    assert request['model'] == 'dolphin-llama3'
    assert request['stream'] == False
    assert '"hi"' in request['prompt']


def test_ollama_http_error():

    generator, session = ollama(Response(500, b'', 'Internal Server Error'))

    with pytest.raises(GenerationError) as error:
        generator.generate('hi')

    assert '500' in str(error.value)


def test_ollama_unreachable():

    generator, session = ollama(error=requests.ConnectionError('refused'))

    with pytest.raises(GenerationError):
        generator.generate('hi')


def test_ollama_bad_body():

    for content in (b'not json', b'{"done": true}', b'[]', b'{"response": "   "}'):
        generator, session = ollama(Response(200, content))

        with pytest.raises(GenerationError):
            generator.generate('hi')


def test_echo():

    reply = generate.EchoGenerator().generate('ping')
    assert reply.startswith('Server received: "ping" at ')


def test_create():

    configuration = config.Configuration({'generator': 'echo'}, load=False)
    assert isinstance(generate.create(configuration), generate.EchoGenerator)

    configuration = config.Configuration({'model': 'llama3', 'generation_timeout': 5}, load=False)
    generator = generate.create(configuration)

    assert isinstance(generator, generate.OllamaGenerator)
    assert generator.model == 'llama3'
    assert generator.timeout == 5


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
