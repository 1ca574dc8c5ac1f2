""" Text generation collaborators for the automated responder. A generator
    accepts the text of an inbound message and returns reply text, or raises
    :class:`GenerationError`.
"""

import logging
import time

import requests

from . import json

log = logging.getLogger(__name__)


default_prompt = ('You are a helpful assistant. Please provide a natural and '
                  'engaging response to this message: "%s" '
                  'Keep your response concise (1-2 sentences).')


class GenerationError(Exception):
    """ The generation backend could not produce a reply.
    """


class Generator:
    """ Base class for generation collaborators.
    """

    def generate(self, text):
        raise NotImplementedError('generate() must be implemented by subclasses')


# end of class Generator



class EchoGenerator(Generator):
    """ Acknowledge each message by quoting it back with the local time of
        receipt. No backend is involved, so this never fails.
    """

    format = 'Server received: "%s" at %s'

    def generate(self, text):
        stamp = time.strftime('%H:%M:%S')
        return self.format % (text, stamp)


# end of class EchoGenerator



class OllamaGenerator(Generator):
    """ Produce replies with a model served by Ollama. The message text is
        substituted into *prompt* (a %-style template with a single %s) and
        sent to the ``/api/generate`` endpoint at *url* as a non-streaming
        request for *model*.
    """

    def __init__(self, url='http://127.0.0.1:11434', model='dolphin-llama3',
                 prompt=default_prompt, timeout=120, session=None):

        self.url = url.rstrip('/')
        self.model = model
        self.prompt = prompt
        self.timeout = timeout

        if session is None:
            session = requests.Session()

        self.session = session


    def generate(self, text):

        request = dict()
        request['model'] = self.model
        request['prompt'] = self.prompt % (text,)
        request['stream'] = False

        url = self.url + '/api/generate'

        try:
            response = self.session.post(url, data=json.dumps(request),
                                         headers={'content-type': 'application/json'},
                                         timeout=self.timeout)
        except requests.RequestException as e:
            raise GenerationError('Ollama request failed: ' + str(e)) from e

        if response.status_code != 200:
            raise GenerationError('Ollama API error: HTTP %d %s' % (response.status_code, response.reason))

        try:
            reply = json.loads(response.content)['response']
        except (json.DecodeError, KeyError, TypeError) as e:
            raise GenerationError('unexpected response from Ollama') from e

        reply = str(reply).strip()

        if reply == '':
            raise GenerationError('Ollama returned an empty response')

        log.debug('generated %d characters with %s', len(reply), self.model)
        return reply


# end of class OllamaGenerator



def create(config):
    """ Factory for the generator named by ``config['generator']``.
    """

    name = config['generator']

    if name == 'echo':
        return EchoGenerator()

    if name == 'ollama':
        return OllamaGenerator(config['ollama_url'], config['model'],
                               timeout=config['generation_timeout'])

    raise ValueError('unknown generator: ' + repr(name))


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
