""" Command line entry point. The ``relaychat`` command runs one of three
    processes: a ZeroMQ relay node, the automated responder, or an
    interactive chat client reading lines from standard input.
"""

import argparse
import logging
import sys
import threading

from .config import Configuration, from_environment
from .relay import Relay
from .transport.zmq import Relay as RelayNode

log = logging.getLogger(__name__)


def main(argv=None):

    parser = arguments()
    args = parser.parse_args(argv)

    level = logging.INFO
    if args.verbose:
        level = logging.DEBUG

    logging.basicConfig(level=level, format='%(asctime)s %(name)s %(levelname)s: %(message)s')

    if args.command is None:
        parser.print_help()
        return 2

    if args.command == 'relay':
        return run_relay(args)

    try:
        config = configure(args)
    except (OSError, ValueError) as e:
        parser.error(str(e))

    if args.command == 'respond':
        return run_responder(config)

    return run_chat(config)



def arguments():

    parser = argparse.ArgumentParser(prog='relaychat',
                                     description='Chat over a publish/subscribe relay.')
    parser.add_argument('-v', '--verbose', action='store_true', help='log debug messages')

    commands = parser.add_subparsers(dest='command')

    relay = commands.add_parser('relay', help='run a ZeroMQ relay node')
    relay.add_argument('--port', type=int, default=None,
                       help='publisher port; subscribers use the next port up')
    relay.add_argument('--address', default='*', help='interface to bind')

    for name, help in (('respond', 'run the automated responder'),
                       ('chat', 'chat interactively from standard input')):
        command = commands.add_parser(name, help=help)
        command.add_argument('--config', default=None, help='JSON configuration file')
        command.add_argument('--transport', choices=('zmq', 'rest'), default=None)
        command.add_argument('--mode', choices=('push', 'poll'), default=None)
        command.add_argument('--relay', dest='relays', action='append', default=None,
                             help='host:port of a ZeroMQ relay (repeatable)')
        command.add_argument('--url', dest='rest_url', default=None, help='REST API base URL')

        if name == 'respond':
            command.add_argument('--generator', choices=('ollama', 'echo'), default=None)
            command.add_argument('--model', default=None, help='Ollama model name')

    return parser



def configure(args):

    config = Configuration()

    # The environment still takes precedence over an explicit file.

    if args.config is not None:
        config.load(args.config)
        config.update(from_environment(config.environment))

    overrides = dict()
    for key in ('transport', 'mode', 'relays', 'rest_url', 'generator', 'model'):
        overrides[key] = getattr(args, key, None)

    config.update(overrides)
    return config



def run_relay(args):

    node = RelayNode(args.port, args.address)
    print('relay listening at %s' % (node.endpoint))

    try:
        node.run()
    except KeyboardInterrupt:
        pass

    return 0



def run_responder(config):

    relay = Relay(config, role='responder')
    relay.start()

    log.info('listening on %s, replying on %s', relay.inbound, relay.outbound)

    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        pass
    finally:
        relay.stop()

    return 0



def run_chat(config):

    relay = Relay(config, role='client')

    def show(message):
        print('< ' + message.text, flush=True)

    def status(old, new):
        print('[%s]' % (new.value), file=sys.stderr, flush=True)

    relay.register(show)
    relay.listen(status)
    relay.start()

    try:
        for line in sys.stdin:
            line = line.strip()
            if line == '':
                continue
            if relay.send(line) == False:
                print('[message not sent]', file=sys.stderr, flush=True)
    except KeyboardInterrupt:
        pass
    finally:
        relay.stop()

    return 0


if __name__ == '__main__':
    sys.exit(main())


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
