""" The store daemon: holds a :class:`rcoll.keyspace.Keyspace` and answers
    requests for its primitives over the network. Run it with the ``rcolld``
    command, or embed it by instantiating :class:`Daemon` directly.
"""

import argparse
import logging
import os
import sys
import time
import zmq

from . import config
from . import poll
from . import protocol
from .keyspace import Keyspace

logger = logging.getLogger(__name__)


class Daemon:
    """ A store daemon. The *alias* is the unique name of this daemon on the
        local host, and is used to remember which port it last listened on;
        a restarted daemon returns to the same port if it can. A fixed *port*
        overrides that memory, and if it is not available the daemon fails
        to start rather than picking another.

        The daemon is on the air as soon as it is constructed. Expired keys
        are swept in the background every ``sweep`` seconds, per
        :mod:`rcoll.config`; keys are also expired lazily whenever they are
        touched, so the sweep only bounds how long dead keys hold memory.

        :ivar keyspace: The :class:`rcoll.keyspace.Keyspace` being served.
        :ivar rep: The :class:`RequestServer` answering requests.
    """

    def __init__(self, alias, port=None, hostname=None, keyspace=None, interface='*'):

        if alias is None or alias == '':
            raise ValueError('the daemon alias must be specified')

        self.alias = alias
        self.config = config.get()

        if keyspace is None:
            keyspace = Keyspace()

        self.keyspace = keyspace

        if port is None:
            cached = _load_port(alias)
            avoid = _used_ports()
            avoid.discard(cached)

            try:
                self.rep = RequestServer(self, hostname=hostname, port=cached, avoid=avoid, interface=interface)
            except zmq.error.ZMQError:
                self.rep = RequestServer(self, hostname=hostname, port=None, avoid=avoid, interface=interface)
        else:
            self.rep = RequestServer(self, hostname=hostname, port=port, interface=interface)

        self.port = self.rep.port
        _save_port(alias, self.port)

        self.sweep = float(self.config['sweep'])
        # Polling is keyed on the bound method object, keep hold of it.
        self._purge = self.keyspace.purge
        poll.start(self._purge, self.sweep)

        logger.info("daemon %s listening on %s:%d", alias, self.rep.hostname, self.port)


    def __repr__(self):
        return "Daemon(%r, port=%d)" % (self.alias, self.port)


    def close(self):
        """ Stop answering requests and stop sweeping expired keys. The
            keyspace itself is left intact.
        """

        poll.stop(self._purge)
        self.rep.close()
        logger.info('daemon %s stopped', self.alias)


# end of class Daemon



class RequestServer(protocol.request.Server):
    """ Answer requests by running them against the daemon's keyspace. One
        worker thread handles every request, so primitives run strictly in
        the order they arrived.
    """

    worker_count = 1

    def __init__(self, daemon, *args, **kwargs):
        protocol.request.Server.__init__(self, *args, **kwargs)
        self.daemon = daemon


    def req_handler(self, request):
        """ Run the requested primitive. Results are JSON values, except for
            bytes, which go back in the bulk frame.
        """

        payload = request.payload

        if payload is None:
            args = ()
            bulk = None
        else:
            args = payload.value
            bulk = payload.bulk

        if args is None:
            args = ()
        elif isinstance(args, list):
            pass
        else:
            raise ValueError('request arguments must be a list, not ' + type(args).__name__)

        result = self.daemon.keyspace.execute(request.type, request.target, args, bulk)

        if isinstance(result, bytes):
            return protocol.message.Payload(None, bulk=result)

        return protocol.message.Payload(result)


# end of class RequestServer



def _port_directory():
    base_directory = config.directory()
    return os.path.join(base_directory, 'daemon', 'port')


def _load_port(alias):
    """ Return the port number last used by the daemon called *alias*, or
        None if there is no record of one.
    """

    filename = os.path.join(_port_directory(), alias + '.rep')

    try:
        port = open(filename, 'r').read()
    except FileNotFoundError:
        return None

    port = port.strip()

    try:
        return int(port)
    except ValueError:
        logger.warning("ignoring malformed port cache %s: %r", filename, port)
        return None



def _save_port(alias, port):
    """ Save the port number in use to the local disk cache for future
        restarts of the daemon called *alias*.
    """

    port_directory = _port_directory()
    filename = os.path.join(port_directory, alias + '.rep')

    if os.path.exists(port_directory):
        if os.access(port_directory, os.W_OK) != True:
            raise OSError('cannot write to port directory: ' + port_directory)
    else:
        os.makedirs(port_directory, mode=0o775)

    if os.path.exists(filename):
        if os.access(filename, os.W_OK) != True:
            raise OSError('cannot write to cache file: ' + filename)

    port_file = open(filename, 'w')
    port_file.write(str(int(port)) + '\n')
    port_file.close()



def _used_ports():
    """ Return the set of port numbers previously used by any daemon on this
        host. A previously used port stays reserved for its daemon unless no
        other ports are available.
    """

    port_directory = _port_directory()
    ports = set()

    if os.path.isdir(port_directory):
        pass
    else:
        return ports

    for thing in os.listdir(port_directory):
        if thing.endswith('.rep'):
            pass
        else:
            continue

        port = _load_port(thing[:-4])
        if port is not None:
            ports.add(port)

    return ports



def arguments(argv=None):

    parser = argparse.ArgumentParser(description='Serve an rcoll key/value store.')

    parser.add_argument('alias', nargs='?', default='rcolld',
        help='Unique name for this daemon on this host (default: %(default)s).')
    parser.add_argument('-p', '--port', type=int, default=None,
        help='Listen on this port; default is the configured port.')
    parser.add_argument('-i', '--interface', default='*',
        help='Listen on this interface (default: all interfaces).')
    parser.add_argument('-v', '--verbose', action='store_true',
        help='Log debug messages.')

    return parser.parse_args(argv)



def main(argv=None):
    """ Entry point for the ``rcolld`` command.
    """

    parsed = arguments(argv)
    settings = config.get()

    if parsed.verbose == True:
        level = logging.DEBUG
    else:
        level = getattr(logging, str(settings['log_level']).upper(), logging.INFO)

    logging.basicConfig(level=level, format='%(asctime)s %(levelname)s %(name)s: %(message)s')

    port = parsed.port
    if port is None:
        port = settings['port']

    try:
        daemon = Daemon(parsed.alias, port=port, interface=parsed.interface)
    except zmq.error.ZMQError as e:
        logger.error('cannot start daemon %s: %s', parsed.alias, e)
        return 1

    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        pass
    finally:
        daemon.close()

    return 0


if __name__ == '__main__':
    sys.exit(main())


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
