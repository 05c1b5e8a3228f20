""" The Remote Command Executor: the one seam between the collection cores
    and whatever holds the authoritative state. An executor accepts a named
    primitive, the key it applies to and its arguments, and returns a
    :class:`concurrent.futures.Future` for the raw result.

    :class:`RemoteExecutor` talks to a store daemon over the network;
    :class:`LocalExecutor` drives an in-process
    :class:`rcoll.keyspace.Keyspace`, which is convenient for embedding and
    for tests.
"""

import abc
import concurrent.futures
import logging
import zmq

from . import config
from . import delivery
from . import errors
from . import keyspace
from . import protocol

logger = logging.getLogger(__name__)


class Executor(abc.ABC):
    """ Base class for anything that can run store primitives.
    """

    @abc.abstractmethod
    def execute(self, command, key, args=(), bulk=None):
        """ Issue *command* against *key*. The future resolves to the result
            of the primitive: a JSON-compatible value, or bytes for
            ``GETBYTES``. Failures, including transport failures, are
            delivered through the future rather than raised.
        """


    def close(self):
        """ Release any resources held by this executor.
        """
        pass


# end of class Executor



class LocalExecutor(Executor):
    """ Execute primitives against an in-process keyspace. A single worker
        thread runs the primitives, so the caller never blocks and commands
        run in submission order, just as they would at a daemon.
    """

    def __init__(self, space=None):

        if space is None:
            space = keyspace.Keyspace()

        self.keyspace = space
        self._worker = concurrent.futures.ThreadPoolExecutor(max_workers=1, thread_name_prefix='rcoll-local')


    def execute(self, command, key, args=(), bulk=None):

        if command in protocol.message.request_types:
            pass
        else:
            return delivery.failed(errors.InvalidArgumentError('unknown command: ' + repr(command)))

        try:
            return self._worker.submit(self.keyspace.execute, command, key, list(args), bulk)
        except RuntimeError as e:
            # Raised by submit() after shutdown.
            return delivery.failed(errors.RemoteUnavailableError(str(e)))


    def close(self):
        self._worker.shutdown(wait=True)


# end of class LocalExecutor



class RemoteExecutor(Executor):
    """ Execute primitives at a store daemon listening on *address* and
        *port*, which default to the configured values. Connections are
        shared with every other executor pointed at the same daemon, see
        :func:`rcoll.protocol.request.client`; :func:`close` leaves a shared
        connection open. A dedicated connection can be supplied as *client*
        instead, and is closed along with the executor.
    """

    def __init__(self, address=None, port=None, client=None):

        if client is None:
            settings = config.get()

            if address is None:
                address = settings['address']
            if port is None:
                port = settings['port']

            client = protocol.request.client(address, port)
            self.shared = True
        else:
            self.shared = False

        self.client = client
        self.address = client.address
        self.port = client.port


    def __repr__(self):
        return "RemoteExecutor(%r, %d)" % (self.address, self.port)


    def execute(self, command, key, args=(), bulk=None):

        payload = protocol.message.Payload(list(args), bulk=bulk)

        try:
            request = protocol.message.Request(command, key, payload)
            future = self.client.send(request)
        except ValueError as e:
            return delivery.failed(errors.InvalidArgumentError(str(e)))
        except errors.RcollError as e:
            return delivery.failed(e)
        except zmq.error.ZMQError as e:
            error = "%s @ %s:%d: %s" % (command, self.address, self.port, e)
            logger.warning(error)
            return delivery.failed(errors.RemoteUnavailableError(error))

        return delivery.then(future, _interpret)


    def close(self):
        if self.shared == True:
            return

        self.client.close()


# end of class RemoteExecutor



def _interpret(response):
    """ Turn a response :class:`rcoll.protocol.message.Message` into the
        result of the primitive, raising the reported error if there is one.
    """

    payload = response.payload

    if payload is None:
        return None

    error = payload.error
    if error is not None and error != '':
        raise errors.from_error(error)

    if payload.bulk is not None:
        return payload.bulk

    return payload.value


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
