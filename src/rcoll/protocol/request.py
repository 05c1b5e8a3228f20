""" The request/response half of the wire protocol: a client speaking over a
    ZeroMQ DEALER socket, and a server answering over a ROUTER socket.
"""

import atexit
import concurrent.futures
import heapq
import itertools
import logging
import queue
import socket
import threading
import time
import traceback
import zmq

from .. import config
from .. import errors
from . import message

logger = logging.getLogger(__name__)

minimum_port = 10179
maximum_port = 13779
zmq_context = zmq.Context()


class Client:
    """ A persistent DEALER connection to the daemon at *address* and *port*,
        both of which are required.

        All socket activity happens in one background thread. :func:`send`
        only queues the request and returns immediately; the request's
        :class:`concurrent.futures.Future` is resolved from the background
        thread when the response arrives, or failed when the daemon does not
        acknowledge the request within *ack_timeout* seconds, or does not
        answer within *timeout* seconds. Requests leave in the order they
        were queued.
    """

    interval = 0.02

    def __init__(self, address, port, timeout=None, ack_timeout=None):

        settings = config.get()

        if timeout is None:
            timeout = settings['timeout']
        if ack_timeout is None:
            ack_timeout = settings['ack_timeout']

        port = int(port)
        self.port = port
        self.address = address
        self.timeout = float(timeout)
        self.ack_timeout = float(ack_timeout)

        server = "tcp://%s:%d" % (address, port)
        identity = "request.Client.%d" % (id(self))

        self.socket = zmq_context.socket(zmq.DEALER)
        self.socket.setsockopt(zmq.LINGER, 0)
        self.socket.identity = identity.encode()
        self.socket.connect(server)

        # The ZeroMQ socket is only ever touched by the background thread.
        # Callers hand requests over through the outbox and poke the thread
        # via an inproc PAIR socket. The lock covers that socket and the
        # shutdown flag: once close() sets the flag nothing more is queued.

        self._outbox = queue.SimpleQueue()

        internal = "inproc://request.Client:signal:%d" % (id(self))
        self._signal_rx = zmq_context.socket(zmq.PAIR)
        self._signal_rx.bind(internal)
        self._signal_tx = zmq_context.socket(zmq.PAIR)
        self._signal_tx.connect(internal)
        self._lock = threading.Lock()

        self.pending = dict()
        self._deadlines = list()
        self._sequence = itertools.count()
        self.shutdown = False

        self.thread = threading.Thread(target=self.run)
        self.thread.daemon = True
        self.thread.start()

        logger.debug('request client connected to %s', server)


    def close(self):
        """ Stop the background thread; any outstanding requests fail with
            :class:`rcoll.errors.RemoteUnavailableError`.
        """

        with self._lock:
            if self.shutdown == True:
                return

            self.shutdown = True
            self._signal()

        self.thread.join(1)


    def _expire(self):
        """ Fail any pending requests that have run out of time. Deadlines
            are kept in a heap, so only the ones that have passed are
            examined.
        """

        now = time.time()
        deadlines = self._deadlines

        while len(deadlines) > 0 and deadlines[0][0] < now:
            deadline, sequence, request_id, kind = heapq.heappop(deadlines)

            try:
                request = self.pending[request_id]
            except KeyError:
                continue

            if kind == 'ACK':
                if request.acknowledged() == True:
                    continue
                error = "%s @ %s:%d: no acknowledgement in %.2f sec" % (request.type, self.address, self.port, self.ack_timeout)
                exception = errors.RemoteUnavailableError(error)
            else:
                error = "%s @ %s:%d: no response in %.2f sec" % (request.type, self.address, self.port, self.timeout)
                exception = errors.RemoteTimeoutError(error)

            del self.pending[request_id]
            logger.warning(str(exception))
            request._fail(exception)


    def _rep_incoming(self, parts):
        """ Route an inbound ACK or REP, the only message types a daemon sends
            back, to the :class:`message.Request` awaiting it.
        """

        their_version = parts[0]
        response_id = parts[1]

        try:
            request = self.pending[response_id]
        except KeyError:
            # The original request already timed out, nothing to do.
            logger.debug('discarding response to unknown request %r', response_id)
            return

        if their_version != message.version:
            error = dict()
            error['type'] = 'RuntimeError'
            error['text'] = "message is rcoll protocol %s, recipient expects %s" % (repr(their_version), repr(message.version))
            payload = message.Payload(None, error=error)
            response_type = 'REP'
            target = request.target
        else:
            response_type = parts[2].decode()
            target = parts[3].decode()
            payload = message.Payload.from_json(parts[4], parts[5])

        if response_type == 'ACK':
            request._complete_ack()
            return

        response = message.Message('REP', target, payload, response_id)
        del self.pending[response_id]

        if request._complete(response) == False:
            logger.debug('discarding response to cancelled request %r', response_id)


    def _handle_outgoing(self):

        # One signal per queued request.

        self._signal_rx.recv(flags=zmq.NOBLOCK)

        try:
            request = self._outbox.get(block=False)
        except queue.Empty:
            return

        if request.future.cancelled():
            return

        self.pending[request.id] = request
        self._track(request.id, request.sent + self.ack_timeout, 'ACK')
        self._track(request.id, request.sent + self.timeout, 'REP')
        self.socket.send_multipart(tuple(request))


    def _signal(self):
        # Caller holds self._lock.
        self._signal_tx.send(b'')


    def _track(self, request_id, deadline, kind):
        entry = (deadline, next(self._sequence), request_id, kind)
        heapq.heappush(self._deadlines, entry)


    def run(self):

        poller = zmq.Poller()
        poller.register(self.socket, zmq.POLLIN)
        poller.register(self._signal_rx, zmq.POLLIN)

        interval = int(self.interval * 1000)

        while self.shutdown == False:
            for active, flag in poller.poll(interval):
                if active == self._signal_rx:
                    self._handle_outgoing()
                elif active == self.socket:
                    parts = self.socket.recv_multipart()
                    self._rep_incoming(parts)

            self._expire()

        # Shutting down. Nothing else will answer the remaining requests.

        closed = errors.RemoteUnavailableError("connection to %s:%d closed" % (self.address, self.port))

        for request in self.pending.values():
            request._fail(closed)
        self.pending.clear()
        self._deadlines = list()

        while True:
            try:
                request = self._outbox.get(block=False)
            except queue.Empty:
                break
            request._fail(closed)

        self.socket.close()

        with self._lock:
            self._signal_rx.close()
            self._signal_tx.close()


    def send(self, request):
        """ Queue a fully populated :class:`message.Request` for transmission
            and return its :class:`concurrent.futures.Future`, which resolves
            to the response :class:`message.Message`. This method never waits
            on the network.
        """

        request._finalize()

        with self._lock:
            if self.shutdown == True:
                raise errors.RemoteUnavailableError("connection to %s:%d closed" % (self.address, self.port))

            request.sent = time.time()
            self._outbox.put(request)
            self._signal()

        return request.future


# end of class Client



class Server:
    """ Answer requests arriving on a ZeroMQ ROUTER socket. Unless told
        otherwise the server binds every interface, using the lowest free
        port in the default range. The *avoid* set enumerates port
        numbers that should not be automatically assigned; this is ignored if
        a fixed *port* is specified.

        Every request is acknowledged by the socket thread as soon as it
        arrives, then handed to a pool of *workers* threads; only the REP
        waits for a worker. A subclass that needs requests handled strictly
        in arrival order should use a single worker.

        :ivar hostname: Name clients should use to reach this server.
        :ivar port: Port number bound by this server.
    """

    worker_count = 10

    def __init__(self, hostname=None, port=None, avoid=set(), workers=None, interface='*'):

        if hostname is None:
            hostname = socket.getfqdn()

        if workers is None:
            workers = self.worker_count

        self.hostname = hostname
        self.socket = zmq_context.socket(zmq.ROUTER)
        self.socket.setsockopt(zmq.LINGER, 0)

        if port is None:
            minimum = minimum_port
            maximum = maximum_port
        else:
            port = int(port)
            minimum = port
            maximum = port

        avoided = list()
        trial = minimum
        while trial <= maximum:
            if port is None and trial in avoid:
                avoided.append(trial)
                trial += 1
                continue

            listen_address = "tcp://%s:%d" % (interface, trial)
            try:
                self.socket.bind(listen_address)
            except zmq.error.ZMQError:
                # Assume this port is in use.
                trial += 1
            else:
                break

        if trial > maximum and len(avoided) > 0:
            # Re-take a previously used port if nothing else is available.

            for trial in avoided:
                listen_address = "tcp://%s:%d" % (interface, trial)
                try:
                    self.socket.bind(listen_address)
                except zmq.error.ZMQError:
                    continue
                else:
                    break
            else:
                trial = maximum + 1

        if trial > maximum:
            self.socket.close()
            if port is None:
                error = "no ports available in range %d:%d" % (minimum, maximum)
            else:
                error = 'port already in use: ' + str(port)
            raise zmq.error.ZMQError(msg=error)

        self.port = trial

        self._responses = queue.SimpleQueue()

        internal = "inproc://request.Server:signal:%d" % (id(self))
        self._signal_rx = zmq_context.socket(zmq.PAIR)
        self._signal_rx.bind(internal)
        self._signal_tx = zmq_context.socket(zmq.PAIR)
        self._signal_tx.connect(internal)
        self._signal_lock = threading.Lock()

        self.shutdown = False
        self.workers = concurrent.futures.ThreadPoolExecutor(max_workers=workers)
        self.thread = threading.Thread(target=self.run)
        self.thread.daemon = True
        self.thread.start()


    def close(self):
        """ Stop listening for requests.
        """

        with self._signal_lock:
            if self.shutdown == True:
                return

            self.shutdown = True
            self._signal_tx.send(b'')

        self.thread.join(1)
        self.workers.shutdown(wait=False)


    def req_ack(self, ident, request):
        """ Send the ACK for *request* straight away. Every well-formed
            request gets one, however long the workers take to answer it; a
            client that sees no ACK concludes the daemon is unreachable.
            Only called from the socket thread.
        """

        response = message.Message('ACK', request.target, id=request.id)
        self._transmit(ident, response)


    def req_handler(self, request):
        """ The default request handler is a no-op that answers every request
            with an empty payload. Subclasses are expected to inspect
            ``request.type`` and return a :class:`message.Payload`; raising
            an exception returns the error to the client.
        """

        return message.Payload(None)


    def req_incoming(self, parts):
        """ Parse one inbound multipart request, acknowledge it, and queue it
            for :func:`req_handler` on a worker thread. A request that cannot
            be parsed is answered at once with an error. Called from the
            socket thread.
        """

        ident = parts[0]
        their_version = parts[1]
        req_id = parts[2]
        target = None

        try:
            if their_version != message.version:
                raise ValueError("message is rcoll protocol %s, recipient is %s" % (repr(their_version), repr(message.version)))

            req_type = parts[3].decode()
            target = parts[4].decode()
            payload = message.Payload.from_json(parts[5], parts[6])

            request = message.Request(req_type, target, payload, req_id)

        except Exception as e:
            logger.warning('rejecting malformed request %r: %s', req_id, e)
            error = errors.to_error(e, traceback.format_exc())
            payload = message.Payload(None, error=error)
            response = message.Message('REP', target, payload, req_id)
            self._transmit(ident, response)
            return

        self.req_ack(ident, request)
        self.workers.submit(self._worker_main, ident, request)


    def run(self):

        poller = zmq.Poller()
        poller.register(self.socket, zmq.POLLIN)
        poller.register(self._signal_rx, zmq.POLLIN)

        while self.shutdown == False:
            for active, flag in poller.poll(1000):
                if active == self._signal_rx:
                    self._rep_outgoing()
                elif active == self.socket:
                    parts = self.socket.recv_multipart()
                    self.req_incoming(parts)

        self.socket.close()

        with self._signal_lock:
            self._signal_rx.close()
            self._signal_tx.close()


    def send(self, ident, response):
        """ Queue a *response* for the client identified by *ident*. Safe to
            call from any thread; once the server is closed the response is
            dropped.
        """

        with self._signal_lock:
            if self.shutdown == True:
                logger.debug('server closed, dropping %s for %r', response.type, response.id)
                return

            self._responses.put((ident, response))
            self._signal_tx.send(b'')


    def _rep_outgoing(self):

        self._signal_rx.recv(flags=zmq.NOBLOCK)

        try:
            ident, response = self._responses.get(block=False)
        except queue.Empty:
            return

        self._transmit(ident, response)


    def _transmit(self, ident, response):
        # Socket thread only.
        parts = (ident,) + tuple(response)
        self.socket.send_multipart(parts)


    def _worker_main(self, ident, request):
        """ Entry point for the worker threads: run :func:`req_handler` and
            queue the REP. Anything that escapes is logged rather than lost
            silently.
        """

        try:
            self._respond(ident, request)
        except Exception:
            logger.exception('unhandled error processing request')


    def _respond(self, ident, request):

        payload = None
        error = None

        try:
            payload = self.req_handler(request)
        except errors.RcollError as e:
            logger.debug('%s %s failed: %s', request.type, request.target, e)
            error = errors.to_error(e)
        except Exception as e:
            logger.exception('%s %s failed', request.type, request.target)
            error = errors.to_error(e, traceback.format_exc())

        if payload is None:
            payload = message.Payload(None)

        if error is not None:
            payload.error = error

        response = message.Message('REP', request.target, payload, request.id)
        self.send(ident, response)


# end of class Server



client_connections = dict()
client_lock = threading.Lock()

def client(address, port):
    """ Return the shared :class:`Client` for *address* and *port*, creating
        it on first use.
    """

    key = (address, int(port))

    with client_lock:
        try:
            instance = client_connections[key]
        except KeyError:
            instance = None

        if instance is None or instance.shutdown == True:
            instance = Client(address, port)
            client_connections[key] = instance

    return instance



def shutdown():

    with client_lock:
        connections = list(client_connections.values())
        client_connections.clear()

    for connection in connections:
        connection.close()


atexit.register(shutdown)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
