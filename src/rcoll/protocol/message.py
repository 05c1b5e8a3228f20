""" A class representation of an rcoll message, including subclasses for
    specific messages.
"""

import concurrent.futures
import itertools
import threading
import time as timemodule

from .. import json


# This is the version of the rcoll on-the-wire protocol implemented here,
# identified by a single byte.

version = b'1'


# Every primitive a store daemon understands. The request type on the wire
# is the primitive name; the target is the key it operates on.

bitset_types = frozenset((
    'BITCOUNT',
    'BITLEN',
    'BITNOT',
    'BITOP',
    'FILLBITS',
    'GETBIT',
    'GETBYTES',
    'SETBIT',
    'SETBYTES',
))

multimap_types = frozenset((
    'MMADD',
    'MMFASTREMOVE',
    'MMGET',
    'MMHAS',
    'MMHASKEY',
    'MMHASVALUE',
    'MMKEYS',
    'MMKEYSIZE',
    'MMREM',
    'MMREMOVEALL',
    'MMREPLACE',
    'MMSIZE',
))

key_types = frozenset((
    'DEL',
    'EXISTS',
    'PERSIST',
    'PEXPIRE',
    'PEXPIREAT',
    'PTTL',
))

request_types = bitset_types | multimap_types | key_types


class Message:
    """ One message on the wire. Used directly for what a daemon sends
        back (an ``ACK`` or a ``REP``), neither of which is answered.

        *type* names the message, *target* is the key a request applies to,
        *payload* is a :class:`Payload` or None, and *id* ties a response to
        its request. Requests pick their own id, so it comes last.

        :ivar payload: The request-specific data, if any, for the message.
        :ivar valid_types: The message types this class accepts.
        :ivar timestamp: A UNIX epoch timestamp for the message creation time.
    """

    valid_types = frozenset(('ACK', 'REP'))

    def __init__(self, type, target=None, payload=None, id=None):

        if type in self.valid_types:
            pass
        else:
            raise ValueError('invalid message type: ' + repr(type))

        self.id = id
        self.type = type
        self.payload = payload
        self.target = target
        self.timestamp = timemodule.time()

        self.parts = None


    def __iter__(self):
        self._finalize()
        return iter(self.parts)


    def __repr__(self):
        self._finalize()
        return repr(self.parts)


    def _finalize(self):
        """ Build, once, the tuple of byte strings sent as the frames of a
            multipart message.
        """

        parts = self.parts

        if parts is None:

            id = self.id
            type = self.type
            target = self.target
            payload = self.payload

            # It is legal to create a Message with None as the id, but trying
            # to send such a message is not permitted.

            if id is None:
                raise RuntimeError('messages must have an id to be put on the wire')

            try:
                id.decode
            except AttributeError:
                id = '%08x' % (id)
                id = id.encode()

            type = type.encode()

            if target is None or target == '':
                target = b''
            else:
                try:
                    target = target.encode()
                except AttributeError:
                    # Already bytes.
                    pass

            if payload is None:
                bulk = b''
                payload = b''
            else:
                bulk = payload.bulk
                if bulk is None:
                    bulk = b''
                payload = payload.encapsulate()

            parts = (version, id, type, target, payload, bulk)
            self.parts = parts

        return parts


# end of class Message



class Request(Message):
    """ A :class:`Request` is issued by a client and answered by a daemon.
        The request type is the name of a store primitive, and the target is
        the key the primitive applies to. On top of the base :class:`Message`
        a request tracks its acknowledgement and carries a
        :class:`concurrent.futures.Future` that resolves to the response
        :class:`Message` once it arrives.

        :ivar response: The ``REP`` :class:`Message`, once it arrives.
        :ivar future: Resolves to :ivar:`response`, or fails with a transport
            error if no response is forthcoming.
    """

    valid_types = request_types

    def __init__(self, type, target=None, payload=None, id=None):

        # Requests are generally created without an id; the request/response
        # handler needs one that is locally unique so it can tie an incoming
        # response to the request that generated it.

        if id is None:
            id = _id_next()

        Message.__init__(self, type, target, payload, id)

        self.response = None
        self.sent = None
        self.ack_event = threading.Event()
        self.future = concurrent.futures.Future()


    def __repr__(self):
        self._finalize()
        request = 'REQ: ' + repr(self.parts)

        if self.response is None:
            response = 'REP: None'
        else:
            response = 'REP: ' + repr(tuple(self.response))

        return request + ', ' + response


    def _complete_ack(self):
        """ The request has been acknowledged; a daemon is on the other end.
        """

        self.ack_event.set()


    def _complete(self, response):
        """ Locally store the *response* and resolve :ivar:`future`. Returns
            False if the future was cancelled by the caller in the meantime,
            in which case the response is retained but goes nowhere.
        """

        self.response = response
        self.ack_event.set()

        if self.future.set_running_or_notify_cancel() == False:
            return False

        self.future.set_result(response)
        return True


    def _fail(self, exception):
        """ Resolve :ivar:`future` with *exception*; the counterpart to
            :func:`_complete` for requests that never receive a response.
        """

        self.ack_event.set()

        if self.future.set_running_or_notify_cancel() == False:
            return False

        self.future.set_exception(exception)
        return True


    def acknowledged(self):
        """ Return True if the daemon has acknowledged this request.
        """

        return self.ack_event.is_set()


    def poll(self):
        """ True once the request has either been answered or has failed.
        """

        return self.future.done()


    def wait(self, timeout=60):
        """ Block until the request has been handled. The response is always
            returned; it will be None if the original request is still pending
            or failed without a response.
        """

        concurrent.futures.wait((self.future,), timeout)
        return self.response


# end of class Request



class Payload:
    """ The body of a message: a Python value plus its metadata, ready to
        be encoded as JSON. Any fields
        in the :ivar:`omit` set will be excluded from the encapsulation; the
        *bulk* field travels as its own frame, never as JSON.

        For a request the *value* is the list of arguments to the primitive;
        for a response it is the result of the primitive.
    """

    omit = frozenset(('bulk', '_encapsulated', 'omit'))

    def __init__(self, value, time=None, error=None, bulk=None, **kwargs):

        # Keyword arguments match the JSON field names, hence the time
        # module is imported under another name.

        if time is None:
            time = timemodule.time()

        self.bulk = bulk
        self.error = error
        self.time = time
        self.value = value

        self._encapsulated = None

        # Additional fields are allowed; the caller is responsible for
        # ensuring they can be serialized as JSON.

        for key,value in kwargs.items():
            setattr(self, key, value)


    def __repr__(self):
        return self.encapsulate().decode()


    def encapsulate(self):
        """ Return the JSON encoding, as bytes, of every field except the
            bulk data. The encoding is computed once and then reused.
        """

        if self._encapsulated:
            return self._encapsulated

        payload = dict()

        for key,value in vars(self).items():
            if key in self.omit:
                continue
            if key == 'error' and value is None:
                continue
            payload[key] = value

        payload = json.dumps(payload)

        self._encapsulated = payload
        return payload


    @classmethod
    def from_json(cls, encapsulated, bulk=None):
        """ Recreate a :class:`Payload` from its :func:`encapsulate` form.
            Returns None for an empty payload.
        """

        if encapsulated is None or encapsulated == b'':
            return None

        fields = json.loads(encapsulated)

        if isinstance(fields, dict):
            pass
        else:
            raise ValueError('payload is not a JSON object')

        if bulk == b'':
            bulk = None

        value = fields.pop('value', None)
        return cls(value, bulk=bulk, **fields)


# end of class Payload


_id_min = 0
_id_max = 0xFFFFFFFF
_id_lock = threading.Lock()
_id_ticker = itertools.count(_id_min)


def _id_next():
    """ Return a fresh request id, as eight hex digits in bytes.
    """

    global _id_ticker

    with _id_lock:
        id = next(_id_ticker)

        if id >= _id_max:
            _id_ticker = itertools.count(_id_min)

    id = '%08x' % (id)
    id = id.encode()
    return id


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
