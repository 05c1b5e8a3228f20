""" Exceptions raised by rcoll. Every failure reaches the caller through the
    same channel as a successful result: a failed
    :class:`concurrent.futures.Future`, an error ending a
    :class:`rcoll.delivery.Single`, or a raised exception for blocking calls.
"""


class RcollError(Exception):
    """ Base class for every rcoll exception.
    """
    pass


class InvalidArgumentError(RcollError, ValueError):
    """ An argument was rejected; client-side checks raise this before
        anything is sent to the store.
    """
    pass


class RemoteUnavailableError(RcollError):
    """ The store did not acknowledge a request, or could not be reached.
    """
    pass


class RemoteTimeoutError(RemoteUnavailableError):
    """ The store acknowledged a request but did not answer in time.
    """
    pass


class WrongTypeError(RcollError, TypeError):
    """ The key holds a different kind of collection.
    """
    pass


class RemoteError(RcollError):
    """ A failure reported by the store with no more specific class. The
        name of the remote exception is kept as *remote_type*, and any
        traceback text as *debug*.
    """

    def __init__(self, text, remote_type=None, debug=None):
        RcollError.__init__(self, text)
        self.remote_type = remote_type
        self.debug = debug


# end of class RemoteError


_by_name = dict()
_by_name['InvalidArgumentError'] = InvalidArgumentError
_by_name['WrongTypeError'] = WrongTypeError


def from_error(error):
    """ Rebuild an exception from the ``error`` field of a response payload.
        Known rcoll exception names come back as their own class; anything
        else becomes a :class:`RemoteError` carrying the remote type name.
    """

    e_type = error.get('type')
    e_text = error.get('text', '')

    try:
        e_class = _by_name[e_type]
    except KeyError:
        return RemoteError("%s: %s" % (e_type, e_text), e_type, error.get('debug'))

    return e_class(e_text)


def to_error(exception, debug=None):
    """ Describe *exception* in the form carried by a response payload;
        the inverse of :func:`from_error`.
    """

    error = dict()
    error['type'] = type(exception).__name__
    error['text'] = str(exception)

    if debug is not None:
        error['debug'] = debug

    return error


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
