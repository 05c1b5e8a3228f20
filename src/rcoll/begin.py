""" Implementation of the top-level :func:`get` method. This is intended to
    be the principal entry point for users interacting with a store.
"""

import threading

from . import config
from .store import Store


_cache = dict()
_cache_lock = threading.Lock()

def _clear(address=None, port=None):
    """ Clear a cached :class:`rcoll.Store` instance. Returns None if there
        was no such instance; if there was, it is returned, largely to allow
        the caller to close it.
    """

    key = _key(address, port)

    with _cache_lock:
        try:
            existing = _cache[key]
        except KeyError:
            return

        del _cache[key]

    return existing



def _key(address, port):

    settings = config.get()

    if address is None:
        address = settings['address']
    if port is None:
        port = settings['port']

    return (str(address), int(port))



def get(address=None, port=None):
    """ The :func:`get` method is intended to be the primary entry point for
        all interactions with a store.

        The return value is a cached :class:`Store` connected to the daemon
        at *address* and *port*; either one defaults to the configured value,
        see :mod:`rcoll.config`. Calling :func:`get` again with the same
        arguments returns the same instance. Nothing is sent to the daemon
        until a collection is used.
    """

    key = _key(address, port)

    with _cache_lock:
        try:
            store = _cache[key]
        except KeyError:
            store = Store(*key)
            _cache[key] = store

    return store


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
