""" The :class:`Store` is the client-side handle on one key/value store. It
    hands out collection objects by name; it does not track what the store
    actually holds, and asking for a collection never contacts the store.
"""

import threading

from . import delivery
from .bitset import BitSet
from .executor import RemoteExecutor
from .multimap import SetMultimap


class Store:
    """ A handle on the store reachable at *address* and *port*, which
        default to the configured values (see :mod:`rcoll.config`). An
        *executor* can be supplied instead, for example a
        :class:`rcoll.executor.LocalExecutor` to keep everything in-process.

        Collections are returned with blocking delivery; the *timeout*, if
        specified, bounds how long each blocking call waits. Asking twice for
        the same collection by the same name returns the same instance.
    """

    def __init__(self, address=None, port=None, executor=None, timeout=None):

        if executor is None:
            executor = RemoteExecutor(address, port)

        self.executor = executor
        self.timeout = timeout
        self._collections = dict()
        self._collections_lock = threading.Lock()


    def __repr__(self):
        return 'store.Store: ' + repr(self.executor)


    def __setitem__(self, name, value):
        raise NotImplementedError('you cannot assign a collection to a Store directly')


    def _collection(self, kind, name):

        cache_key = (kind, name)

        try:
            return self._collections[cache_key]
        except KeyError:
            pass

        with self._collections_lock:
            # Another thread may have created it while this one waited.
            try:
                facade = self._collections[cache_key]
            except KeyError:
                core = kind(self.executor, name)
                facade = delivery.Sync(core, self.timeout)
                self._collections[cache_key] = facade

        return facade


    def bitset(self, name):
        """ Return the :class:`rcoll.bitset.BitSet` called *name*, with
            blocking delivery. Use its ``deferred`` or ``reactive`` attribute
            for the other delivery styles.
        """

        return self._collection(BitSet, name)


    def close(self):
        """ Release the executor. A connection shared with other handles on
            the same daemon stays open; anything else held by the executor
            is released, and collections using it stop working.
        """

        self.executor.close()


    def multimap(self, name):
        """ Return the :class:`rcoll.multimap.SetMultimap` called *name*,
            with blocking delivery.
        """

        return self._collection(SetMultimap, name)


    def names(self):
        """ Names of the collections handed out so far by this instance. This
            says nothing about what the store holds.
        """

        return sorted(set(name for kind, name in self._collections.keys()))


# end of class Store


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
