""" A mapping from keys to sets of values, held by a store. Each key maps to
    a set: adding a value a key already holds changes nothing, and a key
    with no values does not exist.

    Keys and values travel as JSON, and must be scalars: strings, finite
    numbers, booleans, or None. Anything else is rejected before a request
    is sent. The store keeps values of different types apart, so 1, 1.0
    and True are three values; a Python ``set`` snapshot of them, as
    returned by :func:`SetMultimap.get_all`, holds only one.

    :func:`SetMultimap.get` is unusual in that it returns immediately,
    without contacting the store. The :class:`ValuesView` it returns is
    live: every operation on it reads or modifies the multimap as it is at
    that moment, not as it was when the view was made.
"""

import math

from . import errors
from .delivery import completed, operation, then
from .expirable import Expirable, RemoteObject

scalars = (str, int, float, bool, type(None))


class SetMultimap(Expirable):

    @operation
    def contains_entry(self, key, value):
        """ True if *key* maps to *value*.
        """

        key = _scalar(key, 'key')
        value = _scalar(value, 'value')
        return then(self._execute('MMHAS', key, value), bool)


    @operation
    def contains_key(self, key):
        key = _scalar(key, 'key')
        return then(self._execute('MMHASKEY', key), bool)


    @operation
    def contains_value(self, value):
        """ True if any key maps to *value*.
        """

        value = _scalar(value, 'value')
        return then(self._execute('MMHASVALUE', value), bool)


    @operation
    def fast_remove(self, *keys):
        """ Remove every value of each key in *keys*, without reporting
            what they were. Resolves to the number of keys removed.
        """

        keys = [_scalar(key, 'key') for key in keys]

        if len(keys) == 0:
            raise errors.InvalidArgumentError('fast_remove() requires at least one key')

        return self._execute('MMFASTREMOVE', *keys)


    @operation
    def get(self, key):
        """ Return a live :class:`ValuesView` of the values for *key*. No
            request is made; the key need not exist yet.
        """

        key = _scalar(key, 'key')
        return ValuesView(self, key)


    @operation
    def get_all(self, key):
        """ A snapshot of the values for *key*, as a set. Empty if the key
            does not exist.
        """

        key = _scalar(key, 'key')
        return then(self._execute('MMGET', key), set)


    @operation
    def key_set(self):
        return then(self._execute('MMKEYS'), set)


    @operation
    def key_size(self):
        """ Number of distinct keys.
        """

        return self._execute('MMKEYSIZE')


    @operation
    def put(self, key, value):
        """ Add *value* to the set for *key*. True if it was not already
            present.
        """

        key = _scalar(key, 'key')
        value = _scalar(value, 'value')
        return then(self._execute('MMADD', key, [value]), _changed)


    @operation
    def put_all(self, key, values):
        """ Add every one of *values* to the set for *key*. True if any of
            them was not already present.
        """

        key = _scalar(key, 'key')
        values = _scalars(values)

        if len(values) == 0:
            raise errors.InvalidArgumentError('put_all() requires at least one value')

        return then(self._execute('MMADD', key, values), _changed)


    @operation
    def remove(self, key, value):
        """ Remove *value* from the set for *key*. True if it was present.
        """

        key = _scalar(key, 'key')
        value = _scalar(value, 'value')
        return then(self._execute('MMREM', key, [value]), _changed)


    @operation
    def remove_all(self, key):
        """ Remove *key* entirely, resolving to the set of values it held.
            Removing a key that does not exist resolves to an empty set.
        """

        key = _scalar(key, 'key')
        return then(self._execute('MMREMOVEALL', key), set)


    @operation
    def replace_values(self, key, values):
        """ Atomically replace the values for *key* with *values*, resolving
            to the set of values it held before. Replacing with nothing
            removes the key.
        """

        key = _scalar(key, 'key')
        values = _scalars(values)

        if len(values) == 0:
            return then(self._execute('MMREMOVEALL', key), set)

        return then(self._execute('MMREPLACE', key, values), set)


    @operation
    def size(self):
        """ Total number of key/value pairs.
        """

        return self._execute('MMSIZE')


# end of class SetMultimap



class ValuesView(RemoteObject):
    """ The values for one key of a :class:`SetMultimap`. Holds nothing but
        the key; every operation goes to the store.
    """

    live_view = True

    def __init__(self, multimap, key):

        RemoteObject.__init__(self, multimap.executor, multimap.name)
        self.multimap = multimap
        self.key = key


    def __repr__(self):
        return "ValuesView(%r, %r)" % (self.name, self.key)


    @operation
    def add(self, value):
        value = _scalar(value, 'value')
        return then(self._execute('MMADD', self.key, [value]), _changed)


    @operation
    def add_all(self, values):

        values = _scalars(values)

        if len(values) == 0:
            raise errors.InvalidArgumentError('add_all() requires at least one value')

        return then(self._execute('MMADD', self.key, values), _changed)


    @operation
    def clear(self):
        """ Remove every value, and with them the key.
        """

        return then(self._execute('MMREMOVEALL', self.key), _nothing)


    @operation
    def contains(self, value):
        value = _scalar(value, 'value')
        return then(self._execute('MMHAS', self.key, value), bool)


    @operation
    def read_all(self):
        """ A snapshot of the current values, as a set.
        """

        return then(self._execute('MMGET', self.key), set)


    @operation
    def remove(self, value):
        value = _scalar(value, 'value')
        return then(self._execute('MMREM', self.key, [value]), _changed)


    @operation
    def remove_values(self, values):
        """ Remove every one of *values*. True if any was present.
        """

        values = _scalars(values)

        if len(values) == 0:
            return completed(False)

        return then(self._execute('MMREM', self.key, values), _changed)


    @operation
    def size(self):
        return then(self._execute('MMGET', self.key), len)


# end of class ValuesView



def _scalar(value, what):

    if isinstance(value, scalars):
        if isinstance(value, float) and math.isfinite(value) == False:
            raise errors.InvalidArgumentError('multimap %s must be a finite number, not %r' % (what, value))
        return value

    raise errors.InvalidArgumentError('multimap %s must be a string, number, boolean or None, not %s' % (what, type(value).__name__))


def _scalars(values):

    if isinstance(values, (str, bytes)):
        raise errors.InvalidArgumentError('expected a collection of values, not a single ' + type(values).__name__)

    try:
        values = list(values)
    except TypeError:
        raise errors.InvalidArgumentError('expected a collection of values, not ' + repr(values))

    return [_scalar(value, 'value') for value in values]


def _changed(count):
    return count > 0


def _nothing(result):
    return None


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
