""" The authoritative state held by a store daemon. A :class:`Keyspace` maps
    keys to either a bitset or a set-multimap, and executes the primitives
    named in :mod:`rcoll.protocol.message` against them. Each primitive runs
    entirely under one lock, which is what makes every client operation
    atomic with respect to every other.

    Bitsets are numpy ``uint8`` arrays in network bit order: bit *i* lives in
    byte ``i // 8`` under the mask ``0x80 >> (i % 8)``. A key whose value is
    reduced to nothing (no bytes, no member keys) is removed.
"""

import logging
import threading
import time

import numpy

from . import bits
from . import errors

logger = logging.getLogger(__name__)

BITSET = 'bitset'
MULTIMAP = 'multimap'

_empty = numpy.zeros(0, dtype=numpy.uint8)


class _Entry:

    __slots__ = ('kind', 'data', 'expires')

    def __init__(self, kind, data):
        self.kind = kind
        self.data = data
        self.expires = None


# end of class _Entry



class Keyspace:
    """ In-memory keyspace. Use :func:`execute` to run a primitive by name;
        the individual primitive methods are also public, but only
        :func:`execute` holds the lock.
    """

    def __init__(self):

        self._entries = dict()
        self.lock = threading.RLock()

        self.commands = dict()
        self.commands['BITCOUNT'] = self.bitcount
        self.commands['BITLEN'] = self.bitlen
        self.commands['BITNOT'] = self.bitnot
        self.commands['BITOP'] = self.bitop
        self.commands['FILLBITS'] = self.fillbits
        self.commands['GETBIT'] = self.getbit
        self.commands['GETBYTES'] = self.getbytes
        self.commands['SETBIT'] = self.setbit
        self.commands['SETBYTES'] = self.setbytes

        self.commands['MMADD'] = self.mmadd
        self.commands['MMFASTREMOVE'] = self.mmfastremove
        self.commands['MMGET'] = self.mmget
        self.commands['MMHAS'] = self.mmhas
        self.commands['MMHASKEY'] = self.mmhaskey
        self.commands['MMHASVALUE'] = self.mmhasvalue
        self.commands['MMKEYS'] = self.mmkeys
        self.commands['MMKEYSIZE'] = self.mmkeysize
        self.commands['MMREM'] = self.mmrem
        self.commands['MMREMOVEALL'] = self.mmremoveall
        self.commands['MMREPLACE'] = self.mmreplace
        self.commands['MMSIZE'] = self.mmsize

        self.commands['DEL'] = self.delete
        self.commands['EXISTS'] = self.exists
        self.commands['PERSIST'] = self.persist
        self.commands['PEXPIRE'] = self.pexpire
        self.commands['PEXPIREAT'] = self.pexpireat
        self.commands['PTTL'] = self.pttl


    def __contains__(self, key):
        with self.lock:
            return self._lookup(key) is not None


    def __len__(self):
        with self.lock:
            self.purge()
            return len(self._entries)


    def execute(self, command, key, args=(), bulk=None):
        """ Run the primitive *command* against *key* atomically and return
            its result. *args* are the positional arguments for the
            primitive; *bulk* is the raw byte argument, used only by
            ``SETBYTES``.
        """

        try:
            method = self.commands[command]
        except KeyError:
            raise errors.InvalidArgumentError('unknown command: ' + repr(command))

        if key is None or key == '':
            raise errors.InvalidArgumentError("%s requires a key" % (command))

        if args is None:
            args = ()

        with self.lock:
            if command == 'SETBYTES':
                return method(key, bulk)
            else:
                return method(key, *args)


    def clear(self):
        """ Remove every key, expired or not.
        """

        with self.lock:
            self._entries.clear()


    def purge(self):
        """ Remove every expired key. Returns the number of keys removed.
        """

        now = time.time()
        removed = 0

        with self.lock:
            for key in list(self._entries.keys()):
                entry = self._entries[key]
                if entry.expires is not None and entry.expires <= now:
                    del self._entries[key]
                    removed += 1

        if removed > 0:
            logger.debug('purged %d expired keys', removed)

        return removed


    def _lookup(self, key, kind=None):
        """ Return the live :class:`_Entry` for *key*, or None. If *kind* is
            specified the entry must hold that kind of data.
        """

        try:
            entry = self._entries[key]
        except KeyError:
            return None

        if entry.expires is not None and entry.expires <= time.time():
            del self._entries[key]
            return None

        if kind is not None and entry.kind != kind:
            raise errors.WrongTypeError("key %r holds a %s, not a %s" % (key, entry.kind, kind))

        return entry


    def _create(self, key, kind):

        entry = self._lookup(key, kind)

        if entry is None:
            if kind == BITSET:
                data = _empty.copy()
            else:
                data = dict()

            entry = _Entry(kind, data)
            self._entries[key] = entry

        return entry


    def _discard_if_empty(self, key, entry):

        if len(entry.data) == 0:
            del self._entries[key]


    ### Bitset primitives.


    def _bits(self, key):
        entry = self._lookup(key, BITSET)

        if entry is None:
            return _empty

        return entry.data


    def _grow(self, entry, length):
        """ Make sure the bitset in *entry* is at least *length* bytes long.
        """

        current = len(entry.data)

        if current < length:
            padding = numpy.zeros(length - current, dtype=numpy.uint8)
            entry.data = numpy.concatenate((entry.data, padding))


    def bitcount(self, key):
        data = self._bits(key)
        return int(numpy.unpackbits(data).sum())


    def bitlen(self, key):
        """ Index of the highest set bit plus one, or zero.
        """

        data = self._bits(key)
        nonzero = numpy.flatnonzero(data)

        if len(nonzero) == 0:
            return 0

        last = int(nonzero[-1])
        byte = int(data[last])

        # The highest index within the byte is its least significant set bit.

        lowest = (byte & -byte).bit_length() - 1
        return last * 8 + (7 - lowest) + 1


    def bitnot(self, key):

        entry = self._lookup(key, BITSET)

        if entry is None:
            return None

        entry.data = numpy.invert(entry.data)


    def bitop(self, key, operation, *sources):
        """ Combine *key* and every key in *sources* with the bitwise
            *operation* (``AND``, ``OR`` or ``XOR``), and store the result
            in *key*. Shorter operands are zero-padded to the longest one,
            which also determines the byte length of the result. Returns
            that length.
        """

        try:
            ufunc = _bitwise[operation]
        except KeyError:
            raise errors.InvalidArgumentError('unknown bitwise operation: ' + repr(operation))

        if len(sources) == 0:
            raise errors.InvalidArgumentError('BITOP requires at least one source key')

        operands = list()
        operands.append(self._bits(key))

        for source in sources:
            operands.append(self._bits(source))

        length = max(len(operand) for operand in operands)

        if length == 0:
            self.delete(key)
            return 0

        result = None

        for operand in operands:
            padded = numpy.zeros(length, dtype=numpy.uint8)
            padded[:len(operand)] = operand

            if result is None:
                result = padded
            else:
                result = ufunc(result, padded)

        entry = self._create(key, BITSET)
        entry.data = result

        return length


    def fillbits(self, key, start, to, value):
        """ Set every bit in ``[start, to)`` to *value*.
        """

        start, to = bits.span(start, to)

        if start == to:
            return None

        first = bits.byte_offset(start)
        last = bits.byte_offset(to - 1)

        entry = self._create(key, BITSET)
        self._grow(entry, last + 1)

        segment = numpy.unpackbits(entry.data[first:last + 1])
        offset = first * 8
        segment[start - offset:to - offset] = 1 if value else 0
        entry.data[first:last + 1] = numpy.packbits(segment)


    def getbit(self, key, index):

        index = bits.index(index)
        data = self._bits(key)
        byte = bits.byte_offset(index)

        if byte >= len(data):
            return 0

        return 1 if int(data[byte]) & bits.mask(index) else 0


    def getbytes(self, key):
        data = self._bits(key)
        return data.tobytes()


    def setbit(self, key, index, value):
        """ Set the bit at *index* to *value* and return its previous value.
        """

        index = bits.index(index)
        byte = bits.byte_offset(index)
        mask = bits.mask(index)

        entry = self._create(key, BITSET)
        self._grow(entry, byte + 1)

        current = int(entry.data[byte])
        previous = 1 if current & mask else 0

        if value:
            entry.data[byte] = current | mask
        else:
            entry.data[byte] = current & ~mask & 0xFF

        return previous


    def setbytes(self, key, bulk):
        """ Replace the whole bitset with the bytes in *bulk*. Any previous
            value, including its expiration, is discarded.
        """

        entry = self._lookup(key)

        if entry is not None and entry.kind != BITSET:
            raise errors.WrongTypeError("key %r holds a %s, not a %s" % (key, entry.kind, BITSET))

        self._entries.pop(key, None)

        if bulk is None or len(bulk) == 0:
            return None

        entry = _Entry(BITSET, numpy.frombuffer(bulk, dtype=numpy.uint8).copy())
        self._entries[key] = entry


    ### Multimap primitives.

    # Member keys and values are stored tagged, see _tag().


    def _values(self, key, member):

        entry = self._lookup(key, MULTIMAP)

        if entry is None:
            return set()

        return entry.data.get(_tag(member), set())


    def mmadd(self, key, member, values):

        member = _tag(member)
        values = [_tag(value) for value in values]
        entry = self._create(key, MULTIMAP)

        try:
            existing = entry.data[member]
        except KeyError:
            existing = set()
            entry.data[member] = existing

        before = len(existing)
        existing.update(values)
        added = len(existing) - before

        if len(existing) == 0:
            del entry.data[member]

        self._discard_if_empty(key, entry)
        return added


    def mmfastremove(self, key, *members):

        members = [_tag(member) for member in members]
        entry = self._lookup(key, MULTIMAP)

        if entry is None:
            return 0

        removed = 0
        for member in members:
            if entry.data.pop(member, None) is not None:
                removed += 1

        self._discard_if_empty(key, entry)
        return removed


    def mmget(self, key, member):
        return _untag(self._values(key, member))


    def mmhas(self, key, member, value):
        return _tag(value) in self._values(key, member)


    def mmhaskey(self, key, member):
        return len(self._values(key, member)) > 0


    def mmhasvalue(self, key, value):

        entry = self._lookup(key, MULTIMAP)

        if entry is None:
            return False

        value = _tag(value)

        for values in entry.data.values():
            if value in values:
                return True

        return False


    def mmkeys(self, key):

        entry = self._lookup(key, MULTIMAP)

        if entry is None:
            return []

        return _untag(entry.data.keys())


    def mmkeysize(self, key):

        entry = self._lookup(key, MULTIMAP)

        if entry is None:
            return 0

        return len(entry.data)


    def mmrem(self, key, member, values):

        member = _tag(member)
        values = [_tag(value) for value in values]
        entry = self._lookup(key, MULTIMAP)

        if entry is None:
            return 0

        try:
            existing = entry.data[member]
        except KeyError:
            return 0

        before = len(existing)
        existing.difference_update(values)
        removed = before - len(existing)

        if len(existing) == 0:
            del entry.data[member]

        self._discard_if_empty(key, entry)
        return removed


    def mmremoveall(self, key, member):
        return self.mmreplace(key, member, ())


    def mmreplace(self, key, member, values):
        """ Substitute the value set for *member* and return the old one.
        """

        member = _tag(member)
        values = set(_tag(value) for value in values)

        if len(values) == 0:
            entry = self._lookup(key, MULTIMAP)
            if entry is None:
                return []
        else:
            entry = self._create(key, MULTIMAP)

        previous = entry.data.pop(member, set())

        if len(values) > 0:
            entry.data[member] = values

        self._discard_if_empty(key, entry)
        return _untag(previous)


    def mmsize(self, key):

        entry = self._lookup(key, MULTIMAP)

        if entry is None:
            return 0

        return sum(len(values) for values in entry.data.values())


    ### Key primitives, shared by every kind of value.


    def delete(self, key):
        entry = self._lookup(key)

        if entry is None:
            return False

        del self._entries[key]
        return True


    def exists(self, key):
        return self._lookup(key) is not None


    def persist(self, key):

        entry = self._lookup(key)

        if entry is None or entry.expires is None:
            return False

        entry.expires = None
        return True


    def pexpire(self, key, milliseconds):
        return self.pexpireat(key, time.time() * 1000 + milliseconds)


    def pexpireat(self, key, timestamp):
        """ Expire *key* at *timestamp*, expressed in UNIX epoch milliseconds.
            A timestamp in the past removes the key immediately.
        """

        entry = self._lookup(key)

        if entry is None:
            return False

        expires = timestamp / 1000.0

        if expires <= time.time():
            del self._entries[key]
        else:
            entry.expires = expires

        return True


    def pttl(self, key):

        entry = self._lookup(key)

        if entry is None:
            return -2

        if entry.expires is None:
            return -1

        remaining = int(round((entry.expires - time.time()) * 1000))
        return max(remaining, 0)


# end of class Keyspace


_bitwise = dict()
_bitwise['AND'] = numpy.bitwise_and
_bitwise['OR'] = numpy.bitwise_or
_bitwise['XOR'] = numpy.bitwise_xor



def _tag(value):
    """ Pair a multimap key or value with its JSON type. 1, 1.0 and True
        are equal and hash alike in Python, but are distinct values in a
        multimap.
    """

    if isinstance(value, bool):
        return ('bool', value)
    elif isinstance(value, int):
        return ('int', int(value))
    elif isinstance(value, float):
        return ('float', float(value))
    elif isinstance(value, str):
        return ('str', str(value))
    elif value is None:
        return ('null', None)

    raise errors.InvalidArgumentError('multimap keys and values must be JSON scalars, not ' + type(value).__name__)


def _untag(tagged):
    return [value for kind, value in tagged]


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
