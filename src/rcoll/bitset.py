""" A growable vector of bits held by a store. :class:`BitSet` is the
    semantic core: each operation validates its arguments, issues exactly one
    store primitive, and returns a :class:`concurrent.futures.Future` for the
    result. Callers normally reach it through a facade from
    :mod:`rcoll.delivery`, which decides how that future is delivered::

        bitset = rcoll.get().bitset('visits')
        bitset.set(5)                   # blocks, returns the previous value
        bitset.deferred.length()        # returns a Future
        bitset.reactive.cardinality()   # returns a Single

    Python keywords get a trailing underscore, in the manner of the
    :mod:`operator` module: :func:`BitSet.not_`, :func:`BitSet.or_`,
    :func:`BitSet.and_`. :func:`BitSet.xor` needs no such treatment.

    Three sizes are deliberately distinct: :func:`BitSet.length` is the
    index of the highest set bit plus one; :func:`BitSet.cardinality` and
    its synonym :func:`BitSet.size` count the set bits. None of them are
    cached, and under concurrent writers each is only as current as the
    moment the store evaluated it.
"""

from . import bits
from . import errors
from .delivery import operation, then
from .expirable import Expirable


class BitSet(Expirable):

    @operation
    def and_(self, *names):
        """ Replace this bitset with the bitwise AND of itself and the named
            bitsets, evaluated atomically by the store. Missing bytes of a
            shorter operand count as zero, so the logical length of the
            result never exceeds that of the shortest operand.
        """

        names = bits.names(names)
        return then(self._execute('BITOP', 'AND', *names), _nothing)


    @operation
    def as_array(self):
        """ The whole bitset as a numpy boolean array, one element per bit
            of the current byte extent.
        """

        return then(self._execute('GETBYTES'), _unpacked)


    @operation
    def cardinality(self):
        """ Number of bits set to 1.
        """

        return self._execute('BITCOUNT')


    @operation
    def clear(self, start=None, to=None):
        """ Clear bits. With no arguments every bit is cleared, removing the
            bitset from the store; the result is None. With an *start* index
            alone that one bit is cleared, and the result is its previous
            value. With *start* and *to* every bit in ``[start, to)`` is
            cleared, and the result is None.
        """

        if start is None:
            if to is not None:
                raise errors.InvalidArgumentError('clear() with an end index requires a start index')
            return then(self._execute('DEL'), _nothing)

        if to is None:
            index = bits.index(start)
            return then(self._execute('SETBIT', index, 0), bits.flag)

        start, to = bits.span(start, to)
        return self._fill(start, to, False)


    @operation
    def get(self, index):
        """ Value of the bit at *index*; bits never set read as False.
        """

        index = bits.index(index)
        return then(self._execute('GETBIT', index), bits.flag)


    @operation
    def length(self):
        """ Index of the highest set bit plus one, or zero if no bit is set.
        """

        return self._execute('BITLEN')


    @operation
    def not_(self):
        """ Complement every bit within the current byte extent. The extent
            itself does not change.
        """

        return then(self._execute('BITNOT'), _nothing)


    @operation
    def or_(self, *names):
        """ Replace this bitset with the bitwise OR of itself and the named
            bitsets, evaluated atomically by the store. The result is as
            long as the longest operand.
        """

        names = bits.names(names)
        return then(self._execute('BITOP', 'OR', *names), _nothing)


    @operation
    def set(self, start, to=None, value=True):
        """ Set bits. The form depends on the arguments:

            * ``set(snapshot)``: overwrite the entire bitset with *snapshot*,
              either bytes in store bit order or a one-dimensional numpy
              array of bit values. Bits beyond the snapshot are cleared.
              The result is None.
            * ``set(index)``, ``set(index, value)`` or
              ``set(index, value=False)``: set one bit to *value* (a bool)
              and return its previous value.
            * ``set(start, to)`` or ``set(start, to, value)``: set every bit
              in ``[start, to)`` to *value*; the result is None.

            The second positional argument is a range end if it is an
            integer and a bit value if it is a bool.
        """

        if bits.is_snapshot(start):
            if to is not None:
                raise errors.InvalidArgumentError('set() with a snapshot takes no other arguments')

            snapshot = bits.snapshot(start)
            return then(self._execute('SETBYTES', bulk=snapshot), _nothing)

        if to is None or isinstance(to, bool):
            if to is not None:
                value = to

            index = bits.index(start)
            return then(self._execute('SETBIT', index, 1 if value else 0), bits.flag)

        start, to = bits.span(start, to)
        return self._fill(start, to, value)


    @operation
    def size(self):
        """ Number of bits set to 1; a synonym for :func:`cardinality`, and
            unrelated to :func:`length`.
        """

        return self._execute('BITCOUNT')


    @operation
    def tobytes(self):
        """ The full byte representation, empty if nothing was ever set.
        """

        return then(self._execute('GETBYTES'), _bytes)


    @operation
    def xor(self, *names):
        """ Replace this bitset with the bitwise XOR of itself and the named
            bitsets, evaluated atomically by the store. The result is as
            long as the longest operand.
        """

        names = bits.names(names)
        return then(self._execute('BITOP', 'XOR', *names), _nothing)


    def _fill(self, start, to, value):
        return then(self._execute('FILLBITS', start, to, 1 if value else 0), _nothing)


# end of class BitSet



def _bytes(result):

    if result is None:
        return b''

    return bytes(result)


def _nothing(result):
    return None


def _unpacked(result):
    return bits.bytes_to_unpacked(_bytes(result))


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
