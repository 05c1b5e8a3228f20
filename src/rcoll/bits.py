""" Bit addressing: validation of indices and ranges, and translation
    between bit positions, bytes, and numpy bit arrays. Everything here is
    local; nothing in this module talks to a store.

    Bit *i* lives in byte ``i // 8`` under the mask ``0x80 >> (i % 8)``,
    most significant bit first. This is the layout returned by
    :func:`rcoll.bitset.BitSet.tobytes` and expected for snapshots.
"""

import numpy

from . import errors

# Largest addressable bit, as in Redis-style stores: a bitset never grows
# beyond 512 MiB.

maximum = 2 ** 32 - 1


def index(value, limit=maximum):
    """ Validate a bit index and return it. Indices must be integers from
        zero to *limit*; a bool is not accepted as an index.
    """

    if isinstance(value, bool) or not isinstance(value, (int, numpy.integer)):
        raise errors.InvalidArgumentError('bit index must be an integer, not ' + repr(value))

    value = int(value)

    if value < 0:
        raise errors.InvalidArgumentError('bit index must be non-negative, not %d' % (value))

    if value > limit:
        raise errors.InvalidArgumentError('bit index %d is beyond the largest index %d' % (value, limit))

    return value


def span(start, to):
    """ Validate the half-open range ``[start, to)`` and return it as a
        tuple. ``start == to`` is a legal, empty range.
    """

    start = index(start)
    to = index(to, maximum + 1)

    if start > to:
        raise errors.InvalidArgumentError("range start %d is beyond range end %d" % (start, to))

    return (start, to)


def byte_offset(bit):
    return bit >> 3


def mask(bit):
    return 0x80 >> (bit & 7)


def is_snapshot(value):
    """ Return True if *value* looks like a whole-bitset snapshot rather
        than a bit index.
    """

    return isinstance(value, (bytes, bytearray, memoryview, numpy.ndarray))


def snapshot(value):
    """ Return the bytes for a whole-bitset snapshot. *value* is either
        bytes-like, already in store bit order, or a one-dimensional numpy
        array of bit values (booleans, or integers that are all 0 or 1).
    """

    if isinstance(value, (bytes, bytearray)):
        return bytes(value)

    if isinstance(value, memoryview):
        if value.ndim != 1 or value.itemsize != 1:
            raise errors.InvalidArgumentError('snapshot memoryview must be one-dimensional bytes')
        return value.tobytes()

    if isinstance(value, numpy.ndarray):
        return unpacked_to_bytes(value)

    raise errors.InvalidArgumentError('malformed snapshot: ' + repr(type(value)))


def unpacked_to_bytes(array):
    """ Pack a one-dimensional array of bit values into bytes.
    """

    if array.ndim != 1:
        raise errors.InvalidArgumentError('snapshot array must be one-dimensional, not shape %r' % (array.shape,))

    if array.dtype == numpy.bool_:
        pass
    elif numpy.issubdtype(array.dtype, numpy.integer):
        if numpy.any((array != 0) & (array != 1)):
            raise errors.InvalidArgumentError('snapshot array may only contain 0 and 1')
    else:
        raise errors.InvalidArgumentError('snapshot array must be boolean or integer, not ' + str(array.dtype))

    return numpy.packbits(array.astype(numpy.uint8)).tobytes()


def bytes_to_unpacked(data):
    """ Inverse of :func:`unpacked_to_bytes`: a boolean array with one
        element per bit of *data*.
    """

    raw = numpy.frombuffer(data, dtype=numpy.uint8)
    return numpy.unpackbits(raw).astype(bool)


def names(sources):
    """ Validate the operand names for a bitwise composition.
    """

    if len(sources) == 0:
        raise errors.InvalidArgumentError('at least one bitset name is required')

    for name in sources:
        if isinstance(name, str) and name != '':
            continue
        raise errors.InvalidArgumentError('bitset names must be non-empty strings, not ' + repr(name))

    return list(sources)


def flag(value):
    """ Interpret a 0/1 result from the store as a bool.
    """

    return bool(value)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
