import numpy
import pytest
import rcoll


def test_get_set_clear(store):

    bitset = store.bitset('get_set_clear')

    assert bitset.get(3) == False

    previous = bitset.set(3)
    assert previous == False
    assert bitset.get(3) == True

    # Setting a bit that is already set reports the old value.

    previous = bitset.set(3)
    assert previous == True

    previous = bitset.clear(3)
    assert previous == True
    assert bitset.get(3) == False

    previous = bitset.clear(3)
    assert previous == False


def test_set_value(store):

    bitset = store.bitset('set_value')

    # A bool in the second position is a value, not the end of a range.

    assert bitset.set(4, False) == False
    assert bitset.get(4) == False

    assert bitset.set(4, True) == False
    assert bitset.get(4) == True

    assert bitset.set(4, value=False) == True
    assert bitset.get(4) == False


def test_length(store):

    bitset = store.bitset('length')
    assert bitset.length() == 0

    bitset.set(5)
    assert bitset.length() == 6

    bitset.set(17)
    assert bitset.length() == 18

    bitset.clear(17)
    assert bitset.length() == 6

    bitset.clear(5)
    assert bitset.length() == 0


def test_cardinality(store):

    bitset = store.bitset('cardinality')
    assert bitset.cardinality() == 0
    assert bitset.size() == 0

    for index in (1, 3, 5, 100):
        bitset.set(index)

    assert bitset.cardinality() == 4
    assert bitset.size() == 4
    assert bitset.length() == 101


def test_range(store):

    bitset = store.bitset('range')

    assert bitset.set(0, 8, True) is None
    assert bitset.cardinality() == 8
    assert bitset.length() == 8

    assert bitset.clear(0, 8) is None
    assert bitset.cardinality() == 0

    bitset.set(10, 20)
    assert bitset.cardinality() == 10
    assert bitset.length() == 20
    assert bitset.get(9) == False
    assert bitset.get(10) == True
    assert bitset.get(19) == True
    assert bitset.get(20) == False

    bitset.set(12, 14, False)
    assert bitset.cardinality() == 8
    assert bitset.get(12) == False
    assert bitset.get(13) == False
    assert bitset.get(14) == True


def test_empty_range(store):

    bitset = store.bitset('empty_range')

    bitset.set(3, 3)
    bitset.clear(3, 3)

    assert bitset.cardinality() == 0
    assert bitset.is_exists() == False


def test_clear_everything(store):

    bitset = store.bitset('clear_everything')
    bitset.set(5)
    bitset.set(500)

    assert bitset.clear() is None
    assert bitset.is_exists() == False
    assert bitset.length() == 0
    assert bitset.tobytes() == b''


def test_or(store):

    first = store.bitset('or_first')
    second = store.bitset('or_second')

    # 1010 OR 0110 is 1110.

    first.set(0)
    first.set(2)
    second.set(1)
    second.set(2)

    assert first.or_('or_second') is None

    assert first.get(0) == True
    assert first.get(1) == True
    assert first.get(2) == True
    assert first.get(3) == False
    assert first.tobytes() == b'\xe0'

    # The other operand is untouched.

    assert second.tobytes() == b'\x60'


def test_or_several(store):

    first = store.bitset('or_several_a')
    store.bitset('or_several_b').set(9)
    store.bitset('or_several_c').set(30)

    first.set(0)
    first.or_('or_several_b', 'or_several_c')

    assert first.cardinality() == 3
    assert first.length() == 31


def test_and(store):

    first = store.bitset('and_first')
    second = store.bitset('and_second')

    first.set(0, 16)
    second.set(0)
    second.set(3)

    first.and_('and_second')

    # The shorter operand is zero-padded; the byte extent is the longer one.

    assert first.tobytes() == b'\x90\x00'
    assert first.length() == 4
    assert first.cardinality() == 2


def test_and_missing(store):

    bitset = store.bitset('and_missing')
    bitset.set(0, 8)

    bitset.and_('and_missing_nothing_here')

    assert bitset.cardinality() == 0
    assert bitset.length() == 0


def test_xor(store):

    first = store.bitset('xor_first')
    second = store.bitset('xor_second')

    first.set(0)
    first.set(1)
    second.set(1)
    second.set(2)

    first.xor('xor_second')

    assert first.get(0) == True
    assert first.get(1) == False
    assert first.get(2) == True
    assert first.cardinality() == 2


def test_not(store):

    bitset = store.bitset('not')

    # Complementing nothing is still nothing.

    bitset.not_()
    assert bitset.tobytes() == b''

    bitset.set(0)
    bitset.set(7)
    assert bitset.tobytes() == b'\x81'

    assert bitset.not_() is None
    assert bitset.tobytes() == b'\x7e'
    assert bitset.cardinality() == 6
    assert bitset.length() == 7


def test_snapshot_bytes(store):

    bitset = store.bitset('snapshot_bytes')
    bitset.set(100)

    assert bitset.set(b'\xa0\x01') is None

    assert bitset.get(0) == True
    assert bitset.get(1) == False
    assert bitset.get(2) == True
    assert bitset.get(15) == True
    assert bitset.get(100) == False
    assert bitset.length() == 16

    assert bitset.tobytes() == b'\xa0\x01'

    bitset.set(bytearray(b'\x80'))
    assert bitset.tobytes() == b'\x80'
    assert bitset.length() == 1


def test_snapshot_empty(store):

    bitset = store.bitset('snapshot_empty')
    bitset.set(3)

    bitset.set(b'')
    assert bitset.is_exists() == False
    assert bitset.tobytes() == b''


def test_snapshot_array(store):

    bitset = store.bitset('snapshot_array')

    bitset.set(numpy.array([True, False, True]))
    assert bitset.tobytes() == b'\xa0'

    bitset.set(numpy.array([0, 1, 1, 0, 0, 0, 0, 0, 1]))
    assert bitset.tobytes() == b'\x60\x80'
    assert bitset.cardinality() == 3

    unpacked = bitset.as_array()
    assert unpacked.dtype == bool
    assert len(unpacked) == 16
    assert list(numpy.flatnonzero(unpacked)) == [1, 2, 8]


def test_round_trip(store):

    source = store.bitset('round_trip_source')
    copy = store.bitset('round_trip_copy')

    for index in (0, 9, 33, 34, 70):
        source.set(index)

    copy.set(source.tobytes())

    for index in range(80):
        assert copy.get(index) == source.get(index)

    assert copy.length() == source.length()
    assert copy.cardinality() == source.cardinality()


def test_invalid_arguments(store):

    bitset = store.bitset('invalid_arguments')

    with pytest.raises(rcoll.errors.InvalidArgumentError):
        bitset.get(-1)

    with pytest.raises(rcoll.errors.InvalidArgumentError):
        bitset.set(-1)

    with pytest.raises(rcoll.errors.InvalidArgumentError):
        bitset.set(1.5)

    with pytest.raises(rcoll.errors.InvalidArgumentError):
        bitset.set('seven')

    with pytest.raises(rcoll.errors.InvalidArgumentError):
        bitset.set(5, 3)

    with pytest.raises(rcoll.errors.InvalidArgumentError):
        bitset.clear(None, 5)

    with pytest.raises(rcoll.errors.InvalidArgumentError):
        bitset.set(b'\x01', 3)

    with pytest.raises(rcoll.errors.InvalidArgumentError):
        bitset.set(numpy.array([2, 0]))

    with pytest.raises(rcoll.errors.InvalidArgumentError):
        bitset.set(numpy.zeros((2, 2), dtype=bool))

    with pytest.raises(rcoll.errors.InvalidArgumentError):
        bitset.or_()

    with pytest.raises(rcoll.errors.InvalidArgumentError):
        bitset.and_('')

    # The rejected calls above never reached the store.

    assert bitset.is_exists() == False


def test_invalid_argument_is_value_error(store):

    bitset = store.bitset('invalid_value_error')

    with pytest.raises(ValueError):
        bitset.get(-5)


def test_index_limit(store):

    bitset = store.bitset('index_limit')

    with pytest.raises(rcoll.errors.InvalidArgumentError):
        bitset.set(2 ** 40)

    with pytest.raises(rcoll.errors.InvalidArgumentError):
        bitset.get(2 ** 32)

    with pytest.raises(rcoll.errors.InvalidArgumentError):
        bitset.clear(0, 2 ** 32 + 1)

    assert bitset.is_exists() == False
    assert bitset.get(2 ** 32 - 1) == False


def test_wrong_type(store):

    store.multimap('wrong_type').put('key', 'value')
    bitset = store.bitset('wrong_type')

    with pytest.raises(rcoll.errors.WrongTypeError):
        bitset.get(0)

    with pytest.raises(rcoll.errors.WrongTypeError):
        bitset.set(b'\x01')


def test_delivery_styles_agree(store):

    bitset = store.bitset('styles')
    bitset.set(3)
    bitset.set(9)

    blocking = bitset.length()
    deferred = bitset.deferred.length().result(10)
    reactive = bitset.reactive.length().blocking_get(10)

    assert blocking == 10
    assert deferred == blocking
    assert reactive == blocking

    future = bitset.deferred.set(4)
    assert future.result(10) == False

    single = bitset.reactive.get(4)
    assert single.blocking_get(10) == True


def test_ordering(store):

    bitset = store.bitset('ordering')

    # Operations issued without waiting still execute in issue order.

    futures = [bitset.deferred.set(index) for index in range(200)]
    length = bitset.deferred.length()

    assert length.result(10) == 200

    for future in futures:
        assert future.result(10) == False


def test_deferred_failure(store):

    bitset = store.bitset('deferred_failure')

    future = bitset.deferred.get(-1)
    assert isinstance(future.exception(10), rcoll.errors.InvalidArgumentError)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
