import asyncio
import concurrent.futures
import pytest
import rcoll
import threading

from rcoll import delivery


class Recorder(rcoll.executor.Executor):
    """ Executor that never talks to a store. Every command is recorded and
        answered with a future the test resolves by hand.
    """

    def __init__(self):
        self.calls = list()
        self.futures = list()

    def execute(self, command, key, args=(), bulk=None):
        self.calls.append((command, key, list(args), bulk))
        future = concurrent.futures.Future()
        self.futures.append(future)
        return future


def test_completed_and_failed():

    future = delivery.completed(5)
    assert future.result() == 5

    error = rcoll.errors.RemoteError('boom')
    future = delivery.failed(error)
    assert future.exception() is error


def test_then():

    source = concurrent.futures.Future()
    chained = delivery.then(source, lambda value: value * 2)

    assert chained.done() == False
    source.set_result(21)
    assert chained.result(1) == 42


def test_then_failures():

    source = delivery.failed(rcoll.errors.WrongTypeError('nope'))
    chained = delivery.then(source, lambda value: value)

    with pytest.raises(rcoll.errors.WrongTypeError):
        chained.result(1)

    def broken(value):
        raise KeyError(value)

    chained = delivery.then(delivery.completed('key'), broken)

    with pytest.raises(KeyError):
        chained.result(1)


def test_then_cancelled():

    source = concurrent.futures.Future()
    chained = delivery.then(source, lambda value: value)

    assert chained.cancel() == True

    # Completing the original afterwards goes nowhere, quietly.

    source.set_result(1)
    assert chained.cancelled() == True


def test_validation_never_reaches_executor():

    recorder = Recorder()
    bitset = rcoll.BitSet(recorder, 'validated')

    future = bitset.get(-1)
    assert isinstance(future.exception(1), rcoll.errors.InvalidArgumentError)

    future = bitset.or_()
    assert isinstance(future.exception(1), rcoll.errors.InvalidArgumentError)

    multimap = rcoll.SetMultimap(recorder, 'validated')
    future = multimap.put([], 1)
    assert isinstance(future.exception(1), rcoll.errors.InvalidArgumentError)

    assert recorder.calls == []


def test_one_primitive_per_operation():

    recorder = Recorder()
    bitset = rcoll.BitSet(recorder, 'primitives')

    bitset.set(3)
    bitset.set(0, 8, False)
    bitset.set(b'\x01')
    bitset.clear()
    bitset.xor('other', 'another')

    commands = [call[0] for call in recorder.calls]
    assert commands == ['SETBIT', 'FILLBITS', 'SETBYTES', 'DEL', 'BITOP']

    assert recorder.calls[0] == ('SETBIT', 'primitives', [3, 1], None)
    assert recorder.calls[1] == ('FILLBITS', 'primitives', [0, 8, 0], None)
    assert recorder.calls[2] == ('SETBYTES', 'primitives', [], b'\x01')
    assert recorder.calls[4] == ('BITOP', 'primitives', ['XOR', 'other', 'another'], None)


def test_live_view_makes_no_request():

    recorder = Recorder()
    multimap = rcoll.SetMultimap(recorder, 'view')

    view = delivery.Sync(multimap).get('key')
    assert isinstance(view, delivery.SyncView)
    assert recorder.calls == []


def test_deferred():

    recorder = Recorder()
    bitset = delivery.Deferred(rcoll.BitSet(recorder, 'deferred'))

    future = bitset.length()
    assert isinstance(future, concurrent.futures.Future)
    assert future.done() == False

    recorder.futures[0].set_result(12)
    assert future.result(1) == 12


def test_reactive_subscribe():

    recorder = Recorder()
    bitset = delivery.Reactive(rcoll.BitSet(recorder, 'reactive'))

    single = bitset.get(7)
    assert isinstance(single, delivery.Single)

    received = list()
    errors = list()
    single.subscribe(received.append, errors.append)

    assert received == []

    recorder.futures[0].set_result(1)

    assert received == [True]
    assert errors == []

    # Subscribing after completion delivers immediately.

    late = list()
    single.subscribe(late.append)
    assert late == [True]


def test_reactive_error():

    recorder = Recorder()
    bitset = delivery.Reactive(rcoll.BitSet(recorder, 'reactive_error'))

    received = list()
    errors = list()

    bitset.cardinality().subscribe(received.append, errors.append)

    failure = rcoll.errors.RemoteTimeoutError('too slow')
    recorder.futures[0].set_exception(failure)

    assert received == []
    assert errors == [failure]


def test_reactive_dispose():

    recorder = Recorder()
    bitset = delivery.Reactive(rcoll.BitSet(recorder, 'reactive_dispose'))

    received = list()
    subscription = bitset.length().subscribe(received.append)
    subscription.dispose()

    recorder.futures[0].set_result(3)
    assert received == []


def test_reactive_callback_failure():

    single = delivery.Single(delivery.completed(1))

    def broken(value):
        raise RuntimeError('subscriber bug')

    # The failure is logged, not raised into whoever completed the future.

    subscription = single.subscribe(broken)
    assert subscription.delivered == True


def test_single_map():

    single = delivery.Single(delivery.completed(4))
    assert single.map(lambda value: value + 1).blocking_get(1) == 5


def test_single_await():

    recorder = Recorder()
    bitset = delivery.Reactive(rcoll.BitSet(recorder, 'awaited'))

    async def main():
        single = bitset.length()
        threading.Timer(0.05, recorder.futures[0].set_result, (8,)).start()
        return await single

    assert asyncio.run(main()) == 8


def test_sync_timeout():

    recorder = Recorder()
    bitset = delivery.Sync(rcoll.BitSet(recorder, 'timeout'), timeout=0.05)

    with pytest.raises(concurrent.futures.TimeoutError):
        bitset.length()


def test_facade_switching():

    recorder = Recorder()
    core = rcoll.BitSet(recorder, 'switching')
    facade = delivery.Sync(core)

    assert facade.core is core
    assert isinstance(facade.deferred, delivery.Deferred)
    assert isinstance(facade.reactive, delivery.Reactive)
    assert isinstance(facade.deferred.sync, delivery.Sync)
    assert facade.deferred.core is core

    names = dir(facade)
    assert 'set' in names
    assert 'not_' in names
    assert 'expire' in names

    with pytest.raises(AttributeError):
        facade._fill


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
