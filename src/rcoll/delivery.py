""" Delivery styles for collection operations. Every operation on a
    collection core returns a :class:`concurrent.futures.Future`; the
    facades defined here present that same future in one of three styles:

    * :class:`Deferred` returns the future itself.
    * :class:`Reactive` returns a :class:`Single`, a one-element stream.
    * :class:`Sync` blocks until the future resolves and returns its value.

    The semantics never differ between styles, only the delivery.
"""

import asyncio
import concurrent.futures
import functools
import logging
import threading

from . import errors

logger = logging.getLogger(__name__)


def completed(value):
    """ Return a future already resolved with *value*.
    """

    future = concurrent.futures.Future()
    future.set_result(value)
    return future


def failed(exception):
    """ Return a future already failed with *exception*.
    """

    future = concurrent.futures.Future()
    future.set_exception(exception)
    return future


def then(future, transform):
    """ Return a new future resolving to ``transform(result)`` once *future*
        resolves. Failures pass through untouched, as do exceptions raised by
        *transform*. Cancelling the returned future detaches it; the original
        request still runs to completion.
    """

    chained = concurrent.futures.Future()

    def resolve(source):

        if chained.set_running_or_notify_cancel() == False:
            logger.debug('discarding completion for a cancelled operation')
            return

        if source.cancelled():
            chained.set_exception(concurrent.futures.CancelledError())
            return

        exception = source.exception()
        if exception is not None:
            chained.set_exception(exception)
            return

        try:
            result = transform(source.result())
        except Exception as e:
            chained.set_exception(e)
        else:
            chained.set_result(result)

    future.add_done_callback(resolve)
    return chained


def operation(method):
    """ Decorator marking a collection core method as an operation that the
        facades expose. Any :class:`rcoll.errors.RcollError` raised while the
        operation is being issued (argument validation, most commonly) is
        returned as a failed future, so that it reaches the caller through
        the same channel as everything else.
    """

    @functools.wraps(method)
    def issue(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except errors.RcollError as e:
            return failed(e)

    issue.operation = True
    return issue



class Subscription:
    """ Handle returned by :func:`Single.subscribe`. Exactly one of the
        subscriber's callbacks runs, exactly once, unless :func:`dispose` is
        called first.
    """

    def __init__(self, on_success=None, on_error=None):

        self.on_success = on_success
        self.on_error = on_error
        self.disposed = False
        self.delivered = False
        self._lock = threading.Lock()


    def dispose(self):
        """ Detach from the result. Whatever the operation did at the store
            stays done.
        """

        with self._lock:
            self.disposed = True


    def _deliver(self, future):

        with self._lock:
            if self.disposed == True or self.delivered == True:
                return
            self.delivered = True

        if future.cancelled():
            exception = concurrent.futures.CancelledError()
        else:
            exception = future.exception()

        try:
            if exception is None:
                if self.on_success is not None:
                    self.on_success(future.result())
            elif self.on_error is not None:
                self.on_error(exception)
            else:
                logger.error('unhandled error delivered to subscriber: %r', exception)
        except Exception:
            logger.exception('subscriber callback failed')


# end of class Subscription



class Single:
    """ A reactive stream of exactly one element: it terminates either by
        emitting the result of an operation, or with an error. The operation
        has already been issued by the time a :class:`Single` exists;
        subscribing only attaches to its result.

        A :class:`Single` can also be awaited from asyncio code, or waited
        on directly via :func:`blocking_get`.
    """

    def __init__(self, future):
        self._future = future


    def __await__(self):
        return asyncio.wrap_future(self._future).__await__()


    def __repr__(self):
        return 'delivery.Single: ' + repr(self._future)


    def blocking_get(self, timeout=None):
        """ Block until the element arrives and return it, or raise the error
            the stream terminated with.
        """

        return self._future.result(timeout)


    def map(self, transform):
        """ Return a new :class:`Single` emitting ``transform(element)``.
        """

        return Single(then(self._future, transform))


    def subscribe(self, on_success=None, on_error=None):
        """ Attach *on_success* (called with the element) and *on_error*
            (called with the exception). Callbacks run on whichever thread
            completes the operation, or immediately if it already has.
        """

        subscription = Subscription(on_success, on_error)
        self._future.add_done_callback(subscription._deliver)
        return subscription


# end of class Single



class Facade:
    """ Base class for the delivery styles. A facade exposes every method of
        *core* marked with :func:`operation`, and converts the future each
        one returns via :func:`_wrap`. Operations that return another core
        object (a live view, for instance) get a facade of the same style.
    """

    def __init__(self, core, timeout=None):
        self._core = core
        self._timeout = timeout


    def __dir__(self):
        names = set(object.__dir__(self))
        for name in dir(type(self._core)):
            if getattr(getattr(self._core, name, None), 'operation', False):
                names.add(name)
        return sorted(names)


    def __getattr__(self, name):

        if name.startswith('_'):
            raise AttributeError(name)

        method = getattr(self._core, name)

        if getattr(method, 'operation', False):
            pass
        else:
            return method

        @functools.wraps(method)
        def deliver(*args, **kwargs):
            result = method(*args, **kwargs)

            if isinstance(result, concurrent.futures.Future):
                return self._wrap(result)

            return self._adapt(result)

        return deliver


    def __repr__(self):
        return "%s(%r)" % (type(self).__name__, self._core)


    def _adapt(self, core):
        return type(self)(core, self._timeout)


    def _wrap(self, future):
        raise NotImplementedError('subclasses must implement _wrap()')


    @property
    def core(self):
        return self._core


    @property
    def deferred(self):
        """ The same object, delivering results as futures.
        """

        return Deferred(self._core, self._timeout)


    @property
    def reactive(self):
        """ The same object, delivering results as :class:`Single` streams.
        """

        return Reactive(self._core, self._timeout)


    @property
    def sync(self):
        """ The same object, blocking until each result arrives.
        """

        return Sync(self._core, self._timeout)


# end of class Facade



class Deferred(Facade):

    def _wrap(self, future):
        return future


class Reactive(Facade):

    def _wrap(self, future):
        return Single(future)


class Sync(Facade):
    """ Blocking delivery. The *timeout*, if any, bounds how long a single
        call waits; the store connection has its own timeouts regardless.
    """

    def _adapt(self, core):
        if getattr(core, 'live_view', False):
            return SyncView(core, self._timeout)
        return Sync(core, self._timeout)

    def _wrap(self, future):
        return future.result(self._timeout)


class SyncView(Sync):
    """ Blocking delivery for a live view, which additionally supports
        :func:`len`, ``in``, and iteration. Every one of those issues a
        fresh request; iteration walks a snapshot taken when it starts.
    """

    def __contains__(self, value):
        return self.contains(value)

    def __iter__(self):
        return iter(self.read_all())

    def __len__(self):
        return self.size()


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
