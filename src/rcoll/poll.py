""" Periodic background calls. The store daemon uses this to sweep expired
    keys out of its keyspace; anything else that needs a steady cadence can
    use it the same way.

    Pollers are keyed on the identity of the callable handed to
    :func:`start`. A bound method is a new object every time it is looked up,
    so hold on to the one passed to :func:`start` and pass that same object
    to :func:`period` and :func:`stop`.
"""

import logging
import threading
import time

from . import weakref

logger = logging.getLogger(__name__)

active = dict()
active_lock = threading.Lock()


def period(method):
    """ Return the polling period for *method*, or None if it is not being
        polled.
    """

    try:
        poller = active[id(method)]
    except KeyError:
        return None

    return poller.interval



def start(method, period):
    """ Call *method* every *period* seconds from a dedicated background
        thread. A *period* of None or zero is the same as calling
        :func:`stop`. Calling :func:`start` again for a method already being
        polled changes its period; a method never has more than one poller.

        Only a weak reference to *method* is retained. Polling ends on its
        own when the method (or the instance it is bound to) goes away.
    """

    if period is None or period == 0:
        stop(method)
        return

    period = float(period)

    if period < 0:
        raise ValueError('polling period must be positive, not ' + repr(period))

    with active_lock:
        try:
            poller = active[id(method)]
        except KeyError:
            poller = None

        if poller is None or poller.shutdown == True:
            poller = _Poller(method, period)
            active[id(method)] = poller
            poller.thread.start()
        else:
            poller.retime(period)



def stop(method):
    """ Stop calling *method*. Stopping a method that is not being polled
        does nothing.
    """

    with active_lock:
        try:
            poller = active.pop(id(method))
        except KeyError:
            return

    poller.stop()



class _Poller:
    """ One background thread calling one method. The schedule is anchored
        to when the current period took effect, so the time a call takes
        does not push later calls back.
    """

    def __init__(self, method, interval):

        self.method_id = id(method)
        self.reference = weakref.ref(method)
        self.interval = interval
        self.shutdown = False

        self.wakeup = threading.Event()
        self.thread = threading.Thread(target=self.run, name='rcoll-poll')
        self.thread.daemon = True


    def retime(self, interval):
        self.interval = interval
        self.wakeup.set()


    def run(self):

        anchor = time.monotonic()
        interval = self.interval
        calls = 0

        while self.shutdown == False:

            if self.wakeup.is_set():
                self.wakeup.clear()
                anchor = time.monotonic()
                interval = self.interval
                calls = 0

            method = self.reference()

            if method is None:
                logger.debug('polled method went away, poller exiting')
                self.shutdown = True
                break

            try:
                method()
            except Exception:
                logger.exception('polled call to %r failed', method)

            del method
            calls += 1

            delay = anchor + calls * interval - time.monotonic()

            if delay > 0:
                self.wakeup.wait(delay)

        with active_lock:
            if active.get(self.method_id) is self:
                del active[self.method_id]


    def stop(self):
        self.shutdown = True
        self.wakeup.set()


# end of class _Poller


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
