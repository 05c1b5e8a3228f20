""" Weak references that also work for bound methods, which is what
    :mod:`rcoll.poll` is usually handed.
"""

import inspect
import weakref


def ref(thing):
    """ Return a weak reference to *thing*. A bound method gets a
        :class:`weakref.WeakMethod`, which lives as long as the instance it
        is bound to; a plain :func:`weakref.ref` would die with the temporary
        method object immediately.
    """

    if inspect.ismethod(thing):
        return weakref.WeakMethod(thing)

    return weakref.ref(thing)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
