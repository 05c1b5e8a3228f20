""" Base classes shared by the collection cores. A :class:`RemoteObject` is
    a named handle on something held by the store; it keeps no state of its
    own beyond the name and the executor used to reach the store.
    :class:`Expirable` adds existence, deletion and time-to-live management,
    which every top-level collection has.
"""

import math
import numbers

from . import errors
from .delivery import operation


class RemoteObject:

    live_view = False

    def __init__(self, executor, name):

        if isinstance(name, str) and name != '':
            pass
        else:
            raise errors.InvalidArgumentError('the name must be a non-empty string, not ' + repr(name))

        self.executor = executor
        self.name = name


    def __repr__(self):
        return "%s(%r)" % (type(self).__name__, self.name)


    def _execute(self, command, *args, bulk=None):
        return self.executor.execute(command, self.name, args, bulk)


# end of class RemoteObject



class Expirable(RemoteObject):

    @operation
    def clear_expire(self):
        """ Remove any time-to-live. Resolves to True if one was removed.
        """

        return self._execute('PERSIST')


    @operation
    def delete(self):
        """ Remove the key entirely. Resolves to True if it existed.
        """

        return self._execute('DEL')


    @operation
    def expire(self, seconds):
        """ Expire the key *seconds* from now. Resolves to True if the key
            exists and the time-to-live was set.
        """

        seconds = _duration(seconds)
        return self._execute('PEXPIRE', int(seconds * 1000))


    @operation
    def expire_at(self, timestamp):
        """ Expire the key at *timestamp*, a UNIX epoch in seconds.
        """

        timestamp = _duration(timestamp)
        return self._execute('PEXPIREAT', int(timestamp * 1000))


    @operation
    def is_exists(self):
        return self._execute('EXISTS')


    @operation
    def remain_time_to_live(self):
        """ Remaining time-to-live in milliseconds; -1 if the key never
            expires, -2 if it does not exist.
        """

        return self._execute('PTTL')


# end of class Expirable



def _duration(value):

    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise errors.InvalidArgumentError('expected a number of seconds, not ' + repr(value))

    if math.isfinite(value) == False:
        raise errors.InvalidArgumentError('expected a finite number of seconds, not ' + repr(value))

    if value < 0:
        raise errors.InvalidArgumentError('expected a non-negative number of seconds, not ' + repr(value))

    return value


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
