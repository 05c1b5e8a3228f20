""" Local configuration: where rcoll keeps its files, and the settings used
    by clients and the store daemon. Settings come from built-in defaults,
    then ``rcoll.json`` in the :func:`directory`, then environment variables.
"""

import logging
import os
import threading

from . import json

logger = logging.getLogger(__name__)

_cache = dict()
_cache_lock = threading.Lock()

filename = 'rcoll.json'

defaults = dict()
defaults['address'] = 'localhost'
defaults['port'] = 10179
defaults['timeout'] = 60.0
defaults['ack_timeout'] = 0.5
defaults['sweep'] = 1.0
defaults['log_level'] = 'INFO'

# Environment variables override anything loaded from disk. The second
# element is the conversion applied to the raw string.

environment = dict()
environment['address'] = ('RCOLL_ADDRESS', str)
environment['port'] = ('RCOLL_PORT', int)
environment['timeout'] = ('RCOLL_TIMEOUT', float)
environment['ack_timeout'] = ('RCOLL_ACK_TIMEOUT', float)


class Configuration:
    """ A convenience class to represent rcoll settings. To first order an
        instance acts like a dictionary; every key in :data:`defaults` is
        always present.
    """

    def __init__(self, home=None):

        if home is None:
            home = directory()

        self.home = home
        self.filename = os.path.join(home, filename)
        self._settings = dict(defaults)

        self.load()
        self._apply_environment()


    def __contains__(self, key):
        return key in self._settings


    def __getitem__(self, key):
        return self._settings[key]


    def __setitem__(self, key, value):

        if key in defaults:
            pass
        else:
            raise KeyError('unknown setting: ' + repr(key))

        self._settings[key] = value


    def __len__(self):
        return len(self._settings)


    def __repr__(self):
        return 'config.Configuration: ' + repr(self._settings)


    def _apply_environment(self):

        for key, (variable, convert) in environment.items():
            try:
                raw = os.environ[variable]
            except KeyError:
                continue

            try:
                self._settings[key] = convert(raw)
            except ValueError:
                raise ValueError("invalid value for %s: %r" % (variable, raw))


    def get(self, key, default=None):
        return self._settings.get(key, default)


    def keys(self):
        return self._settings.keys()


    def load(self):
        """ Load settings from disk, if the file exists. Unknown keys in the
            file are ignored with a warning.
        """

        try:
            raw = open(self.filename, 'rb').read()
        except FileNotFoundError:
            return

        if len(raw) == 0:
            return

        loaded = json.loads(raw)

        if isinstance(loaded, dict):
            pass
        else:
            raise ValueError('expected a JSON object in ' + self.filename)

        for key, value in loaded.items():
            if key in defaults:
                self._settings[key] = value
            else:
                logger.warning("ignoring unknown setting %r in %s", key, self.filename)


    def save(self):
        """ Write the current settings to disk.
        """

        if os.path.exists(self.home):
            if os.access(self.home, os.W_OK) != True:
                raise OSError('cannot write to configuration directory: ' + self.home)
        else:
            os.makedirs(self.home, mode=0o775)

        file = open(self.filename, 'wb')
        file.write(json.dumps(self._settings))
        file.close()


# end of class Configuration



def directory(default=None):
    """ Return the directory location where we should be loading and/or saving
        configuration files. This defaults to ``$HOME/.rcoll``, but can be
        overridden by calling this method with a valid path, or by setting
        the ``RCOLL_HOME`` environment variable. Note that changes to the
        environment variable will be ignored unless it is set prior to the
        first invocation of this method.
    """

    if default is not None:
        default = str(default)
        default = os.path.expandvars(default)

        if os.path.isabs(default):
            pass
        else:
            raise ValueError('the default directory must be an absolute path')

        if os.path.exists(default):
            pass
        else:
            os.makedirs(default, mode=0o775)

        os.environ['RCOLL_HOME'] = default
        directory.found = default


    found = directory.found

    if found is not None:
        return found

    try:
        found = os.environ['RCOLL_HOME']
    except KeyError:
        pass
    else:
        directory.found = found
        return found

    try:
        home = os.environ['HOME']
    except KeyError:
        raise RuntimeError('RCOLL_HOME and HOME environment variables not set, cannot determine rcoll configuration directory')

    found = os.path.join(home, '.rcoll')

    directory.found = found
    return found

directory.found = None



def get():
    """ Return the cached :class:`Configuration` for the current
        :func:`directory`, loading it on first use.
    """

    home = directory()

    with _cache_lock:
        try:
            configuration = _cache[home]
        except KeyError:
            configuration = Configuration(home)
            _cache[home] = configuration

    return configuration



def reset():
    """ Discard any cached :class:`Configuration` instances, so that the next
        call to :func:`get` reloads from disk and the environment.
    """

    with _cache_lock:
        _cache.clear()


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
