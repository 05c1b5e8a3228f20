""" Python implementation of rcoll: distributed collections whose state
    lives in a shared key/value store. This includes client functions, such
    as the :class:`BitSet` and :class:`SetMultimap` collections, and daemon
    functions, such as serving a store to those clients.
"""

# Utility components.

from . import json
from . import poll
from . import weakref

# Submodules used by multiple other components.

from . import errors
from . import config
from . import protocol
home = config.directory

# Primary public-facing interfaces.

from . import begin
get = begin.get

from .bitset import BitSet
from .multimap import SetMultimap, ValuesView
from .delivery import Single
from .executor import LocalExecutor, RemoteExecutor
from .store import Store
from .daemon import Daemon

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
