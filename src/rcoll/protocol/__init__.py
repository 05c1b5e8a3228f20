from . import message
from . import request

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
