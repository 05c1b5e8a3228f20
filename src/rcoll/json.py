""" Wrapper module to select the most performant available library to handle
    the equivalent of :func:`json.loads` and :func:`json.dumps`. The request
    payloads exchanged with a store daemon are always encoded through here.
"""

# msgspec is an optional accelerator; orjson is a hard requirement. Both
# return bytes from their encoders, which is what the wire protocol expects.

msgspec = None

try:
    import msgspec
except ImportError:
    pass

import orjson


if msgspec is not None:
    encoder = msgspec.json.Encoder()
    decoder = msgspec.json.Decoder()
    dumps = encoder.encode
    loads = decoder.decode
else:
    dumps = orjson.dumps
    loads = orjson.loads


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
