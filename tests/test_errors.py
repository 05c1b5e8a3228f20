import rcoll

from rcoll import errors


def test_hierarchy():

    assert issubclass(errors.InvalidArgumentError, errors.RcollError)
    assert issubclass(errors.InvalidArgumentError, ValueError)
    assert issubclass(errors.WrongTypeError, TypeError)
    assert issubclass(errors.RemoteTimeoutError, errors.RemoteUnavailableError)
    assert issubclass(errors.RemoteError, errors.RcollError)


def test_known_errors():

    for exception in (errors.InvalidArgumentError('bad index'), errors.WrongTypeError('not a bitset')):
        described = errors.to_error(exception)
        assert 'debug' not in described

        rebuilt = errors.from_error(described)
        assert type(rebuilt) is type(exception)
        assert str(rebuilt) == str(exception)


def test_unknown_errors():

    described = errors.to_error(KeyError('missing'), 'traceback here')
    assert described['type'] == 'KeyError'
    assert described['debug'] == 'traceback here'

    rebuilt = errors.from_error(described)
    assert isinstance(rebuilt, errors.RemoteError)
    assert rebuilt.remote_type == 'KeyError'
    assert rebuilt.debug == 'traceback here'
    assert 'missing' in str(rebuilt)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
