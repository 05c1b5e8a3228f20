import pytest
import rcoll


@pytest.fixture(scope="session", autouse=True)
def rcoll_home(tmp_path_factory):
    """ Keep configuration and port cache files out of the real home
        directory for the duration of the test session.
    """

    home = tmp_path_factory.mktemp('rcoll_home')
    rcoll.config.directory(str(home))
    rcoll.config.reset()

    yield home

    rcoll.config.reset()


@pytest.fixture(scope="session")
def run_daemon(rcoll_home):

    daemon = rcoll.Daemon('unittest', hostname='127.0.0.1', interface='127.0.0.1')

    yield daemon

    daemon.close()


@pytest.fixture
def local_store():

    store = rcoll.Store(executor=rcoll.LocalExecutor())

    yield store

    store.close()


@pytest.fixture
def remote_store(run_daemon):

    store = rcoll.Store('127.0.0.1', run_daemon.port, timeout=10)

    yield store

    run_daemon.keyspace.clear()


@pytest.fixture(params=['local', 'remote'])
def store(request):
    """ The same tests run against an in-process keyspace and against a
        store daemon on the loopback interface; results must not differ.
    """

    if request.param == 'local':
        return request.getfixturevalue('local_store')
    else:
        return request.getfixturevalue('remote_store')


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
