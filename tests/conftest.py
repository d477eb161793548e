import asyncio
import json
import logging
import re
import time
from unittest.mock import AsyncMock, MagicMock

import aiohttp.web
import aresponses as aresponses_module
import pytest

from podcrud._cogs.clients import auth
from podcrud._cogs.clients.auth import APIContext
from podcrud._cogs.configs.configuration import ClientSettings
from podcrud._cogs.structs.credentials import ConnectionInfo, Vault, VaultKey
from podcrud._cogs.structs.references import PODS


def pytest_configure(config):
    config.addinivalue_line('markers', "e2e: end-to-end tests against a real cluster.")


def pytest_addoption(parser):
    parser.addoption("--only-e2e", action="store_true", help="Execute end-to-end tests only.")
    parser.addoption("--with-e2e", action="store_true", help="Include end-to-end tests.")


def pytest_collection_modifyitems(config, items):

    # Put all e2e tests to the end, as they are assumed to be slow.
    def _is_e2e(item):
        path = item.location[0]
        return path.startswith('tests/e2e/')
    etc = [item for item in items if not _is_e2e(item)]
    e2e = [item for item in items if _is_e2e(item)]

    # Mark all e2e tests, no matter how they were detected. Just for filtering.
    mark_e2e = pytest.mark.e2e
    for item in e2e:
        item.add_marker(mark_e2e)

    # The e2e tests require a cluster. Skip them by default,
    # so that the contributors can run pytest without initial tweaks.
    mark_skip = pytest.mark.skip(reason="E2E tests are not enabled. "
                                        "Use --with-e2e/--only-e2e to enable.")
    if not config.getoption('--with-e2e') and not config.getoption('--only-e2e'):
        for item in e2e:
            item.add_marker(mark_skip)

    # Minify the test-plan if only e2e are requested (all other should be skipped).
    if config.getoption('--only-e2e'):
        items[:] = e2e
    else:
        items[:] = etc + e2e


@pytest.fixture()
def resource():
    """ The resource used in the tests. Usually mocked, so it does not matter. """
    return PODS


@pytest.fixture()
def namespace():
    return 'ns'


@pytest.fixture()
def settings():
    settings = ClientSettings()
    settings.networking.error_backoffs = []  # no retries unless explicitly tested.
    settings.watching.reconnect_backoff = 0
    return settings


@pytest.fixture()
def logger():
    return logging.getLogger('podcrud.test')


#
# Mocks for Kubernetes API clients. Reasons:
# 1. We do not test the K8s API, we test the layers on top of it,
#    so everything remote should be mocked and assumed to be functional.
# 2. No external calls must be made under any circumstances.
#    The unit-tests must be fully isolated from the environment.
#

@pytest.fixture()
async def aresponses():
    """ A fake API server, which intercepts all the requests of aiohttp. """
    async with aresponses_module.ResponsesMockServer(loop=asyncio.get_running_loop()) as server:
        yield server


@pytest.fixture()
def hostname():
    """ A fake hostname to be used in all aiohttp/aresponses tests. """
    return 'fake-host'


@pytest.fixture()
def fake_vault(hostname):
    """
    A vault with one fake connection info, set as the walkthrough's vault.

    The API calls take their credentials from the context variable, which is
    normally set by `walkthrough()`; here, the tests call the API directly.
    """
    key = VaultKey('fixture')
    info = ConnectionInfo(server=f'https://{hostname}', default_namespace='fixture-ns')
    vault = Vault({key: info})
    token = auth.vault_var.set(vault)
    try:
        yield vault
    finally:
        auth.vault_var.reset(token)


@pytest.fixture()
async def enforced_context(fake_vault, mocker):
    """
    One and the same API context for all the API calls of a test.

    Some tests patch the session's methods to raise client-side errors
    (`aresponses` can only simulate the server-side ones), so all calls
    must go through that patched session, not through a new one.
    """
    _, item = fake_vault.select()
    context = APIContext(item.info)
    mocker.patch(f'{APIContext.__module__}.{APIContext.__name__}', return_value=context)
    async with context.session:
        yield context


@pytest.fixture()
async def enforced_session(enforced_context: APIContext):
    yield enforced_context.session


# `fake_vault` provides the credentials; `enforced_session` closes the session after the test.
@pytest.fixture()
def resp_mocker(fake_vault, enforced_session, aresponses):
    """
    Make spying server-side handlers for `aresponses`.

    The handler returns what the mock's ``return_value``/``side_effect`` say,
    and remembers the requests, so that the tests can assert on what was sent:
    the request's JSON (or text) payload is stored as ``request.data``::

        mock = resp_mocker(return_value=aiohttp.web.json_response({}))
        aresponses.add(hostname, '/api/v1/pods', 'get', mock)
        ...
        assert mock.call_count == 1
        assert mock.call_args_list[0][0][0].query['fieldSelector'] == 'metadata.name=blog'

    For several requests to the same mock, add one route per request:
    with `repeat=N`, aresponses serves the repeated requests by copies of the mock.
    """
    def resp_maker(*args, **kwargs):
        response_mock = MagicMock(*args, **kwargs)

        async def handler(request):
            # The payload can be read only while the request is being handled.
            try:
                request.data = await request.json()
            except json.JSONDecodeError:
                request.data = await request.text()
            return response_mock()

        return AsyncMock(side_effect=handler)
    return resp_maker


@pytest.fixture()
def stream(fake_vault, resp_mocker, aresponses, hostname, resource, namespace):
    """ A mock for the list & watch-streams as if returned by K8s API. """

    def feed(*args, items=(), resource_version='0'):
        """
        Respond to the listing with the items, then to the watch-requests with the events.

        Every positional argument is one watch-request: either a list of events,
        or a pre-made response. The reconnects consume them one by one.
        """
        list_data = {'kind': 'PodList', 'apiVersion': 'v1',
                     'items': list(items), 'metadata': {'resourceVersion': resource_version}}
        list_resp = aiohttp.web.json_response(list_data)
        list_url = resource.get_url(namespace=namespace)
        list_mock = resp_mocker(return_value=list_resp)

        # Note: `aresponses` excludes a response once it is matched (side-effect-like),
        # and matches them in the order of addition. The listing goes first.
        aresponses.add(hostname, list_url, 'get', list_mock)

        watch_mocks = []
        for arg in args:
            # Prepare the stream response pre-rendered (for simplicity, no actual streaming).
            if isinstance(arg, (list, tuple)):
                stream_text = '\n'.join(json.dumps(event) for event in arg)
                stream_resp = aresponses.Response(text=stream_text)
            else:
                stream_resp = arg
            watch_mock = resp_mocker(return_value=stream_resp)
            aresponses.add(hostname, list_url, 'get', watch_mock)
            watch_mocks.append(watch_mock)

        return list_mock, watch_mocks

    def gone():
        """ An event that stops the stream from reconnecting: the resource version is gone. """
        return {'type': 'ERROR', 'object': {'code': 410}}

    return MagicMock(spec_set=['feed', 'gone'], feed=feed, gone=gone)


#
# Helpers for the timing & logging checks.
#

@pytest.fixture()
def timer():
    return Timer()


class Timer:
    """
    Measure the duration of a code block, e.g. to assert on the waiting.

    Usage::

        with timer:
            await something()
        assert timer.seconds < 1.0
    """

    def __init__(self) -> None:
        self.started: float | None = None
        self.finished: float | None = None

    @property
    def seconds(self) -> float | None:
        if self.started is None:
            return None
        return (self.finished if self.finished is not None else time.perf_counter()) - self.started

    def __repr__(self) -> str:
        return f'<Timer: {self.seconds}s>'

    def __enter__(self) -> "Timer":
        self.started = time.perf_counter()
        self.finished = None
        return self

    def __exit__(self, *_) -> None:
        self.finished = time.perf_counter()


@pytest.fixture()
def assert_logs(caplog):
    """
    Assert that the log messages match the patterns in the given order.

    Other messages in between are ignored, unless ``strict=True``.
    The prohibited patterns must not match any message at all.
    """
    caplog.set_level(logging.DEBUG)

    def assert_logs_fn(patterns, prohibited=(), strict=False):
        __traceback_hide__ = True
        remaining = list(patterns)
        for message in caplog.messages:
            for pattern in prohibited:
                if re.search(pattern, message):
                    raise AssertionError(f"Prohibited log pattern found: {message!r} ~ {pattern!r}")

            matched = [idx for idx, pattern in enumerate(remaining) if re.search(pattern, message)]
            if matched and matched[0] == 0:
                remaining.pop(0)
            elif matched:
                raise AssertionError(f"Few patterns were skipped: {remaining[:matched[0]]!r}")
            elif strict:
                raise AssertionError(f"Unexpected log message: {message!r}")

        if remaining:
            raise AssertionError(f"Few patterns were missed: {remaining!r}")
    return assert_logs_fn
