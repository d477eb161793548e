import asyncio

import aiohttp.web
import pytest

from podcrud._cogs.clients.api import request
from podcrud._cogs.clients.errors import APIError

pytestmark = pytest.mark.usefixtures('fake_vault', 'enforced_session')


@pytest.fixture(autouse=True)
def sleep(mocker):
    """Do not let it actually sleep, even if it is a 0-sleep."""
    return mocker.patch('podcrud._cogs.clients.api.asyncio.sleep')


@pytest.fixture()
def request_fn(mocker):
    return mocker.patch('aiohttp.ClientSession.request')


def make_responses(*statuses):
    return [aiohttp.web.json_response({'kind': 'Status', 'code': status}, status=status)
            for status in statuses]


async def test_regular_errors_escalate_without_retries(
        assert_logs, settings, logger, request_fn, sleep):
    request_fn.side_effect = Exception("boo")

    settings.networking.error_backoffs = [1, 2, 3]
    with pytest.raises(Exception) as err:
        await request('get', '/url', settings=settings, logger=logger)

    assert str(err.value) == "boo"
    assert request_fn.call_count == 1
    assert not sleep.called
    assert_logs([], prohibited=["attempt", "escalating", "retry"])


# All client errors except explicitly retryable (403, 429), and except 401 (re-authentication).
@pytest.mark.parametrize('status', [400, 404, 409, 422])
async def test_permanent_errors_escalate_without_retries(
        assert_logs, resp_mocker, aresponses, hostname, settings, logger, status):
    mock = resp_mocker(side_effect=make_responses(status))
    aresponses.add(hostname, '/url', 'get', mock)

    settings.networking.error_backoffs = [1, 2, 3]
    with pytest.raises(APIError) as err:
        await request('get', '/url', settings=settings, logger=logger)

    assert err.value.status == status
    assert err.value.code == status
    assert mock.call_count == 1
    assert_logs([], prohibited=["attempt", "escalating", "retry"])


# All server errors, certain client errors (403, 429).
@pytest.mark.parametrize('status', [403, 429, 500, 503])
async def test_temporary_errors_escalate_with_retries(
        assert_logs, resp_mocker, aresponses, hostname, settings, logger, status, sleep):
    mock = resp_mocker(side_effect=make_responses(status, status, status, status))
    for _ in range(4):
        aresponses.add(hostname, '/url', 'get', mock)

    settings.networking.error_backoffs = [0, 1, 2]
    with pytest.raises(APIError) as err:
        await request('get', '/url', settings=settings, logger=logger)

    assert err.value.status == status
    assert mock.call_count == 4
    assert sleep.call_args_list == [((0,),), ((1,),), ((2,),)]
    assert_logs([
        "attempt #1/4 failed; will retry",
        "attempt #2/4 failed; will retry",
        "attempt #3/4 failed; will retry",
        "attempt #4/4 failed; escalating",
    ])


async def test_connection_errors_escalate_with_retries(
        assert_logs, settings, logger, request_fn):
    request_fn.side_effect = aiohttp.ClientConnectionError()

    settings.networking.error_backoffs = [0, 0, 0]
    with pytest.raises(aiohttp.ClientConnectionError):
        await request('get', '/url', settings=settings, logger=logger)

    assert request_fn.call_count == 4
    assert_logs([
        "attempt #1/4 failed; will retry",
        "attempt #2/4 failed; will retry",
        "attempt #3/4 failed; will retry",
        "attempt #4/4 failed; escalating",
    ])


async def test_timeout_errors_escalate_with_retries(
        assert_logs, settings, logger, request_fn):
    request_fn.side_effect = asyncio.TimeoutError()

    settings.networking.error_backoffs = [0, 0, 0]
    with pytest.raises(asyncio.TimeoutError):
        await request('get', '/url', settings=settings, logger=logger)

    assert request_fn.call_count == 4
    assert_logs([
        "attempt #1/4 failed; will retry",
        "attempt #2/4 failed; will retry",
        "attempt #3/4 failed; will retry",
        "attempt #4/4 failed; escalating",
    ])


async def test_retried_until_succeeded(
        assert_logs, resp_mocker, aresponses, hostname, settings, logger):
    responses = make_responses(502, 502) + [aiohttp.web.json_response({})]
    mock = resp_mocker(side_effect=responses)
    for _ in range(3):
        aresponses.add(hostname, '/url', 'get', mock)

    settings.networking.error_backoffs = [0, 0, 0]
    response = await request('get', '/url', settings=settings, logger=logger)
    response.close()

    assert mock.call_count == 3  # 2 failures, 1 success; the 4th one is not requested
    assert_logs([
        "attempt #1/4 failed; will retry",
        "attempt #2/4 failed; will retry",
        "attempt #3/4 succeeded",
    ], prohibited=[
        "attempt #4/4",
    ])


@pytest.mark.parametrize('backoffs', [None, []])
async def test_no_retries_without_backoffs(
        assert_logs, settings, logger, request_fn, backoffs):
    request_fn.side_effect = aiohttp.ClientConnectionError()

    settings.networking.error_backoffs = backoffs
    with pytest.raises(aiohttp.ClientConnectionError):
        await request('get', '/url', settings=settings, logger=logger)

    assert request_fn.call_count == 1
    assert_logs(["attempt #1/1 failed; escalating"])


async def test_single_number_is_one_retry(
        assert_logs, settings, logger, request_fn, sleep):
    request_fn.side_effect = aiohttp.ClientConnectionError()

    settings.networking.error_backoffs = 5
    with pytest.raises(aiohttp.ClientConnectionError):
        await request('get', '/url', settings=settings, logger=logger)

    assert request_fn.call_count == 2
    assert sleep.call_args_list == [((5,),)]
