"""
Raw HTTP calls to the API server, with retries on the temporary errors.

The higher-level operations (creating, fetching, patching, etc.) build
the URLs and the payloads, and then use the verb-named helpers from here.
"""
import asyncio
import collections.abc
import itertools
import json
from collections.abc import AsyncIterator, Iterable, Mapping
from typing import Any

import aiohttp

from podcrud._cogs.aiokits import aiotasks
from podcrud._cogs.clients import auth, errors
from podcrud._cogs.configs import configuration
from podcrud._cogs.helpers import typedefs

# Retried with backoffs, since they usually resolve by themselves.
# HTTP 403 is here because RBAC changes need some time to propagate.
RETRYABLE_ERRORS = (
    aiohttp.ClientConnectionError,
    asyncio.TimeoutError,
    errors.APIServerError,
    errors.APIForbiddenError,
    errors.APITooManyRequestsError,
)


@auth.authenticated
async def get_default_namespace(
        *,
        context: auth.APIContext | None = None,
) -> str | None:
    if context is None:
        raise RuntimeError("API instance is not injected by the decorator.")
    return context.default_namespace


def _get_backoffs(settings: configuration.ClientSettings) -> tuple[Iterable[float], int | None]:
    backoffs = settings.networking.error_backoffs
    if backoffs is None:
        return [], 1
    if not isinstance(backoffs, collections.abc.Iterable):
        return [backoffs], 2
    if isinstance(backoffs, collections.abc.Sized):
        return backoffs, len(backoffs) + 1
    return backoffs, None  # e.g. an endless generator.


@auth.authenticated
async def request(
        method: str,
        url: str,  # relative to the server/api root.
        *,
        settings: configuration.ClientSettings,
        payload: object | None = None,
        headers: Mapping[str, str] | None = None,
        timeout: aiohttp.ClientTimeout | None = None,
        context: auth.APIContext | None = None,  # injected by the decorator
        logger: typedefs.Logger,
) -> aiohttp.ClientResponse:
    """
    Perform one API request and check its status, but do not parse the response.

    The retryable errors are logged and retried after each of the configured
    backoffs; the last error is re-raised when the backoffs are exhausted.
    All other errors are raised immediately.
    """
    if context is None:  # for type-checking!
        raise RuntimeError("API instance is not injected by the decorator.")

    if '://' not in url:
        url = f"{context.server.rstrip('/')}/{url.lstrip('/')}"

    if timeout is None:
        timeout = aiohttp.ClientTimeout(
            total=settings.networking.request_timeout,
            sock_connect=settings.networking.connect_timeout,
        )

    what = f"{method.upper()} {url}"
    backoffs, total = _get_backoffs(settings)
    delays: Iterable[float | None] = itertools.chain(backoffs, [None])
    for attempt, delay in enumerate(delays, start=1):
        idx = f"#{attempt}/{total}" if total is not None else f"#{attempt}"
        if attempt > 1:
            logger.debug(f"Request attempt {idx}: {what}")

        try:
            if context.session.closed:
                raise errors.APISessionClosed("Session is closed.")
            response = await context.session.request(
                method=method,
                url=url,
                json=payload,
                headers=headers,
                timeout=timeout,
            )
            await errors.check_response(response)
        except RETRYABLE_ERRORS as e:
            if delay is None:
                logger.error(f"Request attempt {idx} failed; escalating: {what} -> {e!r}")
                raise
            logger.error(f"Request attempt {idx} failed; will retry: {what} -> {e!r}")
            await asyncio.sleep(delay)  # cancellable, but not interruptable otherwise.
        else:
            if attempt > 1:
                logger.debug(f"Request attempt {idx} succeeded: {what}")
            return response

    raise RuntimeError("The retries have ended without a result.")  # for type-checking.


async def _request_json(
        method: str,
        url: str,
        *,
        settings: configuration.ClientSettings,
        payload: object | None,
        headers: Mapping[str, str] | None,
        timeout: aiohttp.ClientTimeout | None,
        logger: typedefs.Logger,
) -> Any:
    response = await request(method, url, settings=settings, logger=logger,
                             payload=payload, headers=headers, timeout=timeout)
    async with response:
        return await response.json()


async def get(
        url: str,  # relative to the server/api root.
        *,
        settings: configuration.ClientSettings,
        payload: object | None = None,
        headers: Mapping[str, str] | None = None,
        timeout: aiohttp.ClientTimeout | None = None,
        logger: typedefs.Logger,
) -> Any:
    return await _request_json('get', url, settings=settings, logger=logger,
                               payload=payload, headers=headers, timeout=timeout)


async def post(
        url: str,  # relative to the server/api root.
        *,
        settings: configuration.ClientSettings,
        payload: object | None = None,
        headers: Mapping[str, str] | None = None,
        timeout: aiohttp.ClientTimeout | None = None,
        logger: typedefs.Logger,
) -> Any:
    return await _request_json('post', url, settings=settings, logger=logger,
                               payload=payload, headers=headers, timeout=timeout)


async def patch(
        url: str,  # relative to the server/api root.
        *,
        settings: configuration.ClientSettings,
        payload: object | None = None,
        headers: Mapping[str, str] | None = None,
        timeout: aiohttp.ClientTimeout | None = None,
        logger: typedefs.Logger,
) -> Any:
    return await _request_json('patch', url, settings=settings, logger=logger,
                               payload=payload, headers=headers, timeout=timeout)


async def delete(
        url: str,  # relative to the server/api root.
        *,
        settings: configuration.ClientSettings,
        payload: object | None = None,
        headers: Mapping[str, str] | None = None,
        timeout: aiohttp.ClientTimeout | None = None,
        logger: typedefs.Logger,
) -> Any:
    return await _request_json('delete', url, settings=settings, logger=logger,
                               payload=payload, headers=headers, timeout=timeout)


async def stream(
        url: str,  # relative to the server/api root.
        *,
        settings: configuration.ClientSettings,
        payload: object | None = None,
        headers: Mapping[str, str] | None = None,
        timeout: aiohttp.ClientTimeout | None = None,
        stopper: aiotasks.Future | None = None,
        logger: typedefs.Logger,
) -> AsyncIterator[Any]:
    """
    Yield the parsed JSON lines of a long-running response (e.g. a watch).

    When the ``stopper`` is resolved, the response is closed, and the stream
    ends silently instead of failing with a connection error.
    """
    response = await request('get', url, settings=settings, logger=logger,
                             payload=payload, headers=headers, timeout=timeout)

    def close_response(_: aiotasks.Future) -> None:
        response.close()

    if stopper is not None:
        stopper.add_done_callback(close_response)
    try:
        async with response:
            async for line in iter_jsonlines(response.content):
                yield json.loads(line.decode('utf-8'))
    except aiohttp.ClientConnectionError:
        if stopper is None or not stopper.done():
            raise
    finally:
        if stopper is not None:
            stopper.remove_done_callback(close_response)


async def iter_jsonlines(
        content: aiohttp.StreamReader,
        chunk_size: int = 1024 * 1024,
) -> AsyncIterator[bytes]:
    """
    Split the response's content into non-empty lines.

    aiohttp's own ``async for line in response.content`` fails on the lines
    longer than its buffer limits (128 KB), while Kubernetes objects can be
    up to a few MBs. So, the content is read in big chunks and split here.
    """
    buffer = b''
    async for chunk in content.iter_chunked(chunk_size):
        buffer += chunk
        *lines, buffer = buffer.split(b'\n')
        for line in lines:
            if line:
                yield line
    if buffer:
        yield buffer
