"""
Listing-then-watching of the objects as one stream of events.

The consumers first get the current objects as pseudo-events of type ``None``
(so that they can react to the initial state, including the absence of the
objects), then :attr:`Bookmark.LISTED`, then the real watch-events starting
from the list's resource version, so that no change is missed in between.

The server disconnects the watch-requests from time to time even if all is
fine; they are re-connected from the latest seen resource version. When that
version is too old for the server (HTTP 410 Gone), the stream ends, and
the consumer decides whether to start over with a new listing.
"""
import asyncio
import enum
import logging
from collections.abc import AsyncIterator
from typing import cast

import aiohttp

from podcrud._cogs.aiokits import aiotasks
from podcrud._cogs.clients import api, errors, fetching
from podcrud._cogs.configs import configuration
from podcrud._cogs.structs import bodies, references

logger = logging.getLogger(__name__)

KNOWN_EVENT_TYPES = frozenset({'ADDED', 'MODIFIED', 'DELETED'})


class WatchingError(Exception):
    """
    The server has reported an error in the watch-stream (other than 410 Gone).
    """


class Bookmark(enum.Enum):
    """ Markers yielded among the raw events. """
    LISTED = enum.auto()  # after the initial objects, before the watch-events.


def _is_gone(raw_input: bodies.RawInput) -> bool:
    error = cast(bodies.RawError, raw_input['object'])
    return raw_input['type'] == 'ERROR' and error.get('code') == 410


async def continuous_watch(
        *,
        settings: configuration.ClientSettings,
        resource: references.Resource,
        namespace: references.Namespace,
        field_selector: str | None = None,
        label_selector: str | None = None,
        stopper: aiotasks.Future | None = None,
) -> AsyncIterator[Bookmark | bodies.RawEvent]:
    """
    List the objects, then watch them from the list's resource version.

    The generator ends normally when the resource version is gone (HTTP 410),
    or when the stopper future is done. It never ends by itself otherwise.
    """
    where = f'in {namespace!r}' if namespace is not None else 'cluster-wide'
    stopper = stopper if stopper is not None else asyncio.get_running_loop().create_future()

    objs, resource_version = await fetching.list_objs(
        logger=logger,
        settings=settings,
        resource=resource,
        namespace=namespace,
        field_selector=field_selector,
        label_selector=label_selector,
    )
    for obj in objs:
        yield {'type': None, 'object': obj}
    yield Bookmark.LISTED  # even if nothing is listed.

    logger.debug(f"Starting the watch-stream for {resource} {where}.")
    try:
        while not stopper.done():
            async for raw_input in watch_objs(
                settings=settings,
                resource=resource,
                namespace=namespace,
                since=resource_version,
                field_selector=field_selector,
                label_selector=label_selector,
                stopper=stopper,
            ):
                if _is_gone(raw_input):
                    logger.debug(f"Restarting the watch-stream for {resource} {where}.")
                    return
                if raw_input['type'] == 'ERROR':
                    raise WatchingError(f"Error in the watch-stream: {raw_input['object']}")

                # Both bookmarks and regular events move the resource version forward,
                # so that the re-connected stream continues where the previous one ended.
                body = cast(bodies.RawBody, raw_input['object'])
                resource_version = bodies.get_resource_version(body) or resource_version
                if raw_input['type'] == 'BOOKMARK':
                    continue
                if raw_input['type'] not in KNOWN_EVENT_TYPES:
                    logger.warning(f"Ignoring an unsupported event type: {raw_input!r}")
                    continue
                yield cast(bodies.RawEvent, raw_input)

            await asyncio.sleep(settings.watching.reconnect_backoff)
    finally:
        logger.debug(f"Stopping the watch-stream for {resource} {where}.")


async def watch_objs(
        *,
        settings: configuration.ClientSettings,
        resource: references.Resource,
        namespace: references.Namespace,
        since: str | None = None,
        field_selector: str | None = None,
        label_selector: str | None = None,
        stopper: aiotasks.Future | None = None,
) -> AsyncIterator[bodies.RawInput]:
    """
    Watch the objects in one single watch-request.

    The stream ends when the server closes it (usually on its own timeout)
    or when the stopper is done. Network-level disconnects end it too.
    If the resource version is rejected as gone (HTTP 410) before the stream
    even starts, this is reported as the same 410 error-event as in the stream.
    """
    params: dict[str, str] = {'watch': 'true', 'allowWatchBookmarks': 'true'}
    optional_params = {
        'resourceVersion': since,
        'fieldSelector': field_selector,
        'labelSelector': label_selector,
    }
    params.update({key: value for key, value in optional_params.items() if value})
    if settings.watching.server_timeout is not None:
        params['timeoutSeconds'] = str(settings.watching.server_timeout)

    connect_timeout = settings.watching.connect_timeout
    if connect_timeout is None:
        connect_timeout = settings.networking.connect_timeout
    if connect_timeout is None:
        connect_timeout = settings.networking.request_timeout

    timeout = aiohttp.ClientTimeout(
        total=settings.watching.client_timeout,
        sock_connect=connect_timeout,
    )
    url = resource.get_url(namespace=namespace, params=params)
    try:
        async for raw_input in api.stream(url=url, settings=settings, timeout=timeout,
                                          stopper=stopper, logger=logger):
            yield raw_input
    except errors.APIClientError as e:
        if e.status != 410:
            raise
        logger.debug(f"The resource version {since!r} is gone for {resource}: {e}")
        yield {'type': 'ERROR', 'object': {'code': 410, 'message': e.message or ''}}
    except (aiohttp.ClientConnectionError, aiohttp.ClientPayloadError, asyncio.TimeoutError):
        pass
