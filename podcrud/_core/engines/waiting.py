"""
Waiting for the objects to reach the desired state.

The waiting is implemented via the watch-streams of a single object (selected
by its name), not via polling: the condition is evaluated on the initial state
as listed, and then on every change as it arrives. The absence of the object
is a state too (``None``): either never existed, or deleted while watching.
"""
import asyncio
import contextlib

from podcrud._cogs.aiokits import aiotasks
from podcrud._cogs.clients import watching
from podcrud._cogs.configs import configuration
from podcrud._cogs.helpers import typedefs
from podcrud._cogs.structs import bodies, references
from podcrud._core.intents import conditions


class ConditionTimeoutError(Exception):
    """ Raised when the condition is not reached within the expected time. """

    def __init__(
            self,
            msg: str,
            *,
            timeout: float,
    ) -> None:
        super().__init__(msg)
        self.timeout = timeout


async def await_condition(
        *,
        settings: configuration.ClientSettings,
        resource: references.Resource,
        namespace: references.Namespace,
        name: str,
        condition: conditions.Condition,
        logger: typedefs.Logger,
) -> bodies.RawBody | None:
    """
    Wait until the condition is met for the object, however long it takes.

    Returns the object's state that has satisfied the condition,
    or ``None`` if the condition was satisfied by the object's absence.
    """
    title = getattr(condition, '__name__', repr(condition))
    field_selector = f'metadata.name={name}'

    # Resolved on exit, it closes the currently open watch-response at once.
    stopper: aiotasks.Future = asyncio.get_running_loop().create_future()
    try:
        return await _watch_until(
            settings=settings,
            resource=resource,
            namespace=namespace,
            name=name,
            field_selector=field_selector,
            condition=condition,
            title=title,
            stopper=stopper,
            logger=logger,
        )
    finally:
        if not stopper.done():
            stopper.set_result(None)


async def _watch_until(
        *,
        settings: configuration.ClientSettings,
        resource: references.Resource,
        namespace: references.Namespace,
        name: str,
        field_selector: str,
        condition: conditions.Condition,
        title: str,
        stopper: aiotasks.Future,
        logger: typedefs.Logger,
) -> bodies.RawBody | None:
    while True:
        state: bodies.RawBody | None = None
        listed = False

        # The stream ends on "410 Gone" only; then, re-list and continue from the new state.
        stream = watching.continuous_watch(
            settings=settings,
            resource=resource,
            namespace=namespace,
            field_selector=field_selector,
            stopper=stopper,
        )
        async with contextlib.aclosing(stream):
            async for event in stream:
                if isinstance(event, watching.Bookmark):
                    listed = listed or event is watching.Bookmark.LISTED
                    if listed and condition(state):
                        logger.debug(f"Condition {title} is met by the initial state.")
                        return state
                    continue

                # Field selectors are not always honoured by the fake or proxying servers.
                body = event['object']
                if bodies.get_name(body) != name:
                    continue

                state = None if event['type'] == 'DELETED' else body
                if listed and condition(state):
                    logger.debug(f"Condition {title} is met by the {event['type']} event.")
                    return state

        logger.debug(f"Re-listing to continue waiting for {title}.")


async def wait_for(
        *,
        settings: configuration.ClientSettings,
        resource: references.Resource,
        namespace: references.Namespace,
        name: str,
        condition: conditions.Condition,
        timeout: float | None,
        logger: typedefs.Logger,
) -> bodies.RawBody | None:
    """
    Wait until the condition is met for the object, but not longer than the timeout.

    ``None`` as a timeout means waiting forever (same as :func:`await_condition`).
    """
    title = getattr(condition, '__name__', repr(condition))
    try:
        return await asyncio.wait_for(
            await_condition(
                settings=settings,
                resource=resource,
                namespace=namespace,
                name=name,
                condition=condition,
                logger=logger,
            ),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        if timeout is None:  # for type-checking; unbounded waits never time out.
            raise
        raise ConditionTimeoutError(f"Condition {title} is not met in {timeout}s.",
                                    timeout=timeout) from None
