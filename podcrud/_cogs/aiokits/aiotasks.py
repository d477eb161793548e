"""
Helpers for orchestrating asyncio tasks.

These utilities only support tasks, not more generic futures or coroutines:
we not only wait for them, but also cancel them.
"""
import asyncio
from collections.abc import Collection
from typing import TYPE_CHECKING, Any

from podcrud._cogs.helpers import typedefs

# A workaround for a difference in tasks at runtime and type-checking time.
# Otherwise, at runtime: TypeError: 'type' object is not subscriptable.
if TYPE_CHECKING:
    Future = asyncio.Future[Any]
    Task = asyncio.Task[Any]
else:
    Future = asyncio.Future
    Task = asyncio.Task


async def stop(
        tasks: Collection[Task],
        *,
        title: str,
        logger: typedefs.Logger | None = None,
) -> tuple[set[Task], set[Task]]:
    """
    Cancel the tasks and wait for them to finish.

    The stopping itself does not have timeouts. It always ends either with
    the tasks stopped/exited, or with the stop-routine itself being cancelled.

    The exceptions of the stopped tasks are not re-raised: the tasks are
    stopped because they are not needed anymore, whatever their outcome is.
    """
    captitle = title.capitalize()

    if not tasks:
        if logger is not None:
            logger.debug(f"{captitle} tasks stopping is skipped: no tasks given.")
        return set(), set()

    for task in tasks:
        task.cancel()

    done, pending = await asyncio.wait(tasks)
    if logger is not None:
        are = 'are' if not pending else 'are not'
        logger.debug(f"{captitle} tasks {are} stopped; tasks left: {pending!r}")

    # Retrieve the exceptions, so that asyncio does not complain about them never being retrieved.
    for task in done:
        if not task.cancelled():
            task.exception()

    return done, pending
