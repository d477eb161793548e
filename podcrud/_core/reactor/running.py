import asyncio
import logging

from podcrud._cogs.aiokits import aiotasks
from podcrud._cogs.clients import auth
from podcrud._cogs.configs import configuration
from podcrud._cogs.structs import credentials
from podcrud._core.engines import activities
from podcrud._core.reactor import scenario

logger = logging.getLogger(__name__)


def run(
        *,
        settings: configuration.ClientSettings | None = None,
        vault: credentials.Vault | None = None,
) -> scenario.Outcome:
    """
    Run the whole walkthrough synchronously.

    This function should be used to run the walkthrough in normal sync mode.
    """
    return asyncio.run(walkthrough(
        settings=settings,
        vault=vault,
    ))


async def walkthrough(
        *,
        settings: configuration.ClientSettings | None = None,
        vault: credentials.Vault | None = None,
) -> scenario.Outcome:
    """
    Run the whole walkthrough asynchronously.

    This function should be used to run the walkthrough in an asyncio event-loop
    if the walkthrough is orchestrated explicitly and manually.

    The credentials are retrieved by a background task, which lives as long as
    the walkthrough itself: it re-authenticates on demand if the credentials
    are invalidated by the API calls (e.g. on HTTP 401 Unauthorized).
    """
    settings = settings if settings is not None else configuration.ClientSettings()
    vault = vault if vault is not None else credentials.Vault()

    # Injected into all the API calls of all the tasks started from now on.
    auth.vault_var.set(vault)

    authenticator_task = asyncio.create_task(
        activities.authenticator(vault=vault),
        name='authenticator',
    )
    walkthrough_task = asyncio.create_task(
        scenario.pod_crud(settings=settings),
        name='walkthrough',
    )
    try:
        await asyncio.wait({authenticator_task, walkthrough_task}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        await aiotasks.stop({authenticator_task, walkthrough_task}, title="Walkthrough", logger=logger)
        await vault.close()

    # The authenticator never exits by itself; if it did, it has failed, and the walkthrough is stuck.
    if not walkthrough_task.cancelled():
        return walkthrough_task.result()
    exc = authenticator_task.exception() if not authenticator_task.cancelled() else None
    if exc is not None:
        raise exc
    raise RuntimeError("The walkthrough has been cancelled for unknown reasons.")
