"""
Supporting tasks to keep the walkthrough functional.

Consumes a credentials vault, and monitors that it has enough credentials.
When the credentials are invalidated (i.e. excluded), run the re-authentication
and populate the vault with the new credentials (fully or partially).

The process is intentionally split into multiple packages:

* Authenticating background task (this module) is a part of the engines,
  as the walkthrough will not be able to run without up-to-date credentials.
* Vault are the data structures used mostly in the API clients wrappers
  (which are the low-level modules, so they cannot import the credentials
  from the high-level modules such as the reactor/engines).
* Specific authentication methods, such as the authentication piggybacking,
  belong to neither the reactor, nor the engines, nor the client wrappers.
"""
import logging
from typing import NoReturn

from podcrud._cogs.structs import credentials
from podcrud._core.intents import piggybacking

logger = logging.getLogger(__name__)


async def authenticator(
        *,
        vault: credentials.Vault,
) -> NoReturn:
    """ Keep the credentials forever up to date. """
    counter: int = 0 if vault.is_empty() else 1
    while True:
        await authenticate(
            vault=vault,
            _activity_title="Re-authentication" if counter else "Initial authentication",
        )
        counter += 1


async def authenticate(
        *,
        vault: credentials.Vault,
        _activity_title: str = "Authentication",
) -> None:
    """ Retrieve the credentials once, successfully or not, and exit. """

    # Sleep most of the time waiting for a signal to re-auth.
    await vault.wait_for_emptiness()

    # Log initial and re-authentications differently, for readability.
    logger.info(f"{_activity_title} has been initiated.")

    try:
        results = piggybacking.login(logger=logger)
    except credentials.LoginError as e:
        logger.warning(f"{_activity_title} has failed: {e}")
        results = {}
    else:
        logger.info(f"{_activity_title} has finished.")

    # Feed the credentials into the vault, and unfreeze the re-authenticating clients.
    # An empty vault then fails the waiting clients with a LoginError.
    await vault.populate(results)
