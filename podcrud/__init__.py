"""
The main podcrud module for all the exported functions & classes.
"""
# isort: skip_file

# Unlike all other places, where we import other modules and refer
# the functions via the modules, this is the package's top-level interface,
# as it is seen by the users. So, we export the individual functions.

from podcrud._cogs.configs.configuration import (
    ClientSettings,
    NetworkingSettings,
    WatchingSettings,
    ListingSettings,
    WaitingSettings,
    PodSettings,
)
from podcrud._cogs.helpers.typedefs import (
    Logger,
)
from podcrud._cogs.helpers.versions import (
    version as __version__,
)
from podcrud._cogs.structs.bodies import (
    RawEventType,
    RawEvent,
    RawBody,
    RawStatus,
    build_object_reference,
)
from podcrud._cogs.structs.credentials import (
    LoginError,
    ConnectionInfo,
    Vault,
    VaultKey,
)
from podcrud._cogs.structs.patches import (
    Patch,
)
from podcrud._cogs.structs.references import (
    Resource,
    PODS,
)
from podcrud._cogs.clients.errors import (
    APIError,
    APIClientError,
    APIServerError,
    APIUnauthorizedError,
    APIForbiddenError,
    APINotFoundError,
    APIConflictError,
    APITooManyRequestsError,
)
from podcrud._cogs.clients.watching import (
    WatchingError,
)
from podcrud._core.actions.loggers import (
    configure as configure_logging,
    LogFormat,
    ObjectLogger,
)
from podcrud._core.engines.waiting import (
    ConditionTimeoutError,
    await_condition,
    wait_for,
)
from podcrud._core.intents.conditions import (
    Condition,
    is_pod_running,
    is_pod_succeeded,
    is_pod_failed,
    is_deleted,
    all_of,
    any_of,
    negate,
)
from podcrud._core.intents.piggybacking import (
    login,
    login_with_kubeconfig,
    login_with_service_account,
)
from podcrud._core.reactor.running import (
    run,
    walkthrough,
)
from podcrud._core.reactor.scenario import (
    ScenarioError,
    Outcome,
    pod_crud,
)

__all__ = [
    'ClientSettings',
    'NetworkingSettings',
    'WatchingSettings',
    'ListingSettings',
    'WaitingSettings',
    'PodSettings',
    'Logger',
    'RawEventType',
    'RawEvent',
    'RawBody',
    'RawStatus',
    'build_object_reference',
    'LoginError',
    'ConnectionInfo',
    'Vault',
    'VaultKey',
    'Patch',
    'Resource', 'PODS',
    'APIError',
    'APIClientError',
    'APIServerError',
    'APIUnauthorizedError',
    'APIForbiddenError',
    'APINotFoundError',
    'APIConflictError',
    'APITooManyRequestsError',
    'WatchingError',
    'configure_logging',
    'LogFormat',
    'ObjectLogger',
    'ConditionTimeoutError',
    'await_condition',
    'wait_for',
    'Condition',
    'is_pod_running',
    'is_pod_succeeded',
    'is_pod_failed',
    'is_deleted',
    'all_of',
    'any_of',
    'negate',
    'login',
    'login_with_kubeconfig',
    'login_with_service_account',
    'run',
    'walkthrough',
    'ScenarioError',
    'Outcome',
    'pod_crud',
]
