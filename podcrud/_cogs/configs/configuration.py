"""
All configuration flags, options, settings to fine-tune a walkthrough.

All settings are grouped semantically just for convenience
(instead of a flat mega-object with all the values in it).

Some of the settings are flags, some are scalars, some are optional,
some are not (but all of them have reasonable defaults).

The settings are usually populated from the CLI options
(or the ``PODCRUD_*`` environment variables), but can be constructed
and modified directly when the walkthrough is invoked from the code.
"""
import dataclasses
from collections.abc import Iterable


@dataclasses.dataclass
class NetworkingSettings:

    request_timeout: float | None = 5 * 60  # == aiohttp.client.DEFAULT_TIMEOUT
    """
    A timeout for the whole request (all phases: connecting, sending, reading).
    Measured in seconds. ``None`` means no timeout.
    """

    connect_timeout: float | None = None
    """
    A timeout for establishing a connection to the API server.
    Measured in seconds. ``None`` means the request timeout applies.
    """

    error_backoffs: float | Iterable[float] | None = (1, 1, 2, 3, 5, 8, 13, 21)
    """
    Backoffs (in seconds) between the retries of the failed API requests.

    Only the temporary errors are retried: the network connectivity issues,
    the request timeouts, HTTP 5xx, and HTTP 403 & 429 (throttling and
    RBAC propagation). All other errors escalate immediately.

    The number of backoffs defines the number of retries. An empty sequence
    or ``None`` disables the retries. A single number is one retry.
    """


@dataclasses.dataclass
class WatchingSettings:

    server_timeout: float | None = None
    """
    The maximum duration of one streaming request, as requested from the server.
    If ``None``, then obey the server-side timeouts (they seem to be random).
    """

    client_timeout: float | None = None
    """
    An HTTP/HTTPS session timeout to use in watch requests.
    """

    connect_timeout: float | None = None
    """
    An HTTP/HTTPS connection timeout to use in watch requests.
    """

    reconnect_backoff: float = 0.1
    """
    How long should a pause be between watch requests (to prevent API flooding).
    """


@dataclasses.dataclass
class ListingSettings:

    page_size: int | None = None
    """
    How many objects to request per page when listing (``?limit=``).
    The pages are followed via the ``continue`` tokens until exhausted.
    ``None`` requests everything in one page.
    """


@dataclasses.dataclass
class WaitingSettings:

    running_timeout: float = 15.0
    """
    How long to wait for the created pod to reach the ``Running`` phase.
    Exceeding it is fatal for the walkthrough.
    """

    deletion_timeout: float | None = None
    """
    How long to wait for the deleted pod to disappear from the API.
    ``None`` (the default) does not wait: the deletion is only initiated.
    """


@dataclasses.dataclass
class PodSettings:

    name: str = 'blog'
    """
    The name of the pod, and of its only container.
    """

    image: str = 'clux/blog:0.1.0'
    """
    The image of the pod's only container.
    """

    namespace: str | None = None
    """
    The namespace of the pod. ``None`` means the default namespace
    of the current credentials, or ``"default"`` if they have none.
    """

    active_deadline_seconds: int = 5
    """
    The value patched into the pod's ``spec.activeDeadlineSeconds``.
    """


@dataclasses.dataclass
class ClientSettings:
    networking: NetworkingSettings = dataclasses.field(default_factory=NetworkingSettings)
    watching: WatchingSettings = dataclasses.field(default_factory=WatchingSettings)
    listing: ListingSettings = dataclasses.field(default_factory=ListingSettings)
    waiting: WaitingSettings = dataclasses.field(default_factory=WaitingSettings)
    pod: PodSettings = dataclasses.field(default_factory=PodSettings)
