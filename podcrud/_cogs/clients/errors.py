"""
Errors of the API calls.

The HTTP-level failures are converted to our own exceptions, with the details
from the ``Status`` bodies that the API server sends (the message, the reason,
the details of the object). The error of aiohttp is kept as the cause.

A few statuses have their own classes, since the callers react to them
specifically: e.g., HTTP 409 on creation means that the pod already exists,
HTTP 401 leads to re-authentication. The other statuses are only
distinguished as the client-side (4xx) and the server-side (5xx) ones.

The network-level errors (connections, TLS, timeouts) are not converted:
they are not about the API, and are escalated from aiohttp as is.
"""
import collections.abc
import json

import aiohttp

from podcrud._cogs.structs import bodies


class APISessionClosed(Exception):
    """
    The session has been closed while a request was about to use it.

    This happens when the credentials are invalidated while other requests
    are in flight. The requests are repeated with the new credentials,
    the same way as on HTTP 401.
    """


class APIError(Exception):
    """ An error response from the API server, with its ``Status`` if provided. """

    def __init__(
            self,
            payload: bodies.RawStatus | None,
            *,
            status: int,
    ) -> None:
        super().__init__(payload.get('message') if payload else None, payload)
        self._status = status
        self._payload: bodies.RawStatus = payload or {}

    @property
    def status(self) -> int:
        return self._status

    @property
    def code(self) -> int | None:
        return self._payload.get('code')

    @property
    def message(self) -> str | None:
        return self._payload.get('message')

    @property
    def details(self) -> bodies.RawStatusDetails | None:
        return self._payload.get('details')


class APIClientError(APIError):
    pass


class APIServerError(APIError):
    pass


class APIUnauthorizedError(APIClientError):
    pass


class APIForbiddenError(APIClientError):
    pass


class APINotFoundError(APIClientError):
    pass


class APIConflictError(APIClientError):
    pass


class APITooManyRequestsError(APIClientError):
    pass


SPECIFIC_ERRORS: dict[int, type[APIError]] = {
    401: APIUnauthorizedError,
    403: APIForbiddenError,
    404: APINotFoundError,
    409: APIConflictError,
    429: APITooManyRequestsError,
}


def get_error_class(status: int) -> type[APIError]:
    if status in SPECIFIC_ERRORS:
        return SPECIFIC_ERRORS[status]
    elif 400 <= status < 500:
        return APIClientError
    elif 500 <= status < 600:
        return APIServerError
    else:
        return APIError


async def check_response(
        response: aiohttp.ClientResponse,
) -> None:
    """
    Raise one of our errors if the response is an error; do nothing otherwise.
    """
    if response.status < 400:
        return

    # The body must be read now: raise_for_status() releases the response.
    payload: bodies.RawStatus | None
    try:
        payload = await response.json()
    except (json.JSONDecodeError, aiohttp.ContentTypeError, aiohttp.ClientConnectionError):
        payload = None

    # Only the Status bodies are kept; anything else can contain sensitive data.
    if not isinstance(payload, collections.abc.Mapping) or payload.get('kind') != 'Status':
        payload = None

    cls = get_error_class(response.status)
    try:
        response.raise_for_status()
    except aiohttp.ClientResponseError as e:
        raise cls(payload, status=response.status) from e
