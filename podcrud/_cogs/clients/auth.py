"""
Authenticated sessions for the API calls.

Every API call gets an :class:`APIContext` injected by :func:`authenticated`:
the context is taken from the walkthrough's vault, one per connection info,
and is cached in the vault for the lifetime of that connection info.

When the API responds with HTTP 401 Unauthorized, the connection info is
reported to the vault as invalid, and the call is repeated with the next
available one -- possibly after the re-authentication in the background.
"""
import base64
import contextlib
import functools
import os
import ssl
import tempfile
from collections.abc import Callable
from contextvars import ContextVar
from typing import Any, TypeVar, cast

import aiohttp

from podcrud._cogs.clients import errors
from podcrud._cogs.helpers import versions
from podcrud._cogs.structs import credentials

# The vault of the currently running walkthrough, shared by all its tasks.
# Set by `running.walkthrough`; the tests set it via the fixtures.
vault_var: ContextVar[credentials.Vault] = ContextVar('vault_var')

_F = TypeVar('_F', bound=Callable[..., Any])

# The context's cache key in the vault (see `Vault.extended`).
CONTEXTS_PURPOSE = 'contexts'


def authenticated(fn: _F) -> _F:
    """
    Inject an authenticated context into an API-calling coroutine.

    An explicitly passed ``context=`` is used as is, with no retries on 401:
    the caller owns that context and decides what to do with the errors.
    """
    @functools.wraps(fn)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        if 'context' in kwargs:
            result = await fn(*args, **kwargs)
            _remember(kwargs['context'], result)
            return result

        vault: credentials.Vault = vault_var.get()
        async for key, info, context in vault.extended(APIContext, CONTEXTS_PURPOSE):
            try:
                result = await fn(*args, **kwargs, context=context)
            except (errors.APIUnauthorizedError, errors.APISessionClosed) as e:
                # Blocks until re-authenticated; re-raises if nothing is left to try.
                await vault.invalidate(key, info, exc=e)
            else:
                _remember(context, result)
                return result

        # The vault either yields until success, or raises LoginError when depleted.
        raise RuntimeError("The vault has stopped yielding credentials without an error.")

    return cast(_F, wrapper)


def _remember(context: "APIContext", result: object) -> None:
    if isinstance(result, aiohttp.ClientResponse):
        context.add_response(result)


class APIContext:
    """
    An aiohttp session for one connection info, with the server's details.

    The session is configured once (TLS, client certificates, authorization
    headers), and is re-used by all the API calls of the walkthrough until
    the connection info is invalidated or the vault is closed.
    """

    session: aiohttp.ClientSession
    server: str
    default_namespace: str | None
    responses: list[aiohttp.ClientResponse]  # still open, to be closed with the session.

    def __init__(self, info: credentials.ConnectionInfo) -> None:
        super().__init__()
        self.server = info.server
        self.default_namespace = info.default_namespace
        self.responses = []
        self.session = aiohttp.ClientSession(
            connector=aiohttp.TCPConnector(limit=0, ssl=make_ssl_context(info)),
            headers=make_headers(info),
        )

    def add_response(self, response: aiohttp.ClientResponse) -> None:
        self.responses[:] = [r for r in self.responses if not r.closed]
        if not response.closed:
            self.responses.append(response)

    async def close(self) -> None:
        # Called by the vault when the connection info is gone (see `Vault._flush_caches`).
        for response in self.responses:
            if not response.closed:
                response.close()
        self.responses.clear()
        await self.session.close()


def make_headers(info: credentials.ConnectionInfo) -> dict[str, str]:
    """ The default headers of the session, including the authorization: a token or basic. """
    headers = {'User-Agent': f'podcrud/{versions.version or "unknown"}'}
    if info.scheme or info.token:
        scheme = info.scheme if info.scheme else 'Bearer'
        headers['Authorization'] = f'{scheme} {info.token}' if info.token else scheme
    elif info.username and info.password:
        headers['Authorization'] = aiohttp.BasicAuth(info.username, info.password).encode()
    return headers


def make_ssl_context(info: credentials.ConnectionInfo) -> ssl.SSLContext:
    """
    Build the TLS context for the server verification & client certificates.

    The client certificate & key can only be loaded from files; if they
    are given as data, they are written to temporary files for the loading
    time only (nothing is written if the paths are given or nothing is given).
    """
    context = ssl.create_default_context(
        purpose=ssl.Purpose.SERVER_AUTH,
        cafile=info.ca_path,
        cadata=decode_to_pem(info.ca_data) if info.ca_data is not None else None,
    )

    with contextlib.ExitStack() as stack:
        cert_path = _as_path(stack, info.certificate_path, info.certificate_data)
        pkey_path = _as_path(stack, info.private_key_path, info.private_key_data)
        if cert_path and pkey_path:
            context.load_cert_chain(certfile=cert_path, keyfile=pkey_path)

    if info.insecure:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE

    return context


def _as_path(
        stack: contextlib.ExitStack,
        path: str | None,
        data: bytes | str | None,
) -> str | os.PathLike[str] | None:
    if path:
        return path
    if data:
        file = stack.enter_context(tempfile.NamedTemporaryFile(buffering=0))
        file.write(decode_to_pem(data).encode('ascii'))
        return file.name
    return None


def decode_to_pem(data: str | bytes) -> str:
    """ Accept PEM as is, or base64-encoded PEM (as in kubeconfigs' ``*-data`` fields). """
    match data:
        case str() if data.startswith('-----BEGIN '):
            return data
        case bytes() if data.startswith(b'-----BEGIN '):
            return data.decode('ascii')
        case _:
            return base64.b64decode(data).decode('ascii')
