"""
Credentials for the API calls and their lifecycle.

Only the static connection details are supported: the server address,
the TLS verification (CA or none), the client certificates, basic auth,
and the ``Authorization`` header (a token with a scheme). This is all
that a generic HTTP client needs; the login methods (see :mod:`piggybacking`)
reduce the kubeconfig files and the service accounts to these details.

The :class:`Vault` keeps the connection infos that have not failed yet.
The API calls take them from it (see :func:`authenticated`); the background
authenticator refills it when it runs empty (see :func:`authenticator`).
"""
import asyncio
import collections
import dataclasses
import inspect
import random
from collections.abc import AsyncIterable, AsyncIterator, Callable, Mapping
from typing import NewType, TypeVar, cast

from podcrud._cogs.aiokits import aiotoggles


class LoginError(Exception):
    """ Raised when no credentials are available to access the API. """


@dataclasses.dataclass(frozen=True)
class ConnectionInfo:
    """
    How to connect to the API server: where, with which TLS settings, as whom.
    """
    server: str  # e.g. "https://localhost:443"
    ca_path: str | None = None
    ca_data: bytes | str | None = None
    insecure: bool | None = None
    username: str | None = None
    password: str | None = None
    scheme: str | None = None  # RFC-7235/5.1: e.g. Bearer, Basic, Digest, etc.
    token: str | None = None
    certificate_path: str | None = None
    certificate_data: bytes | str | None = None
    private_key_path: str | None = None
    private_key_data: bytes | str | None = None
    default_namespace: str | None = None  # used when no namespace is configured explicitly.
    priority: int = 0  # higher is preferred.


_T = TypeVar('_T', bound=object)

# The login method's name, usually; used to track the invalid infos per method.
VaultKey = NewType('VaultKey', str)


@dataclasses.dataclass
class VaultItem:
    """
    A connection info as stored in the vault, with its cached derivatives.

    The caches (e.g. the API contexts with aiohttp sessions) live and die
    together with the info: they are closed when the info is invalidated.
    """
    info: ConnectionInfo
    caches: dict[str, object] | None = None


class Vault(AsyncIterable[tuple[VaultKey, ConnectionInfo]]):
    """
    A store of the connection infos that are believed to be valid.

    Iterating over the vault yields one connection info at a time,
    the most preferred first. If the consumer invalidates it, the iteration
    continues with the next one; otherwise, the iteration is over.
    When nothing is left, the consumers block until the authenticator
    refills the vault -- or fail with :class:`LoginError` if it cannot.

    The vault is created once per walkthrough and is shared by all its tasks.
    """
    _current: dict[VaultKey, VaultItem]
    _invalid: dict[VaultKey, list[VaultItem]]

    def __init__(
            self,
            __src: Mapping[str, object] | None = None,
    ) -> None:
        super().__init__()
        self._current = {}
        self._invalid = collections.defaultdict(list)
        self._lock = asyncio.Lock()

        if __src is not None:
            self._update_converted(__src)

        # On when there is something to use; off when the authenticator must act.
        self._ready = aiotoggles.Toggle(not self.is_empty(), name='vault')

    def __repr__(self) -> str:
        return f'<{self.__class__.__name__}: {self._current!r}>'

    def __bool__(self) -> bool:
        raise NotImplementedError("Use vault.is_empty() instead of evaluating the vault as bool.")

    def is_empty(self) -> bool:
        return not self._current

    async def __aiter__(
            self,
    ) -> AsyncIterator[tuple[VaultKey, ConnectionInfo]]:
        async for key, item in self._items():
            yield key, item.info

    async def extended(
            self,
            factory: Callable[[ConnectionInfo], _T],
            purpose: str | None = None,
    ) -> AsyncIterator[tuple[VaultKey, ConnectionInfo, _T]]:
        """
        Iterate as usual, but also yield an object made from the connection info.

        The object is made by the factory only once per connection info and
        purpose, and is then cached until the connection info is invalidated.
        If it has a ``close()`` method (sync or async), it is called then.
        """
        purpose = purpose if purpose is not None else repr(factory)
        async for key, item in self._items():
            async with self._lock:
                caches = item.caches if item.caches is not None else {}
                item.caches = caches
                if purpose not in caches:
                    caches[purpose] = factory(item.info)
                obj = caches[purpose]
            yield key, item.info, cast(_T, obj)

    async def _items(
            self,
    ) -> AsyncIterator[tuple[VaultKey, VaultItem]]:
        while True:
            await self._ready.wait_for(True)

            async with self._lock:
                key, item = self.select()
            yield key, item

            # Still there (the very same item) means it has worked for the consumer.
            async with self._lock:
                if self._current.get(key) is item:
                    break

    def select(self) -> tuple[VaultKey, VaultItem]:
        """
        Pick one of the most preferred items; randomly if there are several.

        Not protected by the lock: the callers must hold it if needed.
        """
        if not self._current:
            raise LoginError("No valid credentials are available.")
        top = max(item.info.priority for item in self._current.values())
        candidates = [(key, item) for key, item in self._current.items() if item.info.priority == top]
        return random.choice(candidates)

    async def invalidate(
            self,
            key: VaultKey,
            info: ConnectionInfo,
            *,
            exc: Exception | None = None,
    ) -> None:
        """
        Exclude the failed connection info, and wait for new ones if none are left.

        Several API calls can fail with the same info at the same time:
        they all wait for one and the same re-authentication. If it brings
        nothing new, the original error (e.g. HTTP 401) is re-raised,
        so that every API call fails in its own stack.
        """
        async with self._lock:
            item = self._current.get(key)
            if item is not None and item.info == info:
                await self._flush_caches(item)
                self._invalid[key] = self._invalid[key][-2:] + [item]  # a short history only.
                del self._current[key]
            depleted = not self._current

        if depleted:
            await self._ready.turn_to(False)
            await self._ready.wait_for(True)

        async with self._lock:
            if not self._current and exc is not None:
                raise exc

    async def populate(
            self,
            __src: Mapping[str, object],
    ) -> None:
        """
        Add the newly retrieved connection infos and wake up the waiting consumers.

        The infos that have recently failed for the same key are not re-added,
        so that consistently invalid credentials do not cause endless retries.
        """
        async with self._lock:
            self._update_converted(__src)
        await self._ready.turn_to(True)

    async def wait_for_emptiness(self) -> None:
        await self._ready.wait_for(False)

    async def close(self) -> None:
        """ Close the cached objects (e.g. the sessions) at the walkthrough's end. """
        async with self._lock:
            for item in self._current.values():
                await self._flush_caches(item)

    async def _flush_caches(self, item: VaultItem) -> None:
        # The async `close()` methods (e.g. of aiohttp sessions) are not called by the GC.
        for obj in (item.caches or {}).values():
            close = getattr(obj, 'close', None)
            result = close() if close is not None else None
            if inspect.isawaitable(result):
                await result
        item.caches = None

    def _update_converted(
            self,
            __src: Mapping[str, object],
    ) -> None:
        for key, info in __src.items():
            key = VaultKey(str(key))
            if not isinstance(info, ConnectionInfo):
                raise ValueError("Only ConnectionInfo instances are currently accepted.")
            if info not in [invalid.info for invalid in self._invalid[key]]:
                self._current[key] = VaultItem(info=info)
