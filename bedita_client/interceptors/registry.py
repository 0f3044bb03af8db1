"""Interceptor registry: idempotent registration and precise removal.

Each client owns one registry. Interceptors are deduplicated by their
``key``, and every installed interceptor is reachable through exactly one
handle. add/remove never suspend, so on an event loop each call is atomic
with respect to other coroutines.
"""

import itertools
import logging
from collections.abc import Collection
from dataclasses import dataclass

from bedita_client.interceptors.base import InterceptorKind, RequestInterceptor, ResponseInterceptor
from bedita_client.logging.audit import audit

Interceptor = RequestInterceptor | ResponseInterceptor


@dataclass(frozen=True)
class InterceptorHandle:
    kind: InterceptorKind
    id: int


class InterceptorChain:
    """Ordered interceptors of one kind, addressable by numeric id."""

    def __init__(self, kind: InterceptorKind):
        self.kind = kind
        self._ids = itertools.count()
        self._entries: dict[int, Interceptor] = {}  # insertion-ordered

    def use(self, interceptor: Interceptor) -> int:
        entry_id = next(self._ids)
        self._entries[entry_id] = interceptor
        return entry_id

    def eject(self, entry_id: int) -> bool:
        return self._entries.pop(entry_id, None) is not None

    def ids(self) -> list[int]:
        return list(self._entries)

    def entries(self) -> list[tuple[int, Interceptor]]:
        return list(self._entries.items())


class InterceptorRegistry:
    """Tracks installed interceptors by identity key, one map per kind."""

    def __init__(self):
        self._chains = {kind: InterceptorChain(kind) for kind in InterceptorKind}
        self._maps: dict[InterceptorKind, dict[str, InterceptorHandle]] = {
            kind: {} for kind in InterceptorKind
        }
        self._transient: set[InterceptorHandle] = set()  # registered for one call only

    @staticmethod
    def _identity(interceptor: Interceptor) -> tuple[InterceptorKind, str]:
        if isinstance(interceptor, RequestInterceptor):
            kind = InterceptorKind.REQUEST
        elif isinstance(interceptor, ResponseInterceptor):
            kind = InterceptorKind.RESPONSE
        else:
            raise TypeError(f"Not an interceptor: {interceptor!r}")
        if not interceptor.key:
            raise ValueError(f"{type(interceptor).__name__} has no identity key")
        return kind, interceptor.key

    def handle_for(self, interceptor: Interceptor) -> InterceptorHandle | None:
        kind, key = self._identity(interceptor)
        return self._maps[kind].get(key)

    def add(self, interceptor: Interceptor, transient: bool = False) -> InterceptorHandle:
        """Install ``interceptor`` unless its key is already registered.

        Transient entries are left out of ``snapshot()`` unless the caller
        asks for them by handle, so they only run on the call that owns them.
        """
        kind, key = self._identity(interceptor)
        registered = self._maps[kind]
        if key in registered:
            return registered[key]

        handle = InterceptorHandle(kind=kind, id=self._chains[kind].use(interceptor))
        registered[key] = handle
        if transient:
            self._transient.add(handle)
        audit("Interceptor added", level=logging.DEBUG, kind=kind.value, key=key, handle_id=handle.id)
        return handle

    def remove(self, handle: InterceptorHandle) -> bool:
        """Remove the interceptor behind ``handle``. False if unknown."""
        registered = self._maps[handle.kind]
        for key, value in registered.items():
            if value == handle:
                del registered[key]
                self._transient.discard(handle)
                self._chains[handle.kind].eject(handle.id)
                audit("Interceptor removed", level=logging.DEBUG, kind=handle.kind.value, key=key, handle_id=handle.id)
                return True
        return False

    def snapshot(
        self, kind: InterceptorKind, include: Collection[InterceptorHandle] = ()
    ) -> list[Interceptor]:
        """Installed interceptors of ``kind`` in registration order.

        Transient entries appear only when their handle is in ``include``.
        """
        chain = self._chains[kind]
        return [
            interceptor
            for entry_id, interceptor in chain.entries()
            if InterceptorHandle(kind, entry_id) not in self._transient
            or InterceptorHandle(kind, entry_id) in include
        ]

    def is_transient(self, handle: InterceptorHandle) -> bool:
        return handle in self._transient

    def keys(self, kind: InterceptorKind) -> list[str]:
        return list(self._maps[kind])

    def chain_ids(self, kind: InterceptorKind) -> list[int]:
        return self._chains[kind].ids()
