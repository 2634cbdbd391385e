"""
ConnectionStore — durable mapping from (provider, account) to connections.

One store serves every provider, so each call is scoped by provider name.
Reads return immutable, creation-ordered tuples; the first element is what
"the account's connection" means when an account holds several.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

from connectors.errors import DuplicateConnection
from connectors.types import AccountConnection, AccountId

logger = logging.getLogger(__name__)


class ConnectionStore(ABC):
    """Abstract persistence for ``AccountConnection`` records."""

    @abstractmethod
    async def save(self, connection: AccountConnection) -> AccountConnection:
        """
        Insert a new connection.

        Raises ``DuplicateConnection`` if the (provider, account, provider
        account) triple already exists. Never updates in place.
        """
        ...

    @abstractmethod
    async def find_all(self, provider_name: str, account_id: AccountId) -> Tuple[AccountConnection, ...]:
        """All connections for the account, earliest first. Empty if none."""
        ...

    @abstractmethod
    async def find_one(
        self,
        provider_name: str,
        account_id: AccountId,
        provider_account_id: Optional[str] = None,
    ) -> Optional[AccountConnection]:
        """Exact match, or the earliest connection when no provider account id is given."""
        ...

    @abstractmethod
    async def find_by_access_token(
        self, provider_name: str, token_value: str
    ) -> Optional[AccountConnection]:
        ...

    @abstractmethod
    async def delete(
        self,
        provider_name: str,
        account_id: AccountId,
        provider_account_id: Optional[str] = None,
    ) -> int:
        """Remove one or all of the account's connections. Returns how many went."""
        ...


class InMemoryConnectionStore(ConnectionStore):
    """Process-local store. Suitable for tests and single-process deployments."""

    def __init__(self) -> None:
        self._connections: List[AccountConnection] = []
        self._lock = threading.Lock()

    def _snapshot(self) -> Tuple[AccountConnection, ...]:
        with self._lock:
            return tuple(self._connections)

    async def save(self, connection: AccountConnection) -> AccountConnection:
        with self._lock:
            if any(c.key == connection.key for c in self._connections):
                raise DuplicateConnection(
                    f"Account {connection.account_id} is already connected to "
                    f"{connection.provider_account_id}",
                    provider=connection.provider_name,
                )
            self._connections.append(connection)
        return connection

    async def find_all(self, provider_name: str, account_id: AccountId) -> Tuple[AccountConnection, ...]:
        return tuple(
            c
            for c in self._snapshot()
            if c.provider_name == provider_name and c.account_id == account_id
        )

    async def find_one(
        self,
        provider_name: str,
        account_id: AccountId,
        provider_account_id: Optional[str] = None,
    ) -> Optional[AccountConnection]:
        for conn in await self.find_all(provider_name, account_id):
            if provider_account_id is None or conn.provider_account_id == provider_account_id:
                return conn
        return None

    async def find_by_access_token(
        self, provider_name: str, token_value: str
    ) -> Optional[AccountConnection]:
        for conn in self._snapshot():
            if conn.provider_name == provider_name and conn.access_token.value == token_value:
                return conn
        return None

    async def delete(
        self,
        provider_name: str,
        account_id: AccountId,
        provider_account_id: Optional[str] = None,
    ) -> int:
        def _matches(c: AccountConnection) -> bool:
            return (
                c.provider_name == provider_name
                and c.account_id == account_id
                and (provider_account_id is None or c.provider_account_id == provider_account_id)
            )

        with self._lock:
            before = len(self._connections)
            self._connections = [c for c in self._connections if not _matches(c)]
            removed = before - len(self._connections)
        return removed
