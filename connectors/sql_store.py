"""
SqlConnectionStore — ``ConnectionStore`` on SQLAlchemy async sessions.

The unique constraint on ``account_connections`` makes concurrent inserts
for the same remote identity serialize in the database: exactly one commit
wins, the rest surface as ``DuplicateConnection``.
"""

from __future__ import annotations

import logging
from typing import Optional, Tuple

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker

from connectors.encryption import decrypt_token, encrypt_token, token_digest
from connectors.errors import DuplicateConnection
from connectors.store import ConnectionStore
from connectors.types import AccountConnection, AccountId, OAuthToken
from database.models import AccountConnectionRecord

logger = logging.getLogger(__name__)


def _to_connection(row: AccountConnectionRecord) -> AccountConnection:
    # SQLite drops tzinfo on the way back; the models restore UTC
    return AccountConnection(
        account_id=row.account_id,
        provider_name=row.provider_name,
        provider_account_id=row.provider_account_id,
        access_token=OAuthToken(
            value=decrypt_token(row.access_token),
            secret=decrypt_token(row.access_token_secret or ""),
            expires_at=row.expires_at,
        ),
        profile_url=row.profile_url,
        connected_at=row.connected_at,
    )


class SqlConnectionStore(ConnectionStore):
    """Connections persisted in the ``account_connections`` table."""

    def __init__(self, session_factory: async_sessionmaker) -> None:
        self._session_factory = session_factory

    async def save(self, connection: AccountConnection) -> AccountConnection:
        token = connection.access_token
        record = AccountConnectionRecord(
            provider_name=connection.provider_name,
            account_id=connection.account_id,
            provider_account_id=connection.provider_account_id,
            access_token=encrypt_token(token.value),
            access_token_secret=encrypt_token(token.secret),
            access_token_digest=token_digest(token.value),
            expires_at=token.expires_at,
            profile_url=connection.profile_url,
            connected_at=connection.connected_at,
        )
        async with self._session_factory() as session:
            session.add(record)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise DuplicateConnection(
                    f"Account {connection.account_id} is already connected to "
                    f"{connection.provider_account_id}",
                    provider=connection.provider_name,
                ) from exc
        logger.debug(
            "Stored %s connection for account %s", connection.provider_name, connection.account_id
        )
        return connection

    async def find_all(self, provider_name: str, account_id: AccountId) -> Tuple[AccountConnection, ...]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(AccountConnectionRecord)
                .where(
                    AccountConnectionRecord.provider_name == provider_name,
                    AccountConnectionRecord.account_id == account_id,
                )
                .order_by(AccountConnectionRecord.connected_at, AccountConnectionRecord.id)
            )
            return tuple(_to_connection(row) for row in result.scalars().all())

    async def find_one(
        self,
        provider_name: str,
        account_id: AccountId,
        provider_account_id: Optional[str] = None,
    ) -> Optional[AccountConnection]:
        stmt = select(AccountConnectionRecord).where(
            AccountConnectionRecord.provider_name == provider_name,
            AccountConnectionRecord.account_id == account_id,
        )
        if provider_account_id is not None:
            stmt = stmt.where(AccountConnectionRecord.provider_account_id == provider_account_id)
        stmt = stmt.order_by(AccountConnectionRecord.connected_at, AccountConnectionRecord.id).limit(1)

        async with self._session_factory() as session:
            row = (await session.execute(stmt)).scalar_one_or_none()
            return _to_connection(row) if row else None

    async def find_by_access_token(
        self, provider_name: str, token_value: str
    ) -> Optional[AccountConnection]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(AccountConnectionRecord)
                .where(
                    AccountConnectionRecord.provider_name == provider_name,
                    AccountConnectionRecord.access_token_digest == token_digest(token_value),
                )
                .order_by(AccountConnectionRecord.connected_at, AccountConnectionRecord.id)
                .limit(1)
            )
            row = result.scalar_one_or_none()
            return _to_connection(row) if row else None

    async def delete(
        self,
        provider_name: str,
        account_id: AccountId,
        provider_account_id: Optional[str] = None,
    ) -> int:
        stmt = delete(AccountConnectionRecord).where(
            AccountConnectionRecord.provider_name == provider_name,
            AccountConnectionRecord.account_id == account_id,
        )
        if provider_account_id is not None:
            stmt = stmt.where(AccountConnectionRecord.provider_account_id == provider_account_id)

        async with self._session_factory() as session:
            result = await session.execute(stmt)
            await session.commit()
            return result.rowcount or 0
