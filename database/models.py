"""
SQLAlchemy ORM models for persisted provider connections.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


class AccountConnectionRecord(Base):
    """
    One row per (provider, local account, remote account).

    ``access_token`` and ``access_token_secret`` hold Fernet ciphertext
    when encryption is enabled; ``access_token_digest`` indexes the
    plaintext value for lookups.
    """

    __tablename__ = "account_connections"
    __table_args__ = (
        UniqueConstraint(
            "provider_name",
            "account_id",
            "provider_account_id",
            name="uq_account_connections_identity",
        ),
        Index("ix_account_connections_account", "provider_name", "account_id"),
        Index("ix_account_connections_token", "provider_name", "access_token_digest"),
    )

    # Integer autoincrement id breaks ties between equal connected_at values.
    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    provider_name = Column(String(32), nullable=False)
    account_id = Column(String(128), nullable=False)
    provider_account_id = Column(String(256), nullable=False)
    access_token = Column(Text, nullable=False)
    access_token_secret = Column(Text, nullable=False, default="")
    access_token_digest = Column(String(64), nullable=False)
    expires_at = Column(DateTime(timezone=True))
    profile_url = Column(Text)
    connected_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
