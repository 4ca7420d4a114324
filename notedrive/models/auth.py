"""Authentication state models."""

from __future__ import annotations

from sqlalchemy import BigInteger, Index, Text
from sqlalchemy.orm import Mapped, mapped_column

from notedrive.models.base import Base


class AuthToken(Base):
    """Bearer token issued after a successful challenge verification."""

    __tablename__ = "auth_tokens"

    token: Mapped[str] = mapped_column(Text, primary_key=True)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    expires_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    last_used: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    __table_args__ = (Index("idx_auth_tokens_expires", "expires_at"),)


class AuthChallenge(Base):
    """Single-use challenge bound to the public key that requested it."""

    __tablename__ = "auth_challenges"

    challenge: Mapped[str] = mapped_column(Text, primary_key=True)
    public_key: Mapped[str] = mapped_column(Text, nullable=False)
    expires_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
