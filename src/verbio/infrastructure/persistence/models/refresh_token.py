"""SQLAlchemy model for refresh tokens.

One row per issued refresh token. Only the SHA-256 hash of the token is
stored. Rows are never updated except to mark them revoked, which keeps
the rotation chain of every family as an audit trail.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, ForeignKey, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from verbio.infrastructure.persistence.database import Base


class RevocationReason:
    """Values stored in ``refresh_tokens.revoked_reason``."""

    ROTATED = "rotated"
    REUSE_DETECTED = "reuse_detected"
    LOGOUT = "logout"
    LOGOUT_ALL = "logout_all"


class RefreshTokenModel(Base):
    """Refresh token model for rotation with family revocation."""

    __tablename__ = "refresh_tokens"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )

    # Token hash (SHA-256) - indexed for fast lookup
    token_hash: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        unique=True,
        index=True,
    )

    # Shared by every token descended from one login
    family: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
    )

    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    revoked_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    revoked_reason: Mapped[str | None] = mapped_column(
        String(32),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
        nullable=False,
    )

    user = relationship("UserModel", back_populates="refresh_tokens")

    __table_args__ = (
        Index("ix_refresh_tokens_family_revoked", "family", "revoked_at"),
        Index("ix_refresh_tokens_user_revoked", "user_id", "revoked_at"),
    )

    def __repr__(self) -> str:
        return (
            f"RefreshTokenModel(id={self.id!r}, user_id={self.user_id!r}, "
            f"family={self.family!r}, revoked_reason={self.revoked_reason!r})"
        )
