"""SQLAlchemy model for the users table.

Users are keyed by their Apple subject identifier, which is immutable.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from verbio.domain.entities import SubscriptionTier
from verbio.infrastructure.persistence.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserModel(Base):
    """SQLAlchemy model for the users table.

    Attributes:
        id: Primary key (UUID string).
        apple_user_id: Apple subject identifier (unique, never exposed).
        email: User's email or Apple relay address.
        first_name: Given name, if shared.
        last_name: Family name, if shared.
        subscription_tier: Tier name; mutated by billing only.
        daily_translations: Usage counter for the current day.
        total_translations: Lifetime usage counter.
        last_usage_reset: When the daily counter was last reset.
        created_at: Timestamp when the user was created.
        updated_at: Timestamp when the user was last updated.
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    apple_user_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        index=True,
        comment="Apple subject identifier",
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    subscription_tier: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=SubscriptionTier.FREE.value,
    )
    daily_translations: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_translations: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_usage_reset: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
        onupdate=_utcnow,
    )

    refresh_tokens: Mapped[list["RefreshTokenModel"]] = relationship(  # noqa: F821
        "RefreshTokenModel",
        back_populates="user",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, tier={self.subscription_tier})>"
