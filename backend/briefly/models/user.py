"""User ORM - identity mirror of the auth provider plus subscription fields.

Invariants:
    - id is the identity provider's user id (string primary key, not generated here)
    - email, subscription_id and customer_id are unique when present
    - Subscription columns are written by billing reconciliation, read by plan resolution

Design Decisions:
    - Subscription state denormalized onto the user row: plan lookup is one SELECT
"""

from datetime import datetime, timezone

from sqlalchemy import String, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship

from briefly.db.base import Base


class User(Base):
    """Registered user."""
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    first_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    customer_id: Mapped[str | None] = mapped_column(
        String(255), nullable=True, unique=True,
    )
    subscription_id: Mapped[str | None] = mapped_column(
        String(255), nullable=True, unique=True,
    )
    price_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    current_period_end: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    files: Mapped[list["File"]] = relationship(
        "File", back_populates="user",
        cascade="all, delete-orphan",
    )
