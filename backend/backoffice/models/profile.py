"""Creator profile model."""
from datetime import datetime
from uuid import uuid4

from sqlalchemy import String, Boolean, DateTime, Index
from sqlalchemy.orm import Mapped, mapped_column

from backoffice.database import Base


class Profile(Base):
    """Public profile of a platform user.

    Only rows with ``user_type == "creator"`` receive supporter payments.
    """

    __tablename__ = "profiles"

    # Primary key (doubles as the creator id referenced by payments and withdrawals)
    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))

    # Profile info
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    phone_number: Mapped[str | None] = mapped_column(String(20), nullable=True)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    user_type: Mapped[str] = mapped_column(String(50), default="creator", nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("idx_profile_user_type", "user_type"),
    )

    def __repr__(self) -> str:
        return f"<Profile(uuid={self.uuid}, username={self.username}, user_type={self.user_type})>"
