"""Supporter payment model."""
from datetime import datetime
from uuid import uuid4

from sqlalchemy import String, Integer, DateTime, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backoffice.database import Base


class Supporter(Base):
    """A single payment from a supporter to a creator.

    All amounts stored in cents.
    """

    __tablename__ = "supporters"

    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    creator_id: Mapped[str] = mapped_column(String(36), ForeignKey("profiles.uuid"), nullable=False)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="PENDING", nullable=False)  # PENDING, COMPLETED, FAILED
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    creator = relationship("Profile", foreign_keys=[creator_id])

    __table_args__ = (
        Index("idx_supporter_creator_id", "creator_id"),
        Index("idx_supporter_status", "status"),
        CheckConstraint("amount_cents >= 0", name="ck_supporter_amount_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<Supporter(uuid={self.uuid}, creator_id={self.creator_id}, status={self.status})>"
