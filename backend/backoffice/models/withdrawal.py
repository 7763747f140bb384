"""Withdrawal (payout request) model."""
from datetime import datetime
from uuid import uuid4

from sqlalchemy import String, Integer, DateTime, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backoffice.database import Base


class WithdrawalRequest(Base):
    """A creator's request to cash out accumulated earnings.

    ``amount_cents`` is the gross amount and never changes after creation;
    only ``status`` and ``updated_at`` are written afterwards.
    """

    __tablename__ = "withdrawals"

    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    creator_id: Mapped[str] = mapped_column(String(36), ForeignKey("profiles.uuid"), nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="PENDING", nullable=False)  # PENDING, PROCESSING, COMPLETED, FAILED

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    creator = relationship("Profile", foreign_keys=[creator_id])

    __table_args__ = (
        Index("idx_withdrawal_creator_id", "creator_id"),
        Index("idx_withdrawal_status", "status"),
        CheckConstraint("amount_cents >= 0", name="ck_withdrawal_amount_non_negative"),
        CheckConstraint("updated_at >= created_at", name="ck_withdrawal_updated_after_created"),
    )

    def __repr__(self) -> str:
        return f"<WithdrawalRequest(uuid={self.uuid}, creator_id={self.creator_id}, status={self.status})>"
