"""Typed records exchanged between the record store and the engine.

The store adapter builds these from raw rows; the engine never sees
untyped data.
"""
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def _as_utc(value: datetime) -> datetime:
    """Interpret naive timestamps as UTC and normalise aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class WithdrawalStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class CreatorProfile(BaseModel):
    """A creator as seen by the back office."""

    model_config = ConfigDict(frozen=True)

    creator_id: str
    username: str
    display_name: str
    email: Optional[str] = None
    email_verified: bool = False
    phone_number: Optional[str] = None
    category: Optional[str] = None
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def created_at_utc(cls, v: datetime) -> datetime:
        return _as_utc(v)


class SupporterPayment(BaseModel):
    """A payment from a supporter to a creator."""

    model_config = ConfigDict(frozen=True)

    payment_id: str
    creator_id: str
    supporter_name: Optional[str] = None
    supporter_phone: Optional[str] = None
    amount: Decimal = Field(..., ge=0)
    status: PaymentStatus
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def created_at_utc(cls, v: datetime) -> datetime:
        return _as_utc(v)


class Withdrawal(BaseModel):
    """A payout request. ``amount`` is gross, before the platform fee."""

    model_config = ConfigDict(frozen=True)

    withdrawal_id: str
    creator_id: str
    amount: Decimal = Field(..., ge=0)
    status: WithdrawalStatus
    created_at: datetime
    updated_at: datetime

    @field_validator("created_at", "updated_at")
    @classmethod
    def timestamps_utc(cls, v: datetime) -> datetime:
        return _as_utc(v)

    @model_validator(mode="after")
    def updated_not_before_created(self) -> "Withdrawal":
        if self.updated_at < self.created_at:
            raise ValueError("updated_at must not be earlier than created_at")
        return self


class RecordFilter(BaseModel):
    """Optional narrowing for store fetches. Time bounds are half-open."""

    record_id: Optional[str] = None
    creator_id: Optional[str] = None
    status: Optional[str] = None
    created_from: Optional[datetime] = None
    created_before: Optional[datetime] = None


class Snapshot(BaseModel):
    """One consistent read of all three collections."""

    model_config = ConfigDict(frozen=True)

    profiles: List[CreatorProfile] = Field(default_factory=list)
    payments: List[SupporterPayment] = Field(default_factory=list)
    withdrawals: List[Withdrawal] = Field(default_factory=list)
