"""Error taxonomy for the aggregation and payout engine.

Every error carries the HTTP status it maps to and a stable ``error_code``;
``main.py`` renders them through a single exception handler.
"""
from typing import Any, Dict


class BackofficeError(Exception):
    """Base class for all engine-level failures."""

    status_code: int = 500
    error_code: str = "backoffice_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.message, "error": self.error_code}


class InvalidStatus(BackofficeError):
    """Status token outside the known set."""

    status_code = 400
    error_code = "invalid_status"

    def __init__(self, token: Any):
        super().__init__(f"Invalid status: {token!r}")
        self.token = token


class InvalidTimeRange(BackofficeError):
    """Dashboard range token outside the known set."""

    status_code = 400
    error_code = "invalid_time_range"

    def __init__(self, token: Any):
        super().__init__(f"Invalid time range: {token!r}")
        self.token = token


class IllegalTransition(BackofficeError):
    """Requested transition is not allowed by the withdrawal state machine."""

    status_code = 409
    error_code = "illegal_transition"

    def __init__(self, current: str, requested: str):
        super().__init__(f"Cannot move withdrawal from {current} to {requested}")
        self.current = current
        self.requested = requested

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(current=self.current, requested=self.requested)
        return data


class Conflict(BackofficeError):
    """Stored status no longer matches the status the transition was validated against."""

    status_code = 409
    error_code = "conflict"

    def __init__(self, withdrawal_id: str, expected: str):
        super().__init__(
            f"Withdrawal {withdrawal_id} was modified concurrently (expected status {expected})"
        )
        self.withdrawal_id = withdrawal_id
        self.expected = expected


class WithdrawalNotFound(BackofficeError):
    status_code = 404
    error_code = "withdrawal_not_found"

    def __init__(self, withdrawal_id: str):
        super().__init__(f"Withdrawal {withdrawal_id} not found")
        self.withdrawal_id = withdrawal_id


class StoreUnavailable(BackofficeError):
    """The record store could not complete a fetch or write."""

    status_code = 503
    error_code = "store_unavailable"


class UpdateFailed(BackofficeError):
    """A status write failed; the stored status is unconfirmed."""

    status_code = 502
    error_code = "update_failed"


class PrecisionLoss(BackofficeError):
    """An amount cannot be represented at cent precision."""

    status_code = 500
    error_code = "precision_loss"
