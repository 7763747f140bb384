"""Database models for the creator back office."""
from backoffice.models.profile import Profile
from backoffice.models.supporter import Supporter
from backoffice.models.withdrawal import WithdrawalRequest

__all__ = [
    "Profile",
    "Supporter",
    "WithdrawalRequest",
]
