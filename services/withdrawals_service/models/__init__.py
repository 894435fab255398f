"""Withdrawals Service models package."""

from services.withdrawals_service.models.core import Withdrawal  # noqa: F401
from services.withdrawals_service.models.enums import (  # noqa: F401
    PayoutMethod,
    WithdrawalStatus,
)

__all__ = ["PayoutMethod", "Withdrawal", "WithdrawalStatus"]
