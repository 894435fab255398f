"""Enums for the Withdrawals Service models."""

import enum


def enum_values(enum_cls):
    """Return persistent DB values for SAEnum mappings."""
    return [member.value for member in enum_cls]


class WithdrawalStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    COMPLETED = "completed"
    REJECTED = "rejected"


class PayoutMethod(str, enum.Enum):
    STRIPE = "stripe"
    MANUAL = "manual"
