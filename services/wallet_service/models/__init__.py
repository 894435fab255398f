"""Wallet Service models package."""

from services.wallet_service.models.wallet import UserWallet  # noqa: F401

__all__ = ["UserWallet"]
