"""Wallet Service schemas."""

from typing import Optional

from pydantic import BaseModel


class WalletResponse(BaseModel):
    user_id: str
    saldo: float
    saldo_minor: int
    currency: str
    formatted: Optional[str] = None
