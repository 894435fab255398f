"""Tips Service models package."""

from services.tips_service.models.core import Tip  # noqa: F401
from services.tips_service.models.enums import TipStatus  # noqa: F401

__all__ = ["Tip", "TipStatus"]
