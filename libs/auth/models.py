from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class AuthUser(BaseModel):
    """
    Represents an authenticated user from Supabase.
    """

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="sub")
    email: Optional[EmailStr] = None
    role: str = "authenticated"
    user_metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_admin(self) -> bool:
        return self.role == "service_role"

    @property
    def normalized_email(self) -> Optional[str]:
        return self.email.lower() if self.email else None

    @property
    def display_name(self) -> str:
        return self.user_metadata.get("name") or "Someone"
