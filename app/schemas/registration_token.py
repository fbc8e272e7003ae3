from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional
from datetime import datetime

from app.core.constants import RoleEnum
from app.schemas.user import UserCreate

class RegistrationTokenCreate(BaseModel):
    role: RoleEnum = RoleEnum.IMAGE_CONTRIBUTOR
    expires_in_hours: Optional[int] = Field(None, ge=1, le=24 * 30)

    model_config = ConfigDict(use_enum_values=True)

    @field_validator("role")
    def no_admin_tokens(cls, v):
        if v == RoleEnum.ADMIN:
            raise ValueError("Registration tokens cannot grant the admin role")
        return v

class RegistrationToken(BaseModel):
    id: int
    token: str
    role: str
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None
    expires_at: datetime
    used: bool
    used_by: Optional[int] = None
    used_at: Optional[datetime] = None
    used_by_username: Optional[str] = None
    registration_url: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

class TokenValidation(BaseModel):
    valid: bool
    role: str
    expires_at: datetime

class RegisterWithToken(UserCreate):
    token: str
