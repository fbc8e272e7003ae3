from pydantic import BaseModel, EmailStr, Field, field_validator, ConfigDict, model_validator
from typing import FrozenSet, Literal, Optional, Any, Union
from datetime import datetime

from app.core.constants import PermissionEnum

class UserBase(BaseModel):
    """Base user schema with common fields."""
    username: str = Field(..., min_length=3, max_length=50)
    email: EmailStr
    first_name: Optional[str] = None
    last_name: Optional[str] = None

class UserCreate(UserBase):
    """Self registration; exam preferences partition the content a user sees."""
    password: str
    exam_category: str
    exam_type: str

    @field_validator("password")
    def validate_password(cls, v):
        if not v or not v.strip():
            raise ValueError("Password cannot be empty or contain only whitespace.")
        if len(v) < 6:
            raise ValueError("Password must be at least 6 characters long.")
        return v

    @field_validator("exam_category", "exam_type")
    def not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("Exam category and exam type are required")
        return v.strip()

class UserAdminCreate(UserBase):
    """Schema for an admin creating a user with explicit role flags."""
    password: str = Field(..., min_length=6)
    is_admin: bool = False
    is_reviewer: bool = False
    is_image_contributor: bool = False
    exam_category: Optional[str] = None
    exam_type: Optional[str] = None

class UserUpdate(BaseModel):
    """Schema for a user updating their own profile."""
    email: Optional[EmailStr] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    exam_category: Optional[str] = None
    exam_type: Optional[str] = None

    @model_validator(mode='before')
    @classmethod
    def at_least_one_value(cls, data: Any):
        if isinstance(data, dict) and not any(v is not None for v in data.values()):
            raise ValueError("At least one field must be provided for update")
        return data

class UserAdminUpdate(UserUpdate):
    """Schema for administrative user updates."""
    username: Optional[str] = Field(None, min_length=3, max_length=50)
    is_active: Optional[bool] = None
    is_admin: Optional[bool] = None
    is_reviewer: Optional[bool] = None
    is_image_contributor: Optional[bool] = None

class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=6)

class PasswordReset(BaseModel):
    new_password: str = Field(..., min_length=6)

class User(BaseModel):
    """Main user schema for reading user data."""
    id: int
    username: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    is_active: bool
    is_admin: bool
    is_reviewer: bool
    is_image_contributor: bool
    exam_category: Optional[str] = None
    exam_type: Optional[str] = None
    created_at: Optional[datetime] = None
    last_login: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

class UserContext(BaseModel):
    """An authenticated request: the user and the capabilities their role flags grant."""
    kind: Literal["user"] = "user"
    user: User
    permissions: FrozenSet[PermissionEnum] = frozenset()

    model_config = ConfigDict(frozen=True)

    @property
    def is_authenticated(self) -> bool:
        return True

    def can(self, permission: PermissionEnum) -> bool:
        return permission in self.permissions

class AnonymousContext(BaseModel):
    """A request without (valid) credentials."""
    kind: Literal["anonymous"] = "anonymous"

    model_config = ConfigDict(frozen=True)

    @property
    def is_authenticated(self) -> bool:
        return False

    def can(self, permission: PermissionEnum) -> bool:
        return False

RequestContext = Union[UserContext, AnonymousContext]
