from pydantic import BaseModel
from typing import Optional

from app.schemas.user import User

class Token(BaseModel):
    access_token: str
    token_type: str

class TokenPayload(BaseModel):
    sub: Optional[str] = None
    user_id: Optional[int] = None
    exp: Optional[int] = None

class LoginRequest(BaseModel):
    username: str
    password: str

class LoginResponse(BaseModel):
    token: Token
    user: User
