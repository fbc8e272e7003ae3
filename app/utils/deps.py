from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
from pydantic import ValidationError

from app.core.constants import PermissionEnum
from app.core.database import ResilientPool
from app.core.security import decode_access_token
from app.crud.user import user as user_crud
from app.schemas.token import TokenPayload
from app.schemas.user import AnonymousContext, RequestContext, User, UserContext
from app.utils.permission import permission_helper

http_bearer = HTTPBearer()
optional_bearer = HTTPBearer(auto_error=False)

def get_pool(request: Request) -> ResilientPool:
    return request.app.state.pool

async def _context_from_token(pool: ResilientPool, token: str) -> UserContext:
    try:
        payload = decode_access_token(token)
        token_data = TokenPayload(**payload)
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )
    except ValidationError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )

    if token_data.user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token payload")

    user = await user_crud.get(pool, token_data.user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found"
        )

    if not user["is_active"]:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive"
        )

    return UserContext(
        user=User.model_validate(user),
        permissions=permission_helper.permissions_for(user),
    )

async def get_current_user_with_context(
    pool: ResilientPool = Depends(get_pool),
    credentials: HTTPAuthorizationCredentials = Depends(http_bearer)
) -> UserContext:
    return await _context_from_token(pool, credentials.credentials)

async def get_request_context(
    pool: ResilientPool = Depends(get_pool),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(optional_bearer)
) -> RequestContext:
    """Authenticated context when a valid bearer token is sent, anonymous otherwise."""
    if credentials is None:
        return AnonymousContext()
    try:
        return await _context_from_token(pool, credentials.credentials)
    except HTTPException:
        return AnonymousContext()

def require_permission(permission: PermissionEnum):
    """Dependency that checks the current user holds a capability and returns their context."""
    async def _verify_permission(context: UserContext = Depends(get_current_user_with_context)) -> UserContext:
        if not context.can(permission):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You do not have permission to perform this action."
            )
        return context
    return _verify_permission

async def require_admin(context: UserContext = Depends(get_current_user_with_context)) -> UserContext:
    if not context.user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return context
