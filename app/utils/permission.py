from typing import Any, FrozenSet, Mapping

from fastapi import HTTPException, status

from app.core.config import settings
from app.core.constants import PermissionEnum
from app.core.database import ResilientPool
from app.schemas.user import UserContext
from app.crud.image import image as crud_image
from app.crud.image_description import image_description as crud_image_description

# Every active user may contribute content
BASE_PERMISSIONS = frozenset({
    PermissionEnum.QUESTION_CREATE,
    PermissionEnum.QUESTION_UPLOAD,
    PermissionEnum.IMAGE_UPLOAD,
})

REVIEWER_PERMISSIONS = frozenset({
    PermissionEnum.QUESTION_REVIEW,
    PermissionEnum.IMAGE_REVIEW,
    PermissionEnum.IMAGE_UNLIMITED,
})


class PermissionHelper:
    @staticmethod
    def permissions_for(user: Mapping[str, Any]) -> FrozenSet[PermissionEnum]:
        """Map stored role flags to the capability set carried by the request."""
        if not user.get("is_active"):
            return frozenset()
        if user.get("is_admin"):
            return frozenset(PermissionEnum)
        granted = set(BASE_PERMISSIONS)
        if user.get("is_reviewer"):
            granted |= REVIEWER_PERMISSIONS
        return frozenset(granted)

    @staticmethod
    def is_admin(context: UserContext) -> bool:
        return context.user.is_admin

    @staticmethod
    def is_limited_contributor(context: UserContext) -> bool:
        return context.user.is_image_contributor and not context.can(PermissionEnum.IMAGE_UNLIMITED)

    @staticmethod
    async def contribution_count(pool: ResilientPool, user_id: int) -> int:
        images = await crud_image.count_by_user(pool, user_id=user_id)
        descriptions = await crud_image_description.count_by_user(pool, user_id=user_id)
        return images + descriptions

    @staticmethod
    async def require_contribution_quota(pool: ResilientPool, context: UserContext, requested: int = 1) -> None:
        """Reject when the contributions this request adds would take a limited contributor past the quota."""
        if not PermissionHelper.is_limited_contributor(context):
            return
        count = await PermissionHelper.contribution_count(pool, context.user.id)
        limit = settings.IMAGE_CONTRIBUTOR_LIMIT
        if count + requested <= limit:
            return
        if count >= limit:
            message = f"Image contributor limit reached. You can upload a maximum of {limit} images and image descriptions combined."
        else:
            message = (
                f"Image contributor limit exceeded. This request adds {requested} contributions "
                f"but only {limit - count} of {limit} remain."
            )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"message": message, "count": count, "limit": limit, "requested": requested},
        )

    @staticmethod
    def require(context: UserContext, permission: PermissionEnum, error_message: str = "You do not have permission to perform this action."):
        if not context.can(permission):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=error_message)

    @staticmethod
    def require_owner_or_admin(context: UserContext, owner_id, error_message: str = "You can only modify your own content."):
        if context.user.is_admin or owner_id == context.user.id:
            return
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=error_message)


permission_helper = PermissionHelper()
