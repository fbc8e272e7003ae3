import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import httpx
from fastapi import HTTPException, UploadFile, status

from app.core.config import settings
from app.core.constants import ALLOWED_MIME_TYPES, ImageTypeEnum, UsageTypeEnum
from app.core.database import ResilientPool
from app.crud.image import image as crud_image
from app.crud.image_description import image_description as crud_image_description
from app.crud.question import question as crud_question
from app.schemas.image import (
    ContributionStats, ContributorInfo, ContributorStats, Image, ImageAssociation, ImageFilter,
    ImageMetadata, ImageReviewStats, ImageReviewSubmit, ImageUpdate, ImageUrlUpload,
    NextImageForReview, QuestionImageLink, split_tags,
)
from app.schemas.question import QuestionLink
from app.schemas.response import Page, Pagination
from app.schemas.user import UserContext
from app.services.storage import StorageService, storage_service
from app.utils.permission import permission_helper
from app.utils.review import validate_image_review

logger = logging.getLogger(__name__)

DOWNLOAD_HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; TOEQuestionBank/1.0)",
    "Accept": "image/webp,image/apng,image/*,video/*,*/*;q=0.8",
}


def default_image_type(mime_type: str) -> str:
    return ImageTypeEnum.CINE.value if mime_type.startswith("video/") else ImageTypeEnum.STILL.value


class ImageService:
    def __init__(self, storage: StorageService = storage_service):
        self.storage = storage

    async def get_or_404(self, pool: ResilientPool, image_id: int) -> Dict[str, Any]:
        row = await crud_image.get(pool, image_id)
        if not row:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Image not found")
        return row

    def _check_payload(self, data: bytes, mime_type: str) -> None:
        if not data:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file uploaded")
        if len(data) > settings.MAX_UPLOAD_SIZE:
            raise HTTPException(
                status_code=413,
                detail=f"File exceeds the maximum upload size of {settings.MAX_UPLOAD_SIZE // (1024 * 1024)}MB",
            )
        if mime_type not in ALLOWED_MIME_TYPES:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Only image and video files are allowed",
            )

    async def _store(
        self,
        pool: ResilientPool,
        *,
        data: bytes,
        original_name: str,
        mime_type: str,
        metadata: ImageMetadata,
        context: UserContext,
        source_url: Optional[str] = None,
    ) -> Image:
        self._check_payload(data, mime_type)
        await permission_helper.require_contribution_quota(pool, context)

        stored = await self.storage.upload_file(data, original_name, mime_type)
        values = {
            "filename": stored.filename,
            "original_name": original_name,
            "file_path": stored.url,
            "file_size": stored.size,
            "mime_type": mime_type,
            "image_type": metadata.image_type or default_image_type(mime_type),
            "description": metadata.description,
            "tags": metadata.tags,
            "license": metadata.license,
            "license_details": metadata.license_details,
            "source_url": metadata.source_url or source_url,
            "exam_category": context.user.exam_category,
            "exam_type": context.user.exam_type,
            "uploaded_by": context.user.id,
        }
        try:
            row = await crud_image.create(pool, obj_in=values)
        except Exception:
            logger.error(f"Database insert failed for {stored.filename}, removing stored object", exc_info=True)
            await self.storage.remove_stored(stored.url, stored.filename)
            raise
        logger.info(f"Image {row['id']} ({stored.filename}) uploaded by {context.user.username}")
        return Image.model_validate(row)

    async def upload(self, pool: ResilientPool, *, file: UploadFile, metadata: ImageMetadata, context: UserContext) -> Image:
        data = await file.read()
        mime_type = file.content_type or "application/octet-stream"
        return await self._store(
            pool,
            data=data,
            original_name=file.filename or "image",
            mime_type=mime_type,
            metadata=metadata,
            context=context,
        )

    async def _download(self, url: str) -> httpx.Response:
        try:
            async with httpx.AsyncClient(timeout=settings.URL_DOWNLOAD_TIMEOUT, follow_redirects=True) as client:
                response = await client.get(url, headers=DOWNLOAD_HEADERS)
                response.raise_for_status()
                return response
        except httpx.HTTPError as e:
            logger.warning(f"Download from {url} failed: {e}")
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"message": "Failed to download image from URL", "url": url, "error": str(e)},
            )

    async def upload_from_url(self, pool: ResilientPool, *, url_in: ImageUrlUpload, context: UserContext) -> Image:
        parsed = urlparse(url_in.url)
        if parsed.scheme not in ("http", "https"):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="URL must be http or https")
        # quota is checked before spending a download on it
        await permission_helper.require_contribution_quota(pool, context)

        response = await self._download(url_in.url)
        mime_type = response.headers.get("content-type", "image/jpeg").split(";")[0].strip().lower()
        return await self._store(
            pool,
            data=response.content,
            original_name=os.path.basename(parsed.path) or "image",
            mime_type=mime_type,
            metadata=url_in,
            context=context,
            source_url=url_in.url,
        )

    async def list_images(self, pool: ResilientPool, *, filters: ImageFilter) -> Page[Image]:
        tags = split_tags(filters.tags) or None
        rows = await crud_image.find_all(
            pool,
            limit=filters.limit,
            offset=filters.offset,
            image_type=filters.image_type,
            license=filters.license,
            tags=tags,
        )
        total = await crud_image.get_count(pool, image_type=filters.image_type, license=filters.license, tags=tags)
        return Page[Image](
            items=[Image.model_validate(r) for r in rows],
            pagination=Pagination.build(total=total, limit=filters.limit, offset=filters.offset),
        )

    def local_file(self, filename: str) -> Path:
        path = self.storage.local_path(filename)
        if path is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
        return path

    async def get_image(self, pool: ResilientPool, *, image_id: int) -> Image:
        return Image.model_validate(await self.get_or_404(pool, image_id))

    async def update_image(self, pool: ResilientPool, *, image_id: int, update_in: ImageUpdate, context: UserContext) -> Image:
        existing = await self.get_or_404(pool, image_id)
        permission_helper.require_owner_or_admin(context, existing["uploaded_by"], "You can only edit images you uploaded.")
        updated = await crud_image.update(pool, id=image_id, obj_in=update_in)
        return Image.model_validate(updated)

    async def delete_image(self, pool: ResilientPool, *, image_id: int, context: UserContext) -> None:
        existing = await self.get_or_404(pool, image_id)
        permission_helper.require_owner_or_admin(context, existing["uploaded_by"], "You can only delete images you uploaded.")
        await crud_image.delete(pool, id=image_id)
        removed = await self.storage.remove_stored(existing["file_path"], existing["filename"])
        if not removed:
            logger.warning(f"Stored file for image {image_id} could not be removed: {existing['file_path']}")
        logger.info(f"Image {image_id} deleted by {context.user.username}")

    async def associate(
        self, pool: ResilientPool, *, image_id: int, question_id: int, association: ImageAssociation
    ) -> QuestionImageLink:
        await self.get_or_404(pool, image_id)
        if not await crud_question.get(pool, question_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Question not found")
        link = await crud_image.associate_with_question(
            pool,
            question_id=question_id,
            image_id=image_id,
            display_order=association.display_order,
            usage_type=association.usage_type,
        )
        return QuestionImageLink.model_validate(link)

    async def update_usage(self, pool: ResilientPool, *, image_id: int, question_id: int, usage_type: str) -> QuestionImageLink:
        if usage_type not in {u.value for u in UsageTypeEnum}:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='Invalid usage_type. Must be "question" or "explanation"',
            )
        link = await crud_image.update_image_usage(
            pool, question_id=question_id, image_id=image_id, usage_type=usage_type
        )
        if not link:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Association not found")
        return QuestionImageLink.model_validate(link)

    async def remove_association(self, pool: ResilientPool, *, image_id: int, question_id: int) -> None:
        if not await crud_image.remove_from_question(pool, question_id=question_id, image_id=image_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Association not found")

    async def questions_for_image(self, pool: ResilientPool, *, image_id: int) -> List[QuestionLink]:
        await self.get_or_404(pool, image_id)
        rows = await crud_image.find_questions_for_image(pool, image_id=image_id)
        return [QuestionLink(**r) for r in rows]

    async def next_for_review(self, pool: ResilientPool) -> NextImageForReview:
        row = await crud_image.get_next_for_review(pool)
        stats = ImageReviewStats(**await crud_image.get_review_stats(pool))
        return NextImageForReview(image=Image.model_validate(row) if row else None, stats=stats)

    async def submit_review(self, pool: ResilientPool, *, image_id: int, review_in: ImageReviewSubmit, context: UserContext) -> Image:
        validate_image_review(review_in.rating, review_in.status)
        row = await crud_image.submit_review(
            pool,
            image_id=image_id,
            reviewer_id=context.user.id,
            rating=review_in.rating,
            review_status=review_in.status,
        )
        if not row:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Image not found or already reviewed")
        logger.info(f"Image {image_id} reviewed as {review_in.status} ({review_in.rating}) by {context.user.username}")
        return Image.model_validate(row)

    async def contributor_stats(self, pool: ResilientPool, *, context: UserContext) -> ContributorStats:
        images = await crud_image.count_by_user(pool, user_id=context.user.id)
        descriptions = await crud_image_description.count_by_user(pool, user_id=context.user.id)
        total = images + descriptions
        limit = settings.IMAGE_CONTRIBUTOR_LIMIT
        limited = permission_helper.is_limited_contributor(context)
        user = context.user
        return ContributorStats(
            user=ContributorInfo(
                id=user.id,
                username=user.username,
                is_image_contributor=user.is_image_contributor,
                is_admin=user.is_admin,
                is_reviewer=user.is_reviewer,
            ),
            stats=ContributionStats(
                images_uploaded=images,
                descriptions_created=descriptions,
                total_contributions=total,
                limit=limit if limited else None,
                remaining=max(0, limit - total) if limited else None,
                is_limited=limited,
                at_limit=limited and total >= limit,
            ),
        )


image_service = ImageService()
