from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator
from typing import Optional, List, Union
from datetime import datetime

from app.core.constants import ImageReviewStatusEnum, ImageTypeEnum, LicenseEnum, LICENSE_INFO, UsageTypeEnum


def split_tags(value: Union[str, List[str], None]) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [t.strip() for t in value.split(",") if t.strip()]
    return [str(t).strip() for t in value if str(t).strip()]


class LicenseInfo(BaseModel):
    name: str
    url: Optional[str] = None
    requires_attribution: bool

    @classmethod
    def for_license(cls, license: str) -> Optional["LicenseInfo"]:
        try:
            info = LICENSE_INFO[LicenseEnum(license)]
        except ValueError:
            return None
        return cls(**info)


class ImageMetadata(BaseModel):
    """Fields supplied alongside an upload."""
    description: Optional[str] = None
    tags: List[str] = []
    image_type: Optional[ImageTypeEnum] = None
    license: LicenseEnum = LicenseEnum.USER_CONTRIBUTED
    license_details: Optional[str] = None
    source_url: Optional[str] = None

    model_config = ConfigDict(use_enum_values=True)

    @field_validator("tags", mode="before")
    def normalize_tags(cls, v):
        return split_tags(v)

class ImageUrlUpload(ImageMetadata):
    url: str

class ImageUpdate(BaseModel):
    description: Optional[str] = None
    tags: Optional[List[str]] = None
    image_type: Optional[ImageTypeEnum] = None
    license: Optional[LicenseEnum] = None
    license_details: Optional[str] = None

    model_config = ConfigDict(use_enum_values=True)

    @field_validator("tags", mode="before")
    def normalize_tags(cls, v):
        return None if v is None else split_tags(v)

class Image(BaseModel):
    id: int
    filename: str
    original_name: str
    file_path: str
    file_size: int
    mime_type: str
    image_type: str
    width: Optional[int] = None
    height: Optional[int] = None
    duration_seconds: Optional[float] = None
    description: Optional[str] = None
    tags: List[str] = []
    license: str
    license_details: Optional[str] = None
    source_url: Optional[str] = None
    exam_category: Optional[str] = None
    exam_type: Optional[str] = None
    uploaded_by: Optional[int] = None
    review_status: str = ImageReviewStatusEnum.PENDING.value
    review_rating: Optional[int] = None
    reviewed_by: Optional[int] = None
    reviewed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator("tags", mode="before")
    def tags_or_empty(cls, v):
        return v or []

    @computed_field
    @property
    def license_info(self) -> Optional[LicenseInfo]:
        return LicenseInfo.for_license(self.license)

class LinkedImage(Image):
    """An image as linked to one question."""
    display_order: int = 1
    usage_type: str = UsageTypeEnum.QUESTION.value

class ImageAssociation(BaseModel):
    display_order: int = 1
    usage_type: UsageTypeEnum = UsageTypeEnum.QUESTION

    model_config = ConfigDict(use_enum_values=True)

class ImageUsageUpdate(BaseModel):
    usage_type: str

class QuestionImageLink(BaseModel):
    id: int
    question_id: int
    image_id: int
    display_order: int
    usage_type: str
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

class ImageReviewSubmit(BaseModel):
    # validated by app.utils.review so invalid values surface as 400s
    rating: Optional[int] = None
    status: str

class ImageReviewStats(BaseModel):
    total: int = 0
    reviewed: int = 0
    remaining: int = 0

class NextImageForReview(BaseModel):
    image: Optional[Image] = None
    stats: ImageReviewStats

class ContributorInfo(BaseModel):
    id: int
    username: str
    is_image_contributor: bool
    is_admin: bool
    is_reviewer: bool

class ContributionStats(BaseModel):
    images_uploaded: int
    descriptions_created: int
    total_contributions: int
    limit: Optional[int] = None
    remaining: Optional[int] = None
    is_limited: bool
    at_limit: bool

class ContributorStats(BaseModel):
    user: ContributorInfo
    stats: ContributionStats

class ImageFilter(BaseModel):
    image_type: Optional[ImageTypeEnum] = None
    license: Optional[LicenseEnum] = None
    tags: Optional[str] = None
    limit: int = Field(50, ge=1, le=500)
    offset: int = Field(0, ge=0)

    model_config = ConfigDict(use_enum_values=True)
