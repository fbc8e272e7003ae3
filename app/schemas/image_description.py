from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import datetime

from app.core.constants import ImageTypeEnum, ModalityEnum, UsageTypeEnum

class ImageDescriptionBase(BaseModel):
    description: str = ""
    usage_type: UsageTypeEnum = UsageTypeEnum.QUESTION
    modality: Optional[ModalityEnum] = None
    echo_view: Optional[str] = None
    image_type: ImageTypeEnum = ImageTypeEnum.STILL

    model_config = ConfigDict(use_enum_values=True)

class ImageDescriptionCreate(ImageDescriptionBase):
    question_id: int

class ImageDescriptionUpdate(BaseModel):
    description: Optional[str] = None
    usage_type: Optional[UsageTypeEnum] = None
    modality: Optional[ModalityEnum] = None
    echo_view: Optional[str] = None
    image_type: Optional[ImageTypeEnum] = None

    model_config = ConfigDict(use_enum_values=True)

class ImageDescription(BaseModel):
    id: int
    question_id: int
    description: str
    usage_type: str
    modality: Optional[str] = None
    echo_view: Optional[str] = None
    image_type: str
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
