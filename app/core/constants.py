from enum import Enum


ANSWER_LETTERS = ("A", "B", "C", "D", "E", "F", "G")
IMAGE_NEEDED_NOTE = "Question needs image to be uploaded before review"
REVIEW_NOTES_REQUIRED = "Review notes are required for rejected or returned questions"

class RoleEnum(str, Enum):
    ADMIN = "admin"
    REVIEWER = "reviewer"
    IMAGE_CONTRIBUTOR = "image_contributor"
    USER = "user"

class PermissionEnum(str, Enum):
    USER_CREATE = "user:create"
    USER_READ = "user:read"
    USER_UPDATE = "user:update"
    USER_DELETE = "user:delete"

    TOKEN_CREATE = "registration_token:create"
    TOKEN_READ = "registration_token:read"

    QUESTION_CREATE = "question:create"
    QUESTION_UPLOAD = "question:upload"
    QUESTION_DELETE_WITH_IMAGES = "question:delete_with_images"
    QUESTION_REVIEW = "question:review"

    BATCH_READ = "batch:read"
    BATCH_DELETE = "batch:delete"

    IMAGE_UPLOAD = "image:upload"
    IMAGE_REVIEW = "image:review"
    IMAGE_UNLIMITED = "image:unlimited"

class ReviewStatusEnum(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    RETURNED = "returned"
    PENDING_SUBMISSION = "pending submission"

class ImageReviewStatusEnum(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    NEEDS_REVISION = "needs_revision"

class UsageTypeEnum(str, Enum):
    QUESTION = "question"
    EXPLANATION = "explanation"

class ImageTypeEnum(str, Enum):
    STILL = "still"
    CINE = "cine"

class ModalityEnum(str, Enum):
    TRANSTHORACIC = "transthoracic"
    TRANSESOPHAGEAL = "transesophageal"
    NON_ECHO = "non-echo"

class LicenseEnum(str, Enum):
    MIT = "mit"
    APACHE_2_0 = "apache-2.0"
    GPL_3_0 = "gpl-3.0"
    BSD_3_CLAUSE = "bsd-3-clause"
    CC0_1_0 = "cc0-1.0"
    CC_BY_4_0 = "cc-by-4.0"
    CC_BY_SA_3_0 = "cc-by-sa-3.0"
    CC_BY_SA_4_0 = "cc-by-sa-4.0"
    CC_BY_NC_4_0 = "cc-by-nc-4.0"
    CC_BY_NC_SA_4_0 = "cc-by-nc-sa-4.0"
    COPYRIGHT_BORROWED = "copyright-borrowed"
    USER_CONTRIBUTED = "user-contributed"

LICENSE_INFO = {
    LicenseEnum.MIT: {"name": "MIT License", "url": "https://opensource.org/licenses/MIT", "requires_attribution": True},
    LicenseEnum.APACHE_2_0: {"name": "Apache License 2.0", "url": "https://opensource.org/licenses/Apache-2.0", "requires_attribution": True},
    LicenseEnum.GPL_3_0: {"name": "GNU General Public License v3.0", "url": "https://opensource.org/licenses/GPL-3.0", "requires_attribution": True},
    LicenseEnum.BSD_3_CLAUSE: {"name": "BSD 3-Clause License", "url": "https://opensource.org/licenses/BSD-3-Clause", "requires_attribution": True},
    LicenseEnum.CC0_1_0: {"name": "Creative Commons Zero v1.0", "url": "https://creativecommons.org/publicdomain/zero/1.0/", "requires_attribution": False},
    LicenseEnum.CC_BY_4_0: {"name": "Creative Commons Attribution 4.0", "url": "https://creativecommons.org/licenses/by/4.0/", "requires_attribution": True},
    LicenseEnum.CC_BY_SA_3_0: {"name": "Creative Commons Attribution-Share Alike 3.0 Unported", "url": "https://creativecommons.org/licenses/by-sa/3.0/", "requires_attribution": True},
    LicenseEnum.CC_BY_SA_4_0: {"name": "Creative Commons Attribution-ShareAlike 4.0", "url": "https://creativecommons.org/licenses/by-sa/4.0/", "requires_attribution": True},
    LicenseEnum.CC_BY_NC_4_0: {"name": "Creative Commons Attribution-NonCommercial 4.0", "url": "https://creativecommons.org/licenses/by-nc/4.0/", "requires_attribution": True},
    LicenseEnum.CC_BY_NC_SA_4_0: {"name": "Creative Commons Attribution-NonCommercial-ShareAlike 4.0", "url": "https://creativecommons.org/licenses/by-nc-sa/4.0/", "requires_attribution": True},
    LicenseEnum.COPYRIGHT_BORROWED: {"name": "Copyright Borrowed", "url": None, "requires_attribution": True},
    LicenseEnum.USER_CONTRIBUTED: {"name": "User Contributed", "url": None, "requires_attribution": False},
}

ALLOWED_MIME_TYPES = (
    "image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp",
    "video/mp4", "video/webm", "video/quicktime", "video/x-msvideo",
)
