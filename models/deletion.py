from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from services.errors import SocialFeedError


class DeletionStage(Enum):
    REAUTH_PENDING = "reauth_pending"
    DELETING_POSTS = "deleting_posts"
    DELETING_PROFILE_IMAGE = "deleting_profile_image"
    DELETING_USER_RECORD = "deleting_user_record"
    DELETING_IDENTITY = "deleting_identity"
    DONE = "done"


class DeletionStatus(Enum):
    DONE = "done"
    DONE_WITH_WARNINGS = "done_with_warnings"
    FAILED = "failed"


class PostDeletionWarning(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    post_id: Optional[str] = Field(None, alias="postId")
    code: str
    message: str

    @classmethod
    def from_error(cls, post_id: Optional[str], error: SocialFeedError) -> "PostDeletionWarning":
        return cls(post_id=post_id, code=error.code, message=str(error))


class DeletionOutcome(BaseModel):
    """Terminal result of an account deletion"""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    status: DeletionStatus
    stage: DeletionStage
    warnings: List[PostDeletionWarning] = []
    error: Optional[Dict[str, Any]] = None
    cause: Optional[Exception] = Field(None, exclude=True)

    @classmethod
    def done(cls, warnings: List[PostDeletionWarning]) -> "DeletionOutcome":
        status = DeletionStatus.DONE_WITH_WARNINGS if warnings else DeletionStatus.DONE
        return cls(status=status, stage=DeletionStage.DONE, warnings=warnings)

    @classmethod
    def failed(
            cls,
            stage: DeletionStage,
            cause: Exception,
            warnings: Optional[List[PostDeletionWarning]] = None,
    ) -> "DeletionOutcome":
        if isinstance(cause, SocialFeedError):
            error = cause.to_dict()
        else:
            error = {"code": "UNKNOWN_ERROR", "message": str(cause), "details": {}}
        return cls(
            status=DeletionStatus.FAILED,
            stage=stage,
            warnings=warnings or [],
            error=error,
            cause=cause,
        )

    @property
    def succeeded(self) -> bool:
        return self.status is not DeletionStatus.FAILED
