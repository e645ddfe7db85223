from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from services.errors import StoreError

# Version of the Firestore document layout written by Post.to_document
POST_SCHEMA_VERSION = 1


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _unique(values: List[str]) -> List[str]:
    return list(dict.fromkeys(values))


class Post(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    text: str
    image_urls: List[str] = Field(default_factory=list, alias="imageURLs")
    image_reference_ids: List[str] = Field(default_factory=list, alias="imageReferenceIDs")
    published_date: datetime = Field(default_factory=_utc_now, alias="publishedDate", frozen=True)
    liked_ids: List[str] = Field(default_factory=list, alias="likedIDs")
    disliked_ids: List[str] = Field(default_factory=list, alias="dislikedIDs")
    # Author snapshot taken at creation time
    user_name: str = Field(..., alias="userName")
    user_uid: str = Field(..., alias="userUID")
    user_profile_url: Optional[str] = Field(None, alias="userProfileURL")

    @field_validator("liked_ids", "disliked_ids")
    @classmethod
    def _dedupe(cls, values: List[str]) -> List[str]:
        return _unique(values)

    @model_validator(mode="after")
    def _check_invariants(self) -> "Post":
        if len(self.image_urls) != len(self.image_reference_ids):
            raise ValueError("imageURLs and imageReferenceIDs must have the same length")
        if set(self.liked_ids) & set(self.disliked_ids):
            raise ValueError("a user cannot both like and dislike a post")
        return self

    def to_document(self) -> Dict[str, Any]:
        """Serialize to the Firestore document layout"""
        document = self.model_dump(by_alias=True, exclude={"id"})
        document["schemaVersion"] = POST_SCHEMA_VERSION
        return document

    @classmethod
    def from_document(cls, doc_id: Optional[str], data: Dict[str, Any]) -> "Post":
        """
        Deserialize a Firestore document

        Documents written before versioning are read as version 1.

        Raises:
            StoreError: If the schema version is unreadable or newer than supported
        """
        payload = dict(data)
        version = payload.pop("schemaVersion", 1)
        if not isinstance(version, int) or isinstance(version, bool):
            raise StoreError(
                f"Post document has an unreadable schema version: {version!r}",
                details={"post_id": doc_id},
            )
        if version > POST_SCHEMA_VERSION:
            raise StoreError(
                f"Post document uses schema version {version}, newest supported is {POST_SCHEMA_VERSION}",
                details={"post_id": doc_id},
            )
        payload["id"] = doc_id or payload.get("id")
        return cls.model_validate(payload)
