from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

PROFILE_IMAGES_PREFIX = "Profile_Images"


def profile_image_key(uid: str) -> str:
    return f"{PROFILE_IMAGES_PREFIX}/{uid}"


class User(BaseModel):
    """A document of the Users collection, keyed by uid"""
    model_config = ConfigDict(populate_by_name=True)

    uid: str = Field(..., alias="userUID")
    user_name: str = Field(..., alias="username")
    user_email: Optional[str] = Field(None, alias="userEmail")
    user_bio: Optional[str] = Field(None, alias="userBio")
    user_bio_link: Optional[str] = Field(None, alias="userBioLink")
    profile_image_url: Optional[str] = Field(None, alias="userProfileURL")
    profile_image_reference_id: Optional[str] = Field(None, alias="profileImageReferenceID")

    @property
    def profile_image_key(self) -> str:
        return self.profile_image_reference_id or profile_image_key(self.uid)


@dataclass(frozen=True)
class Session:
    """Author context of the signed-in user, passed explicitly to workflows"""
    uid: str
    user_name: str
    profile_url: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "Session":
        return cls(uid=user.uid, user_name=user.user_name, profile_url=user.profile_image_url)


class AuthUser(BaseModel):
    """Claims of a verified bearer token"""
    user_id: str
    email: Optional[str] = None
