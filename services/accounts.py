import asyncio
import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as SchemaError

from models.deletion import DeletionOutcome, DeletionStage, PostDeletionWarning
from models.post import Post
from models.user import User, profile_image_key
from services.errors import NotFound, SocialFeedError, StoreError
from services.firestore import FirestoreDB
from services.identity import FirebaseIdentityProvider
from services.posts import POSTS_COLLECTION, PostsService
from services.s3 import S3Service

logger = logging.getLogger(__name__)

USERS_COLLECTION = "Users"


class AccountDeletionService:
    """
    Deletes an account and everything it owns across Firestore, S3 and Firebase Auth

    Stages run strictly in order: reauthenticate, delete the user's posts,
    delete the profile image, delete the user document, delete the identity.
    The identity goes last because every earlier delete is authorized by it.
    A failed run leaves the identity in place, so the whole deletion can be
    retried from the top; already-deleted resources are skipped as not found.
    """

    def __init__(
            self,
            db: FirestoreDB,
            storage: S3Service,
            identity: FirebaseIdentityProvider,
            posts: PostsService,
            max_concurrency: int = 4,
    ):
        self.db = db
        self.storage = storage
        self.identity = identity
        self.posts = posts
        self.max_concurrency = max_concurrency

    async def delete_account(self, uid: str, reauth_token: str) -> DeletionOutcome:
        stage = DeletionStage.REAUTH_PENDING
        warnings: List[PostDeletionWarning] = []
        try:
            await self.identity.reauthenticate(uid, reauth_token)

            stage = DeletionStage.DELETING_POSTS
            warnings = await self._delete_posts(uid)

            stage = DeletionStage.DELETING_PROFILE_IMAGE
            await self._delete_profile_image(uid)

            stage = DeletionStage.DELETING_USER_RECORD
            await self.db.delete(USERS_COLLECTION, uid)
            logger.info("Deleted user document of %s", uid)

            stage = DeletionStage.DELETING_IDENTITY
            try:
                await self.identity.delete_user(uid)
            except NotFound:
                logger.warning("Identity %s was already deleted", uid)
        except Exception as e:
            logger.exception("Account deletion of %s failed at stage %s", uid, stage.value)
            return DeletionOutcome.failed(stage, e, warnings)

        if warnings:
            logger.warning("Account %s deleted with %d post deletion warnings", uid, len(warnings))
        else:
            logger.info("Account %s deleted", uid)
        return DeletionOutcome.done(warnings)

    async def _delete_posts(self, uid: str) -> List[PostDeletionWarning]:
        """Delete every post of uid, at most max_concurrency at a time, collecting per-post failures"""
        records = await self.db.query(POSTS_COLLECTION, "userUID", uid)
        logger.info("Deleting %d posts of %s", len(records), uid)

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def delete_one(record: Dict[str, Any]) -> Optional[PostDeletionWarning]:
            async with semaphore:
                return await self._delete_post_record(record)

        results = await asyncio.gather(*(delete_one(record) for record in records))
        return [warning for warning in results if warning is not None]

    async def _delete_post_record(self, record: Dict[str, Any]) -> Optional[PostDeletionWarning]:
        record = dict(record)
        post_id = record.pop("id", None)
        try:
            post = Post.from_document(post_id, record)
            await self.posts.delete_post(post)
        except SchemaError as e:
            error = StoreError(f"Post {post_id} is malformed: {e.error_count()} validation errors")
            logger.warning("Could not delete post %s: %s", post_id, error)
            return PostDeletionWarning.from_error(post_id, error)
        except SocialFeedError as e:
            logger.warning("Could not delete post %s: %s", post_id, e)
            return PostDeletionWarning.from_error(post_id, e)
        return None

    async def _delete_profile_image(self, uid: str) -> None:
        try:
            record = await self.db.get(USERS_COLLECTION, uid)
            key = User.model_validate({"userUID": uid, **record}).profile_image_key
        except NotFound:
            key = profile_image_key(uid)
        except SchemaError:
            logger.warning("User document of %s is malformed, using the default profile image key", uid)
            key = profile_image_key(uid)

        try:
            await self.storage.delete(key)
        except NotFound:
            logger.warning("Profile image %s was already deleted", key)
