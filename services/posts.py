import asyncio
import html
import logging
import uuid
from typing import Callable, List, Sequence

import bleach

from models.post import Post
from models.user import Session
from services.errors import AuthError, NotFound, SocialFeedError, UploadFailed, ValidationError
from services.firestore import FirestoreDB
from services.s3 import S3Service

logger = logging.getLogger(__name__)

POSTS_COLLECTION = "Posts"
POST_IMAGES_PREFIX = "Post_Images"
MAX_FEED_LIMIT = 50

REACTION_FIELDS = {
    "like": ("likedIDs", "dislikedIDs"),
    "dislike": ("dislikedIDs", "likedIDs"),
}


def post_image_key(reference_id: str) -> str:
    return f"{POST_IMAGES_PREFIX}/{reference_id}"


def sanitize_text(text: str) -> str:
    """Strip markup from user text, keeping the plain characters as typed"""
    return html.unescape(bleach.clean(text or "", tags=set(), strip=True))


def new_reference_id(author_uid: str) -> str:
    """Generate a blob reference id that stays unique for images uploaded in the same instant"""
    return f"{author_uid}-{uuid.uuid4().hex}"


class PostsService:
    def __init__(
            self,
            db: FirestoreDB,
            storage: S3Service,
            max_images: int = 4,
            reference_id_factory: Callable[[str], str] = new_reference_id,
            max_concurrency: int = 4,
    ):
        self.db = db
        self.storage = storage
        self.max_images = max_images
        self.max_concurrency = max_concurrency
        self.reference_id_factory = reference_id_factory

    async def create_post(self, text: str, images: Sequence[bytes], author: Session) -> Post:
        """
        Upload a post's images and commit the post once every upload succeeded

        :param text: the post body, may be empty when images are attached
        :param images: already compressed image payloads, in display order
        :param author: the signed-in author whose snapshot is stored on the post
        :return: the committed post with its store-assigned id
        :raises ValidationError: if there is nothing to post or too many images
        :raises UploadFailed: if any image upload fails; no post is committed
        """
        images = list(images or [])
        text = sanitize_text(text)
        if not text.strip() and not images:
            raise ValidationError("A post needs text or at least one image")
        if len(images) > self.max_images:
            raise ValidationError(
                f"A post can have at most {self.max_images} images",
                details={"max_images": self.max_images},
            )
        if any(not image for image in images):
            raise ValidationError("Image payloads must not be empty")

        reference_ids, urls = await self._upload_images(images, author.uid)

        post = Post(
            text=text,
            image_urls=urls,
            image_reference_ids=reference_ids,
            user_name=author.user_name,
            user_uid=author.uid,
            user_profile_url=author.profile_url,
        )

        try:
            post.id = await self.db.create(POSTS_COLLECTION, post.to_document())
        except SocialFeedError:
            if reference_ids:
                logger.warning(
                    "Post by %s was not committed, orphaned image blobs: %s",
                    author.uid, [post_image_key(ref) for ref in reference_ids],
                )
            raise

        logger.info("Committed post %s by %s with %d images", post.id, author.uid, len(urls))
        return post

    async def _upload_images(self, images: List[bytes], author_uid: str) -> tuple[List[str], List[str]]:
        """Upload images concurrently, returning reference ids and URLs in input order"""
        if not images:
            return [], []

        reference_ids = [self.reference_id_factory(author_uid) for _ in images]
        # Store call timeouts include time spent queued for a worker thread
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def upload(ref: str, image: bytes) -> str:
            async with semaphore:
                return await self.storage.put(post_image_key(ref), image, metadata={"user_id": author_uid})

        results = await asyncio.gather(
            *(upload(ref, image) for ref, image in zip(reference_ids, images)),
            return_exceptions=True,
        )

        failures = [(index, result) for index, result in enumerate(results) if isinstance(result, BaseException)]
        if failures:
            for _, error in failures:
                if not isinstance(error, Exception):
                    raise error
            uploaded = [
                post_image_key(ref)
                for ref, result in zip(reference_ids, results)
                if not isinstance(result, BaseException)
            ]
            if uploaded:
                logger.warning("Image upload failed for %s, orphaned image blobs: %s", author_uid, uploaded)
            raise UploadFailed(
                f"{len(failures)} of {len(images)} image uploads failed",
                details={
                    "failed_indexes": [index for index, _ in failures],
                    "errors": [str(error) for _, error in failures],
                },
            ) from failures[0][1]

        return reference_ids, list(results)

    async def delete_post(self, post: Post) -> None:
        """
        Delete a post's image blobs, then its record

        Missing blobs and records are treated as already deleted, so calling
        this again for the same post succeeds. Comments attached to the post
        are not touched.
        """
        for reference_id in post.image_reference_ids:
            key = post_image_key(reference_id)
            try:
                await self.storage.delete(key)
            except NotFound:
                logger.warning("Image %s of post %s was already deleted", key, post.id)

        if post.id is None:
            return
        await self.db.delete(POSTS_COLLECTION, post.id)
        logger.info("Deleted post %s", post.id)

    async def get_post(self, post_id: str) -> Post:
        record = await self.db.get(POSTS_COLLECTION, post_id)
        return Post.from_document(record.pop("id"), record)

    async def delete_post_by_id(self, post_id: str, requester_uid: str) -> None:
        """Delete a post on behalf of its author"""
        post = await self.get_post(post_id)
        if post.user_uid != requester_uid:
            raise AuthError("Only the author can delete this post", details={"post_id": post_id})
        await self.delete_post(post)

    async def get_feed(self, limit: int = 20) -> List[Post]:
        """Get the most recent posts, newest first"""
        limit = max(1, min(limit, MAX_FEED_LIMIT))
        records = await self.db.list_recent(POSTS_COLLECTION, "publishedDate", limit)
        return [Post.from_document(record.pop("id"), record) for record in records]

    async def react(self, post_id: str, uid: str, reaction: str) -> Post:
        """
        Toggle the user's like or dislike on a post

        Adding a reaction removes the opposite one.
        """
        if reaction not in REACTION_FIELDS:
            raise ValidationError(f"Unknown reaction: {reaction}")
        field, opposite_field = REACTION_FIELDS[reaction]
        record = await self.db.toggle_membership(POSTS_COLLECTION, post_id, field, opposite_field, uid)
        return Post.from_document(record.pop("id"), record)
