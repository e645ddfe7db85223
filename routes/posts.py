from typing import List, Dict, Any, Optional

from fastapi import APIRouter, File, Form, HTTPException, Query, Response, UploadFile

from config import Config
from dependencies import CurrentSession, CurrentUser, Posts

router = APIRouter()


@router.get("")
async def get_posts(
        posts: Posts,
        current_user: CurrentUser,
        limit: int = Query(20, ge=1, le=50),
) -> List[Dict[str, Any]]:
    """Get the most recent posts, newest first"""
    feed = await posts.get_feed(limit)
    return [post.model_dump(mode="json", by_alias=True) for post in feed]


@router.post("", status_code=201)
async def create_post(
        posts: Posts,
        session: CurrentSession,
        text: str = Form(""),
        images: Optional[List[UploadFile]] = File(None),
) -> Dict[str, Any]:
    """Create a post from text and already compressed images"""
    payloads = []
    for image in images or []:
        if not (image.content_type or "").startswith("image/"):
            raise HTTPException(
                status_code=400,
                detail="Only image files are supported"
            )

        data = await image.read()
        if len(data) > Config.MAX_IMAGE_SIZE_MB * 1024 * 1024:
            raise HTTPException(
                status_code=400,
                detail=f"Image size exceeds {Config.MAX_IMAGE_SIZE_MB}MB limit"
            )
        payloads.append(data)

    post = await posts.create_post(text, payloads, session)
    return post.model_dump(mode="json", by_alias=True)


@router.delete("/{post_id}", status_code=204)
async def delete_post(
        posts: Posts,
        post_id: str,
        current_user: CurrentUser,
) -> Response:
    """Delete one of the caller's posts together with its images"""
    await posts.delete_post_by_id(post_id, current_user.user_id)
    return Response(status_code=204)


@router.post("/{post_id}/like")
async def toggle_like(
        posts: Posts,
        post_id: str,
        current_user: CurrentUser,
) -> Dict[str, Any]:
    """Toggle like status for a post"""
    post = await posts.react(post_id, current_user.user_id, "like")
    return post.model_dump(mode="json", by_alias=True)


@router.post("/{post_id}/dislike")
async def toggle_dislike(
        posts: Posts,
        post_id: str,
        current_user: CurrentUser,
) -> Dict[str, Any]:
    """Toggle dislike status for a post"""
    post = await posts.react(post_id, current_user.user_id, "dislike")
    return post.model_dump(mode="json", by_alias=True)
