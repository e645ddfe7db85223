from typing import Annotated

from fastapi import Request, Depends, HTTPException
from pydantic import ValidationError as SchemaError

from models.user import AuthUser, Session, User
from services.accounts import AccountDeletionService, USERS_COLLECTION
from services.errors import AuthError, NotFound
from services.firestore import FirestoreDB
from services.identity import FirebaseIdentityProvider
from services.posts import PostsService


async def get_firestore(request: Request) -> FirestoreDB:
    """ Get Firestore DB from app state """
    return request.app.state.firestore


async def get_identity_provider(request: Request) -> FirebaseIdentityProvider:
    """Get Firebase identity provider from app state"""
    return request.app.state.identity


async def get_posts_service(request: Request) -> PostsService:
    """Get posts service from app state"""
    return request.app.state.posts_service


async def get_account_service(request: Request) -> AccountDeletionService:
    """Get account deletion service from app state"""
    return request.app.state.account_service


async def get_current_user(
        request: Request,
        identity: Annotated[FirebaseIdentityProvider, Depends(get_identity_provider)],
) -> AuthUser:
    """
    Verify Firebase ID token from Authorization header and return user info
    """
    authorization = request.headers.get("Authorization")
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=401,
            detail="Invalid authorization header"
        )

    token = authorization.split("Bearer ")[1]
    try:
        decoded_token = await identity.verify(token)
    except AuthError as e:
        raise HTTPException(status_code=401, detail=str(e))

    return AuthUser(
        user_id=decoded_token["uid"],
        email=decoded_token.get("email"),
    )


async def get_user_session(
        current_user: Annotated[AuthUser, Depends(get_current_user)],
        db: Annotated[FirestoreDB, Depends(get_firestore)],
) -> Session:
    """
    Build the author session of the signed-in user from their profile document
    """
    uid = current_user.user_id
    try:
        record = await db.get(USERS_COLLECTION, uid)
        user = User.model_validate({"userUID": uid, **record})
    except NotFound:
        raise HTTPException(status_code=404, detail="User profile not found")
    except SchemaError:
        raise HTTPException(status_code=409, detail="User profile is incomplete")
    return Session.from_user(user)


CurrentUser = Annotated[AuthUser, Depends(get_current_user)]
CurrentSession = Annotated[Session, Depends(get_user_session)]
Posts = Annotated[PostsService, Depends(get_posts_service)]
AccountDeleter = Annotated[AccountDeletionService, Depends(get_account_service)]
