from fastapi import APIRouter
from starlette.responses import JSONResponse

from dependencies import AccountDeleter, CurrentUser
from models.deletion import DeletionStage, DeletionStatus
from models.token import TokenRequest
from services.errors import AuthError

router = APIRouter()


@router.delete("")
async def delete_account(
        request: TokenRequest,
        accounts: AccountDeleter,
        current_user: CurrentUser,
):
    """
    Delete the caller's account, posts and images

    The request must carry a freshly minted ID token. A partially failed
    deletion can be retried with a new token.
    """
    outcome = await accounts.delete_account(current_user.user_id, request.id_token)

    if outcome.status is DeletionStatus.DONE:
        status_code = 200
    elif outcome.status is DeletionStatus.DONE_WITH_WARNINGS:
        # Account is gone but some posts could not be cleaned up
        status_code = 207
    elif outcome.stage is DeletionStage.REAUTH_PENDING and isinstance(outcome.cause, AuthError):
        status_code = 401
    else:
        status_code = 500

    return JSONResponse(
        status_code=status_code,
        content=outcome.model_dump(mode="json", by_alias=True),
    )
