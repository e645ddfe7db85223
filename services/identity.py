import asyncio
import logging
import time
from typing import Any, Dict, Optional

import firebase_admin
from firebase_admin import auth
from firebase_admin.exceptions import FirebaseError

from services.errors import AuthError, NotFound, StoreError
from utils.blocking import call_blocking

logger = logging.getLogger(__name__)


class FirebaseIdentityProvider:
    def __init__(
            self,
            app: Optional[firebase_admin.App] = None,
            reauth_max_age_seconds: int = 300,
            timeout: Optional[float] = None,
    ):
        self.app = app
        self.reauth_max_age_seconds = reauth_max_age_seconds
        self.timeout = timeout

    async def verify(self, id_token: str) -> Dict[str, Any]:
        """
        Verify a Firebase ID token and return its decoded claims

        Raises:
            AuthError: If the token is malformed, expired, revoked or the user is disabled
            StoreError: If Firebase cannot be reached
        """
        try:
            return await call_blocking(
                auth.verify_id_token,
                id_token,
                app=self.app,
                check_revoked=True,
                clock_skew_seconds=10,
                timeout=self.timeout,
            )
        except (auth.InvalidIdTokenError, auth.UserDisabledError, ValueError) as e:
            raise AuthError(f"Invalid authentication token: {e}") from e
        except FirebaseError as e:
            logger.error("Firebase token verification error: %s", e)
            raise StoreError("Failed to verify authentication token") from e
        except asyncio.TimeoutError as e:
            raise StoreError("Timed out verifying authentication token") from e

    async def reauthenticate(self, uid: str, id_token: str) -> Dict[str, Any]:
        """
        Confirm that id_token is a fresh sign-in of uid

        Destructive operations require the user to have signed in again
        recently, so the token's auth_time must fall within the configured
        window.

        Raises:
            AuthError: If the token is invalid, belongs to another user or is stale
        """
        claims = await self.verify(id_token)
        if claims.get("uid") != uid:
            raise AuthError("Credential does not belong to the current user")

        auth_time = claims.get("auth_time")
        if auth_time is None or time.time() - float(auth_time) > self.reauth_max_age_seconds:
            raise AuthError(
                "Recent sign-in required",
                details={"max_age_seconds": self.reauth_max_age_seconds},
            )
        return claims

    async def delete_user(self, uid: str) -> None:
        """
        Delete an identity, revoking its ability to sign in

        Raises:
            NotFound: If no such identity exists
            StoreError: If Firebase rejects the request
        """
        try:
            await call_blocking(auth.delete_user, uid, app=self.app, timeout=self.timeout)
        except auth.UserNotFoundError as e:
            raise NotFound("Identity", uid) from e
        except FirebaseError as e:
            logger.error("Firebase error deleting user %s: %s", uid, e)
            raise StoreError(f"Failed to delete identity {uid}") from e
        except asyncio.TimeoutError as e:
            raise StoreError(f"Timed out deleting identity {uid}") from e
