import logging
from contextlib import asynccontextmanager

import boto3
import firebase_admin
from botocore.config import Config as BotoConfig
from fastapi import FastAPI, Request
from firebase_admin import credentials
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse

from config import Config
from routes.account import router as account_router
from routes.posts import router as posts_router
from services.accounts import AccountDeletionService
from services.errors import SocialFeedError
from services.firestore import FirestoreDB
from services.identity import FirebaseIdentityProvider
from services.posts import PostsService
from services.s3 import S3Service

logging.basicConfig(
    level=Config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Initialize Firebase Admin SDK
    cred = credentials.Certificate(Config.FIREBASE_CREDENTIALS)
    firebase_app = firebase_admin.initialize_app(cred)

    # S3 client
    s3_client = boto3.client(
        's3',
        aws_access_key_id=Config.AWS_ACCESS_KEY_ID,
        aws_secret_access_key=Config.AWS_SECRET_ACCESS_KEY,
        region_name=Config.AWS_REGION,
        config=BotoConfig(signature_version="s3v4")
    )

    # Initialize dependencies
    timeout = Config.STORE_CALL_TIMEOUT_SECONDS
    s3 = S3Service(
        Config.S3_BUCKET_NAME,
        s3_client,
        public_base_url=Config.S3_PUBLIC_BASE_URL,
        timeout=timeout,
        url_expiration_seconds=Config.PRESIGNED_URL_EXPIRATION_SECONDS,
    )
    firestore = FirestoreDB(firebase_app, timeout=timeout)
    identity = FirebaseIdentityProvider(
        firebase_app,
        reauth_max_age_seconds=Config.REAUTH_MAX_AGE_SECONDS,
        timeout=timeout,
    )
    posts_service = PostsService(
        firestore,
        s3,
        max_images=Config.MAX_POST_IMAGES,
        max_concurrency=Config.MAX_CONCURRENT_STORE_CALLS,
    )
    account_service = AccountDeletionService(
        firestore,
        s3,
        identity,
        posts_service,
        max_concurrency=Config.MAX_CONCURRENT_STORE_CALLS,
    )

    app.state.firestore = firestore
    app.state.identity = identity
    app.state.posts_service = posts_service
    app.state.account_service = account_service
    logger.info("Services initialized for bucket %s", Config.S3_BUCKET_NAME)

    yield
    # Cleanup resources
    firebase_admin.delete_app(firebase_app)


app = FastAPI(lifespan=lifespan)


@app.exception_handler(SocialFeedError)
async def social_feed_error_handler(request: Request, exc: SocialFeedError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=Config.CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(posts_router, prefix="/posts", tags=["posts"])
app.include_router(account_router, prefix="/account", tags=["account"])
