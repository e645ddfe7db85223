import os

from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return int(value)


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return float(value)


class Config:
    FIREBASE_CREDENTIALS = os.getenv("FIREBASE_CREDENTIALS", "./firebase.json")

    AWS_ACCESS_KEY_ID = os.getenv("AWS_ACCESS_KEY_ID")
    AWS_SECRET_ACCESS_KEY = os.getenv("AWS_SECRET_ACCESS_KEY")
    AWS_REGION = os.getenv("AWS_REGION", "us-east-2")
    S3_BUCKET_NAME = os.getenv("S3_BUCKET_NAME")
    # Post image URLs are persisted, so a public base URL is preferred over presigned links
    S3_PUBLIC_BASE_URL = os.getenv("S3_PUBLIC_BASE_URL", "").strip() or None
    PRESIGNED_URL_EXPIRATION_SECONDS = _env_int("PRESIGNED_URL_EXPIRATION_SECONDS", 7 * 24 * 60 * 60)

    STORE_CALL_TIMEOUT_SECONDS = _env_float("STORE_CALL_TIMEOUT_SECONDS", 10.0)
    REAUTH_MAX_AGE_SECONDS = _env_int("REAUTH_MAX_AGE_SECONDS", 5 * 60)

    MAX_POST_IMAGES = _env_int("MAX_POST_IMAGES", 4)
    MAX_IMAGE_SIZE_MB = _env_int("MAX_IMAGE_SIZE_MB", 5)
    # Per-request cap on concurrent store calls, keeps them within the worker thread pool
    MAX_CONCURRENT_STORE_CALLS = _env_int("MAX_CONCURRENT_STORE_CALLS", 4)

    _cors_origins_raw = os.getenv("CORS_ALLOWED_ORIGINS", "").strip()
    if _cors_origins_raw:
        CORS_ALLOWED_ORIGINS = [
            origin.strip() for origin in _cors_origins_raw.split(",") if origin.strip()
        ]
    else:
        CORS_ALLOWED_ORIGINS = ["http://localhost:3000"]

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
