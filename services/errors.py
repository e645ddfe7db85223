"""
Error taxonomy shared by the store clients, the post pipeline and the
account deletion workflow
"""
from typing import Optional, Dict, Any


class SocialFeedError(Exception):
    """Base exception class for content lifecycle errors"""
    status_code = 500

    def __init__(self, message: str, code: str = "UNKNOWN_ERROR", details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to standard error format"""
        return {
            "code": self.code,
            "message": str(self),
            "details": self.details
        }


class ValidationError(SocialFeedError):
    """Raised when user input is rejected before any side effect"""
    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="VALIDATION_ERROR", details=details)


class UploadFailed(SocialFeedError):
    """Raised when writing a blob fails"""
    status_code = 502

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="UPLOAD_FAILED", details=details)


class AuthError(SocialFeedError):
    """Raised for a bad credential or an unauthorized operation"""
    status_code = 401

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="AUTH_ERROR", details=details)


class NotFound(SocialFeedError):
    """Raised when a requested resource does not exist"""
    status_code = 404

    def __init__(self, resource_type: str, resource_id: str, details: Optional[Dict[str, Any]] = None):
        message = f"{resource_type} with id '{resource_id}' not found"
        super().__init__(message, code="NOT_FOUND", details=details)
        self.resource_type = resource_type
        self.resource_id = resource_id


class StoreError(SocialFeedError):
    """Raised for a generic backend failure"""
    status_code = 503

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="STORE_ERROR", details=details)
