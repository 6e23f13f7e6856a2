from typing import Optional, Any

class CivicLinkError(Exception):
    """
    Base exception for CivicLink application.
    """
    def __init__(self, message: str, code: str = "INTERNAL_ERROR", status_code: int = 500, details: Optional[Any] = None):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)

class NotFoundError(CivicLinkError):
    """
    Raised when an update/lookup target does not exist.
    """
    def __init__(self, message: str = "User not exists", details: Optional[Any] = None):
        super().__init__(message, code="NOT_FOUND", status_code=404, details=details)

class DuplicateIdentityError(CivicLinkError):
    """
    Raised when an account already exists for the identity-provider ID.
    """
    def __init__(self, message: str = "User already exists", details: Optional[Any] = None):
        super().__init__(message, code="DUPLICATE_IDENTITY", status_code=409, details=details)

class DuplicateCredentialError(CivicLinkError):
    """
    Raised when another account already claims the phone, email or voter ID.
    """
    def __init__(self, message: str = "User with given credentials already exists", details: Optional[Any] = None):
        super().__init__(message, code="DUPLICATE_CREDENTIAL", status_code=409, details=details)

class AuthenticationError(CivicLinkError):
    """
    Raised when authentication fails.
    """
    def __init__(self, message: str = "Authentication failed", details: Optional[Any] = None):
        super().__init__(message, code="AUTHENTICATION_FAILED", status_code=401, details=details)

class ValidationError(CivicLinkError):
    """
    Raised when input validation fails.
    """
    def __init__(self, message: str = "Validation error", details: Optional[Any] = None):
        super().__init__(message, code="VALIDATION_ERROR", status_code=422, details=details)

class ExternalProviderError(CivicLinkError):
    """
    Raised when the geo-IP service or the identity provider fails.
    Services catch it and continue without enrichment.
    """
    def __init__(self, message: str = "External provider error", details: Optional[Any] = None):
        super().__init__(message, code="EXTERNAL_PROVIDER_ERROR", status_code=502, details=details)
