"""
Custom exception classes for the messaging service.
Provides structured error handling with machine-readable error codes.
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Error codes shared by the HTTP API and the realtime gateway"""

    # Authentication errors (401)
    AUTH_INVALID_CREDENTIALS = "AUTH_INVALID_CREDENTIALS"
    AUTH_TOKEN_EXPIRED = "AUTH_TOKEN_EXPIRED"
    AUTH_TOKEN_INVALID = "AUTH_TOKEN_INVALID"
    AUTH_NOT_AUTHENTICATED = "AUTH_NOT_AUTHENTICATED"

    # Authorization errors (403)
    AUTHZ_FORBIDDEN = "AUTHZ_FORBIDDEN"
    AUTHZ_ACCOUNT_RESTRICTED = "AUTHZ_ACCOUNT_RESTRICTED"

    # Resource errors (404, 409)
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    RESOURCE_ALREADY_EXISTS = "RESOURCE_ALREADY_EXISTS"
    PRECONDITION_FAILED = "PRECONDITION_FAILED"

    # Request errors (400, 422)
    OPERATION_NOT_ALLOWED = "OPERATION_NOT_ALLOWED"
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Server errors (500+)
    SERVER_ERROR = "SERVER_ERROR"
    SERVER_UNAVAILABLE = "SERVER_UNAVAILABLE"


class AppException(Exception):
    """
    Base exception class for application errors.
    All custom exceptions should inherit from this class.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.SERVER_ERROR,
        status_code: int = 500,
        field: str | None = None,
        metadata: dict[str, Any] | None = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.field = field
        self.metadata = metadata or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to response dictionary"""
        response = {
            "detail": self.message,
            "code": self.code.value,
        }
        if self.field:
            response["field"] = self.field
        if self.metadata:
            response["metadata"] = self.metadata
        return response


# Authentication Errors (401)


class AuthenticationError(AppException):
    """Base authentication error"""

    def __init__(
        self,
        message: str = "Authentication required",
        code: ErrorCode = ErrorCode.AUTH_NOT_AUTHENTICATED,
        field: str | None = None,
        metadata: dict[str, Any] | None = None,
    ):
        super().__init__(
            message=message,
            code=code,
            status_code=401,
            field=field,
            metadata=metadata,
        )


class InvalidCredentialsError(AuthenticationError):
    """Invalid email or password"""

    def __init__(
        self,
        message: str = "Incorrect email or password",
        field: str | None = None,
    ):
        super().__init__(
            message=message,
            code=ErrorCode.AUTH_INVALID_CREDENTIALS,
            field=field,
        )


class TokenExpiredError(AuthenticationError):
    """JWT token has expired"""

    def __init__(self, message: str = "Session has expired"):
        super().__init__(
            message=message,
            code=ErrorCode.AUTH_TOKEN_EXPIRED,
        )


class TokenInvalidError(AuthenticationError):
    """JWT token is invalid"""

    def __init__(self, message: str = "Could not validate credentials"):
        super().__init__(
            message=message,
            code=ErrorCode.AUTH_TOKEN_INVALID,
        )


# Authorization Errors (403)


class AuthorizationError(AppException):
    """Base authorization error"""

    def __init__(
        self,
        message: str = "You are not allowed to perform this action",
        code: ErrorCode = ErrorCode.AUTHZ_FORBIDDEN,
        field: str | None = None,
        metadata: dict[str, Any] | None = None,
    ):
        super().__init__(
            message=message,
            code=code,
            status_code=403,
            field=field,
            metadata=metadata,
        )


class ForbiddenError(AuthorizationError):
    """Authenticated user has no rights over the target resource"""

    def __init__(
        self,
        message: str = "Not authorized",
        resource: str | None = None,
    ):
        metadata = {"resource": resource} if resource else None
        super().__init__(message=message, metadata=metadata)


class AccountRestrictedError(AuthorizationError):
    """Suspended or banned account tried to use messaging"""

    def __init__(self, message: str = "Your account is not allowed to send messages"):
        super().__init__(
            message=message,
            code=ErrorCode.AUTHZ_ACCOUNT_RESTRICTED,
        )


# Resource Errors (404, 409)


class NotFoundError(AppException):
    """Resource not found"""

    def __init__(
        self,
        message: str = "The requested resource was not found",
        resource: str | None = None,
    ):
        metadata = {"resource": resource} if resource else None
        super().__init__(
            message=message,
            code=ErrorCode.RESOURCE_NOT_FOUND,
            status_code=404,
            metadata=metadata,
        )


class AlreadyExistsError(AppException):
    """Resource already exists"""

    def __init__(
        self,
        message: str = "This resource already exists",
        field: str | None = None,
    ):
        super().__init__(
            message=message,
            code=ErrorCode.RESOURCE_ALREADY_EXISTS,
            status_code=409,
            field=field,
        )


class PreconditionError(AppException):
    """Target resource is not in a state that allows the action"""

    def __init__(
        self,
        message: str = "The resource is not in a state that allows this action",
        resource: str | None = None,
    ):
        metadata = {"resource": resource} if resource else None
        super().__init__(
            message=message,
            code=ErrorCode.PRECONDITION_FAILED,
            status_code=409,
            metadata=metadata,
        )


# Request Errors (400, 422)


class InvalidOperationError(AppException):
    """Semantically disallowed action"""

    def __init__(self, message: str = "This operation is not allowed"):
        super().__init__(
            message=message,
            code=ErrorCode.OPERATION_NOT_ALLOWED,
            status_code=400,
        )


class ValidationError(AppException):
    """Validation error"""

    def __init__(
        self,
        message: str = "Please check the submitted data",
        field: str | None = None,
        code: ErrorCode = ErrorCode.VALIDATION_ERROR,
    ):
        super().__init__(
            message=message,
            code=code,
            status_code=422,
            field=field,
        )


# Server Errors (500+)


class ServerError(AppException):
    """Internal server error"""

    def __init__(
        self,
        message: str = "Internal server error",
        code: ErrorCode = ErrorCode.SERVER_ERROR,
        status_code: int = 500,
    ):
        super().__init__(
            message=message,
            code=code,
            status_code=status_code,
        )


class InfrastructureError(ServerError):
    """Underlying store is unavailable. Details are logged, never returned."""

    def __init__(self, message: str = "Service temporarily unavailable"):
        super().__init__(
            message=message,
            code=ErrorCode.SERVER_UNAVAILABLE,
            status_code=503,
        )
