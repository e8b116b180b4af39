"""
Domain errors raised by the auth services.

Every error is an `HTTPException`, so services raise them directly and
FastAPI turns them into responses — no translation layer.  All of them
are caller mistakes or expired state; none is retried.

`AccountNotFoundError` and `InvalidCredentialsError` are separate
classes (and are logged separately) but share one external message so
a caller cannot tell which check failed.
"""

from fastapi import HTTPException, status

BAD_CREDENTIALS_MESSAGE = "Invalid account name or password"


class AuthServiceError(HTTPException):
    status_code: int = status.HTTP_400_BAD_REQUEST
    message: str = "Bad request"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(status_code=type(self).status_code, detail=detail or self.message)


class DuplicateAccountError(AuthServiceError):
    message = "Account already registered"


class AccountNotFoundError(AuthServiceError):
    message = BAD_CREDENTIALS_MESSAGE


class InvalidCredentialsError(AuthServiceError):
    message = BAD_CREDENTIALS_MESSAGE


class ForbiddenError(AuthServiceError):
    status_code = status.HTTP_403_FORBIDDEN
    message = "You are not allowed to do that"


class MissingRefreshTokenError(AuthServiceError):
    message = "Refresh token not found"


class InvalidRefreshTokenError(AuthServiceError):
    message = "Refresh token is not valid"
