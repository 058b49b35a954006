"""
Typed failures raised by the authentication and identity core.

Every failure carries an ErrorKind from a closed set; the HTTP layer maps
the kind to a status code and never inspects message text.
"""
import enum


class ErrorKind(str, enum.Enum):
    """Closed set of failure kinds."""
    DUPLICATE_EMAIL = "duplicate_email"
    DEPARTMENT_NOT_FOUND = "department_not_found"
    DEPARTMENT_INACTIVE = "department_inactive"
    DUPLICATE_IDENTIFIER = "duplicate_identifier"
    IDENTIFIER_EXHAUSTED = "identifier_exhausted"
    INVALID_CREDENTIALS = "invalid_credentials"
    INVALID_OR_EXPIRED_TOKEN = "invalid_or_expired_token"
    INVALID_REFRESH_TOKEN = "invalid_refresh_token"
    TOKEN_EXPIRED = "token_expired"
    TOKEN_INVALID = "token_invalid"
    NOT_FOUND = "not_found"
    VALIDATION_ERROR = "validation_error"


class AuthError(Exception):
    """Base exception for authentication and identity failures."""

    kind: ErrorKind = ErrorKind.VALIDATION_ERROR
    default_message = "Request could not be processed"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value!r}, message={self.message!r})"


class DuplicateEmailError(AuthError):
    kind = ErrorKind.DUPLICATE_EMAIL
    default_message = "An account with this email already exists"


class DepartmentNotFoundError(AuthError):
    kind = ErrorKind.DEPARTMENT_NOT_FOUND
    default_message = "Selected department not found"


class DepartmentInactiveError(AuthError):
    kind = ErrorKind.DEPARTMENT_INACTIVE
    default_message = "Selected department is not active"


class DuplicateIdentifierError(AuthError):
    """Raised when a student or employee number is already taken."""
    kind = ErrorKind.DUPLICATE_IDENTIFIER
    default_message = "This identifier is already in use"


class IdentifierExhaustedError(AuthError):
    """Raised when identifier allocation runs out of retries."""
    kind = ErrorKind.IDENTIFIER_EXHAUSTED
    default_message = "Could not allocate a unique identifier, please try again"


class InvalidCredentialsError(AuthError):
    kind = ErrorKind.INVALID_CREDENTIALS
    default_message = "Invalid credentials"


class InvalidOrExpiredTokenError(AuthError):
    """Shared by email verification and password reset; never says which case applied."""
    kind = ErrorKind.INVALID_OR_EXPIRED_TOKEN
    default_message = "Invalid or expired token"


class InvalidRefreshTokenError(AuthError):
    kind = ErrorKind.INVALID_REFRESH_TOKEN
    default_message = "Invalid refresh token"


class TokenExpiredError(AuthError):
    kind = ErrorKind.TOKEN_EXPIRED
    default_message = "Token has expired"


class TokenInvalidError(AuthError):
    kind = ErrorKind.TOKEN_INVALID
    default_message = "Invalid token"


class NotFoundError(AuthError):
    kind = ErrorKind.NOT_FOUND
    default_message = "User not found"


class ValidationError(AuthError):
    kind = ErrorKind.VALIDATION_ERROR
    default_message = "Invalid input"
