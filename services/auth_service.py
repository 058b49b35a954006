"""
Authentication and identity service.

Registration with role profile provisioning, credential login, refresh token
rotation, logout, email verification, password reset and profile upkeep.
One instance serves one request: it is built around a request-scoped
repository and never holds state between calls.
"""
import secrets
from datetime import timedelta
from typing import Any, Mapping, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError as PydanticValidationError

from auth.errors import (
    AuthError,
    DepartmentInactiveError,
    DepartmentNotFoundError,
    DuplicateEmailError,
    DuplicateIdentifierError,
    InvalidCredentialsError,
    InvalidOrExpiredTokenError,
    InvalidRefreshTokenError,
    NotFoundError,
    TokenInvalidError,
    ValidationError,
)
from auth.security import ACCESS, REFRESH, PasswordHasher, TokenIssuer, generate_secure_token
from database.models import Department, FacultyTitle, User, UserRole
from database.repository import IdentityRepository, UniqueViolation
from services.identifiers import IdentifierGenerator
from services.notifications import NotificationDispatcher
from services.schemas import (
    LoginResult,
    ProfilePublic,
    ProfileUpdate,
    RegisterRequest,
    TokenPairPublic,
    UserPublic,
)
from storage.file_store import LocalFileStore
from core.logger import logger
from core.utils import utcnow

M = TypeVar("M", bound=BaseModel)

MIN_PASSWORD_LENGTH = 6
FORGOT_PASSWORD_MESSAGE = "If email exists, password reset link has been sent"
LOGOUT_MESSAGE = "Logged out successfully"
RESET_PASSWORD_MESSAGE = "Password reset successfully"


def _validate(model: Type[M], data: Union[M, Mapping[str, Any]]) -> M:
    """Coerce a mapping into `model`, turning pydantic errors into ValidationError."""
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(p) for p in first.get("loc", ())) or "input"
        raise ValidationError(f"{field}: {first.get('msg', 'invalid value')}")


class AuthService:
    """Orchestrates hasher, token issuer, identifier generator, repository and notifier."""

    def __init__(
        self,
        repository: IdentityRepository,
        hasher: PasswordHasher,
        tokens: TokenIssuer,
        notifier: NotificationDispatcher,
        file_store: Optional[LocalFileStore] = None,
        identifier_max_attempts: int = 5,
        verification_expire_hours: int = 24,
        reset_expire_hours: int = 1,
    ):
        self.repository = repository
        self.hasher = hasher
        self.tokens = tokens
        self.notifier = notifier
        self.file_store = file_store
        self.identifiers = IdentifierGenerator(repository, max_attempts=identifier_max_attempts)
        self.verification_ttl = timedelta(hours=verification_expire_hours)
        self.reset_ttl = timedelta(hours=reset_expire_hours)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, data: Union[RegisterRequest, Mapping[str, Any]]) -> UserPublic:
        """
        Create an identity plus its student or faculty profile.

        Args:
            data: RegisterRequest or an equivalent mapping (camelCase or snake_case keys)

        Returns:
            Sanitized view of the created identity

        Raises:
            ValidationError, DuplicateEmailError, DepartmentNotFoundError,
            DepartmentInactiveError, DuplicateIdentifierError, IdentifierExhaustedError
        """
        request = _validate(RegisterRequest, data)
        email = request.email.strip().lower()

        if self.repository.find_identity_by_email(email):
            raise DuplicateEmailError()

        department = self.repository.get_department(request.department_id)
        if department is None:
            raise DepartmentNotFoundError()
        if not department.is_active:
            raise DepartmentInactiveError()

        password_hash = self.hasher.hash(request.password)
        verification_token = generate_secure_token()

        try:
            user = self.repository.create_identity(
                email=email,
                password=password_hash,
                first_name=request.first_name,
                last_name=request.last_name,
                role=UserRole(request.role),
                phone=request.phone,
                is_active=True,
                is_email_verified=False,
                email_verification_token=verification_token,
                email_verification_expires=utcnow() + self.verification_ttl,
            )
        except UniqueViolation:
            # Lost a race with a concurrent registration for the same email
            raise DuplicateEmailError()

        try:
            if user.role == UserRole.STUDENT:
                self._provision_student(user, department, request)
            else:
                self._provision_faculty(user, department, request)
        except Exception:
            # No identity may outlive a failed profile
            self.repository.delete_identity(user)
            logger.warning(f"Registration rolled back for user {user.id}: profile provisioning failed")
            raise

        logger.info(f"Registered user {user.id} (role: {user.role.value})")
        self.notifier.verification_email(user.email, verification_token)
        return UserPublic.model_validate(user)

    def _provision_student(self, user: User, department: Department, request: RegisterRequest):
        year = request.enrollment_year or utcnow().year

        def insert(student_number: str):
            return self.repository.create_student_profile(
                user_id=user.id,
                student_number=student_number,
                department_id=department.id,
                enrollment_year=year,
            )

        student_number = (request.student_number or "").strip()
        if student_number:
            try:
                return insert(student_number)
            except UniqueViolation:
                raise DuplicateIdentifierError("This student number is already in use")
        return self.identifiers.allocate_student_number(department.code, year, insert)

    def _provision_faculty(self, user: User, department: Department, request: RegisterRequest):
        title = FacultyTitle(request.title or FacultyTitle.LECTURER.value)

        def insert(employee_number: str):
            return self.repository.create_faculty_profile(
                user_id=user.id,
                employee_number=employee_number,
                department_id=department.id,
                title=title,
                office_location=request.office_location,
                office_hours=request.office_hours,
            )

        employee_number = (request.employee_number or "").strip()
        if employee_number:
            try:
                return insert(employee_number)
            except UniqueViolation:
                raise DuplicateIdentifierError("This employee number is already in use")
        return self.identifiers.allocate_employee_number(department.code, insert)

    # ------------------------------------------------------------------
    # Email verification
    # ------------------------------------------------------------------

    def verify_email(self, token: str) -> UserPublic:
        """Mark the identity owning a live verification token as verified."""
        user = self.repository.find_by_verification_token(token, utcnow()) if token else None
        if user is None:
            raise InvalidOrExpiredTokenError("Invalid or expired verification token")

        user.is_email_verified = True
        user.email_verification_token = None
        user.email_verification_expires = None
        self.repository.save(user)
        logger.info(f"Email verified for user {user.id}")
        return UserPublic.model_validate(user)

    # ------------------------------------------------------------------
    # Session tokens
    # ------------------------------------------------------------------

    def login(self, email: str, password: str) -> LoginResult:
        """
        Authenticate credentials and start a new session.

        Email verification is deliberately not required to log in. The new
        refresh token replaces any previous one, ending the older session.

        Raises:
            InvalidCredentialsError: Unknown email, wrong password or inactive account
        """
        user = self.repository.find_identity_by_email(email or "")
        if user is None:
            self.hasher.verify_dummy(password)
            logger.warning("Login failed")
            raise InvalidCredentialsError()

        if not self.hasher.verify(password, user.password) or not user.is_active:
            logger.warning(f"Login failed for user {user.id}")
            raise InvalidCredentialsError()

        pair = self.tokens.issue_pair(user.id)
        user.refresh_token = pair.refresh_token
        self.repository.save(user)
        logger.info(f"User {user.id} logged in")
        return LoginResult(
            user=UserPublic.model_validate(user),
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
        )

    def refresh_token(self, presented_token: str) -> TokenPairPublic:
        """
        Exchange a refresh token for a new access/refresh pair (rotation).

        The presented token must equal the one stored on the identity; the swap
        is compare-and-set, so of two concurrent calls with the same token only
        one can win.

        Raises:
            InvalidRefreshTokenError: On any decode failure, unknown or inactive
                identity, or a stale/rotated token
        """
        try:
            user_id = self.tokens.verify(presented_token, REFRESH)
        except AuthError as e:
            logger.warning(f"Refresh rejected: {e.kind.value}")
            raise InvalidRefreshTokenError()

        user = self.repository.get_identity(user_id)
        if user is None or not user.is_active:
            raise InvalidRefreshTokenError()
        if not user.refresh_token or not secrets.compare_digest(
            user.refresh_token.encode("utf-8"), presented_token.encode("utf-8")
        ):
            logger.warning(f"Stale refresh token presented for user {user.id}")
            raise InvalidRefreshTokenError()

        pair = self.tokens.issue_pair(user.id)
        if not self.repository.swap_refresh_token(user.id, presented_token, pair.refresh_token):
            logger.warning(f"Refresh token for user {user.id} rotated concurrently")
            raise InvalidRefreshTokenError()

        logger.info(f"Tokens refreshed for user {user.id}")
        return TokenPairPublic(access_token=pair.access_token, refresh_token=pair.refresh_token)

    def logout(self, user_id: str) -> dict:
        """Drop the stored refresh token. Idempotent."""
        self.repository.set_refresh_token(user_id, None)
        logger.info(f"User {user_id} logged out")
        return {"message": LOGOUT_MESSAGE}

    def authenticate(self, access_token: str) -> User:
        """
        Resolve a bearer access token to an active identity.

        Raises:
            TokenExpiredError, TokenInvalidError
        """
        user_id = self.tokens.verify(access_token, ACCESS)
        user = self.repository.get_identity(user_id)
        if user is None or not user.is_active:
            raise TokenInvalidError("User not found or inactive")
        return user

    # ------------------------------------------------------------------
    # Password reset
    # ------------------------------------------------------------------

    def forgot_password(self, email: str) -> dict:
        """
        Start a password reset. The reply is identical whether or not the
        email belongs to an account.
        """
        token = generate_secure_token()
        email = (email or "").strip().lower()
        user = self.repository.find_identity_by_email(email)
        # Unknown emails run the same UPDATE and commit, matching no rows
        self.repository.set_password_reset(email, token, utcnow() + self.reset_ttl)
        if user is not None:
            self.notifier.password_reset_email(user.email, token)
            logger.info(f"Password reset requested for user {user.id}")
        return {"message": FORGOT_PASSWORD_MESSAGE}

    def reset_password(self, token: str, new_password: str) -> dict:
        """Set a new password using a live reset token."""
        if not new_password or len(new_password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")

        user = self.repository.find_by_reset_token(token, utcnow()) if token else None
        if user is None:
            raise InvalidOrExpiredTokenError("Invalid or expired reset token")

        user.password = self.hasher.hash(new_password)
        user.password_reset_token = None
        user.password_reset_expires = None
        self.repository.save(user)
        logger.info(f"Password reset for user {user.id}")
        return {"message": RESET_PASSWORD_MESSAGE}

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    def _get_user(self, user_id: str) -> User:
        user = self.repository.get_identity(user_id)
        if user is None:
            raise NotFoundError()
        return user

    def get_profile(self, user_id: str) -> ProfilePublic:
        """Identity plus its student or faculty profile."""
        user = self._get_user(user_id)
        profile = ProfilePublic.model_validate(user)
        if user.role != UserRole.STUDENT:
            profile.student_profile = None
        if user.role != UserRole.FACULTY:
            profile.faculty_profile = None
        return profile

    def update_profile(self, user_id: str, patch: Union[ProfileUpdate, Mapping[str, Any]]) -> UserPublic:
        """
        Update first name, last name and phone. Any other key in the patch,
        email and password included, is ignored.
        """
        user = self._get_user(user_id)
        changes = _validate(ProfileUpdate, patch).model_dump(exclude_unset=True)

        for field in ("first_name", "last_name"):
            if field in changes:
                value = (changes[field] or "").strip()
                if not value:
                    raise ValidationError(f"{field} cannot be empty")
                setattr(user, field, value)
        if "phone" in changes:
            user.phone = changes["phone"]

        self.repository.save(user)
        logger.info(f"Profile updated for user {user.id}: {sorted(changes)}")
        return UserPublic.model_validate(user)

    def update_profile_picture(self, user_id: str, filename: str) -> UserPublic:
        """Point the identity at a newly stored picture, removing the previous file."""
        if not filename:
            raise ValidationError("Filename is required")
        user = self._get_user(user_id)

        old = user.profile_picture
        if old and old != filename:
            self._remove_stored_file(old)

        user.profile_picture = filename
        self.repository.save(user)
        logger.info(f"Profile picture updated for user {user.id}")
        return UserPublic.model_validate(user)

    def _remove_stored_file(self, filename: str) -> None:
        if self.file_store is None:
            return
        try:
            if self.file_store.exists(filename):
                self.file_store.delete(filename)
        except (OSError, ValueError) as e:
            logger.warning(f"Could not remove old profile picture {filename}: {e}")
