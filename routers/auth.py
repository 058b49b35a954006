"""
Authentication endpoints: registration, email verification, login, token
refresh, logout, password reset and the caller's own profile.
"""
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, Request, UploadFile, status

from auth.dependencies import get_auth_service, get_current_user
from database.models import User
from services.auth_service import AuthService
from services.schemas import (
    ForgotPasswordRequest,
    LoginRequest,
    ProfileUpdate,
    RefreshTokenRequest,
    RegisterRequest,
    ResetPasswordRequest,
    TokenRequest,
)
from core.logger import logger
from core.validators import validate_file_size, validate_image_file
import config

router = APIRouter(prefix="/api/auth", tags=["authentication"])

PROFILE_PICTURE_URL_PREFIX = "/uploads/profile-pictures"


def _ok(data=None, message: str = None) -> dict:
    body = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data.model_dump(by_alias=True, mode="json") if hasattr(data, "model_dump") else data
    return body


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(
    payload: RegisterRequest,
    service: AuthService = Depends(get_auth_service),
):
    """Register a student or faculty account. A verification email is sent."""
    user = service.register(payload)
    return _ok(user, "User registered successfully. Please check your email for verification.")


@router.post("/verify-email")
def verify_email(
    payload: TokenRequest,
    service: AuthService = Depends(get_auth_service),
):
    """Verify email with the token from the verification link."""
    user = service.verify_email(payload.token)
    return _ok(user, "Email verified successfully")


@router.get("/verify-email")
def verify_email_link(
    token: str = Query(..., min_length=1),
    service: AuthService = Depends(get_auth_service),
):
    """Same as POST /verify-email, for links opened directly."""
    user = service.verify_email(token)
    return _ok(user, "Email verified successfully")


@router.post("/login")
def login(
    payload: LoginRequest,
    service: AuthService = Depends(get_auth_service),
):
    """Login with email and password; returns the user and an access/refresh pair."""
    result = service.login(payload.email, payload.password)
    return _ok(result, "Login successful")


@router.post("/refresh")
def refresh_token(
    payload: RefreshTokenRequest,
    service: AuthService = Depends(get_auth_service),
):
    """Rotate the refresh token and issue a new access token."""
    pair = service.refresh_token(payload.refresh_token)
    return _ok(pair, "Token refreshed successfully")


@router.post("/logout")
def logout(
    current_user: User = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    """Logout: revoke the stored refresh token."""
    result = service.logout(current_user.id)
    return _ok(message=result["message"])


@router.post("/forgot-password")
def forgot_password(
    payload: ForgotPasswordRequest,
    service: AuthService = Depends(get_auth_service),
):
    """Send a reset link if the account exists. The reply never says whether it does."""
    result = service.forgot_password(payload.email)
    return _ok(message=result["message"])


@router.post("/reset-password")
def reset_password(
    payload: ResetPasswordRequest,
    service: AuthService = Depends(get_auth_service),
):
    """Set a new password using a reset token."""
    result = service.reset_password(payload.token, payload.password)
    return _ok(message=result["message"])


@router.get("/profile")
def get_profile(
    current_user: User = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    """Current user with their student or faculty profile."""
    return _ok(service.get_profile(current_user.id))


@router.put("/profile")
def update_profile(
    payload: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    """Update first name, last name and phone."""
    user = service.update_profile(current_user.id, payload)
    return _ok(user, "Profile updated successfully")


@router.post("/profile/picture")
def upload_profile_picture(
    request: Request,
    profile_picture: Optional[UploadFile] = File(None, alias="profilePicture"),
    current_user: User = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    """
    Upload a profile picture (jpeg, jpg, png or gif; size-limited).

    The file is stored under a generated name; the previous picture, if any,
    is removed.
    """
    if profile_picture is None or not profile_picture.filename:
        raise HTTPException(status_code=400, detail="No file uploaded")

    is_valid, error = validate_image_file(
        profile_picture.filename,
        profile_picture.content_type,
        config.ALLOWED_IMAGE_EXTENSIONS,
        config.ALLOWED_IMAGE_CONTENT_TYPES,
    )
    if not is_valid:
        raise HTTPException(status_code=400, detail=error)

    data = profile_picture.file.read(config.MAX_UPLOAD_SIZE_BYTES + 1)
    is_valid, error = validate_file_size(len(data), config.MAX_UPLOAD_SIZE_BYTES)
    if not is_valid:
        raise HTTPException(status_code=400, detail=error)

    store = request.app.state.file_store
    filename = store.save(store.generate_name(profile_picture.filename), data)
    try:
        user = service.update_profile_picture(current_user.id, filename)
    except Exception:
        # Do not leave an unreferenced file behind
        try:
            store.delete(filename)
        except OSError as e:
            logger.warning(f"Could not remove unreferenced upload {filename}: {e}")
        raise

    body = _ok(user, "Profile picture uploaded successfully")
    body["data"]["profilePictureUrl"] = f"{PROFILE_PICTURE_URL_PREFIX}/{filename}"
    return body
