"""
Authentication dependencies for FastAPI.

Collaborators (database, hasher, token issuer, notifier, file store) live on
`app.state`; each request gets its own session and AuthService around them.
"""
from typing import Optional

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from auth.errors import TokenExpiredError, TokenInvalidError
from database.models import User
from database.repository import IdentityRepository
from services.auth_service import AuthService
from services.department_service import DepartmentService
import config

security = HTTPBearer(auto_error=False)


def get_db_session(request: Request):
    """Get database session."""
    db = getattr(request.app.state, "db", None)
    if db is None:
        raise HTTPException(status_code=503, detail="Database not initialized")
    with db.get_session() as session:
        yield session


def get_repository(db: Session = Depends(get_db_session)) -> IdentityRepository:
    return IdentityRepository(db)


def get_auth_service(
    request: Request,
    repository: IdentityRepository = Depends(get_repository),
) -> AuthService:
    state = request.app.state
    return AuthService(
        repository=repository,
        hasher=state.hasher,
        tokens=state.tokens,
        notifier=state.notifier,
        file_store=state.file_store,
        identifier_max_attempts=config.IDENTIFIER_MAX_ATTEMPTS,
        verification_expire_hours=config.EMAIL_VERIFICATION_EXPIRE_HOURS,
        reset_expire_hours=config.PASSWORD_RESET_EXPIRE_HOURS,
    )


def get_department_service(repository: IdentityRepository = Depends(get_repository)) -> DepartmentService:
    return DepartmentService(repository)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
    service: AuthService = Depends(get_auth_service),
) -> User:
    """
    Get current authenticated user from the bearer access token.

    Args:
        credentials: HTTP Bearer token credentials
        service: Request-scoped auth service

    Returns:
        Current user

    Raises:
        HTTPException: 401 if the token is missing, invalid, expired, or the
            user no longer exists or is inactive
    """
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access token required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return service.authenticate(credentials.credentials)
    except TokenExpiredError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except TokenInvalidError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
