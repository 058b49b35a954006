"""
Campus Management API: authentication, identity and department endpoints.
"""
import time
from concurrent.futures import Executor, ThreadPoolExecutor
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy import text
from starlette.exceptions import HTTPException as StarletteHTTPException

import config
from auth.errors import AuthError, ErrorKind
from auth.security import PasswordHasher, TokenIssuer
from core.logger import logger
from database.connection import Database
from middleware.security import RequestLoggingMiddleware, SecurityHeadersMiddleware, setup_cors
from routers.auth import PROFILE_PICTURE_URL_PREFIX, router as auth_router
from routers.departments import router as departments_router
from services.email_service import EmailService
from services.notifications import NotificationDispatcher, NotificationGateway
from storage.file_store import LocalFileStore

# Failure kind -> HTTP status
ERROR_STATUS = {
    ErrorKind.DUPLICATE_EMAIL: 409,
    ErrorKind.DEPARTMENT_NOT_FOUND: 400,
    ErrorKind.DEPARTMENT_INACTIVE: 400,
    ErrorKind.DUPLICATE_IDENTIFIER: 409,
    ErrorKind.IDENTIFIER_EXHAUSTED: 503,
    ErrorKind.INVALID_CREDENTIALS: 401,
    ErrorKind.INVALID_OR_EXPIRED_TOKEN: 400,
    ErrorKind.INVALID_REFRESH_TOKEN: 401,
    ErrorKind.TOKEN_EXPIRED: 401,
    ErrorKind.TOKEN_INVALID: 401,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.VALIDATION_ERROR: 400,
}


def _error(status_code: int, message: str, headers: Optional[dict] = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message}, headers=headers)


async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    return _error(ERROR_STATUS.get(exc.kind, 400), exc.message)


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error(exc.status_code, str(exc.detail), getattr(exc, "headers", None))


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if not errors:
        return _error(400, "Invalid request")
    first = errors[0]
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = first.get("msg", "Invalid value")
    return _error(400, f"{field}: {message}" if field else message)


def create_app(
    database: Optional[Database] = None,
    hasher: Optional[PasswordHasher] = None,
    tokens: Optional[TokenIssuer] = None,
    gateway: Optional[NotificationGateway] = None,
    file_store: Optional[LocalFileStore] = None,
    executor: Optional[Executor] = None,
) -> FastAPI:
    """
    Build the application. Any collaborator left as None is constructed from
    config when the app starts.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("=" * 60)
        logger.info(f"Starting {config.APP_NAME} v{config.APP_VERSION}...")
        logger.info("=" * 60)

        try:
            db = database or Database(
                database_url=config.DATABASE_URL,
                pool_size=config.DB_POOL_SIZE,
                max_overflow=config.DB_MAX_OVERFLOW,
            )
            db.create_tables()
            logger.info("Database initialized successfully")
        except Exception as e:
            logger.error(f"Failed to initialize database: {e}", exc_info=True)
            raise

        if gateway is None and not (config.SMTP_USER and config.SMTP_PASSWORD):
            logger.warning("SMTP credentials not set (SMTP_USER/SMTP_PASSWORD). Emails will not be sent.")

        owned_executor = None
        email_executor = executor
        if email_executor is None and gateway is None:
            owned_executor = ThreadPoolExecutor(max_workers=config.EMAIL_WORKERS, thread_name_prefix="email")
            email_executor = owned_executor

        app.state.db = db
        app.state.hasher = hasher or PasswordHasher(rounds=config.BCRYPT_ROUNDS)
        app.state.tokens = tokens or TokenIssuer(
            access_secret=config.JWT_SECRET,
            refresh_secret=config.JWT_REFRESH_SECRET,
            algorithm=config.JWT_ALGORITHM,
            access_expire_minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES,
            refresh_expire_days=config.REFRESH_TOKEN_EXPIRE_DAYS,
        )
        app.state.notifier = NotificationDispatcher(gateway or EmailService.from_config(), email_executor)
        app.state.file_store = file_store or LocalFileStore(config.PROFILE_PICTURES_DIR)

        logger.info(f"Server ready! Environment: {config.ENVIRONMENT}")

        yield

        logger.info("Shutting down...")
        if owned_executor is not None:
            owned_executor.shutdown(wait=True)
        db.dispose()
        logger.info("Database connections closed")

    app = FastAPI(
        title=config.APP_NAME,
        description="Campus management API: registration, login, sessions and profiles",
        version=config.APP_VERSION,
        lifespan=lifespan,
    )

    app.add_exception_handler(AuthError, auth_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    setup_cors(app, config.CORS_ORIGINS, config.CORS_ALLOW_CREDENTIALS)

    app.include_router(auth_router)
    app.include_router(departments_router)

    pictures_dir = file_store.root if file_store is not None else config.PROFILE_PICTURES_DIR
    app.mount(
        PROFILE_PICTURE_URL_PREFIX,
        StaticFiles(directory=str(pictures_dir), check_dir=False),
        name="profile-pictures",
    )

    @app.get("/health")
    def health_check(request: Request):
        """Health check endpoint for monitoring. Public endpoint."""
        health_status = {
            "status": "healthy",
            "timestamp": time.time(),
            "checks": {},
        }

        db = getattr(request.app.state, "db", None)
        try:
            if db is None:
                health_status["checks"]["database"] = {"status": "error", "error": "not initialized"}
                health_status["status"] = "degraded"
            else:
                with db.get_session() as session:
                    session.execute(text("SELECT 1"))
                health_status["checks"]["database"] = {"status": "ok"}
        except Exception as e:
            health_status["checks"]["database"] = {"status": "error", "error": str(e)}
            health_status["status"] = "degraded"

        return health_status

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
