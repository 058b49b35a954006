"""
Configuration settings for the campus management backend.
Supports both development and production environments via environment variables.
"""
import os
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables from .env file if it exists
load_dotenv()

# ============================================================================
# Paths
# ============================================================================
BASE_DIR = Path(__file__).parent
UPLOADS_DIR = Path(os.getenv("UPLOADS_DIR", str(BASE_DIR / "uploads")))
PROFILE_PICTURES_DIR = UPLOADS_DIR / "profile-pictures"
LOG_FILE = Path(os.getenv("LOG_FILE", str(BASE_DIR / "logs" / "app.log")))

# ============================================================================
# Database Configuration
# ============================================================================
_raw_url = os.getenv("DATABASE_URL", "sqlite:///./campus.db")
# SQLAlchemy 2 loads dialect "postgresql", not "postgres"; normalize Heroku-style URLs
if _raw_url.startswith("postgres://"):
    DATABASE_URL = "postgresql://" + _raw_url[len("postgres://"):]
else:
    DATABASE_URL = _raw_url
DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "10"))
DB_MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "20"))

# ============================================================================
# Security Configuration
# ============================================================================
# Access and refresh tokens are signed with independent secrets
JWT_SECRET = os.getenv("JWT_SECRET", "change-this-access-secret-in-production")
JWT_REFRESH_SECRET = os.getenv("JWT_REFRESH_SECRET", "change-this-refresh-secret-in-production")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "15"))
REFRESH_TOKEN_EXPIRE_DAYS = int(os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", "7"))
EMAIL_VERIFICATION_EXPIRE_HOURS = int(os.getenv("EMAIL_VERIFICATION_EXPIRE_HOURS", "24"))
PASSWORD_RESET_EXPIRE_HOURS = int(os.getenv("PASSWORD_RESET_EXPIRE_HOURS", "1"))
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))
IDENTIFIER_MAX_ATTEMPTS = int(os.getenv("IDENTIFIER_MAX_ATTEMPTS", "5"))

# CORS Settings - include your frontend origin (e.g. Vite default 5173, Next 3000)
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173,http://127.0.0.1:3000,http://127.0.0.1:5173").split(",") if o.strip()]
CORS_ALLOW_CREDENTIALS = True

# ============================================================================
# Upload Settings
# ============================================================================
MAX_UPLOAD_SIZE_BYTES = int(os.getenv("MAX_FILE_SIZE", str(5 * 1024 * 1024)))  # 5MB
ALLOWED_IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif"}
ALLOWED_IMAGE_CONTENT_TYPES = {"image/jpeg", "image/png", "image/gif"}

# ============================================================================
# Email Configuration (SMTP)
# ============================================================================
SMTP_HOST = os.getenv("SMTP_HOST", "smtp.gmail.com")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USER = os.getenv("SMTP_USER", "")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD", "")
SMTP_USE_TLS = os.getenv("SMTP_USE_TLS", "true").lower() == "true"
SMTP_USE_SSL = os.getenv("SMTP_USE_SSL", "false").lower() == "true"
SMTP_FROM_EMAIL = os.getenv("SMTP_FROM_EMAIL", SMTP_USER)
SMTP_FROM_NAME = os.getenv("SMTP_FROM_NAME", "Campus Portal")
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")
EMAIL_WORKERS = int(os.getenv("EMAIL_WORKERS", "2"))

# ============================================================================
# Application Settings
# ============================================================================
APP_NAME = os.getenv("APP_NAME", "Campus Management API")
APP_VERSION = os.getenv("APP_VERSION", "1.0.0")
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")  # development, staging, production
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
