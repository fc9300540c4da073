"""Application settings and validation."""

import os
from pathlib import Path

BASE = Path(__file__).resolve().parent.parent
DEFAULT_DB_URL = f"sqlite:///{BASE / 'qeema.db'}"
DEFAULT_JWT_SECRET = "change_me_for_prod"


def _as_bool(raw: str) -> bool:
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _as_int(name: str, default: int) -> int:
    raw = os.getenv(name, str(default))
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}")


class Settings:
    ENV: str
    DATABASE_URL: str
    JWT_SECRET: str
    JWT_ALGORITHM: str
    JWT_EXPIRE_HOURS: int
    ALLOW_INSECURE_JWT: bool
    CORS_ORIGINS: list
    PAGINATION_DEFAULT_LIMIT: int
    PAGINATION_MAX_LIMIT: int
    MAX_UPLOAD_BYTES: int
    CLOUDINARY_CLOUD_NAME: str
    CLOUDINARY_API_KEY: str
    CLOUDINARY_API_SECRET: str
    CLOUDINARY_FOLDER: str
    AUTH_RATE_LIMIT_PER_MIN: int
    SEED_ON_STARTUP: bool
    ADMIN_EMAIL: str
    ADMIN_PASSWORD: str
    LOG_LEVEL: str

    def __init__(self, **overrides):
        self.ENV = os.getenv("ENV", "development").lower()
        self.DATABASE_URL = os.getenv("DATABASE_URL", DEFAULT_DB_URL)
        self.JWT_SECRET = os.getenv("JWT_SECRET", DEFAULT_JWT_SECRET)
        self.JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
        self.JWT_EXPIRE_HOURS = _as_int("JWT_EXPIRE_HOURS", 24)
        self.ALLOW_INSECURE_JWT = _as_bool(os.getenv("ALLOW_INSECURE_JWT", "false"))
        self.CORS_ORIGINS = [
            o.strip()
            for o in os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:5174").split(",")
            if o.strip()
        ]
        self.PAGINATION_DEFAULT_LIMIT = _as_int("PAGINATION_DEFAULT_LIMIT", 10)
        self.PAGINATION_MAX_LIMIT = _as_int("PAGINATION_MAX_LIMIT", 100)
        self.MAX_UPLOAD_BYTES = _as_int("MAX_UPLOAD_BYTES", 5 * 1024 * 1024)  # 5 MB default
        self.CLOUDINARY_CLOUD_NAME = os.getenv("CLOUDINARY_CLOUD_NAME", "")
        self.CLOUDINARY_API_KEY = os.getenv("CLOUDINARY_API_KEY", "")
        self.CLOUDINARY_API_SECRET = os.getenv("CLOUDINARY_API_SECRET", "")
        self.CLOUDINARY_FOLDER = os.getenv("CLOUDINARY_FOLDER", "qeema")
        self.AUTH_RATE_LIMIT_PER_MIN = _as_int("AUTH_RATE_LIMIT_PER_MIN", 30)
        self.SEED_ON_STARTUP = _as_bool(os.getenv("SEED_ON_STARTUP", "false"))
        self.ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@school.com")
        self.ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "Admin123!")
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        for key, value in overrides.items():
            if not hasattr(self, key):
                raise AttributeError(f"unknown setting: {key}")
            setattr(self, key, value)
        self._validate()

    @property
    def is_development(self) -> bool:
        return self.ENV in ("dev", "development", "test")

    @property
    def upload_configured(self) -> bool:
        return bool(self.CLOUDINARY_CLOUD_NAME and self.CLOUDINARY_API_KEY and self.CLOUDINARY_API_SECRET)

    def _validate(self):
        if not self.is_development and not self.ALLOW_INSECURE_JWT and self.JWT_SECRET == DEFAULT_JWT_SECRET:
            raise RuntimeError("JWT_SECRET must be set to a non-default value in non-dev environments")
        if self.PAGINATION_DEFAULT_LIMIT < 1 or self.PAGINATION_MAX_LIMIT < self.PAGINATION_DEFAULT_LIMIT:
            raise RuntimeError("pagination limits must satisfy 1 <= PAGINATION_DEFAULT_LIMIT <= PAGINATION_MAX_LIMIT")
        if self.JWT_EXPIRE_HOURS < 1:
            raise RuntimeError("JWT_EXPIRE_HOURS must be >= 1")
