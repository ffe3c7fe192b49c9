"""Application settings and validation."""

import os
from pathlib import Path

BASE = Path(__file__).resolve().parent.parent


class Settings:
    ENV: str
    DATABASE_URL: str
    JWT_SECRET: str
    JWT_ALGORITHM: str
    ALLOW_INSECURE_JWT: bool
    LISTING_CACHE_MAX_AGE: float
    DEFAULT_PER_PAGE: int
    MAX_PER_PAGE: int
    IDP_API_URL: str
    IDP_SECRET_KEY: str
    IDP_TIMEOUT_SECONDS: float
    LOG_LEVEL: str

    def __init__(self):
        self.ENV = os.getenv("ENV", "dev").lower()
        self.DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BASE / 'dashboard.db'}")
        self.JWT_SECRET = os.getenv("JWT_SECRET", "change_me_for_prod")
        self.JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
        self.ALLOW_INSECURE_JWT = os.getenv("ALLOW_INSECURE_JWT", "false").lower() == "true"
        self.LISTING_CACHE_MAX_AGE = float(os.getenv("LISTING_CACHE_MAX_AGE", "1.0"))  # seconds
        self.DEFAULT_PER_PAGE = int(os.getenv("DEFAULT_PER_PAGE", "10"))
        self.MAX_PER_PAGE = int(os.getenv("MAX_PER_PAGE", "100"))
        self.IDP_API_URL = os.getenv("IDP_API_URL", "https://api.clerk.com/v1").rstrip("/")
        self.IDP_SECRET_KEY = os.getenv("IDP_SECRET_KEY", "")
        self.IDP_TIMEOUT_SECONDS = float(os.getenv("IDP_TIMEOUT_SECONDS", "10"))
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self._validate()

    def _validate(self):
        if self.ENV != "dev" and not self.ALLOW_INSECURE_JWT and self.JWT_SECRET == "change_me_for_prod":
            raise RuntimeError("JWT_SECRET must be set to a non-default value in non-dev environments")
        if self.DEFAULT_PER_PAGE < 1 or self.MAX_PER_PAGE < 1:
            raise RuntimeError("DEFAULT_PER_PAGE and MAX_PER_PAGE must be >= 1")
        if self.DEFAULT_PER_PAGE > self.MAX_PER_PAGE:
            raise RuntimeError("DEFAULT_PER_PAGE must not exceed MAX_PER_PAGE")
        if self.LISTING_CACHE_MAX_AGE < 0:
            raise RuntimeError("LISTING_CACHE_MAX_AGE must be >= 0")


settings = Settings()
