"""
Configuration and settings for the conference service.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")
    log_level: str = Field(default="INFO")

    # Record store (hosted Postgres)
    database_url: Optional[str] = Field(default=None)

    # S3-compatible object storage
    storage_endpoint: Optional[str] = Field(default=None)
    storage_region: Optional[str] = Field(default=None)
    storage_bucket: str = Field(default="papers")
    storage_access_key_id: Optional[str] = Field(default=None)
    storage_secret_access_key: Optional[str] = Field(default=None)
    signed_url_expires_in: int = Field(default=3600)

    # Hosted auth (GoTrue-style REST API)
    auth_url: Optional[str] = Field(default=None)
    auth_api_key: Optional[str] = Field(default=None)
    auth_service_key: Optional[str] = Field(default=None)
    auth_timeout_seconds: float = Field(default=10.0)

    # Session cache and idempotency keys (Redis)
    redis_url: Optional[str] = Field(default=None)
    cache_key_prefix: str = Field(default="confdesk:")
    session_ttl_seconds: int = Field(default=3600)
    upload_dedupe_ttl_seconds: int = Field(default=600)

    # Payment gateway (Razorpay-style REST API)
    payment_api_url: str = Field(default="https://api.razorpay.com")
    payment_key_id: Optional[str] = Field(default=None)
    payment_key_secret: Optional[str] = Field(default=None)
    payment_method: str = Field(default="razorpay")

    # Conference
    conference_name: str = Field(default="SITE-EMAR 2026")
    admin_email: str = Field(default="convener.siteemar2026@sasi.ac.in")
    site_url: str = Field(default="http://localhost:8000")
    login_path: str = Field(default="/login.html")
    home_path: str = Field(default="/index.html")
    max_upload_mb: int = Field(default=10)
    allowed_extensions: list[str] = Field(default=[".pdf", ".doc", ".docx"])
    redirect_delay_seconds: float = Field(default=1.5)

    # Confirmation e-mails the original flow left switched off
    notify_on_submission: bool = Field(default=False)
    notify_on_registration: bool = Field(default=False)
    notify_on_payment: bool = Field(default=False)

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
