"""
JBin Backend — Application Configuration
==========================================

What:  Centralized configuration management using Pydantic Settings.
How:   Pydantic Settings reads from environment variables (or .env file),
       validates types/ranges, and provides a default `settings` object.
Who:   Read by the app factory, the lifespan handler, and `python -m app`.
When:  Loaded once at import time; a separate instance can be passed to
       `create_app()` (tests build one per app).

Environment variable names match the deployment conventions of the service
(PORT, DATA_DIR, JSON_SIZE_LIMIT, RECAPTCHA_*, RATE_LIMIT_*, CREATE_LIMIT_*,
CSP_EXTRA_*, CORS_ORIGINS, UMAMI_*).
"""

import re
from pathlib import Path
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

# Multipliers for size strings such as "10mb" or "512kb"
_SIZE_UNITS = {"b": 1, "kb": 1024, "mb": 1024 ** 2, "gb": 1024 ** 3}
_SIZE_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(b|kb|mb|gb)?\s*$", re.IGNORECASE)


def _split_csv(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings have defaults suitable for local development. Attributes are
    grouped by concern.
    """

    # ── Server ────────────────────────────────────────────────────────────
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3001, ge=1, le=65535)

    # Controls verbosity of application logging
    # Valid: DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_level: str = Field(default="INFO")

    # ── Storage ───────────────────────────────────────────────────────────
    # What: Directory holding the SQLite database file (jbin.db)
    data_dir: str = Field(default="./data")

    # What: Explicit SQLAlchemy async URL; empty means "jbin.db in data_dir"
    database_url: str = Field(default="")

    # ── Blobs ─────────────────────────────────────────────────────────────
    # What: Maximum accepted request body, in bytes
    # Accepts plain integers or size strings ("10mb", "512kb")
    json_size_limit: int = Field(default=10 * 1024 * 1024, ge=1024)

    # What: Length of generated blob IDs; retrieval enforces the same length
    blob_id_length: int = Field(default=10, ge=4, le=64)

    # What: How many fresh IDs to try when an insert hits an existing key
    id_generation_attempts: int = Field(default=3, ge=1, le=10)

    # ── Bot Verification (reCAPTCHA v3) ───────────────────────────────────
    # An empty secret key disables verification entirely
    recaptcha_secret_key: str = Field(default="")
    recaptcha_site_key: str = Field(default="")
    recaptcha_min_score: float = Field(default=0.5, ge=0.0, le=1.0)
    recaptcha_verify_url: str = Field(
        default="https://www.google.com/recaptcha/api/siteverify"
    )
    # Seconds; a timed-out verification counts as a failed one
    recaptcha_timeout: float = Field(default=5.0, gt=0, le=60)

    # ── Rate Limiting ─────────────────────────────────────────────────────
    # General quota for every /api/* request (per client address)
    rate_limit_window_ms: int = Field(default=15 * 60 * 1000, ge=1000)
    rate_limit_max: int = Field(default=100, ge=1)

    # Stricter quota for POST /api/blobs
    create_limit_window_ms: int = Field(default=60 * 60 * 1000, ge=1000)
    create_limit_max: int = Field(default=30, ge=1)

    # What: Take the client address from the last X-Forwarded-For hop
    # Only correct when exactly one trusted reverse proxy sits in front
    trust_proxy: bool = Field(default=True)

    # ── CORS / CSP ────────────────────────────────────────────────────────
    # Comma-separated; empty CORS_ORIGINS allows every origin
    cors_origins: str = Field(default="")
    csp_extra_script_src: str = Field(default="")
    csp_extra_style_src: str = Field(default="")
    csp_extra_worker_src: str = Field(default="")

    # ── Analytics (public, echoed to the frontend) ────────────────────────
    umami_url: str = Field(default="")
    umami_website_id: str = Field(default="")

    # ── Pydantic Settings Config ──────────────────────────────────────────
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensures log level is a valid Python logging level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper

    @field_validator("json_size_limit", mode="before")
    @classmethod
    def parse_size(cls, v):
        """Converts "10mb"-style strings into a byte count."""
        if isinstance(v, str):
            match = _SIZE_PATTERN.match(v)
            if not match:
                raise ValueError(f"Invalid size '{v}'. Use bytes or a value like '10mb'")
            number, unit = match.groups()
            return int(float(number) * _SIZE_UNITS[(unit or "b").lower()])
        return v

    # ── Derived values ────────────────────────────────────────────────────

    @property
    def resolved_database_url(self) -> str:
        if self.database_url:
            return self.database_url
        db_path = Path(self.data_dir).resolve() / "jbin.db"
        return f"sqlite+aiosqlite:///{db_path}"

    @property
    def recaptcha_enabled(self) -> bool:
        return bool(self.recaptcha_secret_key)

    @property
    def cors_origins_list(self) -> List[str]:
        return _split_csv(self.cors_origins)

    @property
    def csp_extra_script_src_list(self) -> List[str]:
        return _split_csv(self.csp_extra_script_src)

    @property
    def csp_extra_style_src_list(self) -> List[str]:
        return _split_csv(self.csp_extra_style_src)

    @property
    def csp_extra_worker_src_list(self) -> List[str]:
        return _split_csv(self.csp_extra_worker_src)

    def validate_consistency(self) -> None:
        """
        What:  Detects half-configured optional integrations.
        When:  Called during app startup (lifespan); problems are logged.
        Raises: ValueError listing every problem found.
        """
        errors = []
        if self.recaptcha_site_key and not self.recaptcha_secret_key:
            errors.append(
                "RECAPTCHA_SITE_KEY is set without RECAPTCHA_SECRET_KEY; "
                "tokens will be collected by the frontend but never verified"
            )
        if self.recaptcha_secret_key and not self.recaptcha_site_key:
            errors.append(
                "RECAPTCHA_SECRET_KEY is set without RECAPTCHA_SITE_KEY; "
                "the frontend cannot obtain tokens and every create will be rejected"
            )
        if bool(self.umami_url) != bool(self.umami_website_id):
            errors.append("UMAMI_URL and UMAMI_WEBSITE_ID must be set together")
        if errors:
            raise ValueError(
                "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
            )


# Default instance used by `python -m app` and the module-level `app`
settings = Settings()
