"""
JBin Backend — Pydantic Request/Response Schemas
==================================================

What:  Pydantic models defining the API contract between frontend and backend.
How:   Routes validate request payloads with these models and FastAPI
       serializes responses through them (by alias, so the wire format keeps
       the camelCase names `json`, `createdAt`, `recaptchaToken`, ...).

The document itself is typed `Any`: its shape is unconstrained and is checked
by strict JSON serialization in BlobService, not by a schema.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class CreateBlobRequest(BaseModel):
    """
    Body of POST /api/blobs.

    Example:
        {"json": {"a": 1, "b": [1, 2, 3]}, "recaptchaToken": "03AGdBq2..."}
    """
    document: Any = Field(
        default=None,
        alias="json",
        description="Any JSON value to store",
    )
    recaptcha_token: Optional[str] = Field(
        default=None,
        alias="recaptchaToken",
        description="reCAPTCHA v3 token (required when verification is enabled)",
    )


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class BlobCreatedResponse(BaseModel):
    """Returned by POST /api/blobs with HTTP 201."""
    id: str = Field(description="Identifier of the new blob")
    url: str = Field(description="Absolute URL that retrieves the blob")


class BlobResponse(BaseModel):
    """Returned by GET /api/blobs/{id}."""
    id: str = Field(description="Blob identifier")
    document: Any = Field(alias="json", description="The stored JSON value")
    created_at: str = Field(
        alias="createdAt",
        description="Creation time, ISO 8601 UTC with millisecond precision",
    )

    model_config = {"populate_by_name": True}


class HealthResponse(BaseModel):
    """Returned by GET /api/health."""
    status: str = Field(default="ok", description="Always 'ok' while the process serves requests")


class UmamiConfig(BaseModel):
    url: str
    website_id: str = Field(alias="websiteId")

    model_config = {"populate_by_name": True}


class AnalyticsConfig(BaseModel):
    umami: Optional[UmamiConfig] = None


class RecaptchaPublicConfig(BaseModel):
    site_key: str = Field(alias="siteKey")

    model_config = {"populate_by_name": True}


class PublicConfigResponse(BaseModel):
    """
    Returned by GET /api/config.

    Only public values: the frontend uses them to decide whether to load the
    analytics and reCAPTCHA scripts. Secrets never appear here.
    """
    analytics: AnalyticsConfig = Field(default_factory=AnalyticsConfig)
    recaptcha: Optional[RecaptchaPublicConfig] = None


# ══════════════════════════════════════════════════════════════════════════
# Error Response Model
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(BaseModel):
    """
    Standard error body for every failed request.

    Example:
        {
            "error": "Invalid blob ID format",
            "code": "validation_error",
            "request_id": "1f0c9a2b"
        }
    """
    error: str = Field(description="Human-readable error description")
    code: str = Field(description="Machine-readable error code")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")
