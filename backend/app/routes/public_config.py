"""
JBin Backend — Public Configuration Route
===========================================

What:  GET /api/config, the runtime configuration the frontend needs.
How:   Echoes the public parts of Settings. An integration that is not fully
       configured is reported as null so the frontend skips loading it.

Response shape:
    {
        "analytics": {"umami": {"url": "...", "websiteId": "..."} | null},
        "recaptcha": {"siteKey": "..."} | null
    }
"""

from fastapi import APIRouter, Depends

from app.config import Settings
from app.dependencies import get_settings
from app.schemas.blob import (
    AnalyticsConfig,
    PublicConfigResponse,
    RecaptchaPublicConfig,
    UmamiConfig,
)

router = APIRouter(prefix="/api", tags=["Config"])


def build_public_config(settings: Settings) -> PublicConfigResponse:
    umami = None
    if settings.umami_url and settings.umami_website_id:
        umami = UmamiConfig(url=settings.umami_url, website_id=settings.umami_website_id)

    recaptcha = None
    if settings.recaptcha_site_key:
        recaptcha = RecaptchaPublicConfig(site_key=settings.recaptcha_site_key)

    return PublicConfigResponse(analytics=AnalyticsConfig(umami=umami), recaptcha=recaptcha)


@router.get(
    "/config",
    response_model=PublicConfigResponse,
    summary="Public runtime configuration for the frontend",
)
async def public_config(settings: Settings = Depends(get_settings)) -> PublicConfigResponse:
    return build_public_config(settings)
