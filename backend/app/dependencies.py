"""
JBin Backend — Route Dependencies
===================================

What:  FastAPI dependencies that hand route handlers the objects built by the
       application lifespan (settings, BlobService, create limiter) and that
       read/validate the create request body.
How:   Everything long-lived lives on `app.state`; these functions look it up
       per request, so tests can build isolated apps with their own state.
"""

import json
import logging

from fastapi import Request
from pydantic import ValidationError as PydanticValidationError

from app.config import Settings
from app.exceptions import PayloadTooLargeError, RateLimitExceededError, ValidationError
from app.middleware.rate_limit import client_address
from app.schemas.blob import CreateBlobRequest
from app.services.blob_service import BlobService

logger = logging.getLogger(__name__)

CREATE_LIMIT_MESSAGE = "Too many pastes created, please try again later"


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_blob_service(request: Request) -> BlobService:
    return request.app.state.blob_service


def get_client_ip(request: Request) -> str:
    return client_address(request, request.app.state.settings.trust_proxy)


async def enforce_create_quota(request: Request) -> None:
    """
    Count one create against the caller's create quota.

    Runs before the body is read, so rejected clients cost no parsing work.

    Raises:
        RateLimitExceededError: Quota exhausted for this client address
    """
    limiter = request.app.state.create_limiter
    client_ip = get_client_ip(request)
    decision = limiter.hit(client_ip)

    if not decision.allowed:
        logger.warning("Create limit exceeded for %s", client_ip)
        raise RateLimitExceededError(
            retry_after=decision.retry_after,
            message=CREATE_LIMIT_MESSAGE,
            context={"client_ip": client_ip, "limit": decision.limit},
        )


async def read_body_limited(request: Request, limit: int) -> bytes:
    """
    Read the raw request body, refusing anything larger than `limit` bytes.

    Content-Length is checked first; the stream is still counted because the
    header can be absent (chunked uploads) or wrong.
    """
    declared = request.headers.get("content-length")
    if declared is not None:
        try:
            if int(declared) > limit:
                raise PayloadTooLargeError(limit)
        except ValueError:
            raise ValidationError(message="Invalid Content-Length header")

    received = bytearray()
    async for chunk in request.stream():
        received.extend(chunk)
        if len(received) > limit:
            raise PayloadTooLargeError(limit)
    return bytes(received)


def _reject_constant(name: str):
    # NaN, Infinity and -Infinity are not JSON
    raise ValueError(f"Invalid JSON constant: {name}")


async def read_create_request(request: Request) -> CreateBlobRequest:
    """
    Parse the POST /api/blobs body into a CreateBlobRequest.

    Raises:
        PayloadTooLargeError: Body exceeds JSON_SIZE_LIMIT
        ValidationError: Body is not valid JSON or not a JSON object
    """
    settings = get_settings(request)
    raw = await read_body_limited(request, settings.json_size_limit)

    if not raw.strip():
        payload = {}
    else:
        try:
            payload = json.loads(raw, parse_constant=_reject_constant)
        except (ValueError, RecursionError):
            raise ValidationError(message="Invalid JSON format", field="body")

    if not isinstance(payload, dict):
        raise ValidationError(message="Request body must be a JSON object", field="body")

    try:
        return CreateBlobRequest.model_validate(payload)
    except PydanticValidationError as e:
        raise ValidationError(
            message="Invalid request body",
            field="body",
            context={"errors": e.error_count()},
        )
