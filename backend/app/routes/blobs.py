"""
JBin Backend — Blob Route Handlers
====================================

What:  POST /api/blobs (create) and GET /api/blobs/{blob_id} (retrieve).
How:   Thin handlers: dependencies enforce the create quota and parse the body,
       BlobService applies the rules, handlers shape the response.
Who:   Called by the JBin frontend editor/viewer and by API clients.

Caching:
    - POST /api/blobs: never cached
    - GET /api/blobs/{id}: private, 1 hour (blobs are immutable)
"""

import logging

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from app.dependencies import (
    enforce_create_quota,
    get_blob_service,
    get_client_ip,
    read_create_request,
)
from app.schemas.blob import (
    BlobCreatedResponse,
    BlobResponse,
    CreateBlobRequest,
    ErrorResponse,
)
from app.services.blob_service import BlobService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Blobs"])


@router.post(
    "/blobs",
    status_code=201,
    response_model=BlobCreatedResponse,
    dependencies=[Depends(enforce_create_quota)],
    responses={
        201: {"description": "Blob stored", "model": BlobCreatedResponse},
        400: {"description": "Missing/invalid JSON or missing reCAPTCHA token", "model": ErrorResponse},
        403: {"description": "reCAPTCHA verification failed", "model": ErrorResponse},
        413: {"description": "Request body too large", "model": ErrorResponse},
        429: {"description": "Rate limit exceeded", "model": ErrorResponse},
        500: {"description": "Server error", "model": ErrorResponse},
    },
    summary="Store a JSON document",
    description=(
        "Stores any JSON value under a new random ID and returns the ID together "
        "with the absolute URL that retrieves it."
    ),
)
async def create_blob(
    request: Request,
    response: Response,
    body: CreateBlobRequest = Depends(read_create_request),
    client_ip: str = Depends(get_client_ip),
    service: BlobService = Depends(get_blob_service),
) -> BlobCreatedResponse:
    blob = await service.create_blob(
        document=body.document,
        recaptcha_token=body.recaptcha_token,
        client_ip=client_ip,
    )

    response.headers["Cache-Control"] = "no-store"
    return BlobCreatedResponse(
        id=blob.id,
        url=str(request.url_for("get_blob", blob_id=blob.id)),
    )


@router.get(
    "/blobs/{blob_id}",
    name="get_blob",
    response_model=BlobResponse,
    responses={
        200: {"description": "The stored document", "model": BlobResponse},
        400: {"description": "Malformed blob ID", "model": ErrorResponse},
        404: {"description": "Blob not found", "model": ErrorResponse},
        500: {"description": "Server error", "model": ErrorResponse},
    },
    summary="Retrieve a JSON document by ID",
)
async def get_blob(
    blob_id: str,
    service: BlobService = Depends(get_blob_service),
) -> JSONResponse:
    """
    Return the stored document exactly as it was submitted.

    The body is rendered with the stdlib json encoder, the same one that
    accepted the document on create, so any stored document can be returned.
    BlobResponse only describes the shape for the OpenAPI schema.

    Caching:
        Cache-Control: private, max-age=3600. Blob content never changes
        after creation.
    """
    blob = await service.get_blob(blob_id)

    return JSONResponse(
        content={"id": blob.id, "json": blob.document, "createdAt": blob.created_at_iso},
        headers={"Cache-Control": "private, max-age=3600"},
    )
