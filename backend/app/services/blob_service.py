"""
JBin Backend — Blob Service (Business Logic)
==============================================

What:  Create/retrieve rules for blobs: bot verification, document validation,
       ID generation with collision retry, ID-shape checks, not-found mapping.
How:   Composes a BlobStore and an optional BotVerifier handed in by the
       application lifespan. Holds no per-request state.
Who:   Called by the /api/blobs route handlers.

Create Flow:
    ┌──────────────┐   ┌────────────┐   ┌───────────┐   ┌──────────────┐
    │ Verification │──▶│  Document  │──▶│ Generate  │──▶│  Store.put   │
    │ (if enabled) │   │ validation │   │    ID     │   │ (retry on    │
    └──────────────┘   └────────────┘   └───────────┘   │  collision)  │
                                                        └──────────────┘
    Verification required → ValidationError (400)
    Verification failed   → VerificationFailedError (403)
    Missing document      → ValidationError (400)
    Unserializable        → ValidationError (400)
    Retries exhausted     → DatabaseError (500)

Retrieve Flow:
    ID shape check (no store access on mismatch) → Store.get → NotFoundError
"""

import logging
import re
import secrets
import string
from typing import Any, Callable, Optional

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
)

from app.exceptions import (
    DatabaseError,
    DuplicateKeyError,
    NotFoundError,
    ValidationError,
    VerificationFailedError,
)
from app.services.blob_store import Blob, BlobStore, serialize_document
from app.services.verification_base import BotVerifier

logger = logging.getLogger(__name__)

# URL-safe alphabet: 64 symbols, so each character carries exactly 6 random bits
ID_ALPHABET = string.ascii_uppercase + string.ascii_lowercase + string.digits + "_-"


def generate_blob_id(length: int) -> str:
    """Random ID of `length` characters drawn from ID_ALPHABET (CSPRNG)."""
    return "".join(secrets.choice(ID_ALPHABET) for _ in range(length))


class BlobService:
    """
    Business logic layer for blob operations.

    Args:
        store:        Open BlobStore shared by all requests
        verifier:     Bot verifier; None means verification is disabled
        id_length:    Length of generated IDs (also enforced on retrieval)
        max_attempts: IDs tried per create before giving up
        id_generator: Callable producing an ID of the requested length
    """

    def __init__(
        self,
        store: BlobStore,
        verifier: Optional[BotVerifier] = None,
        id_length: int = 10,
        max_attempts: int = 3,
        id_generator: Callable[[int], str] = generate_blob_id,
    ):
        self.store = store
        self.verifier = verifier
        self.id_length = id_length
        self.max_attempts = max_attempts
        self._id_generator = id_generator
        self._id_pattern = re.compile(rf"[A-Za-z0-9_-]{{{id_length}}}")

    @property
    def verification_enabled(self) -> bool:
        return self.verifier is not None

    def is_valid_id(self, blob_id: str) -> bool:
        """True if `blob_id` has the exact configured length and alphabet."""
        return self._id_pattern.fullmatch(blob_id) is not None

    async def create_blob(
        self,
        document: Any,
        recaptcha_token: Optional[str] = None,
        client_ip: Optional[str] = None,
    ) -> Blob:
        """
        Validate and persist a new document under a fresh ID.

        Args:
            document:        Any JSON value (None means "absent")
            recaptcha_token: Token from the frontend widget, if any
            client_ip:       Client address, passed through to the verifier

        Returns:
            The stored Blob, including its creation timestamp.

        Raises:
            ValidationError: Token missing, document missing or not JSON
            VerificationFailedError: Oracle did not vouch for the client
            DatabaseError: Storage failed or no free ID was found
        """
        await self._verify_client(recaptcha_token, client_ip)

        if document is None:
            raise ValidationError(message="JSON content is required", field="json")

        try:
            serialize_document(document)
        except (TypeError, ValueError, RecursionError) as e:
            raise ValidationError(
                message="Invalid JSON format",
                field="json",
                context={"reason": type(e).__name__},
            )

        return await self._insert_with_fresh_id(document)

    async def get_blob(self, blob_id: str) -> Blob:
        """
        Fetch a blob by ID.

        Raises:
            ValidationError: ID has the wrong shape (store is not queried)
            NotFoundError: No blob with this ID
            DatabaseError: Lookup failed
        """
        if not isinstance(blob_id, str) or not self.is_valid_id(blob_id):
            raise ValidationError(message="Invalid blob ID format", field="id")

        blob = await self.store.get(blob_id)
        if blob is None:
            raise NotFoundError(resource="Blob", resource_id=blob_id)
        return blob

    async def _verify_client(self, token: Optional[str], client_ip: Optional[str]) -> None:
        if self.verifier is None:
            return

        if not token:
            raise ValidationError(
                message="reCAPTCHA verification required",
                field="recaptchaToken",
            )

        result = await self.verifier.verify(token, remote_ip=client_ip)
        if not result.success:
            raise VerificationFailedError(
                context={"reason": result.reason, "score": result.score},
            )

    async def _insert_with_fresh_id(self, document: Any) -> Blob:
        blob: Optional[Blob] = None
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(DuplicateKeyError),
                stop=stop_after_attempt(self.max_attempts),
                before_sleep=before_sleep_log(logger, logging.WARNING),
                reraise=True,
            ):
                with attempt:
                    blob = await self.store.put(self._id_generator(self.id_length), document)
        except DuplicateKeyError as e:
            logger.error(
                "No free blob ID after %d attempts (last tried %s)",
                self.max_attempts,
                e.blob_id,
            )
            raise DatabaseError(
                message="Failed to create blob",
                context={"attempts": self.max_attempts},
            ) from e

        logger.info("Blob %s created", blob.id)
        return blob
