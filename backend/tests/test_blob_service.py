"""
JBin Backend — Blob Service Unit Tests
========================================

What:  Tests for BlobService create/retrieve rules.
How:   Most tests use a mock store so each rule is checked in isolation; the
       concurrency and round-trip tests run against a real SQLite store.

What we test:
    ✅ Verification runs first and gates everything else
    ✅ Missing, cyclic and non-finite documents are rejected
    ✅ Falsy but present documents (0, false, "") are accepted
    ✅ ID collisions are retried with fresh IDs, then reported as DatabaseError
    ✅ Malformed IDs are rejected without touching the store
    ✅ Concurrent creates all get distinct IDs
"""

import asyncio
import re
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.exceptions import (
    DatabaseError,
    DuplicateKeyError,
    NotFoundError,
    ValidationError,
    VerificationFailedError,
)
from app.services.blob_service import ID_ALPHABET, BlobService, generate_blob_id
from app.services.blob_store import Blob
from app.services.verification_base import VerificationResult


def make_mock_store():
    store = MagicMock()

    async def put(blob_id, document):
        return Blob(id=blob_id, document=document, created_at=1705320000000)

    store.put = AsyncMock(side_effect=put)
    store.get = AsyncMock(return_value=None)
    return store


def sequence_generator(*ids):
    remaining = list(ids)
    return lambda length: remaining.pop(0)


class TestGenerateBlobId:

    def test_length_and_alphabet(self):
        for length in (4, 10, 21, 64):
            blob_id = generate_blob_id(length)
            assert len(blob_id) == length
            assert set(blob_id) <= set(ID_ALPHABET)

    def test_alphabet_is_url_safe_64(self):
        assert len(ID_ALPHABET) == 64
        assert re.fullmatch(r"[A-Za-z0-9_-]+", ID_ALPHABET)

    def test_ids_are_not_repeated(self):
        ids = {generate_blob_id(10) for _ in range(1000)}
        assert len(ids) == 1000


class TestBlobServiceCreate:

    def setup_method(self):
        self.store = make_mock_store()
        self.service = BlobService(store=self.store)

    @pytest.mark.asyncio
    async def test_create_returns_stored_blob(self):
        blob = await self.service.create_blob({"a": 1})

        assert len(blob.id) == 10
        assert self.service.is_valid_id(blob.id)
        assert blob.document == {"a": 1}
        self.store.put.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_missing_document_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            await self.service.create_blob(None)

        assert exc_info.value.message == "JSON content is required"
        self.store.put.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("document", [0, False, "", [], {}])
    async def test_falsy_documents_accepted(self, document):
        blob = await self.service.create_blob(document)
        assert blob.document == document

    @pytest.mark.asyncio
    async def test_cyclic_document_rejected(self):
        cyclic = {}
        cyclic["self"] = cyclic

        with pytest.raises(ValidationError) as exc_info:
            await self.service.create_blob(cyclic)

        assert exc_info.value.message == "Invalid JSON format"
        self.store.put.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_non_finite_number_rejected(self):
        with pytest.raises(ValidationError):
            await self.service.create_blob({"x": float("inf")})

    @pytest.mark.asyncio
    async def test_token_ignored_when_verification_disabled(self):
        blob = await self.service.create_blob([1], recaptcha_token="anything")
        assert blob.document == [1]


class TestBlobServiceVerification:

    @pytest.fixture(autouse=True)
    def _setup(self, make_verifier):
        self.store = make_mock_store()
        self.make_verifier = make_verifier

    @pytest.mark.asyncio
    async def test_missing_token_rejected_before_document_check(self):
        service = BlobService(store=self.store, verifier=self.make_verifier())

        with pytest.raises(ValidationError) as exc_info:
            await service.create_blob(None)

        assert exc_info.value.message == "reCAPTCHA verification required"

    @pytest.mark.asyncio
    async def test_failed_verification_is_403_error(self):
        verifier = self.make_verifier(VerificationResult(success=False, score=0.1, reason="low_score"))
        service = BlobService(store=self.store, verifier=verifier)

        with pytest.raises(VerificationFailedError) as exc_info:
            await service.create_blob({"a": 1}, recaptcha_token="tok")

        assert exc_info.value.message == "reCAPTCHA verification failed"
        self.store.put.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failed_verification_wins_over_missing_document(self):
        verifier = self.make_verifier(VerificationResult(success=False, reason="rejected"))
        service = BlobService(store=self.store, verifier=verifier)

        with pytest.raises(VerificationFailedError):
            await service.create_blob(None, recaptcha_token="tok")

    @pytest.mark.asyncio
    async def test_successful_verification_passes_token_and_ip(self):
        verifier = self.make_verifier()
        service = BlobService(store=self.store, verifier=verifier)

        await service.create_blob({"a": 1}, recaptcha_token="tok", client_ip="203.0.113.7")

        assert verifier.calls == [("tok", "203.0.113.7")]
        self.store.put.assert_awaited_once()


class TestBlobServiceCollisions:

    @pytest.mark.asyncio
    async def test_collision_retried_with_new_id(self):
        store = make_mock_store()
        store.put.side_effect = [
            DuplicateKeyError("taken00001"),
            Blob(id="fresh00001", document=[1], created_at=1),
        ]
        service = BlobService(
            store=store,
            id_generator=sequence_generator("taken00001", "fresh00001"),
        )

        blob = await service.create_blob([1])

        assert blob.id == "fresh00001"
        tried = [call.args[0] for call in store.put.await_args_list]
        assert tried == ["taken00001", "fresh00001"]

    @pytest.mark.asyncio
    async def test_exhausted_attempts_raise_database_error(self):
        store = make_mock_store()
        store.put.side_effect = DuplicateKeyError("always0001")
        service = BlobService(store=store, max_attempts=3)

        with pytest.raises(DatabaseError) as exc_info:
            await service.create_blob({"a": 1})

        assert not isinstance(exc_info.value, DuplicateKeyError)
        assert exc_info.value.message == "Failed to create blob"
        assert store.put.await_count == 3

    @pytest.mark.asyncio
    async def test_other_store_errors_not_retried(self):
        store = make_mock_store()
        store.put.side_effect = DatabaseError()
        service = BlobService(store=store)

        with pytest.raises(DatabaseError):
            await service.create_blob({"a": 1})

        assert store.put.await_count == 1


class TestBlobServiceGet:

    def setup_method(self):
        self.store = make_mock_store()
        self.service = BlobService(store=self.store)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("blob_id", ["short", "abc!@#defg", "a" * 11, "", "abc def gh"])
    async def test_malformed_id_rejected_without_lookup(self, blob_id):
        with pytest.raises(ValidationError) as exc_info:
            await self.service.get_blob(blob_id)

        assert exc_info.value.message == "Invalid blob ID format"
        self.store.get.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_blob_raises_not_found(self):
        with pytest.raises(NotFoundError) as exc_info:
            await self.service.get_blob("missing_01")

        assert exc_info.value.message == "Blob not found"
        self.store.get.assert_awaited_once_with("missing_01")

    @pytest.mark.asyncio
    async def test_configured_length_enforced(self):
        service = BlobService(store=self.store, id_length=21)

        with pytest.raises(ValidationError):
            await service.get_blob("exactlyTen")
        with pytest.raises(NotFoundError):
            await service.get_blob("A" * 21)


class TestBlobServiceWithStore:

    @pytest.mark.asyncio
    async def test_round_trip(self, blob_store):
        service = BlobService(store=blob_store)

        created = await service.create_blob({"a": 1, "b": [1, 2, 3]})
        fetched = await service.get_blob(created.id)

        assert fetched.document == {"a": 1, "b": [1, 2, 3]}
        assert fetched.created_at == created.created_at

    @pytest.mark.asyncio
    async def test_real_collision_is_retried(self, blob_store):
        await blob_store.put("taken00001", {"original": True})
        service = BlobService(
            store=blob_store,
            id_generator=sequence_generator("taken00001", "fresh00001"),
        )

        blob = await service.create_blob({"new": True})

        assert blob.id == "fresh00001"
        assert (await blob_store.get("taken00001")).document == {"original": True}

    @pytest.mark.asyncio
    async def test_concurrent_creates_get_distinct_ids(self, blob_store):
        service = BlobService(store=blob_store)

        blobs = await asyncio.gather(*(service.create_blob({"n": i}) for i in range(20)))

        assert len({b.id for b in blobs}) == 20
        for blob in blobs:
            assert (await service.get_blob(blob.id)).document == blob.document
