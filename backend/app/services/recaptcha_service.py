"""
JBin Backend — Google reCAPTCHA v3 Verifier
=============================================

What:  BotVerifier backed by Google's `siteverify` endpoint.
How:   POSTs the secret and the client token as a form, reads `success` and
       `score` from the JSON reply, and compares the score to the configured
       minimum. One pooled httpx.AsyncClient is reused for the process lifetime.
Who:   Built by the application lifespan when RECAPTCHA_SECRET_KEY is set.

Failure handling (fail closed):
    timeout / connection error / non-2xx  → success=False, reason="unreachable"
    body is not a JSON object             → success=False, reason="malformed_response"
    success=false from Google             → success=False, reason="rejected"
    missing score or score < minimum      → success=False, reason="low_score"
"""

import logging
import time
from typing import Optional

import httpx

from app.services.verification_base import BotVerifier, VerificationResult

logger = logging.getLogger(__name__)

DEFAULT_VERIFY_URL = "https://www.google.com/recaptcha/api/siteverify"


class RecaptchaVerifier(BotVerifier):
    """
    reCAPTCHA v3 token verification.

    Args:
        secret_key: Server-side reCAPTCHA secret
        min_score:  Lowest acceptable score (inclusive)
        verify_url: siteverify endpoint (overridable for testing/proxies)
        timeout:    Total seconds allowed for the oracle call
        transport:  Optional httpx transport (tests pass httpx.MockTransport)
    """

    def __init__(
        self,
        secret_key: str,
        min_score: float = 0.5,
        verify_url: str = DEFAULT_VERIFY_URL,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.secret_key = secret_key
        self.min_score = min_score
        self.verify_url = verify_url
        self.timeout = timeout
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

        logger.info(
            "RecaptchaVerifier initialized (min_score=%.2f, timeout=%.1fs)",
            min_score,
            timeout,
        )

    async def verify(self, token: str, remote_ip: Optional[str] = None) -> VerificationResult:
        form = {"secret": self.secret_key, "response": token}
        if remote_ip:
            form["remoteip"] = remote_ip

        start_time = time.perf_counter()
        try:
            response = await self._client.post(self.verify_url, data=form)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.warning(
                "reCAPTCHA verification unavailable after %.0fms: %s: %s",
                duration_ms,
                type(e).__name__,
                str(e),
            )
            return VerificationResult(success=False, reason="unreachable")
        except ValueError:
            logger.warning("reCAPTCHA verification returned a non-JSON body")
            return VerificationResult(success=False, reason="malformed_response")

        if not isinstance(payload, dict):
            logger.warning("reCAPTCHA verification returned %s, expected an object",
                           type(payload).__name__)
            return VerificationResult(success=False, reason="malformed_response")

        score = payload.get("score")
        if isinstance(score, bool) or not isinstance(score, (int, float)):
            score = None

        if payload.get("success") is not True:
            logger.info("reCAPTCHA rejected token: %s", payload.get("error-codes", []))
            return VerificationResult(success=False, score=score, reason="rejected")

        if score is None or score < self.min_score:
            logger.info("reCAPTCHA score %s below minimum %.2f", score, self.min_score)
            return VerificationResult(success=False, score=score, reason="low_score")

        return VerificationResult(success=True, score=float(score), reason="ok")

    async def aclose(self) -> None:
        await self._client.aclose()
