"""
JBin Backend — Abstract Bot Verification Interface
====================================================

What:  Contract for services that decide whether a client token belongs to a
       human (reCAPTCHA today).
How:   Concrete implementations inherit from BotVerifier and implement verify().
Who:   Called by BlobService before a blob is created.

Fail-closed contract:
    verify() never raises for oracle problems. Timeouts, network errors and
    malformed replies all come back as VerificationResult(success=False).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class VerificationResult:
    """
    Verdict for one token.

    Attributes:
        success: True only when the oracle accepted the token AND the score
                 met the configured minimum
        score:   Oracle confidence (0.0 bot … 1.0 human), None if unavailable
        reason:  Short machine-readable explanation for logs
    """
    success: bool
    score: Optional[float] = None
    reason: str = ""


class BotVerifier(ABC):
    """Abstract interface for bot-verification oracles."""

    @abstractmethod
    async def verify(self, token: str, remote_ip: Optional[str] = None) -> VerificationResult:
        """
        Ask the oracle about `token`.

        Args:
            token:     Challenge token produced by the frontend widget
            remote_ip: Client address, forwarded to the oracle when known

        Returns:
            VerificationResult; success is False for every failure mode.
        """
        ...

    async def aclose(self) -> None:
        """Release network resources. Called once at shutdown."""
        return None
