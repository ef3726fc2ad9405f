"""
Upstash QStash job scheduler and callback signature verification.

QStash publishes the payload to the callback URL after the requested
delay and retries on non-2xx responses, so the callback must be
idempotent.
"""

import base64
import hashlib
import math
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

import httpx
from jose import JWTError, jwt

from smsreminder.config import get_logger
from smsreminder.config.settings import SchedulerSettings
from smsreminder.core.entities.reminder import utcnow
from smsreminder.core.exceptions import SignatureVerificationError
from smsreminder.core.interfaces.delivery import (
    EnqueueResult,
    IJobScheduler,
    ISignatureVerifier,
)

logger = get_logger(__name__)


def compute_delay_seconds(fire_at: datetime, now: datetime) -> int:
    """Whole seconds until fire_at, never negative."""
    return max(0, math.floor((fire_at - now).total_seconds()))


class QStashJobScheduler(IJobScheduler):
    """QStash publish API client."""

    def __init__(
        self,
        token: str | None,
        base_url: str = "https://qstash.upstash.io",
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        settings: SchedulerSettings,
        client: httpx.AsyncClient | None = None,
    ) -> "QStashJobScheduler":
        return cls(
            token=settings.token,
            base_url=settings.url,
            timeout=settings.timeout,
            client=client,
        )

    @asynccontextmanager
    async def _http(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            yield client

    async def enqueue(
        self,
        target_url: str | None,
        payload: dict[str, Any],
        fire_at: datetime,
        max_attempts: int,
    ) -> EnqueueResult:
        """Publish a delayed callback. Failures are returned, not raised."""
        if not self.token:
            return EnqueueResult(success=False, error="QStash token not configured")
        if not target_url:
            return EnqueueResult(
                success=False, error="App URL not configured for QStash callbacks"
            )

        delay = compute_delay_seconds(fire_at, self._clock())
        headers = {
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json",
            "Upstash-Delay": f"{delay}s",
            "Upstash-Retries": str(max_attempts),
        }

        try:
            async with self._http() as client:
                response = await client.post(
                    f"{self.base_url}/v2/publish/{target_url}",
                    json=payload,
                    headers=headers,
                    timeout=self.timeout,
                )
        except httpx.HTTPError as e:
            logger.error("qstash_publish_failed", error=str(e), target_url=target_url)
            return EnqueueResult(
                success=False,
                error=f"QStash unreachable: {e}",
                delay_seconds=delay,
            )

        if response.status_code >= 300:
            error = f"QStash HTTP {response.status_code}: {response.text[:200]}"
            logger.error("qstash_publish_rejected", status=response.status_code, error=error)
            return EnqueueResult(success=False, error=error, delay_seconds=delay)

        try:
            message_id = response.json().get("messageId")
        except (ValueError, AttributeError):
            # Published, the job id is only for bookkeeping
            logger.warning("qstash_unreadable_response", status=response.status_code)
            message_id = None
        logger.info("qstash_published", message_id=message_id, delay_seconds=delay)
        return EnqueueResult(success=True, job_id=message_id, delay_seconds=delay)


def body_hash(body: bytes) -> str:
    """Base64url SHA-256 of a request body, unpadded."""
    digest = hashlib.sha256(body).digest()
    return base64.urlsafe_b64encode(digest).decode().rstrip("=")


class QStashSignatureVerifier(ISignatureVerifier):
    """
    Verifies the Upstash-Signature JWT on scheduler callbacks.

    Tokens are HS256-signed with either the current or the next signing
    key (keys are rotated by promoting next to current).
    """

    ISSUER = "Upstash"

    def __init__(
        self,
        current_signing_key: str | None,
        next_signing_key: str | None,
        clock_tolerance: int = 60,
    ):
        self._keys = [k for k in (current_signing_key, next_signing_key) if k]
        self._enabled = bool(current_signing_key and next_signing_key)
        self.clock_tolerance = clock_tolerance

    @classmethod
    def from_settings(cls, settings: SchedulerSettings) -> "QStashSignatureVerifier":
        return cls(
            settings.current_signing_key,
            settings.next_signing_key,
            clock_tolerance=settings.clock_tolerance,
        )

    @property
    def enabled(self) -> bool:
        return self._enabled

    def verify(self, signature: str | None, body: bytes, url: str | None = None) -> None:
        """Check the token against both keys, then its claims."""
        if not signature:
            raise SignatureVerificationError("missing Upstash-Signature header")

        last_error = "no signing keys configured"
        for key in self._keys:
            try:
                claims = jwt.decode(
                    signature,
                    key,
                    algorithms=["HS256"],
                    issuer=self.ISSUER,
                    options={"verify_aud": False, "leeway": self.clock_tolerance},
                )
            except JWTError as e:
                last_error = str(e)
                continue
            self._check_claims(claims, body, url)
            return

        raise SignatureVerificationError(last_error)

    @staticmethod
    def _check_claims(claims: dict[str, Any], body: bytes, url: str | None) -> None:
        if url is not None and claims.get("sub") != url:
            raise SignatureVerificationError("subject does not match callback URL")

        expected = (claims.get("body") or "").rstrip("=")
        if expected != body_hash(body):
            raise SignatureVerificationError("body hash mismatch")
