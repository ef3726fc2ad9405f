"""
Twilio SMS channel.

Talks to the Twilio Messages REST API over httpx and classifies every
failure as retryable or terminal instead of raising.
"""

import hashlib
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx

from smsreminder.config import get_logger
from smsreminder.config.settings import SMSSettings
from smsreminder.core.interfaces.delivery import IDeliveryChannel, SendResult

logger = get_logger(__name__)

# Throttling, temporary unreachability and queue errors
RETRYABLE_ERROR_CODES = frozenset({20003, 20429, 30002, 30003, 30004, 30006, 30008})


def is_retryable(error_code: int | None, status_code: int) -> bool:
    """Classify a Twilio failure."""
    if error_code is not None:
        return error_code in RETRYABLE_ERROR_CODES
    return status_code == 429 or status_code >= 500


class TwilioSMSChannel(IDeliveryChannel):
    """
    Twilio HTTP API channel.

    When disabled, sends are logged and answered with a deterministic
    synthetic message id so the pipeline runs without side effects.
    """

    def __init__(
        self,
        account_sid: str | None,
        auth_token: str | None,
        from_number: str | None,
        enabled: bool = True,
        api_base: str = "https://api.twilio.com/2010-04-01",
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.enabled = enabled
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self._client = client

    @classmethod
    def from_settings(
        cls,
        settings: SMSSettings,
        client: httpx.AsyncClient | None = None,
    ) -> "TwilioSMSChannel":
        return cls(
            account_sid=settings.account_sid,
            auth_token=settings.auth_token,
            from_number=settings.from_number,
            enabled=settings.enabled,
            api_base=settings.api_base,
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

    async def send(self, recipient: str, body: str) -> SendResult:
        """Send an SMS through Twilio."""
        if not self.enabled:
            return self._dry_run(recipient, body)

        if not self.from_number:
            return SendResult.failed("Twilio phone number not configured", retryable=False)
        if not self.account_sid or not self.auth_token:
            return SendResult.failed("Twilio credentials not configured", retryable=False)

        url = f"{self.api_base}/Accounts/{self.account_sid}/Messages.json"
        payload = {"To": recipient, "From": self.from_number, "Body": body}

        try:
            async with self._http() as client:
                response = await client.post(
                    url,
                    data=payload,
                    auth=(self.account_sid, self.auth_token),
                    timeout=self.timeout,
                )
        except httpx.TimeoutException:
            logger.warning("twilio_timeout", timeout=self.timeout)
            return SendResult.failed(
                f"Twilio request timed out after {self.timeout}s", retryable=True
            )
        except httpx.TransportError as e:
            logger.warning("twilio_unreachable", error=str(e))
            return SendResult.failed(f"Twilio unreachable: {e}", retryable=True)

        if response.status_code in (200, 201):
            try:
                message_sid = response.json().get("sid")
            except (ValueError, AttributeError):
                # Accepted but unreadable; retrying could send twice
                logger.error("twilio_unreadable_response", status=response.status_code)
                return SendResult.failed(
                    f"Twilio returned an unreadable HTTP {response.status_code} response",
                    retryable=False,
                )
            logger.info("twilio_message_created", message_sid=message_sid)
            return SendResult.sent(message_sid)

        return self._failure_from_response(response)

    def _failure_from_response(self, response: httpx.Response) -> SendResult:
        error_code = None
        message = f"HTTP {response.status_code}"
        try:
            data = response.json()
            error_code = data.get("code")
            message = data.get("message") or message
        except ValueError:
            message = f"{message}: {response.text[:200]}"

        retryable = is_retryable(error_code, response.status_code)
        logger.error(
            "twilio_error",
            status=response.status_code,
            error_code=error_code,
            retryable=retryable,
            error=message,
        )
        return SendResult.failed(message, retryable=retryable, error_code=error_code)

    def _dry_run(self, recipient: str, body: str) -> SendResult:
        digest = hashlib.sha256(f"{recipient}|{body}".encode()).hexdigest()[:16]
        message_id = f"dev-{digest}"
        logger.info(
            "sms_dry_run",
            recipient=recipient,
            body_length=len(body),
            message_id=message_id,
        )
        return SendResult.sent(message_id)
