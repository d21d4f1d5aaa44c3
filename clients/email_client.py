"""
Email gateway client for billing notifications.

Requests are JSON bodies signed with HMAC-SHA256. Every message carries an
idempotency key so the gateway can drop a resend of the same notification.
"""

import hashlib
import hmac
import json
import logging
from uuid import uuid4

import requests

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_SECONDS = 10


class EmailGatewayError(Exception):
    """Raised when email gateway request fails."""


class EmailGatewayClient:
    """Sends plain-text notification mails through the signed HTTP gateway."""

    def __init__(self, gateway_url: str, api_key: str, hmac_secret: str):
        """
        Args:
            gateway_url: Full URL to the email gateway endpoint
            api_key: API key for X-API-Key header
            hmac_secret: Secret for HMAC-SHA256 signature

        Raises:
            ValueError: If any credential is empty
        """
        for name, value in (("gateway_url", gateway_url), ("api_key", api_key), ("hmac_secret", hmac_secret)):
            if not value:
                raise ValueError(f"{name} is required")

        self.gateway_url = gateway_url
        self.api_key = api_key
        self.hmac_secret = hmac_secret

    def _signature(self, body: bytes) -> str:
        return hmac.new(self.hmac_secret.encode("utf-8"), body, hashlib.sha256).hexdigest()

    def _post(self, payload: dict) -> dict:
        """
        Sign and send payload; return the gateway's JSON answer.

        Raises:
            EmailGatewayError: On connection failure, invalid JSON or a rejected request
        """
        body = json.dumps(payload, separators=(",", ":")).encode("utf-8")
        headers = {
            "Content-Type": "application/json",
            "X-API-Key": self.api_key,
            "X-Signature": self._signature(body),
            "Idempotency-Key": payload["idempotency_key"],
        }

        try:
            response = requests.post(self.gateway_url, data=body, headers=headers, timeout=REQUEST_TIMEOUT_SECONDS)
        except (requests.exceptions.RequestException, ConnectionError) as e:
            logger.error(f"Email gateway connection failed: {e}")
            raise EmailGatewayError(f"Connection failed: {e}")

        try:
            answer = response.json()
        except ValueError:
            logger.error(f"Email gateway returned invalid JSON: {response.text}")
            raise EmailGatewayError("Invalid response from gateway")

        if response.status_code != 200 or not answer.get("success"):
            message = answer.get("message", "Unknown error")
            logger.error(f"Email gateway error ({response.status_code}): {message}")
            raise EmailGatewayError(f"Gateway error: {message}")

        return answer

    def send_email(
        self,
        to: str,
        subject: str,
        body: str,
        reply_to: str | None = None,
        idempotency_key: str | None = None,
    ) -> None:
        """
        Send a plain-text notification.

        Args:
            to: Recipient address
            subject: Subject line
            body: Plain text body
            reply_to: Address replies should go to (e.g. the tenant's billing e-mail)
            idempotency_key: Stable key for this notification; generated when omitted

        Raises:
            ValueError: If recipient is empty
            EmailGatewayError: On gateway failure
        """
        if not to:
            raise ValueError("Recipient address is required")

        payload = {
            "type": "custom",
            "email": to,
            "subject": subject,
            "body": body,
            "sender": "system",
            "idempotency_key": idempotency_key or str(uuid4()),
        }
        if reply_to:
            payload["reply_to"] = reply_to

        self._post(payload)
        logger.info(f"Email sent to {to}: {subject}")
