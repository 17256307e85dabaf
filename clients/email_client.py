"""
Email gateway client for sending transactional email via HTTP gateway.

Uses HMAC-SHA256 signature for request authentication. The gateway replies
with {"success": bool, "message_id": str, "message": str}.
"""

import hashlib
import hmac
import json
import logging
import re

import requests

logger = logging.getLogger(__name__)

_SENDERS = ("auth", "system")


class EmailGatewayError(Exception):
    """Raised when email gateway request fails."""


def strip_html(html: str) -> str:
    """Plain-text fallback for an HTML body."""
    text = re.sub(r"<br\s*/?>", "\n", html, flags=re.IGNORECASE)
    text = re.sub(r"</p>", "\n\n", text, flags=re.IGNORECASE)
    text = re.sub(r"</div>", "\n", text, flags=re.IGNORECASE)
    text = re.sub(r"<[^>]+>", "", text)
    text = (
        text.replace("&nbsp;", " ")
        .replace("&lt;", "<")
        .replace("&gt;", ">")
        .replace("&amp;", "&")
    )
    return text.strip()


class EmailGatewayClient:
    """Send emails via HTTP gateway with HMAC signature verification."""

    def __init__(self, gateway_url: str, api_key: str, hmac_secret: str):
        """
        Initialize with gateway credentials.

        Args:
            gateway_url: Full URL to the email gateway endpoint
            api_key: API key for X-API-Key header
            hmac_secret: Secret for HMAC-SHA256 signature

        Raises:
            ValueError: If any credential is empty
        """
        if not gateway_url:
            raise ValueError("gateway_url is required")
        if not api_key:
            raise ValueError("api_key is required")
        if not hmac_secret:
            raise ValueError("hmac_secret is required")

        self.gateway_url = gateway_url
        self.api_key = api_key
        self.hmac_secret = hmac_secret

    def _sign_and_send(self, payload: dict) -> dict:
        """
        Sign payload with HMAC and send to gateway.

        Returns:
            Decoded gateway response.

        Raises:
            EmailGatewayError: On any failure
        """
        payload_json = json.dumps(payload, separators=(",", ":"))

        signature = hmac.new(
            self.hmac_secret.encode("utf-8"),
            payload_json.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

        headers = {
            "Content-Type": "application/json",
            "X-API-Key": self.api_key,
            "X-Signature": signature,
        }

        try:
            response = requests.post(
                self.gateway_url,
                data=payload_json,
                headers=headers,
                timeout=10,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Email gateway connection failed: {e}")
            raise EmailGatewayError(f"Connection failed: {e}")

        try:
            response_data = response.json()
        except ValueError:
            logger.error(f"Email gateway returned invalid JSON: {response.text}")
            raise EmailGatewayError("Invalid response from gateway")

        if response.status_code != 200 or not response_data.get("success"):
            error_msg = response_data.get("message", "Unknown error")
            logger.error(f"Email gateway error: {error_msg}")
            raise EmailGatewayError(f"Gateway error: {error_msg}")

        return response_data

    def send_email(
        self,
        to: str,
        subject: str,
        html_body: str,
        text_body: str | None = None,
        sender: str = "system",
    ) -> str:
        """
        Send an email via gateway.

        Args:
            to: Recipient email address
            subject: Email subject line
            html_body: HTML email body
            text_body: Plain text body; derived from html_body when omitted
            sender: Sender identity - "auth" or "system" (default: "system")

        Returns:
            Gateway message id.

        Raises:
            ValueError: If sender is invalid
            EmailGatewayError: On gateway failure
        """
        if sender not in _SENDERS:
            raise ValueError(f"sender must be 'auth' or 'system', got '{sender}'")

        payload = {
            "email": to,
            "subject": subject,
            "html": html_body,
            "body": text_body or strip_html(html_body),
            "sender": sender,
        }
        response_data = self._sign_and_send(payload)
        message_id = str(response_data.get("message_id", ""))
        logger.info(f"Email sent to {to}: {subject} ({message_id})")
        return message_id
