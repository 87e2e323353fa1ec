"""SendGrid transactional email."""

import logging
import re
from dataclasses import dataclass
from typing import Optional

import httpx

from config import SENDER_EMAIL, SENDER_NAME, SENDGRID_BASE_URL, get_sendgrid_api_key

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MOCK_MESSAGE_ID = "mock_message_id"


@dataclass
class SendResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


def validate_email(address: str) -> bool:
    return bool(EMAIL_PATTERN.match(address or ""))


class SendGridService:
    def __init__(self, api_key: Optional[str] = None, base_url: str = SENDGRID_BASE_URL):
        self.api_key = api_key if api_key is not None else get_sendgrid_api_key()
        self.base_url = base_url.rstrip("/")

    def send_email(self, to: str, subject: str, html_content: str, text_content: str) -> SendResult:
        """Send one email. Without an API key the send is only logged."""
        if not validate_email(to):
            return SendResult(success=False, error=f"Invalid recipient address: {to!r}")
        if not self.api_key:
            logger.info("Mock email send to %s: %s", to, subject)
            return SendResult(success=True, message_id=MOCK_MESSAGE_ID)
        try:
            resp = httpx.post(
                f"{self.base_url}/mail/send",
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={
                    "personalizations": [{"to": [{"email": to}], "subject": subject}],
                    "from": {"email": SENDER_EMAIL, "name": SENDER_NAME},
                    "content": [
                        {"type": "text/plain", "value": text_content},
                        {"type": "text/html", "value": html_content},
                    ],
                },
                timeout=10.0,
            )
            resp.raise_for_status()
        except httpx.HTTPError as e:
            err_detail = str(e)
            response = getattr(e, "response", None)
            if response is not None:
                err_detail += " | response: " + (response.text or "")[:200]
            logger.warning("SendGrid email send to %s failed: %s", to, err_detail)
            return SendResult(success=False, error=err_detail)
        logger.info("Email sent to %s", to)
        return SendResult(success=True, message_id=resp.headers.get("X-Message-Id"))
