"""
Outbound email for milestone notifications.
"""
import logging
from abc import ABC, abstractmethod
from typing import Optional

import httpx

from .errors import MailDeliveryError

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"


class Mailer(ABC):
    """Sends one HTML email."""

    @abstractmethod
    async def send(self, to: str, subject: str, html: str) -> dict:
        """Deliver a message. Returns the provider's response body.

        Raises:
            MailDeliveryError: If the provider did not accept the message
        """


class ResendMailer(Mailer):
    """Mailer backed by the Resend HTTP API."""

    def __init__(
        self,
        api_key: str,
        sender: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.sender = sender
        self.timeout = timeout
        self._transport = transport

    async def send(self, to: str, subject: str, html: str) -> dict:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    RESEND_API_URL,
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json={"from": self.sender, "to": [to], "subject": subject, "html": html},
                )
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise MailDeliveryError(
                f"Resend rejected message with status {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise MailDeliveryError(f"Resend request failed: {e}") from e

        result = response.json()
        logger.info(f"Email sent to {to}: {result.get('id')}")
        return result
