"""Tests for the Resend mailer."""

import asyncio
import json

import httpx
import pytest

from sitepulse.errors import MailDeliveryError
from sitepulse.mailer import RESEND_API_URL, ResendMailer


def run_async(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


class TestResendMailer:
    """Test ResendMailer.send."""

    def test_posts_message(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"id": "email_123"})

        mailer = ResendMailer("re_test", "Analytics <a@example.com>", transport=httpx.MockTransport(handler))
        result = run_async(mailer.send("owner@example.com", "Hello", "<p>Hi</p>"))

        assert result == {"id": "email_123"}
        request = requests[0]
        assert str(request.url) == RESEND_API_URL
        assert request.headers["authorization"] == "Bearer re_test"
        body = json.loads(request.content)
        assert body == {
            "from": "Analytics <a@example.com>",
            "to": ["owner@example.com"],
            "subject": "Hello",
            "html": "<p>Hi</p>",
        }

    def test_rejected_message(self):
        mailer = ResendMailer(
            "re_test", "a@example.com",
            transport=httpx.MockTransport(lambda request: httpx.Response(422, json={"message": "bad"})),
        )
        with pytest.raises(MailDeliveryError, match="422"):
            run_async(mailer.send("owner@example.com", "Hello", "<p>Hi</p>"))

    def test_network_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        mailer = ResendMailer("re_test", "a@example.com", transport=httpx.MockTransport(handler))
        with pytest.raises(MailDeliveryError):
            run_async(mailer.send("owner@example.com", "Hello", "<p>Hi</p>"))
