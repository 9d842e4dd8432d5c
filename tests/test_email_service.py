import json
import logging
from datetime import datetime

import httpx
import pytest

from app.core.logging import mask_email
from app.core.settings import settings
from app.services.auth_flow import best_effort
from app.services.email import EmailService, format_display_date


def _config(**overrides):
    values = {
        "zeptomail_token": "secret-token",
        "zeptomail_api_url": "https://mail.test/v1.1/email/template",
        "email_template_verification": "tpl-verify",
        "email_template_loan_approval": "tpl-approval",
    }
    values.update(overrides)
    return settings.model_copy(update=values)


def _service(handler, **overrides) -> EmailService:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return EmailService(_config(**overrides), client=client)


async def test_verification_email_posts_template_payload():
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(201, json={"data": []})

    mailer = _service(handler)
    assert await mailer.send_verification_email("ada@example.com", "123456") is True
    await mailer.aclose()

    (request,) = captured
    assert str(request.url) == "https://mail.test/v1.1/email/template"
    assert request.headers["Authorization"] == "Zoho-enczapikey secret-token"
    body = json.loads(request.content)
    assert body["mail_template_key"] == "tpl-verify"
    assert body["to"][0]["email_address"]["address"] == "ada@example.com"
    assert body["merge_info"]["code"] == "123456"
    assert body["merge_info"]["recipient_name"] == "ada"


async def test_provider_rejection_returns_false():
    mailer = _service(lambda request: httpx.Response(422, json={"error": "bad template"}))

    assert await mailer.send_verification_email("ada@example.com", "123456") is False


async def test_send_log_masks_recipient(caplog):
    caplog.set_level(logging.INFO, logger="app.services.email")
    mailer = _service(lambda request: httpx.Response(201, json={"data": []}))

    assert await mailer.send_verification_email("ada@example.com", "123456") is True
    await mailer.aclose()

    messages = [record.getMessage() for record in caplog.records]
    assert "Sent VERIFICATION email to a***@example.com" in messages
    assert not any("ada@example.com" in message for message in messages)


def test_mask_email():
    assert mask_email("ada@example.com") == "a***@example.com"
    assert mask_email("not-an-address") == "***"
    assert mask_email(None) == "***"


async def test_network_failure_returns_false():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    mailer = _service(handler)

    assert await mailer.send_verification_email("ada@example.com", "123456") is False


async def test_missing_template_key_skips_the_call():
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200)

    mailer = _service(handler, email_template_verification="")

    assert await mailer.send_verification_email("ada@example.com", "123456") is False
    assert calls == []


async def test_missing_token_skips_the_call():
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200)

    mailer = _service(handler, zeptomail_token="")

    assert await mailer.send_verification_email("ada@example.com", "123456") is False
    assert calls == []


async def test_approval_email_formats_amounts():
    captured: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(json.loads(request.content))
        return httpx.Response(200, json={})

    mailer = _service(handler)
    await mailer.send_loan_approval_email(
        "ada@example.com",
        "Ada Obi",
        {
            "amount": 450000,
            "loan_id": "LN-SL-ABCD1234",
            "duration": 12,
            "total_payable": 517500,
            "disbursement_date": "March 4, 2026",
        },
    )

    merge = captured[0]["merge_info"]
    assert merge["formattedAmount"] == "₦450,000.00"
    assert merge["formattedTotalPayable"] == "₦517,500.00"
    assert merge["loanId"] == "LN-SL-ABCD1234"
    assert merge["recipient_name"] == "Ada Obi"


def test_format_display_date():
    assert format_display_date(datetime(2026, 3, 4, 9, 30)) == "March 4, 2026"


@pytest.mark.parametrize("outcome", [True, False])
async def test_best_effort_reports_delivery(outcome):
    async def send() -> bool:
        return outcome

    assert await best_effort("verification", send()) is outcome


async def test_best_effort_swallows_errors():
    async def send() -> bool:
        raise RuntimeError("boom")

    assert await best_effort("verification", send()) is False
