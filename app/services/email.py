from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

import httpx

from app.core.logging import mask_email
from app.core.settings import Settings, settings as default_settings

logger = logging.getLogger(__name__)


def format_naira(amount: Decimal | float | int | None) -> str:
    value = Decimal(str(amount or 0))
    return f"₦{value:,.2f}"


def format_display_date(value: datetime | None) -> str:
    moment = value or datetime.now(timezone.utc)
    return f"{moment:%B} {moment.day}, {moment.year}"


class EmailService:
    """Templated transactional email over the ZeptoMail template API.

    Every send returns a bool and never raises: callers treat delivery as
    best-effort and log the outcome.
    """

    def __init__(
        self,
        config: Settings | None = None,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config or default_settings
        self._client = client or httpx.AsyncClient(timeout=self.config.email_timeout_seconds)

    async def aclose(self) -> None:
        await self._client.aclose()

    def _default_variables(self, email: str, name: str | None) -> dict[str, Any]:
        return {
            "recipient_name": name or email.split("@")[0],
            "recipient_email": email,
            "company_name": self.config.company_name,
            "support_email": self.config.support_email,
            "website_url": self.config.website_url,
        }

    async def send_template_email(
        self,
        template_type: str,
        email: str,
        *,
        name: str | None = None,
        variables: dict[str, Any] | None = None,
    ) -> bool:
        recipient = mask_email(email)
        template_key = self.config.email_template_key(template_type)
        if not template_key:
            logger.error(
                "Cannot send %s email to %s: template key not configured", template_type, recipient
            )
            return False
        if not self.config.zeptomail_token:
            logger.error(
                "Cannot send %s email to %s: mail token not configured", template_type, recipient
            )
            return False

        merge_info = self._default_variables(email, name)
        merge_info.update(variables or {})
        payload = {
            "mail_template_key": template_key,
            "from": {"address": self.config.from_email, "name": self.config.from_name},
            "to": [
                {
                    "email_address": {
                        "address": email,
                        "name": name or email.split("@")[0],
                    }
                }
            ],
            "merge_info": merge_info,
        }
        token = self.config.zeptomail_token
        if not token.lower().startswith("zoho-enczapikey"):
            token = f"Zoho-enczapikey {token}"
        try:
            response = await self._client.post(
                self.config.zeptomail_api_url,
                json=payload,
                headers={"Authorization": token, "Accept": "application/json"},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "Mail provider rejected %s email to %s: status=%s body=%s",
                template_type,
                recipient,
                exc.response.status_code,
                exc.response.text[:500],
            )
            return False
        except httpx.HTTPError as exc:
            logger.warning("Failed to send %s email to %s: %s", template_type, recipient, exc)
            return False
        logger.info("Sent %s email to %s", template_type, recipient)
        return True

    async def send_verification_email(self, email: str, code: str) -> bool:
        return await self.send_template_email(
            "VERIFICATION",
            email,
            variables={
                "code": code,
                "valid_time": f"{self.config.otp_verification_ttl_minutes} minutes",
            },
        )

    async def send_password_reset_email(self, email: str, code: str) -> bool:
        return await self.send_template_email(
            "PASSWORD_RESET",
            email,
            variables={
                "code": code,
                "valid_time": f"{self.config.otp_password_reset_ttl_minutes} minutes",
            },
        )

    async def send_welcome_email(self, email: str, first_name: str) -> bool:
        return await self.send_template_email(
            "WELCOME", email, name=first_name, variables={"first_name": first_name}
        )

    async def send_password_changed_email(self, email: str) -> bool:
        return await self.send_template_email(
            "PASSWORD_CHANGED",
            email,
            variables={"change_time": datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")},
        )

    async def send_loan_application_notification(
        self, email: str, name: str, details: dict[str, Any]
    ) -> bool:
        return await self.send_template_email(
            "LOAN_APPLICATION_NOTIFICATION",
            email,
            name=name,
            variables={
                "applicationId": details["application_id"],
                "loanType": details["loan_type"],
                "formattedAmount": format_naira(details["amount"]),
                "duration": details["duration"],
                "applicationDate": details["application_date"],
                "support_id": self.config.support_email,
                "brand": self.config.company_name,
            },
        )

    async def send_loan_approval_email(self, email: str, name: str, details: dict[str, Any]) -> bool:
        return await self.send_template_email(
            "LOAN_APPROVAL",
            email,
            name=name,
            variables={
                "formattedAmount": format_naira(details["amount"]),
                "loanId": details["loan_id"],
                "duration": details["duration"],
                "formattedTotalPayable": format_naira(details["total_payable"]),
                "disbursementDate": details["disbursement_date"],
                "support_id": self.config.support_email,
                "brand": self.config.company_name,
            },
        )

    async def send_loan_rejection_email(
        self, email: str, name: str, details: dict[str, Any]
    ) -> bool:
        return await self.send_template_email(
            "LOAN_REJECTION",
            email,
            name=name,
            variables={
                "applicationId": details["application_id"],
                "loanType": details["loan_type"],
                "formattedAmount": format_naira(details["amount"]),
                "applicationDate": details["application_date"],
                "reason": details.get("reason"),
                "support_id": self.config.support_email,
                "brand": self.config.company_name,
            },
        )
