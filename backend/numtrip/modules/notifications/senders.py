"""Outbound claim notifications (verification codes and approval notices).

Senders return ``True`` when the provider accepted the message and ``False``
otherwise; transport errors are logged here rather than raised so the claim
workflow can decide what a failed dispatch means.
"""
from __future__ import annotations

import html
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import requests

from .bus import CLAIM_APPROVED, EventBus

logger = logging.getLogger(__name__)

SENDGRID_API_URL = "https://api.sendgrid.com/v3/mail/send"


def _mask(destination: str) -> str:
    return f"{destination[:3]}***" if destination else "***"


def verification_email(code: str, business_name: str, ttl_minutes: int = 60) -> tuple[str, str, str]:
    subject = f"Verify your business claim for {business_name} - NumTrip"
    text = (
        f"Your verification code for claiming {business_name} on NumTrip is: {code}. "
        f"This code expires in {ttl_minutes} minutes."
    )
    name = html.escape(business_name)
    body = f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
      <h1 style="color: #2563eb; text-align: center;">NumTrip - Business Verification</h1>
      <p>You've requested to claim <strong>{name}</strong> on NumTrip.
      To verify your ownership, please use the following verification code:</p>
      <h2 style="color: #2563eb; font-size: 32px; letter-spacing: 5px; text-align: center;">{code}</h2>
      <p>This code will expire in <strong>{ttl_minutes} minutes</strong>.
      If you didn't request this verification, please ignore this email.</p>
      <p style="font-size: 14px; color: #6b7280; text-align: center;">NumTrip - Verified Tourism Contacts Platform</p>
    </div>
    """
    return subject, text, body


def approval_email(business_name: str) -> tuple[str, str, str]:
    subject = f"Your business claim has been approved - {business_name}"
    text = (
        f"Congratulations! Your claim for {business_name} has been approved. "
        "You now have full access to manage your business profile on NumTrip."
    )
    name = html.escape(business_name)
    body = f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
      <h1 style="color: #16a34a; text-align: center;">Congratulations!</h1>
      <p>Great news! Your claim for <strong>{name}</strong> has been approved.</p>
      <ul>
        <li>Manage your business information</li>
        <li>Create and manage promotional codes</li>
        <li>Access detailed analytics and statistics</li>
        <li>Display your verified business badge</li>
      </ul>
      <p style="font-size: 14px; color: #6b7280; text-align: center;">NumTrip - Verified Tourism Contacts Platform</p>
    </div>
    """
    return subject, text, body


class Notifier(ABC):
    """Channel-specific sender for claim messages."""

    @abstractmethod
    def send_verification_code(self, destination: str, code: str, business_name: str) -> bool:
        ...

    @abstractmethod
    def send_approval_notice(self, destination: str, business_name: str) -> bool:
        ...


class ConsoleEmailNotifier(Notifier):
    """Development email sender that only logs."""

    def __init__(self, ttl_minutes: int = 60):
        self.ttl_minutes = ttl_minutes

    def send_verification_code(self, destination: str, code: str, business_name: str) -> bool:
        subject, text, _ = verification_email(code, business_name, self.ttl_minutes)
        logger.info("[Email][Console] To: %s Subject: %s", destination, subject)
        logger.info("[Email][Console] %s", text)
        return True

    def send_approval_notice(self, destination: str, business_name: str) -> bool:
        subject, text, _ = approval_email(business_name)
        logger.info("[Email][Console] To: %s Subject: %s", destination, subject)
        logger.info("[Email][Console] %s", text)
        return True


class SendGridEmailNotifier(Notifier):
    """Production email sender using the SendGrid v3 mail API."""

    def __init__(self, api_key: str | None, from_email: str, ttl_minutes: int = 60, timeout: float = 15.0, session: Optional[requests.Session] = None):
        self.api_key = api_key
        self.from_email = from_email
        self.ttl_minutes = ttl_minutes
        self.timeout = timeout
        self.session = session or requests.Session()

    def send_verification_code(self, destination: str, code: str, business_name: str) -> bool:
        subject, text, html_body = verification_email(code, business_name, self.ttl_minutes)
        return self._send(destination, subject, text, html_body)

    def send_approval_notice(self, destination: str, business_name: str) -> bool:
        subject, text, html_body = approval_email(business_name)
        return self._send(destination, subject, text, html_body)

    def _send(self, to: str, subject: str, text: str, html_body: str) -> bool:
        if not self.api_key:
            logger.error("[Email][SendGrid] No API key configured")
            return False
        payload: Dict[str, Any] = {
            "personalizations": [{"to": [{"email": to}]}],
            "from": {"email": self.from_email},
            "subject": subject,
            "content": [
                {"type": "text/plain", "value": text},
                {"type": "text/html", "value": html_body},
            ],
        }
        try:
            resp = self.session.post(
                SENDGRID_API_URL,
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout,
            )
        except requests.RequestException:
            logger.exception("[Email][SendGrid] Request to %s failed", _mask(to))
            return False
        if resp.status_code in (200, 201, 202):
            logger.info("[Email][SendGrid] Sent to %s", _mask(to))
            return True
        logger.error("[Email][SendGrid] Failed: %s - %s", resp.status_code, resp.text[:500])
        return False


class ConsoleSmsNotifier(Notifier):
    """SMS and voice stand-in; logs the message and reports success."""

    def send_verification_code(self, destination: str, code: str, business_name: str) -> bool:
        logger.info("[SMS][Console] To: %s NumTrip code for %s: %s", destination, business_name, code)
        return True

    def send_approval_notice(self, destination: str, business_name: str) -> bool:
        logger.info("[SMS][Console] To: %s Your claim for %s was approved", destination, business_name)
        return True


def build_email_notifier(config: Dict[str, Any]) -> Notifier:
    ttl_minutes = max(1, int(config.get("CLAIM_CODE_TTL_SECONDS", 3600)) // 60)
    provider = str(config.get("EMAIL_PROVIDER") or "console").lower()
    if provider == "sendgrid":
        if not config.get("SENDGRID_API_KEY"):
            logger.warning("EMAIL_PROVIDER=sendgrid but SENDGRID_API_KEY is not set; verification emails will fail")
        return SendGridEmailNotifier(config.get("SENDGRID_API_KEY"), config.get("EMAIL_FROM") or "no-reply@numtrip.com", ttl_minutes)
    return ConsoleEmailNotifier(ttl_minutes)


def build_sms_notifier(config: Dict[str, Any]) -> Notifier:
    provider = str(config.get("SMS_PROVIDER") or "console").lower()
    if provider != "console":
        logger.warning("Unknown SMS_PROVIDER %r; falling back to console", provider)
    return ConsoleSmsNotifier()


def subscribe_claim_notices(events: EventBus, services: Any) -> None:
    """Send the approval notice after a claim approval commits.

    Notifiers are looked up on ``services`` at delivery time so they can be
    swapped after wiring. Only EMAIL-verified claims get a notice.
    """

    def _on_claim_approved(event: Dict[str, Any]) -> None:
        if event.get("verification_type") != "EMAIL":
            return
        sent = services.email_notifier.send_approval_notice(event["contact_value"], event["business_name"])
        if not sent:
            logger.warning("Approval notice was not delivered", extra={"claim_id": event.get("claim_id")})

    events.subscribe(CLAIM_APPROVED, _on_claim_approved)
