"""
Email service for alert and ticket notifications.

WHAT: This service provides a unified interface for sending notification
emails through a pluggable provider (Resend in production, a mock
provider in development and tests).

WHY: Email is the out-of-band channel for on-call staff who aren't
watching the dashboard. It is strictly best-effort: a failed send is
reported in the EmailResult and logged, and never undoes the alert or
ticket change that triggered it.

HOW: Uses the Resend API via httpx. Message bodies are rendered from
inline Jinja2 templates with autoescaping, so alert text supplied by
detectors can't inject markup.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Dict, Any, List
from datetime import datetime, timezone

import httpx
from jinja2 import Environment, BaseLoader

from arsenal.core.config import settings

logger = logging.getLogger(__name__)


# ============================================================================
# Email Types and Templates
# ============================================================================


class EmailType(str, Enum):
    """
    Types of notification emails.
    """

    ALERT = "alert"
    """A new alert was raised."""

    TICKET = "ticket"
    """A ticket was created, assigned or breached its SLA."""


# Severity colours used in alert emails
SEVERITY_COLORS: Dict[str, str] = {
    "CRITICAL": "#d32f2f",
    "HIGH": "#f57c00",
    "MEDIUM": "#fbc02d",
    "LOW": "#388e3c",
    "INFO": "#1976d2",
}


@dataclass
class EmailMessage:
    """
    Represents an email to be sent.
    """

    to_email: str
    """Recipient email address."""

    subject: str
    """Email subject line."""

    html_content: str
    """HTML email body."""

    text_content: Optional[str] = None
    """Plain text fallback."""

    from_email: Optional[str] = None
    """Sender email (defaults to configured sender)."""

    email_type: EmailType = EmailType.ALERT
    """Type of email for tracking/logging."""

    metadata: Optional[Dict[str, Any]] = None
    """Additional metadata for tracking."""


@dataclass
class EmailResult:
    """
    Result of an email send operation.
    """

    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None
    provider: Optional[str] = None


# ============================================================================
# Email Provider Interface
# ============================================================================


class EmailProvider(ABC):
    """
    Abstract base class for email providers.

    WHY: Provider abstraction allows testing with mock providers and
    switching providers without touching notification code.
    """

    @abstractmethod
    async def send(self, message: EmailMessage) -> EmailResult:
        """
        Send an email message.

        Returns:
            EmailResult with success status and provider details
        """

    @abstractmethod
    def is_configured(self) -> bool:
        """
        Check if this provider is properly configured.
        """


class ResendProvider(EmailProvider):
    """
    Resend email provider implementation.
    """

    API_URL = "https://api.resend.com/emails"

    def __init__(self, api_key: Optional[str] = None, timeout: float = 30.0):
        """
        Initialize Resend provider.

        Args:
            api_key: Resend API key (defaults to settings)
            timeout: Request timeout in seconds
        """
        self._api_key = api_key or settings.RESEND_API_KEY
        self._timeout = timeout
        self._default_from = f"{settings.EMAIL_FROM_NAME} <{settings.EMAIL_FROM_ADDRESS}>"

    def is_configured(self) -> bool:
        """Check if Resend API key is configured."""
        return bool(self._api_key)

    async def send(self, message: EmailMessage) -> EmailResult:
        """
        Send email via Resend API.

        HOW: Uses httpx for async HTTP requests. Transport errors and
        non-2xx responses are reported as failed results, not raised.
        """
        if not self.is_configured():
            return EmailResult(
                success=False,
                error="Resend API key not configured",
                provider="resend",
            )

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(
                    self.API_URL,
                    headers={
                        "Authorization": f"Bearer {self._api_key}",
                        "Content-Type": "application/json",
                    },
                    json={
                        "from": message.from_email or self._default_from,
                        "to": [message.to_email],
                        "subject": message.subject,
                        "html": message.html_content,
                        "text": message.text_content,
                    },
                )
        except httpx.HTTPError as e:
            logger.error(f"Resend send error: {e}")
            return EmailResult(success=False, error=str(e), provider="resend")

        if response.status_code in (200, 201):
            data = response.json()
            return EmailResult(
                success=True,
                message_id=data.get("id"),
                provider="resend",
            )
        return EmailResult(
            success=False,
            error=f"Resend API error: {response.status_code} - {response.text}",
            provider="resend",
        )


class MockEmailProvider(EmailProvider):
    """
    Mock email provider for testing and development.

    WHY: Allows testing email flows without sending real emails.
    Logs emails instead of sending them.
    """

    sent_emails: List[EmailMessage] = []
    """Class-level list to track sent emails for testing."""

    def is_configured(self) -> bool:
        """Mock provider is always configured."""
        return True

    async def send(self, message: EmailMessage) -> EmailResult:
        """Mock send - logs email instead of sending."""
        logger.info(
            f"[MOCK EMAIL] To: {message.to_email}, "
            f"Subject: {message.subject}, "
            f"Type: {message.email_type.value}"
        )

        MockEmailProvider.sent_emails.append(message)

        return EmailResult(
            success=True,
            message_id=f"mock-{datetime.now(timezone.utc).timestamp()}",
            provider="mock",
        )

    @classmethod
    def clear_sent_emails(cls):
        """Clear sent emails list (for test cleanup)."""
        cls.sent_emails = []


# ============================================================================
# Templates
# ============================================================================


ALERT_HTML_TEMPLATE = """\
<div style="font-family: Arial, sans-serif; max-width: 600px;">
  <div style="background: {{ color }}; color: #fff; padding: 12px 16px;">
    <strong>{{ severity }}</strong> &middot; {{ category }}
  </div>
  <div style="padding: 16px;">
    <p>Hello {{ user_name }},</p>
    <h2 style="margin: 0 0 8px;">{{ title }}</h2>
    <p>{{ description }}</p>
    <table style="border-collapse: collapse;">
      {% if site_code %}<tr><td><b>Site</b></td><td>{{ site_code }}</td></tr>{% endif %}
      {% if detected_value is not none %}<tr><td><b>Detected</b></td><td>{{ detected_value }}</td></tr>{% endif %}
      {% if expected_value is not none %}<tr><td><b>Expected</b></td><td>{{ expected_value }}</td></tr>{% endif %}
      {% if deviation_percent is not none %}<tr><td><b>Deviation</b></td><td>{{ "%.2f"|format(deviation_percent) }}%</td></tr>{% endif %}
    </table>
    <p><a href="{{ dashboard_url }}/alerts">Open the alert dashboard</a></p>
  </div>
</div>
"""

TICKET_HTML_TEMPLATE = """\
<div style="font-family: Arial, sans-serif; max-width: 600px;">
  <div style="padding: 16px;">
    <p>Hello {{ user_name }},</p>
    <h2 style="margin: 0 0 8px;">Ticket {{ action }}: {{ ticket_number }}</h2>
    <p><b>{{ title }}</b></p>
    <p>{{ description }}</p>
    <p>Priority: {{ priority }} &middot; Status: {{ status }}{% if sla_deadline %} &middot; SLA deadline: {{ sla_deadline }} UTC{% endif %}</p>
    <p><a href="{{ dashboard_url }}/tickets">Open the ticket dashboard</a></p>
  </div>
</div>
"""


class EmailTemplates:
    """
    Renders notification emails.

    HOW: Jinja2 environment with autoescaping, templates compiled once.
    """

    def __init__(self):
        self._env = Environment(loader=BaseLoader(), autoescape=True)
        self._alert = self._env.from_string(ALERT_HTML_TEMPLATE)
        self._ticket = self._env.from_string(TICKET_HTML_TEMPLATE)

    def render_alert(self, user_name: str, context: Dict[str, Any]) -> str:
        severity = context.get("severity", "INFO")
        return self._alert.render(
            user_name=user_name,
            color=SEVERITY_COLORS.get(severity, SEVERITY_COLORS["INFO"]),
            dashboard_url=settings.FRONTEND_URL,
            severity=severity,
            category=context.get("category"),
            title=context.get("title"),
            description=context.get("description"),
            site_code=context.get("site_code"),
            detected_value=context.get("detected_value"),
            expected_value=context.get("expected_value"),
            deviation_percent=context.get("deviation_percent"),
        )

    def render_ticket(self, user_name: str, context: Dict[str, Any]) -> str:
        return self._ticket.render(
            user_name=user_name,
            dashboard_url=settings.FRONTEND_URL,
            action=context.get("action", "updated"),
            ticket_number=context.get("ticket_number"),
            title=context.get("title"),
            description=context.get("description"),
            priority=context.get("priority"),
            status=context.get("status"),
            sla_deadline=context.get("sla_deadline"),
        )


# ============================================================================
# Email Service
# ============================================================================


class EmailService:
    """
    High-level email service for notification emails.

    HOW: Uses the configured provider (Resend when RESEND_API_KEY is set,
    otherwise the mock provider) and EmailTemplates for bodies.
    """

    def __init__(
        self,
        provider: Optional[EmailProvider] = None,
        templates: Optional[EmailTemplates] = None,
    ):
        """
        Initialize email service.

        Args:
            provider: Email provider to use (auto-detected if not provided)
            templates: Template renderer (auto-created if not provided)
        """
        if provider:
            self._provider = provider
        elif settings.RESEND_API_KEY:
            self._provider = ResendProvider()
        else:
            logger.warning("No email provider configured, using mock provider")
            self._provider = MockEmailProvider()

        self._templates = templates or EmailTemplates()

    @property
    def provider(self) -> EmailProvider:
        return self._provider

    async def send_email(self, message: EmailMessage) -> EmailResult:
        """
        Send an email message and log the outcome.
        """
        logger.info(f"Sending {message.email_type.value} email to {message.to_email}")

        result = await self._provider.send(message)

        if result.success:
            logger.info(f"Email sent successfully: {result.message_id}")
        else:
            logger.error(
                f"Email send failed: {result.error}",
                extra={
                    "email_type": message.email_type.value,
                    "to": message.to_email,
                },
            )

        return result

    async def send_alert_email(
        self,
        to_email: str,
        user_name: str,
        subject: str,
        body: str,
        context: Dict[str, Any],
    ) -> EmailResult:
        """
        Send an alert notification ("[SEVERITY] title").
        """
        return await self.send_email(
            EmailMessage(
                to_email=to_email,
                subject=subject,
                html_content=self._templates.render_alert(user_name, context),
                text_content=body,
                email_type=EmailType.ALERT,
            )
        )

    async def send_ticket_email(
        self,
        to_email: str,
        user_name: str,
        subject: str,
        body: str,
        context: Dict[str, Any],
    ) -> EmailResult:
        """
        Send a ticket notification ("Ticket {action}: {number}").
        """
        return await self.send_email(
            EmailMessage(
                to_email=to_email,
                subject=subject,
                html_content=self._templates.render_ticket(user_name, context),
                text_content=body,
                email_type=EmailType.TICKET,
            )
        )


_email_service: Optional[EmailService] = None


def get_email_service() -> EmailService:
    """
    Get or create the global email service instance.

    Returns:
        EmailService instance
    """
    global _email_service

    if _email_service is None:
        _email_service = EmailService()

    return _email_service
