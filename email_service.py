# email_service.py - Report status emails
"""
Status emails are delivered through the SendGrid v3 HTTP API.

When SENDGRID_API_KEY is not configured the dispatcher runs disabled:
the message is logged instead of sent and the call still reports success,
so report workflows behave the same in development.
"""
import html
from typing import Optional
import requests
import logging

logger = logging.getLogger(__name__)

STATUS_PHRASES = {
    "pending": "has been received and is being reviewed",
    "in_progress": "is now being worked on by our team",
    "resolved": "has been resolved",
}

HTML_TEMPLATE = """
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
      <h2 style="color: #F59E0B;">Report Status Update</h2>
      <p>Hello,</p>
      <p>{message}</p>
      <div style="background-color: #FEF3C7; padding: 15px; border-radius: 8px; margin: 20px 0;">
        <strong>Report:</strong> {title}<br>
        <strong>Status:</strong> <span style="text-transform: capitalize;">{status_label}</span>
      </div>
      <p>Thank you for helping improve our community!</p>
      <p>Best regards,<br>{app_name} Team</p>
    </div>
"""


def status_phrase(status: str) -> str:
    return STATUS_PHRASES.get(status, f"status has been updated to {status}")


def build_status_email(report_title: str, old_status: str, new_status: str, app_name: str = "CivicReport"):
    """
    Format a status-change email

    Returns:
        tuple: (subject, text, html)
    """
    subject = f"Report Update: {report_title}"
    text = f'Your report "{report_title}" {status_phrase(new_status)}.'
    body = HTML_TEMPLATE.format(
        message=html.escape(text),
        title=html.escape(report_title),
        status_label=new_status.replace("_", " "),
        app_name=app_name,
    )
    return subject, text, body


class EmailDispatcher:
    """Sends status emails, or logs them when no API key is configured"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        from_email: str = "noreply@civicreport.com",
        api_url: str = "https://api.sendgrid.com/v3/mail/send",
        timeout: float = 10.0,
        app_name: str = "CivicReport",
    ):
        self.api_key = api_key or None
        self.from_email = from_email
        self.api_url = api_url
        self.timeout = timeout
        self.app_name = app_name
        if not self.enabled:
            logger.warning("SENDGRID_API_KEY not set - email notifications will be disabled")

    @classmethod
    def from_settings(cls, settings) -> "EmailDispatcher":
        return cls(
            api_key=settings.SENDGRID_API_KEY,
            from_email=settings.FROM_EMAIL,
            api_url=settings.SENDGRID_API_URL,
            timeout=settings.EMAIL_TIMEOUT_SECONDS,
            app_name=settings.APP_NAME,
        )

    @property
    def enabled(self) -> bool:
        return self.api_key is not None

    def send(self, to: str, subject: str, text: str = "", html: str = "") -> bool:
        """Deliver one message; never raises"""
        if not self.enabled:
            logger.info(f"Email would be sent to {to}: {subject}")
            return True

        payload = {
            "personalizations": [{"to": [{"email": to}]}],
            "from": {"email": self.from_email},
            "subject": subject,
            "content": [
                {"type": "text/plain", "value": text or " "},
                {"type": "text/html", "value": html or text or " "},
            ],
        }
        try:
            response = requests.post(
                self.api_url,
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout,
            )
            response.raise_for_status()
            logger.info(f"Email sent to {to}: {subject}")
            return True
        except Exception as e:
            logger.error(f"SendGrid email error: {e}")
            return False

    def send_status_notification(self, to_email: str, report_title: str, old_status: str, new_status: str) -> bool:
        subject, text, body = build_status_email(report_title, old_status, new_status, self.app_name)
        return self.send(to_email, subject, text=text, html=body)
