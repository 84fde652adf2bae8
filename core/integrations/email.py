"""Email integration utilities for sending emails."""

import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from html import escape
from typing import Optional, List
import logging

from core.config import settings
from core.utils.formatting import format_status, truncate_text

logger = logging.getLogger(__name__)

BRAND_COLOR = "#B31B1B"
PREVIEW_LENGTH = 200


class EmailService:
    """Email service for sending HTML emails via SMTP."""

    def __init__(
        self,
        smtp_host: Optional[str] = None,
        smtp_port: Optional[int] = None,
        smtp_user: Optional[str] = None,
        smtp_password: Optional[str] = None,
        from_email: Optional[str] = None,
        from_name: Optional[str] = None,
    ):
        """
        Initialize email service. Unset arguments fall back to settings.

        Args:
            smtp_host: SMTP server host
            smtp_port: SMTP server port
            smtp_user: SMTP username
            smtp_password: SMTP password
            from_email: Default sender email
            from_name: Default sender name
        """
        self.smtp_host = smtp_host or settings.smtp_host
        self.smtp_port = smtp_port or settings.smtp_port
        self.smtp_user = smtp_user or settings.smtp_user
        self.smtp_password = smtp_password or settings.smtp_password
        self.from_email = from_email or settings.smtp_from_email
        self.from_name = from_name or settings.smtp_from_name

    def send_email(
        self,
        to_email: str | List[str],
        subject: str,
        body: str,
        html: bool = True,
        reply_to: Optional[str] = None,
    ) -> bool:
        """
        Send an email. Failures are logged, never raised.

        Args:
            to_email: Recipient email address(es)
            subject: Email subject
            body: Email body
            html: Whether body is HTML
            reply_to: Reply-to email address

        Returns:
            True if email sent successfully
        """
        recipients = list(to_email) if isinstance(to_email, list) else [to_email]
        if not recipients:
            logger.info(f"No recipients for email '{subject}', skipping")
            return False

        try:
            msg = MIMEMultipart()
            msg['From'] = f"{self.from_name} <{self.from_email}>"
            msg['To'] = ", ".join(recipients)
            msg['Subject'] = subject
            if reply_to:
                msg['Reply-To'] = reply_to

            msg.attach(MIMEText(body, 'html' if html else 'plain'))

            with smtplib.SMTP(self.smtp_host, self.smtp_port) as server:
                server.starttls()
                if self.smtp_user and self.smtp_password:
                    server.login(self.smtp_user, self.smtp_password)
                server.send_message(msg, from_addr=self.from_email, to_addrs=recipients)

            logger.info(f"Email sent to {len(recipients)} recipient(s)")
            return True

        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email: {e}")
            return False


def _layout(content: str) -> str:
    return f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8" /></head>
<body style="margin:0;padding:0;background:#f4f4f5;font-family:Arial,Helvetica,sans-serif;">
  <table width="100%" cellpadding="0" cellspacing="0" style="background:#f4f4f5;padding:32px 0;">
    <tr><td align="center">
      <table width="600" cellpadding="0" cellspacing="0" style="max-width:600px;width:100%;">
        <tr>
          <td style="background:{BRAND_COLOR};padding:24px 32px;border-radius:8px 8px 0 0;">
            <span style="color:#ffffff;font-size:20px;font-weight:bold;">Cornell Project Teams</span>
          </td>
        </tr>
        <tr>
          <td style="background:#ffffff;padding:32px;border-radius:0 0 8px 8px;">
            {content}
          </td>
        </tr>
        <tr>
          <td style="padding:16px 32px;text-align:center;color:#71717a;font-size:12px;">
            This is an automated notification from the Cornell Project Team Common App.
          </td>
        </tr>
      </table>
    </td></tr>
  </table>
</body>
</html>"""


def _button(href: str, label: str) -> str:
    return f"""
<table cellpadding="0" cellspacing="0" style="margin:24px 0;">
  <tr>
    <td style="background:{BRAND_COLOR};border-radius:6px;padding:12px 24px;">
      <a href="{escape(href)}" style="color:#ffffff;text-decoration:none;font-weight:bold;font-size:14px;">{label}</a>
    </td>
  </tr>
</table>"""


def _paragraph(text: str, margin: str = "0 0 16px") -> str:
    return (
        f'<p style="margin:{margin};color:#3f3f46;font-size:14px;line-height:1.6;">'
        f"{text}</p>"
    )


def _quote(text: str) -> str:
    return (
        '<blockquote style="margin:0 0 24px;padding:12px 16px;background:#f4f4f5;'
        f'border-left:4px solid {BRAND_COLOR};border-radius:4px;color:#3f3f46;'
        f'font-size:14px;line-height:1.6;">{text}</blockquote>'
    )


def _heading(text: str) -> str:
    return f'<h2 style="margin:0 0 16px;color:#18181b;font-size:18px;">{text}</h2>'


class EmailTemplates:
    """Notification templates. Every user-supplied value is HTML-escaped."""

    @staticmethod
    def status_change(
        applicant_name: str,
        team_name: str,
        new_status: str,
        site_url: Optional[str] = None,
    ) -> dict:
        site_url = site_url or settings.site_url
        status_label = format_status(new_status)
        html = _layout(
            _heading("Application Status Updated")
            + _paragraph(f"Hi {escape(applicant_name)},", margin="0 0 8px")
            + _paragraph(
                f"Your application to <strong>{escape(team_name)}</strong> "
                "has been updated to:"
            )
            + f'<p style="margin:0 0 24px;font-size:16px;font-weight:bold;color:{BRAND_COLOR};">'
            f"{escape(status_label)}</p>"
            + _button(f"{site_url}/applications", "View Your Applications")
        )
        return {
            'subject': f"Application Update: {team_name} — {status_label}",
            'html': html,
        }

    @staticmethod
    def team_message(
        applicant_name: str,
        team_name: str,
        message: str,
        site_url: Optional[str] = None,
    ) -> dict:
        """Team wrote to the applicant."""
        site_url = site_url or settings.site_url
        html = _layout(
            _heading("New Message")
            + _paragraph(f"Hi {escape(applicant_name)},", margin="0 0 8px")
            + _paragraph(
                f"You received a new message from <strong>{escape(team_name)}</strong>:"
            )
            + _quote(escape(truncate_text(message, PREVIEW_LENGTH)))
            + _button(f"{site_url}/applications", "View Your Applications")
        )
        return {'subject': f"New message from {team_name}", 'html': html}

    @staticmethod
    def applicant_message(
        applicant_name: str,
        team_name: str,
        message: str,
        team_id: str,
        application_id: str,
        site_url: Optional[str] = None,
    ) -> dict:
        """Applicant wrote to the team."""
        site_url = site_url or settings.site_url
        html = _layout(
            _heading("New Applicant Message")
            + _paragraph(f"Hi {escape(team_name)} team,", margin="0 0 8px")
            + _paragraph(
                f"<strong>{escape(applicant_name)}</strong> sent a new message "
                "on their application:"
            )
            + _quote(escape(truncate_text(message, PREVIEW_LENGTH)))
            + _button(
                f"{site_url}/admin/{team_id}/applications/{application_id}",
                "View Application",
            )
        )
        return {
            'subject': f"New message from applicant {applicant_name}",
            'html': html,
        }


# Global email service instance
_email_service: Optional[EmailService] = None


def get_email_service() -> EmailService:
    """Get or create global email service instance."""
    global _email_service
    if _email_service is None:
        _email_service = EmailService()
    return _email_service
