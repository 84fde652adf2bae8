"""Tests for SMTP delivery and notification templates."""

import smtplib
from unittest.mock import MagicMock, patch

import pytest

from core.integrations.email import EmailService, EmailTemplates, PREVIEW_LENGTH


class TestEmailService:
    """Test SMTP delivery with the server mocked out."""

    @pytest.fixture
    def service(self):
        return EmailService(
            smtp_host="smtp.test",
            smtp_port=587,
            smtp_user="mailer",
            smtp_password="pw",
            from_email="noreply@teams.example.edu",
            from_name="Project Teams",
        )

    def test_sends_to_all_recipients(self, service):
        with patch("core.integrations.email.smtplib.SMTP") as mock_smtp:
            server = mock_smtp.return_value.__enter__.return_value
            sent = service.send_email(["a@cornell.edu", "b@cornell.edu"], "Hi", "<p>x</p>")

        assert sent is True
        mock_smtp.assert_called_once_with("smtp.test", 587)
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("mailer", "pw")
        _, kwargs = server.send_message.call_args
        assert kwargs["to_addrs"] == ["a@cornell.edu", "b@cornell.edu"]

    def test_single_recipient_string(self, service):
        with patch("core.integrations.email.smtplib.SMTP") as mock_smtp:
            server = mock_smtp.return_value.__enter__.return_value
            assert service.send_email("a@cornell.edu", "Hi", "x") is True
        assert server.send_message.call_args.kwargs["to_addrs"] == ["a@cornell.edu"]

    def test_no_recipients_skips(self, service):
        with patch("core.integrations.email.smtplib.SMTP") as mock_smtp:
            assert service.send_email([], "Hi", "x") is False
        mock_smtp.assert_not_called()

    def test_smtp_failure_returns_false(self, service):
        with patch("core.integrations.email.smtplib.SMTP") as mock_smtp:
            mock_smtp.return_value.__enter__.return_value.send_message.side_effect = (
                smtplib.SMTPException("rejected")
            )
            assert service.send_email(["a@cornell.edu"], "Hi", "x") is False

    def test_connection_failure_returns_false(self, service):
        with patch("core.integrations.email.smtplib.SMTP", side_effect=OSError("refused")):
            assert service.send_email(["a@cornell.edu"], "Hi", "x") is False


class TestEmailTemplates:
    """Test rendered subjects, links and escaping."""

    def test_status_change(self):
        email = EmailTemplates.status_change(
            "Alan Turing", "Cornell Robotics", "interviewing", site_url="https://site"
        )
        assert email["subject"] == "Application Update: Cornell Robotics — Interviewing"
        assert "https://site/applications" in email["html"]
        assert "Hi Alan Turing," in email["html"]

    def test_team_message_escapes_and_truncates(self):
        body = "<script>alert(1)</script>" + "x" * 300
        email = EmailTemplates.team_message("Alan", "R&D Team", body, site_url="https://site")
        assert email["subject"] == "New message from R&D Team"
        assert "<script>" not in email["html"]
        assert "&lt;script&gt;" in email["html"]
        assert "R&amp;D Team" in email["html"]
        assert "x" * (PREVIEW_LENGTH + 1) not in email["html"]

    def test_applicant_message_links_to_review_page(self):
        email = EmailTemplates.applicant_message(
            "Alan Turing", "Cornell Robotics", "Hello", team_id="t1",
            application_id="a1", site_url="https://site",
        )
        assert email["subject"] == "New message from applicant Alan Turing"
        assert "https://site/admin/t1/applications/a1" in email["html"]

    def test_site_url_defaults_to_settings(self):
        email = EmailTemplates.team_message("Alan", "Robotics", "Hi")
        assert "https://teams.example.edu/applications" in email["html"]
