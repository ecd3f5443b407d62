"""Tests for email service."""
import smtplib
import pytest
from unittest.mock import patch, MagicMock


class TestEmailServiceConfiguration:
    """Tests for EmailService configuration."""

    def test_service_initializes_with_smtp_config(self):
        """Service initializes with valid SMTP configuration."""
        from src.services.email_service import EmailService

        service = EmailService(
            smtp_host="smtp.example.com",
            smtp_port=587,
            smtp_user="user@example.com",
            smtp_password="password",
            from_email="security@example.com",
        )

        assert service._smtp_host == "smtp.example.com"
        assert service._from_email == "security@example.com"
        assert service._from_name == "Account Security"

    def test_service_validates_smtp_config(self):
        """Missing host is named in the error."""
        from src.services.email_service import EmailService, EmailConfigError

        with pytest.raises(EmailConfigError) as exc_info:
            EmailService(
                smtp_host="",
                smtp_port=587,
                smtp_user="user@example.com",
                smtp_password="password",
                from_email="security@example.com",
            )

        assert "smtp_host" in str(exc_info.value).lower()

    def test_service_handles_missing_config(self):
        from src.services.email_service import EmailService, EmailConfigError

        with pytest.raises(EmailConfigError):
            EmailService(
                smtp_host=None,
                smtp_port=None,
                smtp_user=None,
                smtp_password=None,
                from_email=None,
            )


class TestEmailServiceSend:
    """Tests for EmailService send functionality."""

    @pytest.fixture
    def email_service(self):
        from src.services.email_service import EmailService

        return EmailService(
            smtp_host="smtp.example.com",
            smtp_port=587,
            smtp_user="user@example.com",
            smtp_password="password",
            from_email="security@example.com",
        )

    @patch("src.services.email_service.smtplib.SMTP")
    def test_send_email_success(self, mock_smtp_class, email_service):
        """Send email successfully."""
        mock_smtp = MagicMock()
        mock_smtp_class.return_value.__enter__ = MagicMock(return_value=mock_smtp)
        mock_smtp_class.return_value.__exit__ = MagicMock(return_value=False)

        result = email_service.send_email(
            to_email="recipient@example.com",
            subject="Test Subject",
            body_text="Test body",
            body_html="<p>Test body</p>",
        )

        assert result.success is True
        assert result.error is None
        mock_smtp.starttls.assert_called_once()
        mock_smtp.login.assert_called_once_with("user@example.com", "password")
        mock_smtp.sendmail.assert_called_once()

    @patch("src.services.email_service.smtplib.SMTP")
    def test_send_email_failure_logged(self, mock_smtp_class, email_service):
        """Failed email send is logged and returns error."""
        mock_smtp = MagicMock()
        mock_smtp.sendmail.side_effect = smtplib.SMTPException("SMTP error")
        mock_smtp_class.return_value.__enter__ = MagicMock(return_value=mock_smtp)
        mock_smtp_class.return_value.__exit__ = MagicMock(return_value=False)

        result = email_service.send_email(
            to_email="recipient@example.com",
            subject="Test Subject",
            body_text="Test body",
        )

        assert result.success is False
        assert "SMTP error" in result.error

    @patch("src.services.email_service.smtplib.SMTP")
    def test_connection_refused_returns_error(self, mock_smtp_class, email_service):
        mock_smtp_class.side_effect = ConnectionRefusedError("refused")

        result = email_service.send_email(
            to_email="recipient@example.com", subject="s", body_text="b"
        )

        assert result.success is False

    @patch("src.services.email_service.smtplib.SMTP")
    def test_plain_connection_when_tls_disabled(self, mock_smtp_class):
        from src.services.email_service import EmailService

        mock_smtp = MagicMock()
        mock_smtp_class.return_value.__enter__ = MagicMock(return_value=mock_smtp)
        mock_smtp_class.return_value.__exit__ = MagicMock(return_value=False)
        service = EmailService(
            smtp_host="mailhog",
            smtp_port=1025,
            smtp_user="user",
            smtp_password="password",
            from_email="security@example.com",
            use_tls=False,
        )

        result = service.send_email(to_email="a@example.com", subject="s", body_text="b")

        assert result.success is True
        mock_smtp.starttls.assert_not_called()

    def test_build_message_headers(self, email_service):
        msg = email_service.build_message(
            "recipient@example.com", "Security alert", "text", "<p>html</p>"
        )

        assert msg["From"] == "Account Security <security@example.com>"
        assert msg["To"] == "recipient@example.com"
        assert msg["Auto-Submitted"] == "auto-generated"
        assert [part.get_content_subtype() for part in msg.get_payload()] == ["plain", "html"]

    def test_send_email_invalid_recipient(self, email_service):
        """Invalid recipient email returns error."""
        result = email_service.send_email(
            to_email="invalid-email", subject="Test Subject", body_text="Test body"
        )

        assert result.success is False
        assert "invalid" in result.error.lower()


class TestEmailServiceTemplates:
    """Tests for EmailService template rendering."""

    @pytest.fixture
    def email_service(self):
        from src.services.email_service import EmailService

        return EmailService(
            smtp_host="smtp.example.com",
            smtp_port=587,
            smtp_user="user@example.com",
            smtp_password="password",
            from_email="security@example.com",
        )

    def test_bundled_account_locked_template(self, email_service):
        text, html = email_service.render_template(
            "account_locked",
            {
                "user_name": "Alice",
                "email": "alice@example.com",
                "failed_attempts": 10,
                "locked_until": "2026-10-19 12:30",
                "lockout_minutes": 30,
                "ip": "203.0.113.9",
            },
        )

        assert "Alice" in text
        assert "10 failed sign-in attempts" in text
        assert "203.0.113.9" in html

    def test_bundled_security_alert_template(self, email_service):
        text, _ = email_service.render_template(
            "security_alert",
            {
                "severity": "critical",
                "title": "Velocity Attack Detected",
                "description": "Many attempts",
                "recommendation": "Block the IP",
                "alert_id": "a1",
                "alert_type": "velocity_attack",
            },
        )

        assert "[CRITICAL] Velocity Attack Detected" in text
        assert "Block the IP" in text

    def test_html_is_escaped(self, email_service):
        _, html = email_service.render_template(
            "second_factor_reset",
            {"user_name": "<script>x</script>", "email": "e@example.com", "reason": "r"},
        )

        assert "<script>x</script>" not in html

    def test_custom_template_dir(self, tmp_path):
        from src.services.email_service import EmailService

        (tmp_path / "notice.txt").write_text("Hi {{ name }}")
        (tmp_path / "notice.html").write_text("<p>Hi {{ name }}</p>")
        service = EmailService(
            smtp_host="smtp.example.com",
            smtp_port=587,
            smtp_user="user@example.com",
            smtp_password="password",
            from_email="security@example.com",
            template_dir=str(tmp_path),
        )

        text, html = service.render_template("notice", {"name": "Eve"})

        assert text == "Hi Eve"
        assert html == "<p>Hi Eve</p>"

    def test_render_template_not_found(self, email_service):
        from src.services.email_service import TemplateNotFoundError

        with pytest.raises(TemplateNotFoundError):
            email_service.render_template("nonexistent", {})

    @patch("src.services.email_service.smtplib.SMTP")
    def test_send_template_uses_default_subject(self, mock_smtp_class, email_service):
        mock_smtp = MagicMock()
        mock_smtp_class.return_value.__enter__ = MagicMock(return_value=mock_smtp)
        mock_smtp_class.return_value.__exit__ = MagicMock(return_value=False)

        with patch.object(email_service, "send_email", wraps=email_service.send_email) as spy:
            result = email_service.send_template(
                to="bob@example.com",
                template="emergency_access_issued",
                context={"user_name": "Bob", "email": "bob@example.com", "expires_at": "2026-10-21 12:00"},
            )

        assert result.success is True
        assert spy.call_args[1]["subject"] == "Emergency access was granted to your account"

    def test_send_template_missing_template(self, email_service):
        result = email_service.send_template(to="bob@example.com", template="nope", context={})

        assert result.success is False
