"""Email service for security notifications via SMTP."""
import os
import smtplib
import logging
import re
from dataclasses import dataclass
from typing import Optional, Dict, Any, Tuple
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from jinja2 import (
    Environment,
    FileSystemLoader,
    TemplateNotFound as Jinja2TemplateNotFound,
)

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE_DIR = os.path.join(
    os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "templates", "email"
)


class EmailConfigError(Exception):
    """Raised when email configuration is invalid."""

    pass


class TemplateNotFoundError(Exception):
    """Raised when email template is not found."""

    pass


@dataclass
class EmailResult:
    """Outcome of one delivery attempt."""

    success: bool
    error: Optional[str] = None


class EmailService:
    """
    Sends templated security emails.

    Each template key maps to ``<key>.txt`` and ``<key>.html`` in the
    template directory; both are rendered with Jinja2.
    """

    EMAIL_REGEX = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")

    SUBJECTS = {
        "account_locked": "Your account has been temporarily locked",
        "unusual_login": "New sign-in to your account",
        "security_alert": "Security alert",
        "emergency_access_issued": "Emergency access was granted to your account",
        "second_factor_reset": "Your two-factor authentication was reset",
    }

    def __init__(
        self,
        smtp_host: str,
        smtp_port: int,
        smtp_user: str,
        smtp_password: str,
        from_email: str,
        from_name: str = "Account Security",
        template_dir: Optional[str] = None,
        use_tls: bool = True,
    ):
        """
        Raises:
            EmailConfigError: If a connection setting or the sender is missing.
        """
        self._validate_config(smtp_host, smtp_port, smtp_user, smtp_password, from_email)

        self._smtp_host = smtp_host
        self._smtp_port = smtp_port
        self._smtp_user = smtp_user
        self._smtp_password = smtp_password
        self._from_email = from_email
        self._from_name = from_name
        self._use_tls = use_tls

        self._template_env = Environment(
            loader=FileSystemLoader(template_dir or DEFAULT_TEMPLATE_DIR), autoescape=True
        )

    @staticmethod
    def _validate_config(
        smtp_host: str,
        smtp_port: int,
        smtp_user: str,
        smtp_password: str,
        from_email: str,
    ) -> None:
        settings = {
            "smtp_host": smtp_host,
            "smtp_port": smtp_port,
            "smtp_user": smtp_user,
            "smtp_password": smtp_password,
            "from_email": from_email,
        }
        missing = [name for name, value in settings.items() if not value]
        if missing:
            raise EmailConfigError(
                f"Invalid configuration: {', '.join(f'{m} is required' for m in missing)}"
            )

    def _validate_email(self, email: str) -> bool:
        return bool(email) and bool(self.EMAIL_REGEX.match(email))

    def build_message(
        self,
        to_email: str,
        subject: str,
        body_text: str,
        body_html: Optional[str] = None,
    ) -> MIMEMultipart:
        """Assemble a plain text message with an optional HTML alternative."""
        msg = MIMEMultipart("alternative")
        msg["From"] = f"{self._from_name} <{self._from_email}>"
        msg["To"] = to_email
        msg["Subject"] = subject
        msg["Auto-Submitted"] = "auto-generated"
        msg.attach(MIMEText(body_text, "plain", "utf-8"))
        if body_html:
            msg.attach(MIMEText(body_html, "html", "utf-8"))
        return msg

    def send_email(
        self,
        to_email: str,
        subject: str,
        body_text: str,
        body_html: Optional[str] = None,
    ) -> EmailResult:
        """
        Send one message.

        Delivery problems are logged and returned as a failed result.
        """
        if not self._validate_email(to_email):
            return EmailResult(success=False, error="Invalid recipient email address")

        msg = self.build_message(to_email, subject, body_text, body_html)
        try:
            with smtplib.SMTP(self._smtp_host, self._smtp_port) as server:
                if self._use_tls:
                    server.starttls()
                server.login(self._smtp_user, self._smtp_password)
                server.sendmail(self._from_email, to_email, msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Security email '{subject}' to {to_email} failed: {e}")
            return EmailResult(success=False, error=str(e))

        logger.info(f"Security email '{subject}' sent to {to_email}")
        return EmailResult(success=True)

    def render_template(
        self, template_name: str, context: Dict[str, Any]
    ) -> Tuple[str, str]:
        """
        Render the text and HTML variants of a template.

        Returns:
            Tuple of (plain_text, html).

        Raises:
            TemplateNotFoundError: If either variant is missing.
        """
        rendered = []
        for extension in ("txt", "html"):
            filename = f"{template_name}.{extension}"
            try:
                rendered.append(self._template_env.get_template(filename).render(**context))
            except Jinja2TemplateNotFound:
                raise TemplateNotFoundError(f"Template '{filename}' not found")
        return rendered[0], rendered[1]

    def send_template(
        self,
        to: str,
        template: str,
        context: Dict[str, Any],
        subject: Optional[str] = None,
    ) -> EmailResult:
        """Render ``template`` and send it; the subject defaults per template key."""
        try:
            text_body, html_body = self.render_template(template, context)
        except TemplateNotFoundError as e:
            logger.error(f"Cannot render security email: {e}")
            return EmailResult(success=False, error=str(e))

        return self.send_email(
            to_email=to,
            subject=subject or self.SUBJECTS.get(template, template.replace("_", " ").capitalize()),
            body_text=text_body,
            body_html=html_body,
        )
