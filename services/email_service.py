"""
Email service for account verification and password reset messages.
Sends through SMTP; every send reports success as a bool and never raises.
"""
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Optional

from core.logger import logger
import config


class EmailService:
    """Notification gateway backed by an SMTP server."""

    def __init__(
        self,
        host: str,
        port: int,
        username: str = "",
        password: str = "",
        use_tls: bool = True,
        use_ssl: bool = False,
        from_email: str = "",
        from_name: str = "Campus Portal",
        frontend_url: str = "http://localhost:3000",
        verification_expire_hours: int = 24,
        reset_expire_hours: int = 1,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.use_ssl = use_ssl
        self.from_email = from_email or username
        self.from_name = from_name
        self.frontend_url = frontend_url.rstrip("/")
        self.verification_expire_hours = verification_expire_hours
        self.reset_expire_hours = reset_expire_hours

    @classmethod
    def from_config(cls) -> "EmailService":
        """Build an EmailService from SMTP_* settings."""
        return cls(
            host=config.SMTP_HOST,
            port=config.SMTP_PORT,
            username=config.SMTP_USER,
            password=config.SMTP_PASSWORD,
            use_tls=config.SMTP_USE_TLS,
            use_ssl=config.SMTP_USE_SSL,
            from_email=config.SMTP_FROM_EMAIL,
            from_name=config.SMTP_FROM_NAME,
            frontend_url=config.FRONTEND_URL,
            verification_expire_hours=config.EMAIL_VERIFICATION_EXPIRE_HOURS,
            reset_expire_hours=config.PASSWORD_RESET_EXPIRE_HOURS,
        )

    def send_email(
        self,
        to_email: str,
        subject: str,
        html_body: Optional[str] = None,
        text_body: Optional[str] = None,
    ) -> bool:
        """
        Send an email via SMTP.

        Args:
            to_email: Recipient email address
            subject: Email subject
            html_body: HTML email body (optional)
            text_body: Plain text email body (optional, required if html_body not provided)

        Returns:
            True if sent successfully, False otherwise
        """
        if not self.username or not self.password:
            logger.error(
                "SMTP credentials not configured. Set SMTP_USER and SMTP_PASSWORD environment variables."
            )
            return False

        if not html_body and not text_body:
            logger.error("Either html_body or text_body must be provided")
            return False

        try:
            msg = MIMEMultipart("alternative")
            msg["From"] = f"{self.from_name} <{self.from_email}>"
            msg["To"] = to_email
            msg["Subject"] = subject

            if text_body:
                msg.attach(MIMEText(text_body, "plain"))
            if html_body:
                msg.attach(MIMEText(html_body, "html"))

            if self.use_ssl:
                with smtplib.SMTP_SSL(self.host, self.port) as server:
                    server.login(self.username, self.password)
                    server.send_message(msg)
            else:
                with smtplib.SMTP(self.host, self.port) as server:
                    if self.use_tls:
                        server.starttls()
                    server.login(self.username, self.password)
                    server.send_message(msg)

            logger.info(f"Email sent successfully to {to_email}")
            return True
        except Exception as e:
            logger.error(f"Failed to send email to {to_email}: {e}", exc_info=True)
            return False

    def send_verification_email(self, to_email: str, token: str) -> bool:
        """Send the email-address verification link."""
        verification_url = f"{self.frontend_url}/verify-email?token={token}"
        subject = f"Email Verification - {self.from_name}"
        html_body = f"""
        <html>
        <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
            <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
                <h2>Email Verification</h2>
                <p>Please click the link below to verify your email address:</p>
                <p><a href="{verification_url}">{verification_url}</a></p>
                <p>This link will expire in {self.verification_expire_hours} hours.</p>
            </div>
        </body>
        </html>
        """
        text_body = f"""
Email Verification

Please open the link below to verify your email address:
{verification_url}

This link will expire in {self.verification_expire_hours} hours.
        """
        return self.send_email(to_email, subject, html_body=html_body, text_body=text_body)

    def send_password_reset_email(self, to_email: str, token: str) -> bool:
        """Send the password reset link."""
        reset_url = f"{self.frontend_url}/reset-password?token={token}"
        hours = self.reset_expire_hours
        expiry = "1 hour" if hours == 1 else f"{hours} hours"
        subject = f"Password Reset - {self.from_name}"
        html_body = f"""
        <html>
        <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
            <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
                <h2>Password Reset Request</h2>
                <p>You requested a password reset. Click the link below to reset your password:</p>
                <p><a href="{reset_url}">{reset_url}</a></p>
                <p>This link will expire in {expiry}.</p>
                <p>If you didn't request this, please ignore this email.</p>
            </div>
        </body>
        </html>
        """
        text_body = f"""
Password Reset Request

You requested a password reset. Open the link below to reset your password:
{reset_url}

This link will expire in {expiry}.
If you didn't request this, please ignore this email.
        """
        return self.send_email(to_email, subject, html_body=html_body, text_body=text_body)
