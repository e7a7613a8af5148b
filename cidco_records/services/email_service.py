"""
Email Service for CIDCO Records
===============================
Sends password reset links over SMTP. Delivery is best-effort: callers get
True/False back and failures are only logged.
"""

import html
import aiosmtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from datetime import datetime
from typing import Optional

from cidco_records.core.config import settings
from cidco_records.core.logging_config import logger


class EmailService:
    """Async email service using SMTP"""

    def __init__(self):
        self.smtp_host = settings.SMTP_HOST
        self.smtp_port = settings.SMTP_PORT
        self.smtp_user = settings.SMTP_USER
        self.smtp_password = settings.SMTP_PASSWORD
        self.from_email = settings.EMAIL_FROM
        self.from_name = settings.EMAIL_FROM_NAME
        self.frontend_url = settings.FRONTEND_URL.rstrip("/")

    @property
    def is_configured(self) -> bool:
        """Check if email service is properly configured"""
        return bool(self.smtp_user and self.smtp_password)

    def _tls_kwargs(self) -> dict:
        # 465 is implicit TLS, everything else upgrades with STARTTLS
        if self.smtp_port == 465:
            return {"use_tls": True}
        return {"start_tls": True}

    async def verify_connection(self) -> bool:
        """Log in and out once so misconfiguration shows up at startup"""
        if not self.is_configured:
            logger.warning("[SMTP] Email service not configured - reset links will only be logged")
            return False
        try:
            smtp = aiosmtplib.SMTP(hostname=self.smtp_host, port=self.smtp_port, **self._tls_kwargs())
            await smtp.connect()
            await smtp.login(self.smtp_user, self.smtp_password)
            await smtp.quit()
            logger.info("[SMTP] Email server is ready to send reset links")
            return True
        except (aiosmtplib.SMTPException, OSError) as e:
            logger.warning(f"[SMTP] Email service not configured or failing: {e}")
            return False

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None
    ) -> bool:
        """
        Send an email asynchronously.

        Returns True if successful, False otherwise.
        """
        if not self.is_configured:
            logger.warning("[Email] Email service not configured, skipping email send")
            return False

        try:
            message = MIMEMultipart("alternative")
            message["From"] = f"{self.from_name} <{self.from_email}>"
            message["To"] = to_email
            message["Subject"] = subject

            if text_content:
                message.attach(MIMEText(text_content, "plain"))
            message.attach(MIMEText(html_content, "html"))

            await aiosmtplib.send(
                message,
                hostname=self.smtp_host,
                port=self.smtp_port,
                username=self.smtp_user,
                password=self.smtp_password,
                **self._tls_kwargs()
            )

            logger.info(f"[Email/SMTP] Successfully sent email to {to_email}: {subject}")
            return True

        except (aiosmtplib.SMTPException, OSError) as e:
            logger.error(f"[Email/SMTP] Failed to send email to {to_email}: {e}")
            return False

    def build_reset_link(self, token: str) -> str:
        return f"{self.frontend_url}/#/reset-password/{token}"

    async def send_password_reset_email(self, to_email: str, name: str, reset_link: str) -> bool:
        """Send the reset link; valid for RESET_TOKEN_EXPIRE_MINUTES"""
        if not self.is_configured:
            logger.warning(f"[Email] SMTP not configured. Reset link (dev only): {reset_link}")
            return False

        subject = "Reset Your CIDCO Records Password"
        valid_for = settings.RESET_TOKEN_EXPIRE_MINUTES
        year = datetime.utcnow().year

        html_content = f"""
        <div style="font-family: sans-serif; max-width: 600px; margin: 0 auto; border: 1px solid #e2e8f0; border-radius: 8px; overflow: hidden;">
            <div style="background-color: #4f46e5; padding: 24px; text-align: center; color: white;">
                <h1 style="margin: 0; font-size: 24px;">CIDCO Records</h1>
            </div>
            <div style="padding: 32px; background-color: white; color: #1e293b;">
                <p style="font-size: 16px;">Hello {html.escape(name)},</p>
                <p style="line-height: 1.6;">You requested to reset your password for the CIDCO Records Management System. Click the button below to set a new password. This link is valid for {valid_for} minutes.</p>
                <div style="text-align: center; margin: 32px 0;">
                    <a href="{reset_link}" style="background-color: #4f46e5; color: white; padding: 14px 28px; text-decoration: none; border-radius: 6px; font-weight: bold; font-size: 14px; display: inline-block;">Reset Password</a>
                </div>
                <p style="font-size: 12px; color: #64748b; line-height: 1.6;">If you didn't request this, you can safely ignore this email. Your password will not be changed until you click the link above and create a new one.</p>
            </div>
            <div style="background-color: #f8fafc; padding: 16px; text-align: center; font-size: 12px; color: #94a3b8; border-top: 1px solid #e2e8f0;">
                &copy; {year} PFEPL / CIDCO Records
            </div>
        </div>
        """

        text_content = f"""
Hello {name},

You requested to reset your password for the CIDCO Records Management System.
Open the link below to set a new password (valid for {valid_for} minutes):

{reset_link}

If you didn't request this, you can safely ignore this email.
"""

        return await self.send_email(to_email, subject, html_content, text_content)
