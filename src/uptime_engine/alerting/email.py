from __future__ import annotations

import asyncio
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
from typing import Any

import structlog

from uptime_engine.alerting.base import (
    ChannelAdapter,
    NotificationKind,
    NotificationPayload,
    require,
    status_label,
)
from uptime_engine.utils.exceptions import ChannelConfigError, TransientDeliveryError

logger = structlog.get_logger(__name__)

_COLORS = {
    NotificationKind.OPENED: "#dc3545",  # Red
    NotificationKind.ESCALATED: "#8b0000",  # Dark red
    NotificationKind.RESOLVED: "#10b981",  # Green
    NotificationKind.SSL_EXPIRY: "#ffc107",  # Yellow
}


class EmailAdapter(ChannelAdapter):
    """Send notifications via SMTP with HTML formatting."""

    channel_name = "email"

    def __init__(
        self,
        smtp_host: str,
        smtp_port: int,
        from_email: str,
        to_emails: list[str],
        smtp_user: str | None = None,
        smtp_password: str | None = None,
        use_tls: bool = True,
        timeout: float = 30.0,
    ):
        super().__init__(timeout)
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_password = smtp_password
        self.from_email = from_email
        self.to_emails = to_emails
        self.use_tls = use_tls

    @classmethod
    def from_config(
        cls,
        config: dict[str, Any],
        smtp_host: str | None,
        smtp_port: int = 587,
        from_email: str = "alerts@example.com",
        smtp_user: str | None = None,
        smtp_password: str | None = None,
        use_tls: bool = True,
        timeout: float = 30.0,
    ) -> EmailAdapter:
        to = require(config, "to", cls.channel_name)
        to_emails = [to] if isinstance(to, str) else [str(addr) for addr in to]
        if not to_emails:
            raise ChannelConfigError(channel=cls.channel_name, reason="empty recipient list")
        if not smtp_host:
            raise ChannelConfigError(channel=cls.channel_name, reason="SMTP host is not configured")
        return cls(
            smtp_host=smtp_host,
            smtp_port=smtp_port,
            from_email=from_email,
            to_emails=to_emails,
            smtp_user=smtp_user,
            smtp_password=smtp_password,
            use_tls=use_tls,
            timeout=timeout,
        )

    def _create_html_body(self, payload: NotificationPayload) -> str:
        """Create HTML email body."""
        color = _COLORS[payload.kind]
        rows = [
            ("Monitor", payload.monitor_name),
            ("URL", payload.monitor_url),
            ("Status", status_label(payload)),
            ("Time", payload.timestamp),
        ]
        if payload.message:
            rows.append(("Details", payload.message))
        table = "\n".join(
            f'<tr><td style="padding: 10px; border-bottom: 1px solid #e9ecef; '
            f'color: #6c757d;">{label}</td>'
            f'<td style="padding: 10px; border-bottom: 1px solid #e9ecef;">'
            f"{escape(str(value))}</td></tr>"
            for label, value in rows
        )
        return f"""
<!DOCTYPE html>
<html>
<body style="font-family: -apple-system, 'Segoe UI', Roboto, Arial, sans-serif; max-width: 600px; margin: 0 auto;">
    <h2 style="color: {color};">{escape(payload.title)}</h2>
    <table style="width: 100%; border-collapse: collapse; margin: 20px 0;">
{table}
    </table>
    <p style="color: #9ca3af; font-size: 12px;">This is an automated alert from your monitoring system.</p>
</body>
</html>
"""

    def _create_plain_body(self, payload: NotificationPayload) -> str:
        """Create plain text email body."""
        lines = [
            f"{status_label(payload)}: {payload.title}",
            "",
            f"Monitor: {payload.monitor_name}",
            f"URL: {payload.monitor_url}",
            f"Time: {payload.timestamp}",
        ]
        if payload.message:
            lines += ["", payload.message]
        return "\n".join(lines)

    def build_message(self, payload: NotificationPayload) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["From"] = self.from_email
        msg["To"] = ", ".join(self.to_emails)
        msg["Subject"] = f"[{status_label(payload)}] {payload.monitor_name}"
        msg.attach(MIMEText(self._create_plain_body(payload), "plain"))
        msg.attach(MIMEText(self._create_html_body(payload), "html"))
        return msg

    async def send(self, payload: NotificationPayload) -> None:
        # Run synchronous SMTP operations in executor to avoid blocking
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._send_sync, payload)

        logger.info(
            "email_notification_sent",
            to_emails=self.to_emails,
            monitor=payload.monitor_name,
            kind=payload.kind.value,
        )

    def _send_sync(self, payload: NotificationPayload) -> None:
        """Synchronous email sending (called from executor)."""
        msg = self.build_message(payload)
        try:
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.timeout) as server:
                if self.use_tls:
                    server.starttls()
                if self.smtp_user:
                    server.login(self.smtp_user, self.smtp_password or "")
                server.send_message(msg)

        except (smtplib.SMTPAuthenticationError, smtplib.SMTPRecipientsRefused) as exc:
            raise ChannelConfigError(
                channel=self.channel_name,
                reason=str(exc),
                incident_id=payload.incident_id,
            ) from exc

        except (smtplib.SMTPException, OSError) as exc:
            raise TransientDeliveryError(
                channel=self.channel_name,
                reason=str(exc) or type(exc).__name__,
                incident_id=payload.incident_id,
            ) from exc
