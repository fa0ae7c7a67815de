import html
import logging
import smtplib
import ssl
from email.message import EmailMessage
from typing import Optional, Protocol, Sequence

from quicknote.core.config import Settings, settings

logger = logging.getLogger(__name__)


class MailDeliveryError(Exception):
    """The message could not be handed to the transport"""


class Mailer(Protocol):
    def send(self, recipients: Sequence[str], subject: str, body: str, is_html: bool = False) -> None: ...


class SmtpMailer:
    """Mail transport over SMTP, plain, STARTTLS or implicit TLS"""

    def __init__(
        self,
        *,
        host: str,
        port: int,
        from_header: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        use_tls: bool = True,
        use_ssl: bool = False,
        timeout: float = 10,
    ):
        self.host = host
        self.port = port
        self.from_header = from_header
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.use_ssl = use_ssl
        self.timeout = timeout

    def _message(self, recipients: Sequence[str], subject: str, body: str, is_html: bool) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = self.from_header
        msg["To"] = ", ".join(recipients)
        msg["Subject"] = subject
        if is_html:
            msg.set_content("This email requires an HTML-capable client.")
            msg.add_alternative(body, subtype="html")
        else:
            msg.set_content(body)
        return msg

    def send(self, recipients: Sequence[str], subject: str, body: str, is_html: bool = False) -> None:
        msg = self._message(recipients, subject, body, is_html)
        try:
            if self.use_ssl:
                context = ssl.create_default_context()
                with smtplib.SMTP_SSL(self.host, self.port, context=context, timeout=self.timeout) as server:
                    if self.username and self.password:
                        server.login(self.username, self.password)
                    server.send_message(msg)
                    return

            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                server.ehlo()
                if self.use_tls:
                    server.starttls(context=ssl.create_default_context())
                    server.ehlo()
                if self.username and self.password:
                    server.login(self.username, self.password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise MailDeliveryError(f"could not send email to {', '.join(recipients)}") from e


class ConsoleMailer:
    """Logs messages instead of sending them (development)"""

    def send(self, recipients: Sequence[str], subject: str, body: str, is_html: bool = False) -> None:
        logger.info(
            "\n%s\nEMAIL (console backend - not sent)\nTo: %s\nSubject: %s\n%s\n%s\n%s",
            "=" * 60,
            ", ".join(recipients),
            subject,
            "=" * 60,
            body,
            "=" * 60,
        )


class DisabledMailer:
    def send(self, recipients: Sequence[str], subject: str, body: str, is_html: bool = False) -> None:
        logger.warning("Email delivery disabled, dropped %r to %s", subject, ", ".join(recipients))


def get_mailer(config: Settings = settings) -> Mailer:
    """Mail transport for the configured backend"""
    if config.email_backend == "console":
        return ConsoleMailer()
    if config.email_backend == "disabled":
        return DisabledMailer()
    if not config.smtp_host or not config.smtp_from:
        raise RuntimeError("SMTP backend selected but SMTP_HOST/SMTP_FROM are not configured")
    return SmtpMailer(
        host=config.smtp_host,
        port=config.smtp_port,
        from_header=config.smtp_from,
        username=config.smtp_username,
        password=config.smtp_password,
        use_tls=config.smtp_use_tls,
        use_ssl=config.smtp_use_ssl,
    )


class EmailService:
    """Formats the account emails and hands them to a mail transport"""

    def __init__(self, mailer: Mailer, app_name: str = settings.app_name):
        self.mailer = mailer
        self.app_name = app_name

    def _render_html_template(
        self,
        *,
        title: str,
        message: str,
        cta_text: str,
        cta_link: str,
        footer_note: str,
    ) -> str:
        title_esc = html.escape(title)
        message_esc = html.escape(message)
        cta_text_esc = html.escape(cta_text)
        cta_link_esc = html.escape(cta_link, quote=True)
        footer_note_esc = html.escape(footer_note)

        return f"""<!doctype html>
<html lang="en">
  <head>
    <meta charset="utf-8" />
    <title>{title_esc}</title>
  </head>
  <body style="margin:0; padding:24px; font-family:Arial, Helvetica, sans-serif; background-color:#f6f6f6;">
    <div style="max-width:600px; margin:0 auto; background-color:#ffffff; border-radius:8px; padding:20px;">
      <h1 style="font-size:18px; margin:0 0 12px 0;">{title_esc}</h1>
      <p style="font-size:14px; line-height:20px; margin:0 0 16px 0;">{message_esc}</p>
      <a href="{cta_link_esc}" style="display:inline-block; padding:10px 16px; background-color:#2d6cdf; color:#ffffff; text-decoration:none; border-radius:6px;">{cta_text_esc}</a>
      <p style="font-size:12px; color:#777777; margin:16px 0 0 0;">
        If the button does not work, copy this link into your browser:<br />
        <a href="{cta_link_esc}" style="word-break:break-all;">{cta_link_esc}</a>
      </p>
      <p style="font-size:12px; color:#777777; margin:16px 0 0 0;">{footer_note_esc}</p>
    </div>
  </body>
</html>"""

    def send_confirmation(self, *, to_email: str, confirmation_link: str, resend: bool = False) -> None:
        subject = "Your new confirmation token" if resend else "Your confirmation token"
        body = self._render_html_template(
            title=f"Confirm your {self.app_name} account",
            message="Your account was created. Confirm your email to be able to sign in.",
            cta_text="Confirm my account",
            cta_link=confirmation_link,
            footer_note="If you did not create this account you can ignore this email.",
        )
        self.mailer.send([to_email], subject, body, is_html=True)

    def send_password_reset(self, *, to_email: str, reset_link: str) -> None:
        body = self._render_html_template(
            title="Reset your password",
            message="We received a request to reset your password. Follow the link to choose a new one.",
            cta_text="Reset password",
            cta_link=reset_link,
            footer_note="If you did not request this change you can ignore this email.",
        )
        self.mailer.send([to_email], "Reset your password", body, is_html=True)

    def send_password_changed(self, *, to_email: str) -> None:
        self.mailer.send([to_email], "Password changed", "Your password was successfully changed", is_html=False)
