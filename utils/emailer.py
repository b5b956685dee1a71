import smtplib
from email.message import EmailMessage

from flask import current_app


class SmtpMailer:
    """Mail transport: send(to, subject, body) -> (ok, error)."""

    def __init__(self, host, port=587, username=None, password=None,
                 from_email=None, use_tls=True, timeout=10):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_email = from_email or username
        self.use_tls = use_tls
        # per-message socket timeout; a timed out send is a failure
        self.timeout = timeout

    @classmethod
    def from_config(cls, config=None):
        config = config or current_app.config
        return cls(
            host=config.get("SMTP_HOST"),
            port=config.get("SMTP_PORT", 587),
            username=config.get("SMTP_USERNAME"),
            password=config.get("SMTP_PASSWORD"),
            from_email=config.get("SMTP_FROM_EMAIL"),
            use_tls=config.get("SMTP_USE_TLS", True),
            timeout=config.get("REMINDER_SEND_TIMEOUT_SECONDS", 10),
        )

    def send(self, to_email: str, subject: str, body: str):
        if not self.host or not self.from_email:
            return False, "Email not configured"

        msg = EmailMessage()
        msg["From"] = self.from_email
        msg["To"] = to_email
        msg["Subject"] = subject
        msg.set_content(body)

        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                if self.use_tls:
                    server.starttls()
                if self.username and self.password:
                    server.login(self.username, self.password)
                server.send_message(msg)
            return True, None
        except (smtplib.SMTPException, OSError) as exc:
            return False, str(exc) or exc.__class__.__name__


def send_email(to_email: str, subject: str, body: str):
    return SmtpMailer.from_config().send(to_email, subject, body)


def get_mailer():
    # an app may register its own transport (tests, alternative providers)
    return current_app.extensions.get("mailer") or SmtpMailer.from_config()
