"""MIME builders for the inactivity e-mails.

Plain text + HTML alternatives with the headers spam filters expect.
"""

from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, formatdate, make_msgid
from html import escape

from ..config import settings


@dataclass(frozen=True)
class MailContent:
    subject: str
    heading: str
    paragraphs: tuple[str, ...]
    cta_label: str
    cta_url: str


def _greeting(name: str | None) -> str:
    return f"Hi {name}" if name else "Hi there"


def reminder_15_days(name: str | None) -> MailContent:
    return MailContent(
        subject="We miss you! Your account is waiting",
        heading="We miss you!",
        paragraphs=(
            f"{_greeting(name)},",
            "We noticed you haven't logged in for about 15 days.",
            "Your scheduled work and connected channels are waiting for you.",
        ),
        cta_label="Log in now",
        cta_url=f"{settings.frontend_url}/auth/login",
    )


def reminder_25_days(name: str | None) -> MailContent:
    return MailContent(
        subject="Your account will be deactivated in 5 days",
        heading="Your account will be deactivated soon",
        paragraphs=(
            f"{_greeting(name)},",
            "You haven't logged in for 25 days.",
            "If you don't log in within the next 5 days your account will be deactivated.",
        ),
        cta_label="Keep my account active",
        cta_url=f"{settings.frontend_url}/auth/login",
    )


def deactivation_notice(name: str | None) -> MailContent:
    return MailContent(
        subject="Your account has been deactivated",
        heading="Account deactivated",
        paragraphs=(
            f"{_greeting(name)},",
            "Due to 30 days of inactivity, your account has been temporarily deactivated.",
            "Your data is kept for one year. Contact support to reactivate the account.",
        ),
        cta_label="Contact support",
        cta_url=f"mailto:{settings.support_email}?subject=Reactivate my account",
    )


def deletion_warning(name: str | None, days_until_deletion: int) -> MailContent:
    plural = "s" if days_until_deletion != 1 else ""
    return MailContent(
        subject=f"URGENT: Your account will be deleted in {days_until_deletion} day{plural}",
        heading="Account scheduled for deletion",
        paragraphs=(
            f"{_greeting(name)},",
            "Your account has been inactive for almost 1 year and is scheduled for permanent deletion.",
            f"In {days_until_deletion} day{plural} the account and all associated data will be "
            "deleted and cannot be recovered.",
        ),
        cta_label="Contact support now",
        cta_url=f"mailto:{settings.support_email}?subject=URGENT: Prevent account deletion",
    )


def build_message(to_addr: str, content: MailContent) -> MIMEMultipart:
    """Render a MailContent into a multipart/alternative message."""
    msg = MIMEMultipart("alternative")

    msg["From"] = formataddr((settings.smtp_from_name, settings.smtp_user))
    msg["To"] = to_addr
    msg["Reply-To"] = settings.support_email
    msg["Date"] = formatdate(localtime=True)
    msg["Message-ID"] = make_msgid(domain=settings.smtp_user.split("@")[-1] if "@" in settings.smtp_user else "local")
    msg["Subject"] = content.subject

    text_body = "\n\n".join(content.paragraphs) + f"\n\n{content.cta_label}: {content.cta_url}\n"

    body_html = "".join(
        f'<p style="margin:0 0 16px; color:#374151; font-size:15px; line-height:1.6;">{escape(p)}</p>'
        for p in content.paragraphs
    )
    html_body = f"""\
<!DOCTYPE html>
<html lang="en">
<head><meta charset="utf-8"><title>{escape(content.heading)}</title></head>
<body style="margin:0; padding:24px; background-color:#f4f4f5; font-family:Arial,Helvetica,sans-serif;">
  <h1 style="margin:0 0 24px; color:#1e40af; font-size:20px;">{escape(content.heading)}</h1>
  {body_html}
  <p><a href="{escape(content.cta_url)}" style="color:#1e40af; font-weight:600;">{escape(content.cta_label)}</a></p>
</body>
</html>"""

    msg.attach(MIMEText(text_body, "plain", "utf-8"))
    msg.attach(MIMEText(html_body, "html", "utf-8"))
    return msg
