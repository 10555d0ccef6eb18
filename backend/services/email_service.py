import logging
from email.message import EmailMessage
from typing import List

import aiosmtplib

from ..config import EMAIL_FROM, SMTP_HOST, SMTP_PASS, SMTP_PORT, SMTP_USER

logger = logging.getLogger(__name__)


def smtp_configured() -> bool:
    return bool(SMTP_HOST)


def build_invite_message(
    to_emails: List[str],
    subject: str,
    body: str,
    ics_content: str,
    ics_filename: str = "invite.ics",
) -> EmailMessage:
    msg = EmailMessage()
    msg["From"] = EMAIL_FROM
    msg["To"] = ", ".join(to_emails)
    msg["Subject"] = subject
    msg.set_content(body)
    msg.add_attachment(
        ics_content.encode("utf-8"),
        maintype="text",
        subtype="calendar",
        filename=ics_filename,
        params={"method": "PUBLISH", "charset": "UTF-8"},
    )
    return msg


async def send_email_with_ics(
    to_emails: List[str],
    subject: str,
    body: str,
    ics_content: str,
    ics_filename: str = "invite.ics",
) -> None:
    msg = build_invite_message(to_emails, subject, body, ics_content, ics_filename)
    await aiosmtplib.send(
        msg,
        hostname=SMTP_HOST,
        port=SMTP_PORT,
        username=SMTP_USER,
        password=SMTP_PASS,
        start_tls=True,
    )
    logger.info("Sent calendar invite to %s", ", ".join(to_emails))
