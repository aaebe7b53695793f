"""
Plain-text report of scan findings, printed or sent by e-mail.
"""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from typing import Iterable, Optional

import click

from .config import REPORT_TITLE, SMTPS_PORT, SmtpSettings
from .models import ResourceCheckResult

logger = logging.getLogger(__name__)


def generate_report(results: Iterable[ResourceCheckResult], cluster_name: Optional[str] = None) -> str:
    """
    Render findings as text: a header, then one blank-line separated block per finding.

    Args:
        results: Findings in the order they should be listed.
        cluster_name: Included under the title when set.
    """
    lines = [REPORT_TITLE, ""]
    if cluster_name:
        lines += [f"Cluster: {cluster_name}", ""]
    lines += ["Detected issues in resources:", ""]
    for result in results:
        subject = result.subject
        lines += [
            f"Namespace: {subject.namespace}",
            f"Resource: {subject.kind}",
            f"Name: {subject.name}",
            f"Issue: {result.issue}",
            f"Additional Info: {result.additional_info}",
            "",
        ]
    return "\n".join(lines) + "\n"


def print_report(report: str) -> None:
    click.echo(report, nl=False)


def send_email_report(report: str, smtp: SmtpSettings, subject: str = REPORT_TITLE) -> bool:
    """
    Send the report as a text/plain e-mail.

    Port 465 connects with implicit TLS; other ports upgrade with STARTTLS
    when the server offers it. Logs in when a user is configured.
    Failures are logged, not raised.

    Returns:
        True if the message was handed to the SMTP server.
    """
    message = EmailMessage()
    message["From"] = smtp.sender
    message["To"] = smtp.recipient
    message["Subject"] = subject
    message.set_content(report)

    implicit_tls = smtp.port == SMTPS_PORT
    connect = smtplib.SMTP_SSL if implicit_tls else smtplib.SMTP
    try:
        with connect(smtp.host, smtp.port, timeout=30) as server:
            server.ehlo()
            if not implicit_tls and server.has_extn("starttls"):
                server.starttls()
                server.ehlo()
            if smtp.user:
                server.login(smtp.user, smtp.password)
            server.send_message(message)
    except (smtplib.SMTPException, OSError) as err:
        logger.error("Failed to send email report: %s", err)
        return False
    logger.info("Email report sent successfully.")
    return True
