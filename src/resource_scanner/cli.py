"""
CLI entry point for resource-scanner.

Builds Settings from options and environment, connects to the cluster,
runs one scan, and prints or e-mails the report.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

import click

from .checks import CHECKS
from .config import (
    DEFAULT_CLUSTER_NAME,
    DEFAULT_LOG_LEVEL,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_SMTP_PORT,
    DEFAULT_WORKERS,
    LOG_LEVELS,
    Settings,
    SmtpSettings,
)
from .kube import KubeClient, ScannerError, connect_to_cluster
from .report import generate_report, print_report, send_email_report
from .scan import Scanner

logger = logging.getLogger("resource_scanner")

# Shown at the bottom of resource-scanner --help / -h
EPILOG = """
Examples:

  resource-scanner                         # Scan the current kubeconfig context
  resource-scanner --kubeconfig ~/.kube/prod --context prod
  resource-scanner --check finalizers      # Only look for stuck finalizers
  resource-scanner --workers 1 --debug     # Sequential scan with debug logging
  EMAIL_REPORT=true SMTP_HOST=mail SMTP_FROM=a@x SMTP_TO=b@x resource-scanner

Inside a pod the service account credentials are used automatically.
"""


def configure_logging(settings: Settings) -> None:
    """Log to stdout without timestamps; the container runtime adds them."""
    level = logging.DEBUG if settings.debug else getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(
        stream=sys.stdout,
        level=level,
        format="%(levelname)s %(name)s: %(message)s",
        force=True,
    )
    if not settings.debug:
        logging.getLogger("kubernetes").setLevel(logging.WARNING)
        logging.getLogger("urllib3").setLevel(logging.WARNING)


def run(settings: Settings) -> int:
    """
    One scan pass with already-built settings.

    Returns:
        Process exit code: 0 on success, 1 when the e-mail report failed.

    Raises:
        ScannerError: connection, verification or discovery failed.
    """
    logger.info("Starting resource scanner for cluster: %s", settings.cluster_name)
    api_client = connect_to_cluster(settings.kubeconfig, settings.context, pool_size=settings.workers)
    kube = KubeClient(api_client, request_timeout=settings.request_timeout)
    kube.verify_access()

    checks = {name: CHECKS[name] for name in settings.checks} if settings.checks else None
    logger.info("Scanning resources...")
    results = Scanner(kube, checks=checks, workers=settings.workers, log=logger).scan()

    if not results:
        logger.info("No issues found in resources.")
        return 0

    logger.info("Issues found, generating report...")
    report = generate_report(results, settings.cluster_name)
    if settings.email_report:
        return 0 if send_email_report(report, settings.smtp) else 1
    print_report(report)
    return 0


@click.command(
    context_settings={"help_option_names": ["-h", "--help"]},
    epilog=EPILOG,
)
@click.option(
    "--kubeconfig",
    envvar="KUBECONFIG",
    metavar="PATH",
    help="Kubeconfig file (default ~/.kube/config)",
)
@click.option(
    "--context",
    "context",
    envvar="KUBE_CONTEXT",
    metavar="NAME",
    help="Kubeconfig context to use",
)
@click.option(
    "--cluster-name",
    envvar="CLUSTER_NAME",
    default=DEFAULT_CLUSTER_NAME,
    show_default=True,
    help="Cluster name shown in logs and the report",
)
@click.option(
    "--debug",
    envvar="DEBUG",
    is_flag=True,
    help="Debug logging (overrides --log-level)",
)
@click.option(
    "--log-level",
    envvar="LOG_LEVEL",
    default=DEFAULT_LOG_LEVEL,
    show_default=True,
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
)
@click.option(
    "-w",
    "--workers",
    envvar="SCAN_WORKERS",
    default=DEFAULT_WORKERS,
    show_default=True,
    type=click.IntRange(min=1),
    help="Namespace/resource pairs scanned concurrently",
)
@click.option(
    "-c",
    "--check",
    "checks",
    multiple=True,
    type=click.Choice(list(CHECKS)),
    help="Check to run (repeatable; default all)",
)
@click.option(
    "--request-timeout",
    envvar="REQUEST_TIMEOUT",
    default=DEFAULT_REQUEST_TIMEOUT,
    show_default=True,
    type=click.FloatRange(min=0, min_open=True),
    help="Seconds per API request",
)
@click.option(
    "--email-report",
    envvar="EMAIL_REPORT",
    is_flag=True,
    help="E-mail the report instead of printing it",
)
@click.option("--smtp-host", envvar="SMTP_HOST", default="")
@click.option(
    "--smtp-port",
    envvar="SMTP_PORT",
    default=DEFAULT_SMTP_PORT,
    show_default=True,
    type=int,
    help="465 uses implicit TLS; other ports use STARTTLS when offered",
)
@click.option("--smtp-user", envvar="SMTP_USER", default="")
@click.option("--smtp-password", envvar="SMTP_PASSWORD", default="")
@click.option("--smtp-from", envvar="SMTP_FROM", default="")
@click.option("--smtp-to", envvar="SMTP_TO", default="")
def main(
    kubeconfig: Optional[str],
    context: Optional[str],
    cluster_name: str,
    debug: bool,
    log_level: str,
    workers: int,
    checks: tuple[str, ...],
    request_timeout: float,
    email_report: bool,
    smtp_host: str,
    smtp_port: int,
    smtp_user: str,
    smtp_password: str,
    smtp_from: str,
    smtp_to: str,
) -> int:
    """
    Scan a Kubernetes cluster for stuck finalizers and dangling ownerReferences.

    Every namespaced resource type the API server lists is checked in every
    namespace. Exits non-zero if the cluster cannot be reached or discovered.
    """
    settings = Settings(
        kubeconfig=kubeconfig or None,
        context=context or None,
        cluster_name=cluster_name,
        debug=debug,
        log_level=log_level.lower(),
        workers=workers,
        checks=tuple(checks),
        request_timeout=request_timeout,
        email_report=email_report,
        smtp=SmtpSettings(
            host=smtp_host,
            port=smtp_port,
            user=smtp_user,
            password=smtp_password,
            sender=smtp_from,
            recipient=smtp_to,
        ),
    )
    if settings.email_report and settings.smtp.missing():
        raise click.UsageError(f"--email-report requires {', '.join('--' + m for m in settings.smtp.missing())}")

    configure_logging(settings)
    try:
        code = run(settings)
    except ScannerError as err:
        logger.error("%s", err)
        raise click.ClickException(str(err)) from err
    if code:
        click.get_current_context().exit(code)
    return code


if __name__ == "__main__":
    sys.exit(main())
