"""
Constants and runtime settings for resource-scanner.

Defines the issue labels used in findings, report text, connection defaults,
and the Settings value the CLI builds once and passes down.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional

# Issue labels carried in ResourceCheckResult.issue.
ISSUE_STUCK_FINALIZER = "Stuck finalizer"
ISSUE_INVALID_OWNER = "Invalid ownerReference"

REPORT_TITLE = "Daily Kubernetes Resource Report"

DEFAULT_KUBECONFIG = os.path.join("~", ".kube", "config")
DEFAULT_CLUSTER_NAME = "k8s-cluster"
DEFAULT_LOG_LEVEL = "info"
DEFAULT_WORKERS = 4
DEFAULT_SMTP_PORT = 25
# Submission port that expects TLS from the first byte.
SMTPS_PORT = 465
# Seconds per API request.
DEFAULT_REQUEST_TIMEOUT = 60

LOG_LEVELS = ("debug", "info", "warning", "error")

# Env vars that mark a pod with service-account credentials mounted.
IN_CLUSTER_ENV = ("KUBERNETES_SERVICE_HOST", "KUBERNETES_SERVICE_PORT")


@dataclass(frozen=True)
class SmtpSettings:
    host: str = ""
    port: int = DEFAULT_SMTP_PORT
    user: str = ""
    password: str = ""
    sender: str = ""
    recipient: str = ""

    def missing(self) -> list[str]:
        """Names of the fields an e-mail report cannot be sent without."""
        required = {"smtp-host": self.host, "smtp-from": self.sender, "smtp-to": self.recipient}
        return [name for name, value in required.items() if not value]


@dataclass(frozen=True)
class Settings:
    kubeconfig: Optional[str] = None
    context: Optional[str] = None
    cluster_name: str = DEFAULT_CLUSTER_NAME
    debug: bool = False
    log_level: str = DEFAULT_LOG_LEVEL
    workers: int = DEFAULT_WORKERS
    checks: tuple[str, ...] = ()
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    email_report: bool = False
    smtp: SmtpSettings = field(default_factory=SmtpSettings)
