from __future__ import annotations

from enum import Enum


class ExitCode(int, Enum):
    """Process exit codes."""

    SUCCESS = 0
    DOWNSTREAM_FAILED = 1
    CONFIG_ERROR = 2
    REMOTE_ERROR = 3


class Endpoints:
    """GitLab API roots."""

    COM = "https://gitlab.com/api/v4"
    OPS = "https://ops.gitlab.net/api/v4"


class Tokens:
    """Environment variables holding the base credentials."""

    TRIGGER = "CI_JOB_TOKEN"
    ACCESS = "GITLAB_BOT_MULTI_PROJECT_PIPELINE_POLLING_TOKEN"


PER_PAGE = 100

ACTIVE_STATUSES = frozenset(
    {"created", "waiting_for_resource", "preparing", "pending", "running", "scheduled"}
)
SUCCESS_STATUS = "success"
