from __future__ import annotations

from typing import Optional

from .constants import ExitCode


class TriggerBuildError(Exception):
    """Base exception for all trigger-build errors."""

    exit_code: ExitCode = ExitCode.CONFIG_ERROR


class ConfigurationError(TriggerBuildError):
    """A required rule could not resolve (raised before any network call)."""

    exit_code = ExitCode.CONFIG_ERROR


class RemoteCallError(TriggerBuildError):
    """A GitLab API call failed. Never retried."""

    exit_code = ExitCode.REMOTE_ERROR

    def __init__(
        self,
        message: str,
        *,
        method: str = "",
        url: str = "",
        status: Optional[int] = None,
    ) -> None:
        self.method = method
        self.url = url
        self.status = status
        detail = f"{method} {url}".strip()
        if status is not None:
            detail = f"{detail} -> {status}"
        super().__init__(f"{message} ({detail})" if detail else message)


class PipelineFailedError(TriggerBuildError):
    """Downstream pipeline or job finished without succeeding."""

    exit_code = ExitCode.DOWNSTREAM_FAILED


class PipelineTimeoutError(PipelineFailedError):
    """Gave up waiting for the downstream pipeline or job."""


class NotFoundWarning(UserWarning):
    """Requested downstream job does not exist in the pipeline."""
