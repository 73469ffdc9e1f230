"""Trigger downstream GitLab pipelines from a running CI job."""

from .context import BuildClassifiers, CIEnvironment
from .models import JobHandle, PipelineHandle, TargetKind
from .targets import REGISTRY, Target, get_target
from .trigger import DownstreamTrigger, TriggerResult

__all__ = [
    "BuildClassifiers",
    "CIEnvironment",
    "DownstreamTrigger",
    "JobHandle",
    "PipelineHandle",
    "REGISTRY",
    "Target",
    "TargetKind",
    "TriggerResult",
    "get_target",
]
