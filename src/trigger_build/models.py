from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict


class TargetKind(str, Enum):
    OMNIBUS = "omnibus"
    CNG = "cng"
    DOCS = "docs"
    DATABASE_TESTING = "database-testing"


@dataclass(frozen=True)
class PipelineHandle:
    project_path: str
    id: int
    url: str

    @classmethod
    def from_api(cls, project_path: str, payload: Dict[str, Any]) -> "PipelineHandle":
        return cls(project_path=project_path, id=int(payload["id"]), url=str(payload.get("web_url") or ""))

    @property
    def kind(self) -> str:
        return "pipeline"


@dataclass(frozen=True)
class JobHandle:
    project_path: str
    id: int
    name: str

    @classmethod
    def from_api(cls, project_path: str, payload: Dict[str, Any]) -> "JobHandle":
        return cls(project_path=project_path, id=int(payload["id"]), name=str(payload.get("name") or ""))

    @property
    def kind(self) -> str:
        return "job"
