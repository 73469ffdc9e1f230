from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest

from trigger_build.config import TriggerSettings
from trigger_build.context import BuildClassifiers, CIEnvironment
from trigger_build.logging import TriggerLogger
from trigger_build.versions import mapping_version_source

BASE_ENV: Dict[str, Optional[str]] = {
    "CI_JOB_URL": "ci_job_url",
    "CI_PROJECT_PATH": "ci_project_path",
    "CI_COMMIT_REF_NAME": "ci_commit_ref_name",
    "CI_COMMIT_REF_SLUG": "ci_commit_ref_slug",
    "CI_COMMIT_SHA": "ci_commit_sha",
    "CI_MERGE_REQUEST_PROJECT_ID": "ci_merge_request_project_id",
    "CI_MERGE_REQUEST_IID": "ci_merge_request_iid",
    "GITLAB_BOT_MULTI_PROJECT_PIPELINE_POLLING_TOKEN": "bot-token",
    "CI_JOB_TOKEN": "job-token",
    "GITLAB_USER_NAME": "gitlab_user_name",
    "GITLAB_USER_LOGIN": "gitlab_user_login",
    "QA_IMAGE": "qa_image",
}


class FakeGitLab:
    """In-memory stand-in for GitLabClient."""

    def __init__(
        self,
        endpoint: str = "https://gitlab.example/api/v4",
        token: Optional[str] = None,
        *,
        jobs: Optional[List[Dict[str, Any]]] = None,
        notes: Optional[List[Dict[str, Any]]] = None,
        statuses: Optional[List[Any]] = None,
        environments: Optional[List[Dict[str, Any]]] = None,
        pipeline_id: int = 42,
    ) -> None:
        self.endpoint = endpoint
        self.token = token
        self.jobs = list(jobs or [])
        self.notes = list(notes or [])
        self.statuses = list(statuses or [])
        self.environments_list = list(environments or [])
        self.pipeline_id = pipeline_id
        self.calls: List[tuple] = []

    def run_trigger(self, project_path: str, token: str, ref: str, variables: Dict[str, str]) -> Dict[str, Any]:
        self.calls.append(("run_trigger", project_path, token, ref, dict(variables)))
        return {"id": self.pipeline_id, "web_url": f"https://ops.example/{project_path}/-/pipelines/{self.pipeline_id}"}

    def pipeline_jobs(self, project_path: str, pipeline_id: int) -> Iterator[Dict[str, Any]]:
        self.calls.append(("pipeline_jobs", project_path, pipeline_id))
        return iter(self.jobs)

    def _next_status(self) -> Dict[str, Any]:
        status = self.statuses.pop(0)
        if isinstance(status, Exception):
            raise status
        return {"status": status}

    def pipeline(self, project_path: str, pipeline_id: int) -> Dict[str, Any]:
        self.calls.append(("pipeline", project_path, pipeline_id))
        return self._next_status()

    def job(self, project_path: str, job_id: int) -> Dict[str, Any]:
        self.calls.append(("job", project_path, job_id))
        return self._next_status()

    def create_commit_comment(self, project_path: str, sha: str, note: str) -> Dict[str, Any]:
        self.calls.append(("create_commit_comment", project_path, sha, note))
        return {"note": note, "author": {"username": "bot"}}

    def merge_request_notes(self, project_path: str, iid: str) -> Iterator[Dict[str, Any]]:
        self.calls.append(("merge_request_notes", project_path, iid))
        return iter(list(self.notes))

    def create_merge_request_note(self, project_path: str, iid: str, body: str) -> Dict[str, Any]:
        self.calls.append(("create_merge_request_note", project_path, iid))
        note = {"id": 100 + len(self.notes), "body": body}
        self.notes.append(note)
        return note

    def edit_merge_request_note(self, project_path: str, iid: str, note_id: int, body: str) -> Dict[str, Any]:
        self.calls.append(("edit_merge_request_note", project_path, iid, note_id))
        for note in self.notes:
            if note["id"] == note_id:
                note["body"] = body
                return note
        raise AssertionError(f"note {note_id} does not exist")

    def environments(self, project_path: str, name: Optional[str] = None) -> List[Dict[str, Any]]:
        self.calls.append(("environments", project_path, name))
        return [e for e in self.environments_list if name is None or e.get("name") == name]

    def stop_environment(self, project_path: str, environment_id: int) -> Dict[str, Any]:
        self.calls.append(("stop_environment", project_path, environment_id))
        return {"id": environment_id, "state": "stopped"}

    def called(self, name: str) -> List[tuple]:
        return [call for call in self.calls if call[0] == name]


@pytest.fixture
def env() -> CIEnvironment:
    return CIEnvironment(BASE_ENV)


@pytest.fixture
def logger() -> TriggerLogger:
    return TriggerLogger("test-run")


@pytest.fixture
def settings(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> TriggerSettings:
    for name in ("TRIGGER_BUILD_VERSION_FILES", "TRIGGER_BUILD_ENV_FILE", "TRIGGER_BUILD_WAIT"):
        monkeypatch.delenv(name, raising=False)
    return TriggerSettings(version_dir=str(tmp_path), poll_interval_seconds=0)


@pytest.fixture
def classifiers() -> BuildClassifiers:
    return BuildClassifiers(ee=False, security=False)


@pytest.fixture
def no_versions():
    return mapping_version_source({})


@pytest.fixture
def fake_gitlab():
    return FakeGitLab
