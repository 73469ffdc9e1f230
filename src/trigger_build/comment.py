from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from .context import CIEnvironment
from .gitlab import GitLabClient
from .logging import TriggerLogger
from .models import PipelineHandle

IDENTIFIABLE_NOTE_TAG = "gitlab-org/database-team/gitlab-com-database-testing:identifiable-note"


def marker(tag: str = IDENTIFIABLE_NOTE_TAG) -> str:
    return f"<!-- {tag} -->"


def render_status_note(pipeline: PipelineHandle, tag: str = IDENTIFIABLE_NOTE_TAG) -> str:
    return (
        f"{marker(tag)}\n"
        f"Started database testing [pipeline]({pipeline.url}) (limited access). "
        "This comment will be updated once the pipeline has finished running."
    )


@dataclass(frozen=True)
class NoteResult:
    note_id: int
    created: bool
    url: str


class CommentPublisher:
    """Keeps a single marked status note on the originating merge request."""

    def __init__(
        self,
        client: GitLabClient,
        logger: TriggerLogger,
        *,
        tag: str = IDENTIFIABLE_NOTE_TAG,
        web_url: str = "https://gitlab.com",
    ) -> None:
        self.client = client
        self.logger = logger
        self.tag = tag
        self.web_url = web_url.rstrip("/")

    def publish(self, project_path: str, merge_request_iid: str, pipeline: PipelineHandle) -> NoteResult:
        """Update the marked note in place when there is one, otherwise create it."""
        body = render_status_note(pipeline, self.tag)
        existing = self.find_note(project_path, merge_request_iid)

        if existing is not None:
            note = self.client.edit_merge_request_note(project_path, merge_request_iid, existing, body)
            created = False
        else:
            note = self.client.create_merge_request_note(project_path, merge_request_iid, body)
            created = True

        note_id = int(note.get("id") or existing or 0)
        url = f"{self.web_url}/{project_path}/-/merge_requests/{merge_request_iid}#note_{note_id}"
        self.logger.info("status_note_published", created=created, note_id=note_id, url=url)
        return NoteResult(note_id=note_id, created=created, url=url)

    def find_note(self, project_path: str, merge_request_iid: str) -> Optional[int]:
        """Id of the first note carrying the marker, reading every page."""
        notes = list(self.client.merge_request_notes(project_path, merge_request_iid))
        for note in notes:
            if self.tag in (note.get("body") or ""):
                return int(note["id"])
        return None


def render_commit_comment(env: CIEnvironment, pipeline: PipelineHandle) -> str:
    return (
        f"The [`{env.get('CI_JOB_NAME', '')}`]({env.get('CI_JOB_URL', '')}) job from pipeline "
        f"{env.get('CI_PIPELINE_URL', '')} triggered {pipeline.url} downstream."
    )


class CommitCommentPublisher:
    """Posts a one-off comment on the upstream commit. Not deduplicated."""

    def __init__(self, client: GitLabClient, logger: TriggerLogger) -> None:
        self.client = client
        self.logger = logger

    def post(self, project_path: str, sha: str, body: str) -> Dict[str, Any]:
        comment = self.client.create_commit_comment(project_path, sha, body)
        self.logger.info("commit_comment_posted", project=project_path, sha=sha)
        return comment
