from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .comment import CommentPublisher, CommitCommentPublisher, NoteResult, render_commit_comment
from .config import TriggerSettings
from .constants import Tokens
from .context import BuildClassifiers, CIEnvironment
from .errors import ConfigurationError, RemoteCallError
from .gitlab import GitLabClient
from .logging import TriggerLogger
from .models import JobHandle, PipelineHandle
from .targets import Target
from .variables import VariableResolver, Variables, outbound_variables
from .versions import EnvOrFileVersionSource, VersionSource, discover_version_files
from .watcher import PipelineWatcher

ClientFactory = Callable[[str, Optional[str]], GitLabClient]


class TriggerClient:
    """Creates the downstream pipeline. Single shot: a retry could create a second pipeline."""

    def __init__(self, client: GitLabClient, logger: TriggerLogger):
        self.client = client
        self.logger = logger

    def trigger(self, project_path: str, token: str, ref: str, variables: Variables) -> PipelineHandle:
        payload = self.client.run_trigger(project_path, token, ref, outbound_variables(variables))
        try:
            pipeline = PipelineHandle.from_api(project_path, payload)
        except (KeyError, TypeError, ValueError) as exc:
            raise RemoteCallError(f"Trigger response has no pipeline id: {payload!r}") from exc
        self.logger.info("downstream_pipeline_triggered", pipeline_id=pipeline.id, url=pipeline.url)
        return pipeline


@dataclass(frozen=True)
class TriggerRequest:
    """Everything resolved before the first network call."""

    project_path: str
    ref: str
    variables: Variables
    trigger_token: str
    access_token: Optional[str]


@dataclass(frozen=True)
class TriggerResult:
    pipeline: PipelineHandle
    job: Optional[JobHandle] = None
    note: Optional[NoteResult] = None
    commit_comment: Optional[Dict[str, Any]] = None
    variables: Variables = field(default_factory=dict)

    @property
    def watch_handle(self) -> PipelineHandle | JobHandle:
        return self.job or self.pipeline


class DownstreamTrigger:
    """One invocation against one target: resolve, trigger, then the optional follow-ups."""

    def __init__(
        self,
        target: Target,
        env: CIEnvironment,
        settings: TriggerSettings,
        logger: TriggerLogger,
        *,
        classifiers: Optional[BuildClassifiers] = None,
        version_source: Optional[VersionSource] = None,
        version_names: Optional[List[str]] = None,
        client_factory: Optional[ClientFactory] = None,
    ) -> None:
        self.target = target
        self.env = env
        self.settings = settings
        self.logger = logger
        self.classifiers = classifiers or BuildClassifiers.from_environment(env)
        self.version_source = version_source or EnvOrFileVersionSource(env, settings.version_dir)
        if version_names is None:
            version_names = settings.version_files or discover_version_files(settings.version_dir)
        self.version_names = version_names
        self._client_factory = client_factory or self._default_client
        self._clients: Dict[str, GitLabClient] = {}

    def _default_client(self, endpoint: str, token: Optional[str]) -> GitLabClient:
        return GitLabClient(endpoint, token, timeout=self.settings.http_timeout_seconds)

    @property
    def downstream_endpoint(self) -> str:
        if self.target.api_endpoint == "ops":
            return self.settings.ops_api_endpoint
        return self.settings.com_api_endpoint

    @property
    def downstream_client(self) -> GitLabClient:
        """Client for the downstream project, authenticated with the target's access token."""
        if "downstream" not in self._clients:
            self._clients["downstream"] = self._client_factory(
                self.downstream_endpoint, self.target.access_token(self.env)
            )
        return self._clients["downstream"]

    @property
    def upstream_client(self) -> GitLabClient:
        """Client for the originating project, always gitlab.com with the base access token."""
        if "upstream" not in self._clients:
            self._clients["upstream"] = self._client_factory(
                self.settings.com_api_endpoint, self.env.get(Tokens.ACCESS)
            )
        return self._clients["upstream"]

    def resolver(self) -> VariableResolver:
        return VariableResolver(self.env, self.classifiers, self.version_source, self.version_names)

    def variables(self, ref: Optional[str] = None) -> Variables:
        return self.target.variables(self.resolver(), ref if ref is not None else self.target.ref(self.env))

    def prepare(self) -> TriggerRequest:
        ref = self.target.ref(self.env)
        variables = self.variables(ref)
        trigger_token = self.target.trigger_token(self.env)
        if not trigger_token:
            raise ConfigurationError(f"No trigger token available for target {self.target.name}")
        return TriggerRequest(
            project_path=self.target.downstream_project_path(self.env),
            ref=ref,
            variables=variables,
            trigger_token=trigger_token,
            access_token=self.target.access_token(self.env),
        )

    def invoke(
        self,
        *,
        downstream_job_name: Optional[str] = None,
        post_comment: bool = False,
    ) -> TriggerResult:
        request = self.prepare()
        self.logger.info(
            "triggering_downstream_pipeline",
            target=self.target.name,
            project=request.project_path,
            ref=request.ref,
            variables=outbound_variables(request.variables),
        )

        pipeline = TriggerClient(self.downstream_client, self.logger).trigger(
            request.project_path, request.trigger_token, request.ref, request.variables
        )

        job: Optional[JobHandle] = None
        if downstream_job_name:
            job = self.watcher().find_job(pipeline, downstream_job_name)

        note: Optional[NoteResult] = None
        if self.target.posts_status_comment:
            note = self.publish_status_note(request.variables, pipeline)

        commit_comment: Optional[Dict[str, Any]] = None
        if post_comment:
            commit_comment = self.post_commit_comment(request.variables, pipeline)

        return TriggerResult(
            pipeline=pipeline,
            job=job,
            note=note,
            commit_comment=commit_comment,
            variables=request.variables,
        )

    def publish_status_note(self, variables: Variables, pipeline: PipelineHandle) -> Optional[NoteResult]:
        project_path = variables.get("TOP_UPSTREAM_SOURCE_PROJECT")
        iid = variables.get("TOP_UPSTREAM_MERGE_REQUEST_IID")
        if not project_path or not iid:
            self.logger.warning("status_note_skipped", reason="not_a_merge_request_pipeline")
            return None
        publisher = CommentPublisher(
            self.upstream_client,
            self.logger,
            web_url=_web_url(self.settings.com_api_endpoint),
        )
        return publisher.publish(project_path, iid, pipeline)

    def post_commit_comment(self, variables: Variables, pipeline: PipelineHandle) -> Optional[Dict[str, Any]]:
        """Comment on the upstream commit with a link to the downstream pipeline."""
        project_path = variables.get("TOP_UPSTREAM_SOURCE_PROJECT")
        sha = variables.get("TOP_UPSTREAM_SOURCE_SHA")
        if not project_path or not sha:
            self.logger.warning("commit_comment_skipped", reason="no_upstream_commit")
            return None
        publisher = CommitCommentPublisher(self.upstream_client, self.logger)
        return publisher.post(project_path, sha, render_commit_comment(self.env, pipeline))

    def watcher(self) -> PipelineWatcher:
        return PipelineWatcher(
            self.downstream_client,
            self.logger,
            poll_interval_seconds=self.settings.poll_interval_seconds,
            max_wait_seconds=self.settings.max_wait_seconds,
        )


def _web_url(api_endpoint: str) -> str:
    suffix = "/api/v4"
    return api_endpoint[: -len(suffix)] if api_endpoint.endswith(suffix) else api_endpoint
