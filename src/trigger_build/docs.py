from __future__ import annotations

from typing import Optional

from .models import TargetKind
from .targets import docs_review_slug
from .trigger import DownstreamTrigger, TriggerResult


class DocsReviewApp:
    """Deploys and tears down the documentation review app for the current branch."""

    def __init__(self, trigger: DownstreamTrigger):
        if trigger.target.kind is not TargetKind.DOCS:
            raise ValueError(f"DocsReviewApp needs the docs target, got {trigger.target.name}")
        self.trigger = trigger

    @property
    def environment_name(self) -> str:
        env = self.trigger.env
        return f"review/{self.trigger.target.ref(env)}{docs_review_slug(env)}"

    def deploy(self, *, post_comment: bool = False) -> TriggerResult:
        result = self.trigger.invoke(post_comment=post_comment)
        self.trigger.logger.info(
            "docs_review_app_deploying",
            environment=self.environment_name,
            pipeline_url=result.pipeline.url,
        )
        return result

    def cleanup(self) -> Optional[str]:
        """Stop the review environment. Returns its final state, None when there was nothing to stop."""
        name = self.environment_name
        client = self.trigger.downstream_client
        project_path = self.trigger.target.downstream_project_path(self.trigger.env)

        environments = client.environments(project_path, name=name)
        if not environments:
            self.trigger.logger.info("docs_review_app_missing", environment=name)
            return None

        stopped = client.stop_environment(project_path, int(environments[0]["id"]))
        state = str(stopped.get("state") or "")
        if state == "stopped":
            self.trigger.logger.info("docs_review_app_stopped", environment=name)
        else:
            self.trigger.logger.warning("docs_review_app_stop_failed", environment=name, state=state)
        return state
