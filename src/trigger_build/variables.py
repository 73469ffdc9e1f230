from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from .context import BuildClassifiers, CIEnvironment
from .errors import ConfigurationError
from .versions import VersionSource

Variables = Dict[str, Optional[str]]


@dataclass(frozen=True)
class RuleContext:
    """Inputs every variable rule sees."""

    env: CIEnvironment
    classifiers: BuildClassifiers
    ref: str

    def source_sha(self) -> Optional[str]:
        """
        Merge request source SHA when it is set and non-empty, otherwise the commit SHA.

        Merged-results pipelines run on a merge commit; the source branch SHA is what
        downstream projects need to check out. Unset and empty behave the same.
        """
        return self.env.non_empty("CI_MERGE_REQUEST_SOURCE_BRANCH_SHA") or self.env.get("CI_COMMIT_SHA")


VariableRule = Callable[[RuleContext], Variables]


def simple_forwarded_variables(ctx: RuleContext) -> Variables:
    env = ctx.env
    return {
        "TRIGGER_SOURCE": env.get("CI_JOB_URL"),
        "TOP_UPSTREAM_SOURCE_PROJECT": env.get("CI_PROJECT_PATH"),
        "TOP_UPSTREAM_SOURCE_REF": env.get("CI_COMMIT_REF_NAME"),
        "TOP_UPSTREAM_SOURCE_JOB": env.get("CI_JOB_URL"),
        "TOP_UPSTREAM_MERGE_REQUEST_PROJECT_ID": env.get("CI_MERGE_REQUEST_PROJECT_ID"),
        "TOP_UPSTREAM_MERGE_REQUEST_IID": env.get("CI_MERGE_REQUEST_IID"),
    }


def base_variables(ctx: RuleContext) -> Variables:
    env = ctx.env
    tag = env.get("CI_COMMIT_TAG")
    return {
        "GITLAB_REF_SLUG": tag if tag is not None else env.get("CI_COMMIT_REF_SLUG"),
        "TRIGGERED_USER": env.get("TRIGGERED_USER", env.get("GITLAB_USER_NAME")),
        "TOP_UPSTREAM_SOURCE_SHA": ctx.source_sha(),
    }


BASE_RULES: Sequence[VariableRule] = (simple_forwarded_variables, base_variables)


class VariableResolver:
    """Composes the outbound variable set from the base rules, target rules and version pins."""

    def __init__(
        self,
        env: CIEnvironment,
        classifiers: BuildClassifiers,
        version_source: VersionSource,
        version_names: Iterable[str] = (),
    ) -> None:
        self.env = env
        self.classifiers = classifiers
        self.version_source = version_source
        self.version_names: List[str] = list(version_names)

    def resolve(
        self,
        *,
        ref: str,
        extra_rules: Sequence[VariableRule] = (),
        excluded: Iterable[str] = (),
        version_transform: Optional[Callable[[str], str]] = None,
    ) -> Variables:
        ctx = RuleContext(env=self.env, classifiers=self.classifiers, ref=ref)

        variables: Variables = {}
        for rule in (*BASE_RULES, *extra_rules):
            variables.update(rule(ctx))
        variables.update(self.version_variables(version_transform))

        for key in excluded:
            variables.pop(key, None)
        return variables

    def version_variables(self, transform: Optional[Callable[[str], str]] = None) -> Variables:
        pins: Variables = {}
        for name in self.version_names:
            value = self.version_source(name)
            if value is None:
                raise ConfigurationError(f"No version pinned for {name}")
            pins[name] = transform(value) if transform else value
        return pins


def outbound_variables(variables: Variables) -> Dict[str, str]:
    """Drop absent values; an explicit empty string is kept and sent."""
    return {key: value for key, value in variables.items() if value is not None}


def variables_for_env_file(variables: Variables) -> str:
    return "\n".join(f"{key}={value}" for key, value in outbound_variables(variables).items())
