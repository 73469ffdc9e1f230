from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Mapping, Optional, Tuple

from .constants import Tokens
from .context import CIEnvironment
from .errors import ConfigurationError
from .models import TargetKind
from .refs import RefResolver
from .variables import RuleContext, VariableResolver, VariableRule, Variables
from .versions import prefix_semver

ApiEndpoint = Literal["com", "ops"]


def _flag(value: bool) -> str:
    return "true" if value else "false"


# Omnibus


def omnibus_variables(ctx: RuleContext) -> Variables:
    env = ctx.env
    source_sha = ctx.source_sha()
    return {
        "GITLAB_VERSION": source_sha,
        "IMAGE_TAG": source_sha,
        "QA_IMAGE": env.get("QA_IMAGE"),
        "SKIP_QA_DOCKER": "true",
        "ALTERNATIVE_SOURCES": "true",
        "SECURITY_SOURCES": _flag(ctx.classifiers.security),
        "ee": _flag(ctx.classifiers.ee),
        "QA_BRANCH": env.get("QA_BRANCH") or "master",
        "CACHE_UPDATE": env.get("OMNIBUS_GITLAB_CACHE_UPDATE"),
        "GITLAB_QA_OPTIONS": env.get("GITLAB_QA_OPTIONS"),
        "QA_TESTS": env.get("QA_TESTS"),
        "ALLURE_JOB_NAME": env.get("ALLURE_JOB_NAME"),
    }


# CNG


def cng_variables(ctx: RuleContext) -> Variables:
    env = ctx.env
    tag = env.non_empty("CI_COMMIT_TAG")
    source_sha = ctx.source_sha()
    ee = ctx.classifiers.ee
    return {
        "TRIGGER_BRANCH": ctx.ref,
        "GITLAB_VERSION": source_sha,
        "GITLAB_TAG": tag,
        "GITLAB_ASSETS_TAG": env.get("CI_COMMIT_REF_NAME") if tag else source_sha,
        "FORCE_RAILS_IMAGE_BUILDS": "true",
        # The "off" edition is left unset rather than "false".
        "CE_PIPELINE": None if ee else "true",
        "EE_PIPELINE": "true" if ee else None,
    }


# Docs

DOCS_PROJECT_SLUGS: Mapping[str, str] = {
    "gitlab-org/gitlab-foss": "ce",
    "gitlab-org/gitlab": "ee",
    "gitlab-org/gitlab-runner": "runner",
    "gitlab-org/omnibus-gitlab": "omnibus",
    "gitlab-org/charts/gitlab": "charts",
}


def docs_project_slug(env: CIEnvironment) -> str:
    project_path = env.get("CI_PROJECT_PATH") or ""
    try:
        return DOCS_PROJECT_SLUGS[project_path]
    except KeyError:
        raise ConfigurationError(
            f"Docs review apps are not supported for project {project_path!r}"
        ) from None


def docs_review_slug(env: CIEnvironment) -> str:
    unique = env.get("CI_MERGE_REQUEST_IID") or env.get("CI_COMMIT_REF_SLUG")
    return f"-{docs_project_slug(env)}-{unique}"


def docs_variables(ctx: RuleContext) -> Variables:
    env = ctx.env
    return {
        f"BRANCH_{docs_project_slug(env).upper()}": env.get("CI_COMMIT_REF_NAME"),
        "REVIEW_SLUG": docs_review_slug(env),
    }


# Database testing


def database_testing_variables(ctx: RuleContext) -> Variables:
    return {
        "GITLAB_COMMIT_SHA": ctx.source_sha(),
        "TRIGGERED_USER_LOGIN": ctx.env.get("GITLAB_USER_LOGIN"),
    }


@dataclass(frozen=True)
class Target:
    """One downstream project variant and the overrides it layers on the base rules."""

    kind: TargetKind
    default_branch: str
    default_downstream_project_path: str
    ref_override_key: str
    project_path_override_key: str
    trigger_token_key: str = Tokens.TRIGGER
    access_token_key: Optional[str] = None
    api_endpoint: ApiEndpoint = "com"
    extra_variable_rules: Tuple[VariableRule, ...] = ()
    excluded_variables: Tuple[str, ...] = ()
    follows_stable_branches: bool = False
    prefixes_versions: bool = False
    posts_status_comment: bool = False
    waits_for_completion: bool = False
    default_job_name: Optional[str] = None

    @property
    def name(self) -> str:
        return self.kind.value

    def ref(self, env: CIEnvironment) -> str:
        return RefResolver(
            override_key=self.ref_override_key,
            default_branch=self.default_branch,
            follows_stable_branches=self.follows_stable_branches,
        ).resolve(env)

    def downstream_project_path(self, env: CIEnvironment) -> str:
        return env.get(self.project_path_override_key) or self.default_downstream_project_path

    def trigger_token(self, env: CIEnvironment) -> Optional[str]:
        return env.get(self.trigger_token_key) or env.get(Tokens.TRIGGER)

    def access_token(self, env: CIEnvironment) -> Optional[str]:
        if self.access_token_key and env.get(self.access_token_key):
            return env.get(self.access_token_key)
        return env.get(Tokens.ACCESS)

    def variables(self, resolver: VariableResolver, ref: str) -> Variables:
        return resolver.resolve(
            ref=ref,
            extra_rules=self.extra_variable_rules,
            excluded=self.excluded_variables,
            version_transform=prefix_semver if self.prefixes_versions else None,
        )


OMNIBUS = Target(
    kind=TargetKind.OMNIBUS,
    default_branch="master",
    default_downstream_project_path="gitlab-org/build/omnibus-gitlab-mirror",
    ref_override_key="OMNIBUS_BRANCH",
    project_path_override_key="OMNIBUS_PROJECT_PATH",
    access_token_key="OMNIBUS_GITLAB_PROJECT_ACCESS_TOKEN",
    extra_variable_rules=(omnibus_variables,),
    follows_stable_branches=True,
    prefixes_versions=True,
    waits_for_completion=True,
    default_job_name="Trigger:qa-test",
)

CNG = Target(
    kind=TargetKind.CNG,
    default_branch="master",
    default_downstream_project_path="gitlab-org/build/CNG-mirror",
    ref_override_key="CNG_BRANCH",
    project_path_override_key="CNG_PROJECT_PATH",
    extra_variable_rules=(cng_variables,),
    # Redundant with native multi-project triggers.
    excluded_variables=("TRIGGER_SOURCE", "TRIGGERED_USER"),
    follows_stable_branches=True,
    prefixes_versions=True,
    waits_for_completion=True,
)

DOCS = Target(
    kind=TargetKind.DOCS,
    default_branch="main",
    default_downstream_project_path="gitlab-org/gitlab-docs",
    ref_override_key="DOCS_BRANCH",
    project_path_override_key="DOCS_PROJECT_PATH",
    trigger_token_key="DOCS_TRIGGER_TOKEN",
    access_token_key="DOCS_PROJECT_API_TOKEN",
    extra_variable_rules=(docs_variables,),
)

DATABASE_TESTING = Target(
    kind=TargetKind.DATABASE_TESTING,
    default_branch="master",
    default_downstream_project_path="gitlab-com/database-team/gitlab-com-database-testing",
    ref_override_key="GITLABCOM_DATABASE_TESTING_TRIGGER_REF",
    project_path_override_key="GITLABCOM_DATABASE_TESTING_PROJECT_PATH",
    trigger_token_key="GITLABCOM_DATABASE_TESTING_TRIGGER_TOKEN",
    access_token_key="GITLABCOM_DATABASE_TESTING_ACCESS_TOKEN",
    api_endpoint="ops",
    extra_variable_rules=(database_testing_variables,),
    posts_status_comment=True,
)

REGISTRY: Mapping[TargetKind, Target] = {
    target.kind: target for target in (OMNIBUS, CNG, DOCS, DATABASE_TESTING)
}


def get_target(kind: TargetKind | str) -> Target:
    try:
        return REGISTRY[TargetKind(kind)]
    except ValueError:
        raise ConfigurationError(f"Unknown target {kind!r}") from None
