from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Mapping, Optional

_SECURITY_NAMESPACE = re.compile(r"\Agitlab-org/security(\Z|/)")
_EE_PROJECT_NAMES = frozenset({"gitlab", "gitlab-ee"})


@dataclass(frozen=True)
class CIEnvironment:
    """Immutable snapshot of the CI job environment, captured once per invocation."""

    values: Mapping[str, Optional[str]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", MappingProxyType(dict(self.values)))

    @classmethod
    def capture(cls, environ: Optional[Mapping[str, str]] = None) -> "CIEnvironment":
        return cls(dict(os.environ if environ is None else environ))

    def __contains__(self, key: str) -> bool:
        return self.values.get(key) is not None

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        value = self.values.get(key)
        return default if value is None else value

    def non_empty(self, key: str) -> Optional[str]:
        """Value of ``key``, treating unset and empty string alike."""
        value = self.values.get(key)
        if value is None or value == "":
            return None
        return value

    def merged(self, **overrides: Optional[str]) -> "CIEnvironment":
        data: Dict[str, Optional[str]] = dict(self.values)
        data.update(overrides)
        return CIEnvironment(data)


@dataclass(frozen=True)
class BuildClassifiers:
    """Edition and security-fork flags of the upstream project."""

    ee: bool = False
    security: bool = False

    @classmethod
    def from_environment(cls, env: CIEnvironment) -> "BuildClassifiers":
        project_name = env.get("CI_PROJECT_NAME") or ""
        namespace = env.get("CI_PROJECT_NAMESPACE") or ""
        return cls(
            ee=project_name in _EE_PROJECT_NAMES,
            security=bool(_SECURITY_NAMESPACE.match(namespace)),
        )
