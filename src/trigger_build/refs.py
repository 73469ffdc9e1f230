from __future__ import annotations

import re
from typing import Optional

from .context import CIEnvironment

STABLE_BRANCH_SUFFIX = "-ee"
STABLE_BRANCH_REGEX = re.compile(r"^\d+-\d+-stable" + re.escape(STABLE_BRANCH_SUFFIX) + r"$")


def stable_branch_name(ref_name: Optional[str]) -> Optional[str]:
    """``14-10-stable-ee`` -> ``14-10-stable``; None for anything that is not a stable branch."""
    if not ref_name or not STABLE_BRANCH_REGEX.match(ref_name):
        return None
    return ref_name[: -len(STABLE_BRANCH_SUFFIX)]


class RefResolver:
    """
    Picks the downstream ref.

    Priority:
    1. the target's override variable, used verbatim
    2. the shared stable branch, when the upstream ref is a distribution stable branch
       and the target follows stable branches
    3. the target's default branch
    """

    def __init__(
        self,
        *,
        override_key: str,
        default_branch: str,
        follows_stable_branches: bool = False,
    ) -> None:
        self.override_key = override_key
        self.default_branch = default_branch
        self.follows_stable_branches = follows_stable_branches

    def resolve(self, env: CIEnvironment) -> str:
        override = env.get(self.override_key)
        if override is not None:
            return override
        if self.follows_stable_branches:
            stable = stable_branch_name(env.get("CI_COMMIT_REF_NAME"))
            if stable:
                return stable
        return self.default_branch
