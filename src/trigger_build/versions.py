from __future__ import annotations

import re
from pathlib import Path
from typing import Callable, List, Mapping, Optional, Union

from .context import CIEnvironment
from .errors import ConfigurationError

VERSION_FILE_GLOB = "*_VERSION"

_RAW_SEMVER = re.compile(r"^\d+\.\d+\.\d+(-rc\d+)?(-ee)?$")

# name -> pinned version, None when the source has nothing for the name
VersionSource = Callable[[str], Optional[str]]


class EnvOrFileVersionSource:
    """
    Two-tier version lookup: the same-named environment variable wins when it
    is non-blank, otherwise the stripped contents of the same-named pin file.

    A missing or unreadable pin file is a ConfigurationError.
    """

    def __init__(self, env: CIEnvironment, directory: Union[str, Path] = "."):
        self.env = env
        self.directory = Path(directory)

    def __call__(self, name: str) -> Optional[str]:
        from_env = (self.env.get(name) or "").strip()
        if from_env:
            return from_env
        path = self.directory / name
        try:
            return path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise ConfigurationError(f"Cannot read version file {path}: {exc}") from exc


def mapping_version_source(versions: Mapping[str, str]) -> VersionSource:
    return lambda name: versions.get(name)


def discover_version_files(directory: Union[str, Path] = ".") -> List[str]:
    return sorted(p.name for p in Path(directory).glob(VERSION_FILE_GLOB) if p.is_file())


def prefix_semver(raw_version: str) -> str:
    """Treat a bare semantic version as a tag name: ``1.2.3-rc1`` -> ``v1.2.3-rc1``."""
    if _RAW_SEMVER.match(raw_version):
        return f"v{raw_version}"
    return raw_version
