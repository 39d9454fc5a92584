"""Dependency source list and the per-run workspace layout."""
from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Union

try:
    import tomllib
except ImportError:
    import tomli as tomllib


SOURCES_JSON = "sources.json"
SOURCES_TOML = "sources.toml"

BUNDLED_TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

DeclaredLicense = Union[str, list[str], None]


@dataclass(frozen=True)
class Workspace:
    """All paths of one run, derived from the working directory."""

    working_dir: Path
    bundled_templates_dir: Path = BUNDLED_TEMPLATES_DIR

    @property
    def repos_dir(self) -> Path:
        return self.working_dir / "repos"

    @property
    def out_dir(self) -> Path:
        return self.working_dir / "out"

    @property
    def templates_dir(self) -> Path:
        return self.working_dir / "templates"

    def repo_dir(self, url: str) -> Path:
        """Local working copy directory for a repository URL."""
        return self.repos_dir / repo_dir_from_url(url)


@dataclass(frozen=True)
class DependencyDescriptor:
    name: str
    location: str
    declared_license: DeclaredLicense = None

    @property
    def is_repository(self) -> bool:
        return is_repository_url(self.location)


def is_repository_url(location: str) -> bool:
    """True for http(s) locations, which are fetched as git repositories."""
    return location.startswith(("http://", "https://"))


def repo_dir_from_url(url: str) -> str:
    """Last path segment of url without a trailing .git, e.g. foo for .../foo.git."""
    name = url.strip().rstrip("/").rsplit("/", 1)[-1]
    name = name.removesuffix(".git")
    if not name:
        raise ValueError(f"Cannot derive a repository directory from {url!r}")
    return name


def _parse_descriptor(index: int, entry: Any) -> DependencyDescriptor:
    """Validate one raw source entry; uri wins over url."""
    if not isinstance(entry, dict):
        raise ValueError(f"Source #{index} must be an object, got {type(entry).__name__}")
    name = entry.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ValueError(f"Source #{index} is missing a name")
    location = entry.get("uri") or entry.get("url")
    if not isinstance(location, str) or not location.strip():
        raise ValueError(f"Source {name!r} is missing a uri/url")
    if is_repository_url(location):
        repo_dir_from_url(location)
    licenses = entry.get("licenses")
    if licenses is not None and not isinstance(licenses, str):
        if not isinstance(licenses, list) or not all(isinstance(x, str) for x in licenses):
            raise ValueError(
                f"Source {name!r}: licenses must be a string or a list of strings"
            )
        licenses = list(licenses)
    return DependencyDescriptor(name=name, location=location.strip(), declared_license=licenses)


def parse_sources(data: Any) -> list[DependencyDescriptor]:
    """Turn decoded source list data into descriptors, keeping list order."""
    if not isinstance(data, list):
        raise ValueError("Source list must be an array of source objects")
    return [_parse_descriptor(i, entry) for i, entry in enumerate(data)]


def load_sources(workspace: Workspace) -> list[DependencyDescriptor]:
    """Read sources.json (or sources.toml) from the working directory."""
    json_path = workspace.working_dir / SOURCES_JSON
    toml_path = workspace.working_dir / SOURCES_TOML
    if json_path.exists():
        try:
            data = json.loads(json_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {json_path}: {e}") from e
        return parse_sources(data)
    if toml_path.exists():
        try:
            data = tomllib.loads(toml_path.read_text(encoding="utf-8"))
        except tomllib.TOMLDecodeError as e:
            raise ValueError(f"Invalid TOML in {toml_path}: {e}") from e
        return parse_sources(data.get("sources"))
    raise FileNotFoundError(f"Source list not found: {json_path}")
