"""
Locate license text for a dependency.

Repository-backed dependencies are searched in their local working copy: a
LICENSE file at the top level, and a "License" section in the README. When
the LICENSE file is the Apache boilerplate, the README section usually
carries the project's actual copyright notice, so it wins. Direct file
dependencies are simply read.

Nothing in here raises for a missing or unreadable file; "not found" is None.
"""
from __future__ import annotations

import re
from pathlib import Path

from licenses_html.sources import DependencyDescriptor, Workspace

FENCE = "```"

_ATX_LICENSE = re.compile(r"#+\s+License", re.IGNORECASE)
_SETEXT_UNDERLINE = re.compile(r"-+\s*$")
_HEADING = re.compile(r"#+\s+\w+")
_LINK_LINE = re.compile(r" ?\[")
_APACHE_LICENSE = re.compile(r"^\s*Apache License", re.MULTILINE)


def read_text(path: Path) -> str | None:
    """Read a UTF-8 text file; None when missing, unreadable or not text."""
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return None


def find_file_starting_with(directory: Path, name: str) -> Path | None:
    """First file, by sorted name, whose name starts with name (case-insensitive)."""
    pattern = re.compile(re.escape(name) + r"(?:\.\S*)?", re.IGNORECASE)
    try:
        entries = sorted(directory.iterdir(), key=lambda p: p.name)
    except OSError:
        return None
    for entry in entries:
        if pattern.match(entry.name) and entry.is_file():
            return entry
    return None


# README section parser.  Each predicate looks at a single line.


def is_fence(line: str) -> bool:
    return line.lstrip().startswith(FENCE)


def is_heading(line: str) -> bool:
    return _HEADING.match(line) is not None


def is_link_line(line: str) -> bool:
    return _LINK_LINE.match(line) is not None


def is_indented(line: str) -> bool:
    return line.startswith("    ") and bool(line.strip())


def is_blank(line: str) -> bool:
    return not line.strip()


def license_body_start(lines: list[str], i: int) -> int | None:
    """Index of the first body line if lines[i] is a License heading."""
    line = lines[i]
    if _ATX_LICENSE.match(line):
        return i + 1
    if (
        line.strip().lower() == "license"
        and i + 1 < len(lines)
        and _SETEXT_UNDERLINE.match(lines[i + 1])
    ):
        return i + 2
    return None


def capture_section(lines: list[str], start: int) -> str | None:
    """Collect body lines from start up to the first terminator."""
    i = start
    while i < len(lines) and is_blank(lines[i]):
        i += 1
    if i >= len(lines):
        return None

    captured: list[str] = []
    if is_fence(lines[i]):
        # Fenced body: everything up to the closing fence.
        for line in lines[i + 1 :]:
            if is_fence(line):
                break
            captured.append(line)
    else:
        # A heading right after "License" means the section is empty. Any
        # other first line (often a license link or badge) belongs to it.
        if is_heading(lines[i]):
            return None
        body_indented = is_indented(lines[i])
        captured.append(lines[i])
        previous_blank = False
        for line in lines[i + 1 :]:
            if is_fence(line) or is_heading(line) or is_link_line(line):
                break
            if previous_blank and not body_indented and is_indented(line):
                break
            captured.append(line)
            previous_blank = is_blank(line)

    text = "\n".join(captured).strip("\n")
    return text if text.strip() else None


def extract_readme_license(readme: str) -> str | None:
    """Body of the first non-empty License section in a README, if any."""
    lines = readme.splitlines()
    for i in range(len(lines)):
        start = license_body_start(lines, i)
        if start is None:
            continue
        section = capture_section(lines, start)
        if section is not None:
            return section
    return None


def get_license_from_readme(directory: Path) -> str | None:
    readme_path = find_file_starting_with(directory, "readme")
    if readme_path is None:
        return None
    readme = read_text(readme_path)
    if readme is None:
        return None
    return extract_readme_license(readme)


def read_license_file(directory: Path) -> str | None:
    license_path = find_file_starting_with(directory, "license")
    if license_path is None:
        return None
    return read_text(license_path)


def get_license_from_path(directory: Path) -> str | None:
    """Best license text for a working copy, or None.

    An Apache LICENSE file yields to the README section when there is one;
    otherwise the LICENSE file wins and the README is the fallback.
    """
    readme_license = get_license_from_readme(directory)
    license_file_text = read_license_file(directory)
    if license_file_text is not None and _APACHE_LICENSE.search(license_file_text):
        return readme_license or license_file_text
    return license_file_text or readme_license


def resolve_direct_path(location: str, workspace: Workspace) -> Path:
    """Relative locations (./x, x/y) are taken from the working directory."""
    path = Path(location)
    if path.is_absolute():
        return path
    return workspace.working_dir / path


def resolve_license_text(source: DependencyDescriptor, workspace: Workspace) -> str | None:
    """License text for one descriptor, or None when nothing was found."""
    if source.is_repository:
        return get_license_from_path(workspace.repo_dir(source.location))
    return read_text(resolve_direct_path(source.location, workspace))
