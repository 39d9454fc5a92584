#!/usr/bin/env python3
"""
licenses-html: read a dependency list from a working directory, shallow-clone
every git repository it names, find each dependency's license text and write
one static HTML page with all of them to out/licenses.html.

Templates are looked up in <working_dir>/templates first and fall back to the
bundled defaults. Unresolved licenses and failed clones are reported on
stderr but never stop the run.
"""
from __future__ import annotations

import argparse
import html
import subprocess
import sys
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Sequence

from licenses_html.resolver import resolve_license_text
from licenses_html.sources import (
    DeclaredLicense,
    DependencyDescriptor,
    Workspace,
    load_sources,
)

FETCH_WORKERS = 4

UNRESOLVED_LICENSE_TYPE = "could not resolved"
NO_LICENSE_FOUND = "No license file was found."
NAME_PLACEHOLDER = "<!--NAME-->"
LICENSE_PLACEHOLDER = "<!--LICENSE-->"
OUTPUT_FILENAME = "licenses.html"

FETCH_CLONED = "cloned"
FETCH_CACHED = "cached"
FETCH_FAILED = "failed"


class TemplateNotFoundError(FileNotFoundError):
    """Neither the working directory nor the bundled set has the template."""


def get_license_type(declared: DeclaredLicense) -> str:
    """Human-readable label from declared license metadata."""
    if declared is None or declared == "":
        return UNRESOLVED_LICENSE_TYPE
    if isinstance(declared, str):
        return declared
    return ", ".join(declared)


def clone_repo(url: str, dest: Path) -> None:
    """Shallow clone url into dest."""
    subprocess.run(
        ["git", "clone", "--depth", "1", url, str(dest)],
        check=True,
        capture_output=True,
        text=True,
    )


def fetch_repository(source: DependencyDescriptor, workspace: Workspace) -> tuple[str, str | None]:
    """
    Make sure a working copy of source exists. Returns (status, error message).
    An existing non-empty directory is reused as-is; never raises.
    """
    dest = workspace.repo_dir(source.location)
    if dest.exists() and (not dest.is_dir() or any(dest.iterdir())):
        print(
            f"Using existing {dest}. Delete it to download the repo again.",
            file=sys.stderr,
        )
        return (FETCH_CACHED, None)
    print(f"git clone --depth 1 {source.location} {dest}", file=sys.stderr)
    try:
        clone_repo(source.location, dest)
    except subprocess.CalledProcessError as e:
        detail = (e.stderr or "").strip() or f"exit status {e.returncode}"
        return (
            FETCH_FAILED,
            f"Clone {source.name} ({source.location}): {detail}. "
            f"Check the URL, or delete {dest} and run again.",
        )
    except OSError as e:
        return (
            FETCH_FAILED,
            f"Clone {source.name} ({source.location}): {e!r}. Is git installed and on PATH?",
        )
    return (FETCH_CLONED, None)


def fetch_repositories(
    sources: Sequence[DependencyDescriptor],
    workspace: Workspace,
    errors: list[str],
) -> dict[Path, str]:
    """Fetch every repository-backed source once; return {dest: status}."""
    workspace.repos_dir.mkdir(parents=True, exist_ok=True)
    seen: set[Path] = set()
    deduped: list[DependencyDescriptor] = []
    for source in sources:
        if not source.is_repository:
            continue
        dest = workspace.repo_dir(source.location)
        if dest in seen:
            continue
        seen.add(dest)
        deduped.append(source)
    errors_lock = threading.Lock()
    statuses: dict[Path, str] = {}

    def _fetch_one(source: DependencyDescriptor) -> None:
        status, error = fetch_repository(source, workspace)
        with errors_lock:
            statuses[workspace.repo_dir(source.location)] = status
            if error is not None:
                errors.append(error)
                print(f"Warning: {error}", file=sys.stderr)

    with ThreadPoolExecutor(max_workers=FETCH_WORKERS) as executor:
        list(executor.map(_fetch_one, deduped))
    return statuses


def read_template(name: str, workspace: Workspace) -> str:
    """Template text from <working_dir>/templates, else the bundled copy."""
    candidates = [workspace.templates_dir / name, workspace.bundled_templates_dir / name]
    for path in candidates:
        try:
            return path.read_text(encoding="utf-8")
        except OSError:
            continue
    raise TemplateNotFoundError(
        f"Template {name!r} not found in {candidates[0].parent} or {candidates[1].parent}"
    )


def get_license_header(name: str, workspace: Workspace) -> str:
    template = read_template("license-header.html", workspace)
    return template.replace(NAME_PLACEHOLDER, html.escape(name))


def license_paragraphs(license_string: str) -> list[str]:
    """Split text into runs of non-blank lines; blank lines separate runs."""
    paragraphs: list[str] = []
    current: list[str] = []
    for line in license_string.splitlines():
        if line.strip():
            current.append(line)
        elif current:
            paragraphs.append("\n".join(current))
            current = []
    if current:
        paragraphs.append("\n".join(current))
    return paragraphs


def get_html_for_license_string(license_string: str, workspace: Workspace) -> str:
    license_html = "\n".join(
        f"<p>{html.escape(p, quote=False)}</p>" for p in license_paragraphs(license_string)
    )
    template = read_template("license.html", workspace)
    return template.replace(LICENSE_PLACEHOLDER, license_html, 1)


def render_report(
    sources: Sequence[DependencyDescriptor],
    workspace: Workspace,
    errors: list[str],
) -> str:
    """Build the whole page; sections follow the order of sources."""
    parts = [
        "<!DOCTYPE html>\n<html>\n<head>",
        read_template("head.html", workspace),
        "\n<style>",
        read_template("default-styles.css", workspace),
        read_template("styles.css", workspace),
        "</style>\n</head>\n<body><div class=\"content\">\n",
    ]

    header = read_template("header.html", workspace)
    if header.strip():
        parts.append(f"\t<header>\n\t{header}\n\t</header>\n\t<hr/>\n")

    for i, source in enumerate(sources):
        print(f"Generating HTML for {source.name}", file=sys.stderr)
        license_type = get_license_type(source.declared_license)
        license_string = resolve_license_text(source, workspace)

        if i > 0:
            parts.append("\t<hr>\n")
        parts.append(f"\t{get_license_header(source.name, workspace)}\n")
        parts.append(f"\t<p>License: {html.escape(license_type, quote=False)}</p>\n")
        if license_string is None:
            print(f"ERROR: Unable to find license for {source.name}", file=sys.stderr)
            errors.append(f"Unable to find license for {source.name}")
            parts.append(f'\t<div class="license">{NO_LICENSE_FOUND}</div>\n')
        else:
            license_html = get_html_for_license_string(license_string, workspace)
            parts.append(f'\t<div class="license">{license_html}\n</div>\n')

    parts.append("</div>\n")

    footer = read_template("footer.html", workspace)
    if footer.strip():
        parts.append(f"<footer>\n<hr>\n{footer}\n</footer>\n")
    parts.append("</body>\n</html>")
    return "".join(parts)


def write_report(page: str, workspace: Workspace) -> Path:
    """Write out/licenses.html; create out/ if needed. Returns path written."""
    workspace.out_dir.mkdir(parents=True, exist_ok=True)
    out_path = workspace.out_dir / OUTPUT_FILENAME
    out_path.write_text(page, encoding="utf-8")
    return out_path


def _print_errors(errors: list[str]) -> None:
    """Print all collected errors to stderr."""
    if not errors:
        return
    print(f"\nErrors ({len(errors)}):", file=sys.stderr)
    for err in errors:
        print(f"  - {err}", file=sys.stderr)


def generate_html(workspace: Workspace) -> tuple[Path, list[str]]:
    """
    Run the whole pipeline for one working directory.
    Returns (output path, errors). Source list and template problems raise.
    """
    errors: list[str] = []
    sources = load_sources(workspace)
    start = time.perf_counter()
    print("Cloning repos...", file=sys.stderr)
    statuses = fetch_repositories(sources, workspace, errors)
    outcomes = list(statuses.values())
    counts = {s: outcomes.count(s) for s in (FETCH_CLONED, FETCH_CACHED, FETCH_FAILED)}
    print(
        f"Repos: {counts[FETCH_CLONED]} cloned, {counts[FETCH_CACHED]} cached, "
        f"{counts[FETCH_FAILED]} failed.",
        file=sys.stderr,
    )
    print("Generating HTML...", file=sys.stderr)
    page = render_report(sources, workspace, errors)
    out_path = write_report(page, workspace)
    elapsed = time.perf_counter() - start
    print(f"Done in {elapsed:.1f}s.", file=sys.stderr)
    return (out_path, errors)


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="licenses-html",
        description=(
            "Clone the repos listed in WORKING_DIR/sources.json, find their "
            "licenses and write WORKING_DIR/out/licenses.html."
        ),
    )
    parser.add_argument(
        "working_dir",
        nargs="?",
        type=Path,
        default=None,
        help="Directory holding sources.json and optional templates/",
    )
    args = parser.parse_args(argv)
    if args.working_dir is None:
        print("Error: please pass a working directory", file=sys.stderr)
        parser.print_usage(sys.stderr)
        return 1
    workspace = Workspace(working_dir=args.working_dir)
    try:
        out_path, errors = generate_html(workspace)
    except (ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    _print_errors(errors)
    print(f"Wrote licenses to {out_path}", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
