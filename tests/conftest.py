from __future__ import annotations

import json
from pathlib import Path

import pytest

from licenses_html.sources import Workspace

MIT_TEXT = """MIT License

Copyright (c) 2016 Example Author

Permission is hereby granted, free of charge, to any person obtaining a copy
of this software and associated documentation files (the "Software").
"""

APACHE_TEXT = """                                 Apache License
                           Version 2.0, January 2004
                        http://www.apache.org/licenses/

   TERMS AND CONDITIONS FOR USE, REPRODUCTION, AND DISTRIBUTION
"""


@pytest.fixture
def workspace(tmp_path: Path) -> Workspace:
    return Workspace(working_dir=tmp_path)


def write_files(directory: Path, files: dict[str, str]) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    for name, content in files.items():
        (directory / name).write_text(content, encoding="utf-8")
    return directory


def write_sources(working_dir: Path, sources: list[dict]) -> Path:
    path = working_dir / "sources.json"
    path.write_text(json.dumps(sources), encoding="utf-8")
    return path
