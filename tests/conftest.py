from pathlib import Path
from typing import Dict, Union

import pytest


@pytest.fixture
def make_tree(tmp_path: Path):
    """Create files under ``tmp_path / "root"`` from a ``{relative path: content}`` dict.

    A key ending in "/" creates an empty directory.
    """

    def _make(files: Dict[str, Union[str, bytes]]) -> Path:
        root = tmp_path / "root"
        root.mkdir(exist_ok=True)
        for rel, content in files.items():
            path = root / rel
            if rel.endswith("/"):
                path.mkdir(parents=True, exist_ok=True)
                continue
            path.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, bytes):
                path.write_bytes(content)
            else:
                path.write_text(content, encoding="utf-8")
        return root

    return _make
