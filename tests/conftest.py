# tests/conftest.py

from __future__ import annotations

from pathlib import Path

import pytest
from PIL import Image

from assetflow.config import DEFAULTS, deep_merge


class Project:
    """Temporary project tree with the default source layout."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def write(self, rel: str, content: str | bytes = "") -> Path:
        path = self.root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
        return path

    def image(self, rel: str, size=(32, 32), color=(200, 40, 40), fmt: str | None = None) -> Path:
        path = self.root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        Image.new("RGB", size, color).save(path, fmt)
        return path

    @property
    def dist(self) -> Path:
        return self.root / "dist"

    @property
    def assets(self) -> Path:
        return self.root / "dist" / "assets"

    def dist_files(self) -> list[str]:
        if not self.dist.exists():
            return []
        return sorted(p.relative_to(self.dist).as_posix() for p in self.dist.rglob("*") if p.is_file())


@pytest.fixture()
def project(tmp_path: Path) -> Project:
    return Project(tmp_path)


@pytest.fixture()
def params(project: Project) -> dict:
    """Default params rooted at the temporary project, no env overrides."""
    return deep_merge(DEFAULTS, {"project": {"root": str(project.root)}})
