from __future__ import annotations

from pathlib import Path

import pytest


@pytest.fixture(autouse=True)
def config_path(tmp_path: Path, monkeypatch) -> Path:
    """Point the token file at a temp location and drop token env overrides."""
    path = tmp_path / "home" / ".config" / "pro" / "config.yml"
    monkeypatch.setenv("PRO_CONFIG", str(path))
    monkeypatch.delenv("PRO_GITHUB_TOKEN", raising=False)
    monkeypatch.delenv("PRO_GITLAB_TOKEN", raising=False)
    return path
