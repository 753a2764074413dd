from __future__ import annotations

import pytest

from tests.fakes import StatusLog


@pytest.fixture()
def status_log() -> StatusLog:
    return StatusLog()


@pytest.fixture()
def isolated_workspace(tmp_path, monkeypatch):
    """Point the workspace (and therefore the DB) at a temp directory."""
    monkeypatch.setattr("archiver.config.settings.workspace_dir", tmp_path)
    return tmp_path
