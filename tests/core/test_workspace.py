from __future__ import annotations

from pathlib import Path

import pytest

from preserve_utils.core import workspace


def test_ensure_workspace_creates_conversion_layout(tmp_path, monkeypatch):
    root = tmp_path / "data"
    monkeypatch.setenv(workspace.WORKSPACE_ENV, str(root))

    layout = workspace.ensure_workspace()

    assert layout.home == root.resolve()
    assert set(layout.directories) == {
        "config",
        "logs",
        "converted",
        "reports",
    }
    for name, path in layout.items():
        assert path.is_dir()
        assert layout.created[name] is True


def test_second_call_reports_existing_directories(tmp_path):
    env = {workspace.WORKSPACE_ENV: str(tmp_path / "again")}

    workspace.ensure_workspace(env=env)
    layout = workspace.ensure_workspace(env=env)

    assert not any(layout.created.values())


def test_path_argument_wins_over_env(tmp_path):
    env = {workspace.WORKSPACE_ENV: str(tmp_path / "from-env")}

    layout = workspace.ensure_workspace(env=env, path=tmp_path / "explicit")

    assert layout.home == (tmp_path / "explicit").resolve()
    assert not (tmp_path / "from-env").exists()


def test_create_false_leaves_disk_untouched(tmp_path):
    root = tmp_path / "deferred"

    layout = workspace.ensure_workspace(path=root, create=False)

    assert not root.exists()
    assert layout.path_for("reports") == root.resolve() / "reports"
    with pytest.raises(KeyError):
        layout.path_for("cache")


def test_file_in_place_of_workspace_is_rejected(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("x", encoding="utf-8")

    with pytest.raises(workspace.WorkspaceError, match="not a directory"):
        workspace.ensure_workspace(path=blocker)


def test_default_location_falls_back_to_tempdir(tmp_path, monkeypatch):
    default = tmp_path / "home" / ".preserve-utils-data"
    fallback = tmp_path / "tmp" / "preserve-utils-data"
    monkeypatch.setattr(workspace, "DEFAULT_WORKSPACE", default)
    monkeypatch.setattr(workspace, "_fallback_base", lambda: fallback)
    real_ensure_dir = workspace._ensure_dir

    def deny_default(path: Path) -> bool:
        if path == default.resolve():
            raise PermissionError("read-only home")
        return real_ensure_dir(path)

    monkeypatch.setattr(workspace, "_ensure_dir", deny_default)

    layout = workspace.ensure_workspace(env={})

    assert layout.home == fallback.resolve()


def test_explicit_location_never_falls_back(tmp_path, monkeypatch):
    monkeypatch.setattr(workspace, "_fallback_base", lambda: tmp_path / "fb")

    def deny(path: Path) -> bool:
        raise PermissionError("denied")

    monkeypatch.setattr(workspace, "_ensure_dir", deny)

    with pytest.raises(workspace.WorkspaceError):
        workspace.ensure_workspace(path=tmp_path / "explicit")
    assert not (tmp_path / "fb").exists()
