from __future__ import annotations

import sys

import pytest

from preserve_utils import cli


@pytest.fixture(autouse=True)
def fixed_version(monkeypatch):
    def fake_version(name: str) -> str:
        assert name == "preserve-utils"
        return "0.0-test"

    monkeypatch.setattr(cli.metadata, "version", fake_version)


def test_no_args_prints_usage_and_fails(capsys):
    code = cli.main([])

    out = capsys.readouterr().out
    assert code == 2
    assert "Usage: preserve" in out
    assert "Available commands:" in out


@pytest.mark.parametrize("flag", ["-h", "--help", "help"])
def test_help_variants(flag, capsys):
    assert cli.main([flag]) == 0
    assert "Usage: preserve" in capsys.readouterr().out


@pytest.mark.parametrize("flag", ["-V", "--version", "version"])
def test_version_variants(flag, capsys):
    assert cli.main([flag]) == 0
    assert capsys.readouterr().out.strip() == "0.0-test"


def test_version_without_distribution(monkeypatch, capsys):
    def missing(name: str) -> str:
        raise cli.metadata.PackageNotFoundError(name)

    monkeypatch.setattr(cli.metadata, "version", missing)

    assert cli.main(["version"]) == 0
    assert capsys.readouterr().out.strip() == "unknown"


def test_list_shows_every_command(capsys):
    assert cli.main(["list"]) == 0

    out = capsys.readouterr().out
    for name in ("init", "convert", "converters"):
        assert name in out


def test_help_for_command(capsys):
    assert cli.main(["help", "convert"]) == 0
    assert "preserve convert --help" in capsys.readouterr().out


def test_help_for_unknown_command(capsys):
    assert cli.main(["help", "transcribe"]) == 2
    assert "Unknown command 'transcribe'" in capsys.readouterr().err


def test_unknown_command(capsys):
    assert cli.main(["quiz"]) == 2
    assert "Unknown command 'quiz'" in capsys.readouterr().err


def test_dispatch_restores_argv_and_passes_args(monkeypatch):
    seen = {}

    def fake_main(argv):
        seen["argv"] = argv
        seen["sys_argv"] = list(sys.argv)
        return 7

    fake_module = type(sys)("fake_convert_cli")
    fake_module.main = fake_main
    monkeypatch.setitem(sys.modules, "preserve_utils.convert.cli", fake_module)
    before = list(sys.argv)

    code = cli.main(["converters", "--help"])

    assert code == 7
    assert seen["argv"] == ["converters", "--help"]
    assert seen["sys_argv"][0] == "preserve converters"
    assert sys.argv == before


@pytest.mark.parametrize(
    ("exit_code", "expected"), [(None, 0), (3, 3), ("boom", 1)]
)
def test_system_exit_is_normalized(monkeypatch, exit_code, expected):
    def fake_main(argv):
        raise SystemExit(exit_code)

    fake_module = type(sys)("fake_init_cli")
    fake_module.main = fake_main
    monkeypatch.setitem(
        sys.modules, "preserve_utils.workspace.cli", fake_module
    )

    assert cli.main(["init"]) == expected


def test_init_runs_workspace_command(tmp_path, capsys):
    assert cli.main(["init"]) == 0
    assert "Workspace ready" in capsys.readouterr().out
    assert (tmp_path / "ws" / "converted").is_dir()
