from __future__ import annotations

import json
import subprocess
from pathlib import Path

import pytest

from preserve_utils.convert import manifest
from preserve_utils.convert.manifest import ManifestError
from preserve_utils.convert.models import ConversionError


def test_native_manifest_resolves_relative_paths(workspace, table):
    path = workspace.manifest(
        [
            {
                "path": "docs/a.docx",
                "format_code": "fmt/412",
                "class_name": "Document",
                "format_name": "DOCX",
            },
            {"path": "/abs/b.jpg", "format_code": "fmt/43"},
        ]
    )

    first, second = manifest.load_manifest(path, table)

    assert first.path == (workspace.root / "docs" / "a.docx").resolve()
    assert first.class_name == "Document"
    assert first.format_name == "DOCX"
    assert second.path == Path("/abs/b.jpg").resolve()
    assert second.class_name == "Image"
    assert second.format_name == "JPEG"


def test_siegfried_manifest_uses_first_match(workspace, table):
    path = workspace.write(
        "sf.json",
        json.dumps(
            {
                "siegfried": "1.11.0",
                "files": [
                    {
                        "filename": "scan.jpg",
                        "filesize": 10,
                        "matches": [
                            {
                                "ns": "pronom",
                                "id": "fmt/43",
                                "format": "JPEG File Interchange Format",
                            }
                        ],
                    },
                    {
                        "filename": "mystery.bin",
                        "matches": [{"id": "UNKNOWN", "format": ""}],
                    },
                ],
            }
        ),
    )

    scan, mystery = manifest.load_manifest(path, table)

    assert scan.format_code == "fmt/43"
    assert (scan.class_name, scan.format_name) == ("Image", "JPEG")
    assert mystery.format_code == "UNKNOWN"
    assert mystery.class_name == manifest.UNKNOWN_CLASS
    assert mystery.format_name == ""


def test_siegfried_format_label_used_when_code_unknown(workspace, table):
    path = workspace.write(
        "sf.json",
        json.dumps(
            {
                "files": [
                    {
                        "filename": "clip.wav",
                        "matches": [{"id": "fmt/141", "format": "WAVE"}],
                    }
                ]
            }
        ),
    )

    (clip,) = manifest.load_manifest(path, table)

    assert clip.class_name == manifest.UNKNOWN_CLASS
    assert clip.format_name == "WAVE"


def test_manifest_without_table_keeps_given_names(workspace):
    path = workspace.manifest(
        [{"path": "a.jpg", "format_code": "fmt/43", "class_name": "Image"}]
    )

    (item,) = manifest.load_manifest(path)

    assert item.class_name == "Image"
    assert item.format_name == ""


def test_missing_manifest(tmp_path):
    with pytest.raises(ManifestError, match="not found"):
        manifest.load_manifest(tmp_path / "nope.json")


def test_invalid_json(workspace):
    path = workspace.write("broken.json", "{not json")

    with pytest.raises(ManifestError, match="Invalid JSON"):
        manifest.load_manifest(path)


@pytest.mark.parametrize(
    "payload",
    [
        [],
        {"files": {}},
        {"files": ["a.jpg"]},
        {"files": [{"format_code": "fmt/43"}]},
        {"files": [{"path": "a.jpg"}]},
        {"files": [{"path": "a.jpg", "format_code": 43}]},
        {"files": [{"filename": "a.jpg", "matches": []}]},
        {"files": [{"filename": "a.jpg", "matches": [{"format": "x"}]}]},
    ],
)
def test_parse_manifest_rejects_bad_shapes(tmp_path, payload):
    with pytest.raises(ManifestError):
        manifest.parse_manifest(payload, base_dir=tmp_path)


def test_siegfried_identifier_parses_output(monkeypatch, tmp_path):
    captured = {}

    def fake_run_tool(command, *, timeout):
        captured["command"] = command
        captured["timeout"] = timeout
        stdout = json.dumps(
            {"files": [{"filename": command[-1], "matches": [{"id": "fmt/477"}]}]}
        )
        return subprocess.CompletedProcess(command, 0, stdout, "")

    monkeypatch.setattr(manifest, "run_tool", fake_run_tool)
    identify = manifest.siegfried_identifier(timeout=30)

    assert identify(tmp_path / "out.pdf") == "fmt/477"
    assert captured["command"][:2] == ["sf", "-json"]
    assert captured["timeout"] == 30


def test_siegfried_identifier_rejects_garbage(monkeypatch, tmp_path):
    monkeypatch.setattr(
        manifest,
        "run_tool",
        lambda command, *, timeout: subprocess.CompletedProcess(
            command, 0, "not json", ""
        ),
    )

    with pytest.raises(ConversionError):
        manifest.siegfried_identifier()(tmp_path / "out.pdf")
