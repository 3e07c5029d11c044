from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Iterator

import pytest

TESTS_DIR = Path(__file__).resolve().parent
ROOT = TESTS_DIR.parent
for extra in (TESTS_DIR, ROOT / "src"):
    if str(extra) not in sys.path:
        sys.path.insert(0, str(extra))

from fixtures import WorkspaceBuilder  # noqa: E402
from preserve_utils.convert.resolution import (  # noqa: E402
    FormatResolutionTable,
    SettingsEntry,
)

_CONFIGURED_LOGGERS = ("preserve_utils.convert",)


@pytest.fixture(autouse=True)
def _isolated_environment(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> Iterator[None]:
    """Point the workspace at tmp and drop PRESERVE_CONVERT_* settings."""

    monkeypatch.setenv("PRESERVE_UTILS_DATA_HOME", str(tmp_path / "ws"))
    for key in list(os.environ):
        if key.startswith("PRESERVE_CONVERT_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.delenv("PRESERVE_EMAIL_CONVERTER_JAR", raising=False)
    monkeypatch.chdir(tmp_path)
    yield
    for name in _CONFIGURED_LOGGERS:
        logger = logging.getLogger(name)
        for handler in list(logger.handlers):
            handler.close()
            logger.removeHandler(handler)


@pytest.fixture
def workspace(tmp_path: Path) -> WorkspaceBuilder:
    """Provide a helper bound to pytest's per-test tmp directory."""

    return WorkspaceBuilder(tmp_path / "inputs")


@pytest.fixture
def table() -> FormatResolutionTable:
    """A table seeded with Document/Image classes and a JPEG format."""

    seeded = FormatResolutionTable()
    seeded.seed(
        [
            SettingsEntry(class_name="Document", class_default="fmt/477"),
            SettingsEntry(
                class_name="Document",
                class_default="fmt/477",
                format_name="DOCX",
                format_codes=("fmt/412",),
            ),
            SettingsEntry(class_name="Image", class_default="fmt/13"),
            SettingsEntry(
                class_name="Image",
                class_default="fmt/13",
                format_name="JPEG",
                format_default="fmt/353",
                format_codes=("fmt/43", "fmt/44"),
            ),
            SettingsEntry(
                class_name="Image",
                class_default="fmt/13",
                format_name="TIFF",
                format_codes=("fmt/353",),
                keep_original=True,
            ),
        ]
    )
    return seeded
