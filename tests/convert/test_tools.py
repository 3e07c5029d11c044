from __future__ import annotations

import sys

import pytest

from preserve_utils.convert import tools
from preserve_utils.convert.models import ConversionError


def test_run_tool_returns_completed_process():
    result = tools.run_tool(
        [sys.executable, "-c", "print('ok')"], timeout=30
    )

    assert result.returncode == 0
    assert result.stdout.strip() == "ok"


def test_run_tool_raises_on_non_zero_exit():
    command = [
        sys.executable,
        "-c",
        "import sys; sys.stderr.write('bad input'); sys.exit(3)",
    ]

    with pytest.raises(ConversionError, match="status 3: bad input"):
        tools.run_tool(command, timeout=30)


def test_run_tool_raises_on_timeout():
    command = [sys.executable, "-c", "import time; time.sleep(5)"]

    with pytest.raises(ConversionError, match="timed out"):
        tools.run_tool(command, timeout=0.2)


def test_run_tool_raises_when_executable_missing():
    with pytest.raises(ConversionError, match="Could not start"):
        tools.run_tool(["preserve-utils-no-such-tool"], timeout=5)


def test_tool_version_reads_first_line():
    command = [sys.executable, "-c", "print('gs 10.02\\nextra')"]

    assert tools.tool_version(command) == "gs 10.02"
    assert tools.tool_version(["preserve-utils-no-such-tool"]) == ""


def test_expect_output(tmp_path):
    empty = tmp_path / "empty.pdf"
    empty.write_bytes(b"")
    full = tmp_path / "full.pdf"
    full.write_bytes(b"%PDF")

    assert tools.expect_output(full, "gs") == full
    with pytest.raises(ConversionError):
        tools.expect_output(empty, "gs")
    with pytest.raises(ConversionError):
        tools.expect_output(tmp_path / "missing.pdf", "gs")
