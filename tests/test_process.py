from __future__ import annotations

import asyncio
import time

import pytest

from tubely.ingest.process import ToolError, ToolTimeout, run_tool
from tests.conftest import write_tool

NOISY = """#!/bin/sh
head -c 2000000 /dev/zero | tr '\\0' 'o'
head -c 2000000 /dev/zero | tr '\\0' 'e' >&2
exit 3
"""


def test_run_tool_drains_both_pipes(tmp_path):
    tool = write_tool(tmp_path, "noisy", NOISY)

    result = asyncio.run(run_tool([str(tool)], timeout_s=20))

    assert result.returncode == 3
    assert not result.ok
    assert len(result.stdout) == 2_000_000
    assert len(result.stderr) == 2_000_000
    assert set(result.stderr) == {"e"}


def test_run_tool_kills_child_on_deadline(tmp_path):
    tool = write_tool(tmp_path, "slow", "#!/bin/sh\nexec sleep 30\n")

    started = time.monotonic()
    with pytest.raises(ToolTimeout) as excinfo:
        asyncio.run(run_tool([str(tool)], timeout_s=0.2))

    assert time.monotonic() - started < 10
    assert excinfo.value.timeout_s == 0.2


def test_run_tool_reports_missing_binary(tmp_path):
    with pytest.raises(ToolError):
        asyncio.run(run_tool([str(tmp_path / "absent")]))
