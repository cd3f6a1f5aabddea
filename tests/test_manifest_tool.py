import pytest

from conftest import LOCAL_MANIFEST
from proofmark.services.provenance.errors import ExternalToolFailure, ToolTimeout
from proofmark.services.provenance.manifest_tool import ManifestToolRunner
from proofmark.services.provenance.tool_runner import ToolResult


class ScriptedRunner:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []

    async def run(self, binary, args, timeout):
        self.calls.append((binary, list(args), timeout))
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def media(tmp_path):
    path = tmp_path / "clip.mp4"
    path.write_bytes(b"media")
    return str(path)


@pytest.mark.asyncio
async def test_ok_report_is_returned_verbatim(media):
    runner = ScriptedRunner(ToolResult(0, LOCAL_MANIFEST, ""))

    outcome = await ManifestToolRunner(runner, "c2patool", 20).inspect(media)

    assert outcome.ok
    assert outcome.raw_json == LOCAL_MANIFEST
    assert runner.calls == [("c2patool", [media, "--info", "--json"], 20)]


@pytest.mark.asyncio
async def test_missing_file_never_runs_the_tool(tmp_path):
    runner = ScriptedRunner(ToolResult(0, "{}", ""))

    outcome = await ManifestToolRunner(runner, "c2patool", 20).inspect(str(tmp_path / "gone.mp4"))

    assert outcome.kind == "missing_file"
    assert runner.calls == []


@pytest.mark.asyncio
async def test_non_zero_exit_is_failed(media):
    runner = ScriptedRunner(ToolResult(2, "", "unsupported format"))

    outcome = await ManifestToolRunner(runner, "c2patool", 20).inspect(media)

    assert outcome.kind == "failed"
    assert outcome.detail == "unsupported format"
    assert not outcome.ok


@pytest.mark.asyncio
async def test_invalid_json_is_failed(media):
    outcome = await ManifestToolRunner(ScriptedRunner(ToolResult(0, "garbage", "")), "c2patool", 20).inspect(media)

    assert outcome.kind == "failed"
    assert outcome.detail.startswith("Invalid JSON output")


@pytest.mark.asyncio
async def test_timeout_is_reported(media):
    runner = ScriptedRunner(error=ToolTimeout("c2patool", 20))

    outcome = await ManifestToolRunner(runner, "c2patool", 20).inspect(media)

    assert outcome.kind == "timeout"


@pytest.mark.asyncio
async def test_unstartable_tool_is_failed(media):
    runner = ScriptedRunner(error=ExternalToolFailure("Could not start c2patool"))

    outcome = await ManifestToolRunner(runner, "c2patool", 20).inspect(media)

    assert outcome.kind == "failed"
