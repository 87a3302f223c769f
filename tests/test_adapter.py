"""
Decoder Adapter Tests
=====================

The ffmpeg subprocess is replaced by a fake process object so the
classification and cleanup logic can be checked without ffmpeg.
"""

import asyncio

import pytest

from framecast.decode import FFmpegFrameDecoder
from framecast.decode.adapter import looks_like_not_found, stderr_tail
from framecast.models import OutcomeKind, VideoSource


REMOTE = VideoSource("https://cdn.example.com/clip.mp4")


class FakeProcess:
    """Stand-in for asyncio.subprocess.Process."""

    def __init__(self, stdout=b"", stderr=b"", returncode=0, hang=False):
        self._stdout = stdout
        self._stderr = stderr
        self._final_returncode = returncode
        self.hang = hang
        self.returncode = None
        self.killed = False
        self.waited = False

    async def communicate(self):
        if self.hang:
            await asyncio.sleep(3600)
        self.returncode = self._final_returncode
        return self._stdout, self._stderr

    def kill(self):
        self.killed = True
        self.returncode = -9

    async def wait(self):
        self.waited = True
        return self.returncode


@pytest.fixture
def fake_exec(monkeypatch):
    """Install a fake create_subprocess_exec; returns the call log."""
    state = {"process": FakeProcess(), "commands": []}

    async def _exec(*cmd, **kwargs):
        state["commands"].append(list(cmd))
        return state["process"]

    monkeypatch.setattr(asyncio, "create_subprocess_exec", _exec)
    return state


class TestCommand:
    """ffmpeg argv construction."""

    def test_build_command(self, dimensions):
        decoder = FFmpegFrameDecoder(ffmpeg_path="/usr/bin/ffmpeg")
        cmd = decoder.build_command(REMOTE, 2.5, dimensions)

        assert cmd[0] == "/usr/bin/ffmpeg"
        assert cmd[cmd.index("-ss") + 1] == "2.500"
        assert cmd[cmd.index("-i") + 1] == REMOTE.locator
        assert cmd[cmd.index("-vf") + 1] == "scale=4:2"
        assert cmd[cmd.index("-pix_fmt") + 1] == "rgb24"
        assert cmd[cmd.index("-f") + 1] == "rawvideo"
        assert cmd[-1] == "-"

    def test_negative_seek_clamped(self, dimensions):
        cmd = FFmpegFrameDecoder().build_command(REMOTE, -1.0, dimensions)
        assert cmd[cmd.index("-ss") + 1] == "0.000"

    def test_rejects_bad_timeout(self):
        with pytest.raises(ValueError):
            FFmpegFrameDecoder(timeout_seconds=0)


class TestDecodeFrame:
    """Outcome classification."""

    @pytest.mark.asyncio
    async def test_success(self, fake_exec, dimensions, scenario_bytes):
        fake_exec["process"] = FakeProcess(stdout=scenario_bytes)

        outcome = await FFmpegFrameDecoder().decode_frame(REMOTE, 1.0, dimensions)

        assert outcome.ok
        assert outcome.frame.to_bytes() == scenario_bytes
        assert fake_exec["process"].waited
        assert not fake_exec["process"].killed

    @pytest.mark.asyncio
    async def test_empty_output(self, fake_exec, dimensions):
        fake_exec["process"] = FakeProcess(stdout=b"")
        outcome = await FFmpegFrameDecoder().decode_frame(REMOTE, 99.0, dimensions)
        assert outcome.kind is OutcomeKind.EMPTY_OUTPUT

    @pytest.mark.asyncio
    async def test_size_mismatch(self, fake_exec, dimensions, scenario_bytes):
        fake_exec["process"] = FakeProcess(stdout=scenario_bytes[:-1])

        outcome = await FFmpegFrameDecoder().decode_frame(REMOTE, 0.0, dimensions)

        assert outcome.kind is OutcomeKind.SIZE_MISMATCH
        assert outcome.actual_bytes == 23

    @pytest.mark.asyncio
    async def test_nonzero_exit(self, fake_exec, dimensions):
        fake_exec["process"] = FakeProcess(
            stderr=b"[h264 @ 0x1] error while decoding\nInvalid data found when processing input\n",
            returncode=1,
        )

        outcome = await FFmpegFrameDecoder().decode_frame(REMOTE, 0.0, dimensions)

        assert outcome.kind is OutcomeKind.SUBPROCESS_ERROR
        assert outcome.message == "Invalid data found when processing input"

    @pytest.mark.asyncio
    async def test_remote_404(self, fake_exec, dimensions):
        fake_exec["process"] = FakeProcess(
            stderr=b"HTTP error 404 Not Found\n",
            returncode=1,
        )
        outcome = await FFmpegFrameDecoder().decode_frame(REMOTE, 0.0, dimensions)
        assert outcome.kind is OutcomeKind.SOURCE_NOT_FOUND

    @pytest.mark.asyncio
    async def test_missing_local_file(self, fake_exec, dimensions, tmp_path):
        missing = VideoSource(str(tmp_path / "missing.mp4"))

        outcome = await FFmpegFrameDecoder().decode_frame(missing, 0.0, dimensions)

        assert outcome.kind is OutcomeKind.SOURCE_NOT_FOUND
        assert fake_exec["commands"] == []

    @pytest.mark.asyncio
    async def test_existing_local_file(self, fake_exec, dimensions, tmp_path, scenario_bytes):
        clip = tmp_path / "clip.mp4"
        clip.write_bytes(b"\x00")
        fake_exec["process"] = FakeProcess(stdout=scenario_bytes)

        outcome = await FFmpegFrameDecoder().decode_frame(VideoSource(str(clip)), 0.0, dimensions)

        assert outcome.ok
        assert fake_exec["commands"][0][fake_exec["commands"][0].index("-i") + 1] == str(clip)

    @pytest.mark.asyncio
    async def test_timeout_kills_process(self, fake_exec, dimensions):
        process = FakeProcess(hang=True)
        fake_exec["process"] = process

        decoder = FFmpegFrameDecoder(timeout_seconds=0.05)
        outcome = await decoder.decode_frame(REMOTE, 0.0, dimensions)

        assert outcome.kind is OutcomeKind.TIMEOUT
        assert process.killed
        assert process.waited

    @pytest.mark.asyncio
    async def test_cancellation_kills_process(self, fake_exec, dimensions):
        process = FakeProcess(hang=True)
        fake_exec["process"] = process

        task = asyncio.create_task(
            FFmpegFrameDecoder(timeout_seconds=30).decode_frame(REMOTE, 0.0, dimensions)
        )
        await asyncio.sleep(0.01)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert process.killed

    @pytest.mark.asyncio
    async def test_missing_executable(self, monkeypatch, dimensions):
        async def _exec(*cmd, **kwargs):
            raise FileNotFoundError(cmd[0])

        monkeypatch.setattr(asyncio, "create_subprocess_exec", _exec)

        outcome = await FFmpegFrameDecoder(ffmpeg_path="nope").decode_frame(REMOTE, 0.0, dimensions)

        assert outcome.kind is OutcomeKind.SUBPROCESS_ERROR
        assert "nope" in outcome.message


class TestStderrHelpers:
    """Diagnostic parsing."""

    def test_stderr_tail(self):
        assert stderr_tail(b"first\nsecond\n\n") == "second"
        assert stderr_tail(b"", default="fallback") == "fallback"

    def test_not_found_markers(self):
        assert looks_like_not_found(b"clip.mp4: No such file or directory")
        assert looks_like_not_found(b"Server returned 404 Not Found")
        assert not looks_like_not_found(b"moov atom not found")
