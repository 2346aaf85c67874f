"""Task body: file copy and exception folding."""

from __future__ import annotations

import pytest

from filecopy.worker.task import TaskResult, copy_file, run_task


class TestCopyFile:
    @pytest.mark.asyncio
    async def test_copies_bytes_and_creates_parent_dirs(self, tmp_path):
        src = tmp_path / "in.bin"
        src.write_bytes(b"\x00\x01payload" * 1000)
        dst = tmp_path / "nested" / "deeper" / "out.bin"

        await copy_file(str(src), str(dst))

        assert dst.read_bytes() == src.read_bytes()

    @pytest.mark.asyncio
    async def test_overwrites_existing_destination(self, tmp_path):
        src = tmp_path / "in.txt"
        src.write_text("new")
        dst = tmp_path / "out.txt"
        dst.write_text("old contents that are longer")

        await copy_file(str(src), str(dst))

        assert dst.read_text() == "new"

    @pytest.mark.asyncio
    async def test_missing_source_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            await copy_file(str(tmp_path / "nope"), str(tmp_path / "out"))


class TestRunTask:
    @pytest.mark.asyncio
    async def test_success(self):
        async def body(src, dst):
            return None

        assert await run_task(body, "/a", "/b") == TaskResult.success()

    @pytest.mark.asyncio
    async def test_exception_text_kept_verbatim(self):
        async def body(src, dst):
            raise OSError("disk full")

        result = await run_task(body, "/a", "/b")

        assert result.ok is False
        assert result.error == "disk full"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("exc, expected", [
        (PermissionError(), "PermissionError"),
        (RuntimeError(""), "RuntimeError"),
    ])
    async def test_empty_message_falls_back_to_class_name(self, exc, expected):
        async def body(src, dst):
            raise exc

        result = await run_task(body, "/a", "/b")

        assert result.error == expected

    @pytest.mark.asyncio
    async def test_real_copy_failure_is_described(self, tmp_path):
        missing = tmp_path / "missing.txt"

        result = await run_task(copy_file, str(missing), str(tmp_path / "out.txt"))

        assert result.ok is False
        assert "missing.txt" in result.error

    @pytest.mark.asyncio
    async def test_receives_paths(self):
        seen = []

        async def body(src, dst):
            seen.append((src, dst))

        await run_task(body, "/a", "/b")
        assert seen == [("/a", "/b")]
