"""Process entrypoint: database wait and graceful shutdown wiring."""

from __future__ import annotations

import asyncio
import logging
import os
import signal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from filecopy.errors import ConnectivityError


class TestWaitForDb:
    @pytest.mark.asyncio
    async def test_returns_once_ping_succeeds(self):
        from filecopy.worker.worker_main import _wait_for_db

        store = MagicMock()
        store.ping = AsyncMock(side_effect=[ConnectivityError("down"), ConnectivityError("down"), None])

        await _wait_for_db(store, max_retries=5, delay=0)

        assert store.ping.await_count == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self):
        from filecopy.worker.worker_main import _wait_for_db

        store = MagicMock()
        store.ping = AsyncMock(side_effect=ConnectivityError("down"))

        with pytest.raises(RuntimeError, match="not accessible after 3 attempts"):
            await _wait_for_db(store, max_retries=3, delay=0)
        assert store.ping.await_count == 3


class TestMain:
    @pytest.mark.asyncio
    async def test_main_starts_configured_workers(self):
        from filecopy.config import settings
        from filecopy.worker import worker_main

        run_workers = AsyncMock()
        with (
            patch.object(worker_main, "_wait_for_db", AsyncMock()) as wait,
            patch.object(worker_main, "_install_signal_handlers") as install,
            patch("filecopy.worker.loop.run_workers", run_workers),
            patch("filecopy.utils.logger.setup_logger"),
        ):
            await worker_main.main()

        wait.assert_awaited_once()
        run_workers.assert_awaited_once()
        args, kwargs = run_workers.call_args
        assert args[0] == settings.WORKER_CONCURRENCY
        assert isinstance(args[1], asyncio.Event)
        install.assert_called_once_with(args[1])
        assert kwargs["idle_interval"] == settings.WORKER_IDLE_INTERVAL

    @pytest.mark.asyncio
    @pytest.mark.skipif(os.name == "nt", reason="add_signal_handler is Unix-only")
    async def test_sigterm_sets_stop_event(self):
        from filecopy.worker.worker_main import _install_signal_handlers

        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        _install_signal_handlers(stop)
        try:
            os.kill(os.getpid(), signal.SIGTERM)
            await asyncio.wait_for(stop.wait(), timeout=2)
        finally:
            loop.remove_signal_handler(signal.SIGINT)
            loop.remove_signal_handler(signal.SIGTERM)

        assert stop.is_set()

    @pytest.mark.asyncio
    async def test_main_logs_metrics_summary_on_shutdown(self, caplog):
        from filecopy.utils.metrics import record_job_claimed
        from filecopy.worker import worker_main

        record_job_claimed()
        with (
            patch.object(worker_main, "_wait_for_db", AsyncMock()),
            patch.object(worker_main, "_install_signal_handlers"),
            patch("filecopy.worker.loop.run_workers", AsyncMock()),
            patch("filecopy.utils.logger.setup_logger"),
            caplog.at_level(logging.INFO, logger="filecopy.worker"),
        ):
            await worker_main.main()

        summary_lines = [r.getMessage() for r in caplog.records if r.getMessage().startswith("Worker metrics:")]
        assert len(summary_lines) == 1
        assert "'jobs_claimed_total': 1" in summary_lines[0]


class TestSignalHandlers:
    @pytest.mark.asyncio
    async def test_missing_signal_support_is_logged(self, caplog):
        from filecopy.worker.worker_main import _install_signal_handlers

        loop = asyncio.get_running_loop()
        with (
            patch.object(loop, "add_signal_handler", side_effect=NotImplementedError),
            caplog.at_level(logging.WARNING, logger="filecopy.worker"),
        ):
            _install_signal_handlers(asyncio.Event())

        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 2
        assert all("graceful drain is unavailable" in r.getMessage() for r in warnings)
