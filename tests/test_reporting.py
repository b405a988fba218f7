"""Tests for run reporting: dispatcher fan-out and backend delivery."""

from __future__ import annotations

import json

import httpx
import pytest

from mood_bubbles.config import Settings
from mood_bubbles.models import RunSummary
from mood_bubbles.reporting import ReportHandler, create_dispatcher
from mood_bubbles.reporting.handlers import BackendHandler, LogHandler, ReportDispatcher


class _Ok(ReportHandler):
    name = "ok"

    def __init__(self) -> None:
        self.count = 0

    async def send(self, summary: RunSummary) -> bool:
        self.count += 1
        return True


class _Refuses(ReportHandler):
    name = "refuses"

    async def send(self, summary: RunSummary) -> bool:
        return False


class _Explodes(ReportHandler):
    name = "explodes"

    async def send(self, summary: RunSummary) -> bool:
        raise RuntimeError("sink down")


# ── Dispatcher ───────────────────────────────────────────────


class TestReportDispatcher:
    def test_default_handler_is_log(self):
        assert ReportDispatcher().handler_names == ["log"]

    @pytest.mark.asyncio
    async def test_failures_are_isolated(self, run_summary):
        ok = _Ok()
        dispatcher = ReportDispatcher(handlers=[_Explodes(), _Refuses(), ok])
        result = await dispatcher.dispatch(run_summary)
        assert result.sent == ["ok"]
        assert result.failed == ["explodes", "refuses"]
        assert not result.all_ok
        assert ok.count == 1

    @pytest.mark.asyncio
    async def test_run_delivered_at_most_once(self, run_summary):
        ok = _Ok()
        dispatcher = ReportDispatcher(handlers=[ok])
        first = await dispatcher.dispatch(run_summary)
        second = await dispatcher.dispatch(run_summary)
        assert first.all_ok and not first.skipped
        assert second.skipped
        assert ok.count == 1

    @pytest.mark.asyncio
    async def test_submit_and_drain(self, run_summary):
        ok = _Ok()
        dispatcher = ReportDispatcher(handlers=[ok])
        task = dispatcher.submit(run_summary)
        await dispatcher.drain()
        assert task.done()
        assert task.result().sent == ["ok"]

    @pytest.mark.asyncio
    async def test_log_handler(self, run_summary):
        assert await LogHandler().send(run_summary) is True


class TestCreateDispatcher:
    def test_log_only_without_url(self):
        assert create_dispatcher(Settings(report_url="")).handler_names == ["log"]

    def test_backend_added_with_url(self):
        settings = Settings(report_url="https://scores.example.org", report_secret="s3cret")
        assert create_dispatcher(settings).handler_names == ["log", "backend"]


# ── Backend handler ──────────────────────────────────────────


class TestBackendHandler:
    @pytest.mark.asyncio
    async def test_posts_summary_with_secret(self, run_summary):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(201, json={"run_id": run_summary.run_id})

        backend = BackendHandler(
            "https://scores.example.org/",
            secret="s3cret",
            transport=httpx.MockTransport(handler),
        )
        assert await backend.send(run_summary) is True

        request = seen[0]
        assert request.method == "POST"
        assert request.url.path == "/runs"
        assert request.headers["X-API-Key"] == "s3cret"
        assert request.headers["X-Device-Id"] == run_summary.device_id
        body = json.loads(request.content)
        assert body["run_id"] == run_summary.run_id
        assert body["mode"] == "challenge"

    @pytest.mark.asyncio
    async def test_no_secret_no_header(self, run_summary):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(201)

        backend = BackendHandler("https://scores.example.org", transport=httpx.MockTransport(handler))
        await backend.send(run_summary)
        assert "X-API-Key" not in seen[0].headers

    @pytest.mark.asyncio
    async def test_server_error_reports_failure(self, run_summary):
        backend = BackendHandler(
            "https://scores.example.org",
            transport=httpx.MockTransport(lambda request: httpx.Response(500)),
        )
        assert await backend.send(run_summary) is False

    @pytest.mark.asyncio
    async def test_network_error_reports_failure(self, run_summary):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        backend = BackendHandler("https://scores.example.org", transport=httpx.MockTransport(handler))
        assert await backend.send(run_summary) is False
