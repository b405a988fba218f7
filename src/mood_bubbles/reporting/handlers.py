"""Run reporting — log and backend delivery of end-of-run summaries.

Architecture
~~~~~~~~~~~~
* **ReportHandler** — abstract base for delivery channels.
* **LogHandler / BackendHandler** — concrete channels.
* **ReportDispatcher** — fan-out with error-isolation, at most once per run.
* **create_dispatcher()** — factory that wires handlers from settings.

Reporting is fire-and-forget from the game's point of view: a failed
delivery is logged and reported in :class:`DispatchResult`, never raised.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import httpx
import structlog

if TYPE_CHECKING:
    from mood_bubbles.config import Settings
    from mood_bubbles.models import RunSummary

logger = structlog.get_logger(__name__)


# ── Dispatch result ───────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class DispatchResult:
    """Outcome summary for a single ``dispatch()`` call."""

    run_id: str | None
    sent: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    skipped: bool = False

    @property
    def all_ok(self) -> bool:
        return len(self.failed) == 0


# ── Abstract handler ──────────────────────────────────────────


class ReportHandler(ABC):
    """Contract for run-summary delivery channels."""

    name: str = "base"

    @abstractmethod
    async def send(self, summary: RunSummary) -> bool:
        """Deliver a summary.  Return ``True`` on success."""


# ── Concrete handlers ────────────────────────────────────────


class LogHandler(ReportHandler):
    """Write summaries to the structured log (always enabled)."""

    name = "log"

    async def send(self, summary: RunSummary) -> bool:
        logger.info(
            "report.log",
            run_id=summary.run_id,
            device=summary.device_id,
            mode=summary.mode.value,
            score=summary.score,
            popped=summary.bubbles_popped,
            accuracy=summary.accuracy,
        )
        return True


class BackendHandler(ReportHandler):
    """POST summary JSON to the leaderboard backend's ``/runs`` endpoint."""

    name = "backend"

    def __init__(
        self,
        base_url: str,
        *,
        secret: str = "",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = base_url.rstrip("/") + "/runs"
        self._secret = secret
        self._timeout = timeout
        self._transport = transport

    async def send(self, summary: RunSummary) -> bool:
        headers = {"X-Device-Id": summary.device_id}
        if self._secret:
            headers["X-API-Key"] = self._secret
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.post(self._url, json=summary.model_dump(mode="json"), headers=headers)
                resp.raise_for_status()
            logger.info("report.backend_sent", url=self._url, run_id=summary.run_id)
            return True
        except httpx.HTTPError as exc:
            logger.error("report.backend_failed", url=self._url, run_id=summary.run_id, error=str(exc))
            return False


# ── Dispatcher ────────────────────────────────────────────────


class ReportDispatcher:
    """Fan-out run summaries to registered handlers.

    Each handler is invoked independently; a failure in one channel never
    blocks delivery to the others.  A run id is delivered at most once.
    """

    def __init__(self, *, handlers: list[ReportHandler] | None = None) -> None:
        self._handlers: list[ReportHandler] = handlers or [LogHandler()]
        self._delivered: set[str] = set()
        self._tasks: set[asyncio.Task] = set()

    # ── Handler management ────────────────────────────────────

    def add_handler(self, handler: ReportHandler) -> None:
        self._handlers.append(handler)

    @property
    def handler_names(self) -> list[str]:
        return [h.name for h in self._handlers]

    # ── Dispatch ──────────────────────────────────────────────

    async def dispatch(self, summary: RunSummary) -> DispatchResult:
        """Send *summary* to every handler, collecting per-handler outcomes."""
        if summary.run_id in self._delivered:
            logger.debug("report.duplicate_skipped", run_id=summary.run_id)
            return DispatchResult(run_id=summary.run_id, skipped=True)
        self._delivered.add(summary.run_id)

        sent: list[str] = []
        failed: list[str] = []
        for handler in self._handlers:
            try:
                ok = await handler.send(summary)
                (sent if ok else failed).append(handler.name)
            except Exception:
                logger.exception("report.handler_error", handler=handler.name, run_id=summary.run_id)
                failed.append(handler.name)

        result = DispatchResult(run_id=summary.run_id, sent=sent, failed=failed)
        if result.failed:
            logger.warning("report.partial_failure", run_id=summary.run_id, failed=result.failed)
        return result

    def submit(self, summary: RunSummary) -> asyncio.Task:
        """Fire-and-forget :meth:`dispatch` on the running event loop."""
        task = asyncio.get_running_loop().create_task(self.dispatch(summary))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for submitted deliveries (used on shutdown)."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)


# ── Factory ───────────────────────────────────────────────────


def create_dispatcher(settings: Settings) -> ReportDispatcher:
    """Build a :class:`ReportDispatcher` wired from application settings.

    * **LogHandler** is always registered.
    * **BackendHandler** is added when ``settings.report_url`` is non-empty.
    """
    dispatcher = ReportDispatcher()
    if settings.report_url:
        dispatcher.add_handler(
            BackendHandler(
                settings.report_url,
                secret=settings.report_secret,
                timeout=settings.report_timeout,
            )
        )
    return dispatcher
