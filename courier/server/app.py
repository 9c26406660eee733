"""Async HTTP API for the email scheduler.

Uses aiohttp's AppRunner/TCPSite for non-blocking start/stop. The server is
started only after the scheduler has finished recovery, so requests never
race the rebuild of the timer registry.
"""

from __future__ import annotations

import logging
from typing import Any, TypeVar

from aiohttp import web
from pydantic import BaseModel, ValidationError

from courier.config import settings
from courier.scheduler.engine import SchedulerEngine
from courier.scheduler.errors import DeliveryFailed, InvalidSchedule, TaskNotFound
from courier.server.schemas import ScheduleEmailRequest, SendEmailRequest

logger = logging.getLogger(__name__)

ENGINE_KEY = web.AppKey("engine", SchedulerEngine)

_M = TypeVar("_M", bound=BaseModel)


async def _parse_body(
    request: web.Request, model: type[_M]
) -> tuple[_M | None, web.Response | None]:
    """Validate the JSON body. Returns ``(parsed, None)`` or ``(None, error response)``."""
    try:
        payload: Any = await request.json()
    except ValueError:
        return None, web.json_response({"error": "invalid JSON"}, status=400)
    if not isinstance(payload, dict):
        return None, web.json_response({"error": "expected a JSON object"}, status=400)
    try:
        return model.model_validate(payload), None
    except ValidationError as exc:
        details = [
            {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
            for err in exc.errors()
        ]
        return None, web.json_response(
            {"error": "invalid request", "details": details}, status=400
        )


async def _schedule_email(request: web.Request) -> web.Response:
    """POST /schedule-email — persist and arm a deferred email."""
    req, error = await _parse_body(request, ScheduleEmailRequest)
    if error is not None:
        return error

    engine = request.app[ENGINE_KEY]
    try:
        task_id = await engine.schedule(
            req.email,
            req.subject,
            req.body,
            req.send_at,
            attachment=req.get_attachment(),
        )
    except InvalidSchedule as exc:
        logger.info("Schedule rejected for %s: %s", req.email, exc)
        return web.json_response({"error": str(exc)}, status=400)
    return web.json_response({"jobId": task_id})


async def _cancel_email(request: web.Request) -> web.Response:
    """DELETE /cancel-email/{job_id} — cancel a pending email."""
    task_id = request.match_info["job_id"]
    engine = request.app[ENGINE_KEY]
    try:
        await engine.cancel(task_id)
    except TaskNotFound:
        return web.json_response({"message": "Job not found"}, status=404)
    return web.json_response({"message": "Job cancelled successfully"})


async def _send_email(request: web.Request) -> web.Response:
    """POST /send-email — deliver immediately, without scheduling."""
    req, error = await _parse_body(request, SendEmailRequest)
    if error is not None:
        return error

    engine = request.app[ENGINE_KEY]
    try:
        await engine.send_now(
            req.email, req.subject, req.body, attachment=req.get_attachment()
        )
    except DeliveryFailed as exc:
        logger.warning("Immediate send to %s failed: %s", req.email, exc)
        return web.json_response({"error": str(exc)}, status=500)
    return web.json_response({"message": "Email sent"})


async def _health(request: web.Request) -> web.Response:
    """GET /health — basic liveness check."""
    engine = request.app[ENGINE_KEY]
    return web.json_response(
        {"status": "ok", "pending": len(engine.pending_ids())}
    )


def create_web_app(engine: SchedulerEngine, *, max_request_bytes: int | None = None) -> web.Application:
    """Build the aiohttp Application with routes."""
    app = web.Application(client_max_size=max_request_bytes or settings.max_request_bytes)
    app[ENGINE_KEY] = engine
    app.router.add_get("/health", _health)
    app.router.add_post("/schedule-email", _schedule_email)
    app.router.add_delete("/cancel-email/{job_id}", _cancel_email)
    app.router.add_post("/send-email", _send_email)
    return app


class ApiServer:
    """Manages the aiohttp server lifecycle."""

    def __init__(
        self,
        engine: SchedulerEngine,
        host: str | None = None,
        port: int | None = None,
    ) -> None:
        self.engine = engine
        self.host = host if host is not None else settings.http_host
        self.port = port if port is not None else settings.http_port
        self._runner: web.AppRunner | None = None

    async def start(self) -> None:
        """Start listening. The engine must already be running."""
        if not self.engine.running:
            msg = "Start the scheduler engine before the API server"
            raise RuntimeError(msg)
        app = create_web_app(self.engine)
        self._runner = web.AppRunner(app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        logger.info("API server listening on %s:%d", self.host, self.port)

    async def stop(self) -> None:
        """Shut down the server gracefully."""
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
            logger.info("API server stopped")
