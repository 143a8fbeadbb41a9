from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator

import structlog
from fastapi import Depends, FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, Response
from fastapi.templating import Jinja2Templates
from starlette.exceptions import HTTPException as StarletteHTTPException

from page_monitor import __version__
from page_monitor.config import MonitorConfig
from page_monitor.monitor import TRIGGER_MANUAL, PageMonitor
from page_monitor.state import MonitorState
from page_monitor.web.auth import require_watch_token
from page_monitor.web.render import load_timezone, short_status_text, watch_view_context


logger = structlog.get_logger(__name__)

NO_STORE = {"Cache-Control": "no-store"}
USAGE_HINT = "Not found. Use /health, /status, /check, /watch/status, /watch/check, /watch/view\n"


def _watch_payload(state: MonitorState) -> dict[str, Any]:
    return {"ok": True, "resultsReady": state.results_ready, "state": state.to_dict()}


def create_app(config: MonitorConfig, monitor: PageMonitor) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await monitor.start()
        logger.info(
            "Monitor started",
            target=config.target_url,
            auto_checks=config.auto_checks_enabled,
            interval_seconds=config.check_interval_seconds,
        )
        try:
            yield
        finally:
            await monitor.stop()
            logger.info("Monitor stopped")

    app = FastAPI(title=config.app_name, version=__version__, lifespan=lifespan)
    app.state.config = config
    app.state.monitor = monitor
    app.state.display_tz = load_timezone(config.display_timezone)

    templates_dir = Path(__file__).parent / "templates"
    app.state.templates = Jinja2Templates(directory=str(templates_dir))

    @app.middleware("http")
    async def _guard(req: Request, call_next) -> Response:
        try:
            response = await call_next(req)
        except Exception as exc:
            logger.exception("Request handler failed", path=req.url.path)
            return PlainTextResponse(f"error: {exc}\n", status_code=500, headers=NO_STORE)
        response.headers["Cache-Control"] = "no-store"
        return response

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(req: Request, exc: StarletteHTTPException) -> PlainTextResponse:
        # Routes are GET-only; any other method is answered like an unknown path.
        if exc.status_code in (404, 405):
            return PlainTextResponse(USAGE_HINT, status_code=404)
        if exc.status_code == 401:
            logger.warning("Unauthorized watch request", path=req.url.path, token_present=bool(req.query_params.get("token")))
        return PlainTextResponse(f"{exc.detail}\n", status_code=exc.status_code)

    def _state_response(req: Request, state: MonitorState) -> Response:
        if req.query_params.get("format") == "json":
            return JSONResponse(_watch_payload(state))
        return PlainTextResponse(short_status_text(state, tz=app.state.display_tz))

    @app.get("/health")
    async def health() -> PlainTextResponse:
        return PlainTextResponse("ok\n")

    @app.get("/status")
    async def status() -> dict[str, Any]:
        return {"ok": True, "service": config.app_name, "state": monitor.get_state().to_dict()}

    @app.get("/check")
    async def check() -> dict[str, Any]:
        await monitor.run_check(TRIGGER_MANUAL)
        return {"ok": True, "state": monitor.get_state().to_dict()}

    @app.get("/watch/status", dependencies=[Depends(require_watch_token)])
    async def watch_status(req: Request) -> Response:
        return _state_response(req, monitor.get_state())

    @app.get("/watch/check", dependencies=[Depends(require_watch_token)])
    async def watch_check(req: Request) -> Response:
        await monitor.run_check(TRIGGER_MANUAL)
        return _state_response(req, monitor.get_state())

    @app.get("/watch/view", response_class=HTMLResponse, dependencies=[Depends(require_watch_token)])
    async def watch_view(req: Request) -> HTMLResponse:
        if req.query_params.get("check") == "1":
            await monitor.run_check(TRIGGER_MANUAL)
        context = watch_view_context(monitor.get_state(), config.watch_token, tz=app.state.display_tz)
        return app.state.templates.TemplateResponse(req, "watch.html", context)

    return app
