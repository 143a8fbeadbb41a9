"""Process entry point: load config, wire the monitor into the web app and serve it."""

from __future__ import annotations

import logging

import structlog
import uvicorn

from page_monitor.browser import PlaywrightBrowserSession
from page_monitor.config import MonitorConfig, load_config
from page_monitor.monitor import PageMonitor
from page_monitor.web import create_app


logger = structlog.get_logger(__name__)


def configure_logging(level: str = "INFO") -> None:
    """Configure structured logging."""
    numeric_level = logging.getLevelName(str(level or "INFO").upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="ISO"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def build_monitor(config: MonitorConfig) -> PageMonitor:
    session = PlaywrightBrowserSession(config.user_data_dir, headless=config.headless)
    return PageMonitor(config, session)


def main() -> None:
    config = load_config()
    configure_logging(config.log_level)

    monitor = build_monitor(config)
    app = create_app(config, monitor)

    logger.info(
        "Starting page monitor",
        port=config.port,
        target=config.target_url,
        interval_seconds=round(config.check_interval_seconds),
        auto_checks=config.auto_checks_enabled,
        watch_token_configured=bool(config.watch_token),
    )
    uvicorn_level = config.log_level.lower()
    if uvicorn_level not in {"critical", "error", "warning", "info", "debug", "trace"}:
        uvicorn_level = "info"
    uvicorn.run(app, host=config.host, port=config.port, log_level=uvicorn_level)


if __name__ == "__main__":
    main()
