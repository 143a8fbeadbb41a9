from __future__ import annotations

import hmac
from typing import Any

from fastapi import Depends, HTTPException, Request

from page_monitor.config import MonitorConfig


def get_config(req: Request) -> MonitorConfig:
    config: Any = getattr(req.app.state, "config", None)
    if not isinstance(config, MonitorConfig):
        raise RuntimeError("Monitor config not configured")
    return config


def _query_token(req: Request) -> str:
    return (req.query_params.get("token") or "").strip()


def tokens_match(provided: str, expected: str) -> bool:
    if not provided or not expected:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def require_watch_token(req: Request, config: MonitorConfig = Depends(get_config)) -> None:
    if not config.watch_token:
        raise HTTPException(status_code=500, detail="watch token is not configured")
    if not tokens_match(_query_token(req), config.watch_token):
        raise HTTPException(status_code=401, detail="unauthorized")
