"""Configuration management for the page monitor."""

from __future__ import annotations

import math
import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field


DEFAULT_TARGET_URL = "https://my.sirius.online/activity-page/cpm:vsosh-region-law-2026"
DEFAULT_PENDING_TEXT = "Ожидание результатов"

# Lower bounds applied to values coming from the environment or a config file.
MIN_CHECK_INTERVAL_SECONDS = 5.0
MIN_CHECK_TIMEOUT_SECONDS = 5.0
MIN_NAVIGATION_SETTLE_SECONDS = 0.5


class MonitorConfig(BaseModel):
    """Immutable configuration for one monitored page."""

    model_config = {"frozen": True}

    app_name: str = Field(default="Vsosh Cloud Agent", description="Service name reported by /status")
    target_url: str = Field(default=DEFAULT_TARGET_URL, description="Page to monitor")
    pending_texts: tuple[str, ...] = Field(
        default=(DEFAULT_PENDING_TEXT,),
        description="Case-insensitive substrings meaning results are not published yet",
    )

    # Scheduling
    auto_checks_enabled: bool = Field(default=False, description="Run checks on a fixed interval")
    check_interval_seconds: float = Field(default=30.0, ge=0, description="Seconds between automatic checks")
    check_timeout_seconds: float = Field(default=25.0, ge=0, description="Navigation timeout in seconds")
    navigation_settle_seconds: float = Field(default=1.8, ge=0, description="Delay after navigation before reading the page")
    ready_confirm_checks: int = Field(default=2, ge=1, description="Consecutive clean checks required for READY")

    # Browser
    headless: bool = Field(default=True, description="Run Chromium headless")
    user_data_dir: str = Field(default=".data/playwright", description="Persistent browser profile directory")

    # HTTP surface
    watch_token: str = Field(default="", description="Shared secret for /watch/* routes")
    host: str = Field(default="0.0.0.0", description="Listen address")
    port: int = Field(default=8080, ge=1, description="Listen port")
    display_timezone: str = Field(default="Europe/Moscow", description="Timezone for human-readable timestamps")
    log_level: str = Field(default="INFO", description="Logging level")


def _env_bool(raw: str, default: bool) -> bool:
    s = str(raw).strip().lower()
    if s in {"1", "true", "yes", "y", "on"}:
        return True
    if s in {"0", "false", "no", "n", "off"}:
        return False
    return bool(default)


def _env_number(raw: str, default: float) -> float:
    try:
        value = float(str(raw).strip())
    except ValueError:
        return float(default)
    if not math.isfinite(value):
        return float(default)
    return value


def _finite(value: Any, default: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return float(default)
    return number if math.isfinite(number) else float(default)


def _env_ms_to_seconds(raw: str, default_seconds: float) -> float:
    return _env_number(raw, default_seconds * 1000.0) / 1000.0


def _split_pipe_list(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [item.strip() for item in str(raw).split("|") if item.strip()]


def _env_overrides() -> dict[str, Any]:
    """Collect config values from the environment, keeping only variables that are set."""
    defaults = MonitorConfig()
    overrides: dict[str, Any] = {}

    simple = {
        "app_name": "APP_NAME",
        "target_url": "TARGET_URL",
        "host": "CLOUD_HOST",
        "user_data_dir": "CLOUD_USER_DATA_DIR",
        "display_timezone": "CLOUD_DISPLAY_TZ",
        "log_level": "LOG_LEVEL",
    }
    for key, env_name in simple.items():
        value = os.getenv(env_name)
        if value is not None and value.strip():
            overrides[key] = value.strip()

    primary = os.getenv("PENDING_TEXT")
    variants = os.getenv("PENDING_TEXT_VARIANTS")
    if primary is not None or variants is not None:
        first = (primary or "").strip() or DEFAULT_PENDING_TEXT
        overrides["pending_texts"] = [first, *_split_pipe_list(variants)]

    raw = os.getenv("CLOUD_AUTO_CHECKS_ENABLED")
    if raw is not None:
        overrides["auto_checks_enabled"] = _env_bool(raw, defaults.auto_checks_enabled)
    raw = os.getenv("CLOUD_HEADLESS")
    if raw is not None:
        overrides["headless"] = _env_bool(raw, defaults.headless)

    ms_fields = {
        "check_interval_seconds": "CLOUD_CHECK_INTERVAL_MS",
        "check_timeout_seconds": "CLOUD_CHECK_TIMEOUT_MS",
        "navigation_settle_seconds": "CLOUD_NAVIGATION_SETTLE_MS",
    }
    for key, env_name in ms_fields.items():
        raw = os.getenv(env_name)
        if raw is not None:
            overrides[key] = _env_ms_to_seconds(raw, getattr(defaults, key))

    raw = os.getenv("READY_CONFIRM_CHECKS")
    if raw is not None:
        overrides["ready_confirm_checks"] = int(_env_number(raw, defaults.ready_confirm_checks))

    raw = os.getenv("CLOUD_WATCH_TOKEN")
    if raw is not None:
        overrides["watch_token"] = raw

    raw = os.getenv("PORT") or os.getenv("CLOUD_PORT")
    if raw is not None:
        overrides["port"] = int(_env_number(raw, defaults.port))

    return overrides


def _apply_bounds(data: dict[str, Any]) -> dict[str, Any]:
    out = dict(data)
    fields = MonitorConfig.model_fields
    # Unparseable or non-finite values (e.g. YAML .inf) fall back to the field default.
    minimums = {
        "check_interval_seconds": MIN_CHECK_INTERVAL_SECONDS,
        "check_timeout_seconds": MIN_CHECK_TIMEOUT_SECONDS,
        "navigation_settle_seconds": MIN_NAVIGATION_SETTLE_SECONDS,
    }
    for key, minimum in minimums.items():
        if key in out:
            out[key] = max(minimum, _finite(out[key], fields[key].default))
    for key in ("ready_confirm_checks", "port"):
        if key in out:
            out[key] = max(1, int(_finite(out[key], fields[key].default)))
    if "watch_token" in out:
        out["watch_token"] = str(out["watch_token"] or "").strip()
    if "pending_texts" in out:
        out["pending_texts"] = tuple(str(t).strip() for t in (out["pending_texts"] or []) if str(t).strip())
    if "user_data_dir" in out:
        out["user_data_dir"] = str(Path(str(out["user_data_dir"])).expanduser().resolve())
    return out


def load_config(config_path: Optional[str] = None) -> MonitorConfig:
    """Load configuration from an optional YAML file, then environment variables."""
    if config_path is None:
        config_path = os.getenv("PAGE_MONITOR_CONFIG", "config/page_monitor.yaml")

    config_data: dict[str, Any] = {}

    if os.path.exists(config_path):
        with open(config_path, "r", encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Config file must contain a mapping: {config_path}")
        config_data.update(loaded)

    config_data.update(_env_overrides())
    config_data.setdefault("user_data_dir", MonitorConfig.model_fields["user_data_dir"].default)

    return MonitorConfig(**_apply_bounds(config_data))
