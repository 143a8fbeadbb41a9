from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from urllib.parse import quote
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog

from page_monitor.state import MonitorState, MonitorStatus


logger = structlog.get_logger(__name__)

SOURCE_LABEL = "CLOUD"
EMPTY_VALUE = "—"


@dataclass(frozen=True)
class StatusTheme:
    background: str
    border: str
    title: str


_THEMES: dict[MonitorStatus, StatusTheme] = {
    MonitorStatus.READY: StatusTheme(
        background="linear-gradient(135deg,#0c6e4f,#0d8f6f)",
        border="rgba(123,245,189,0.7)",
        title="Результаты опубликованы",
    ),
    MonitorStatus.ERROR: StatusTheme(
        background="linear-gradient(135deg,#6d1f37,#86334b)",
        border="rgba(255,145,173,0.8)",
        title="Ошибка проверки",
    ),
    MonitorStatus.AUTH_REQUIRED: StatusTheme(
        background="linear-gradient(135deg,#2d4b8a,#24406d)",
        border="rgba(141,188,255,0.85)",
        title="Требуется авторизация",
    ),
}

_WAITING_THEME = StatusTheme(
    background="linear-gradient(135deg,#7b293d,#8f3552)",
    border="rgba(255,146,170,0.8)",
    title="Ожидание результатов",
)


def status_theme(status: MonitorStatus) -> StatusTheme:
    return _THEMES.get(status, _WAITING_THEME)


def load_timezone(name: str) -> tzinfo:
    cleaned = (name or "").strip()
    if not cleaned or cleaned.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(cleaned)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Timezone not found; falling back to UTC", tz=cleaned)
        return timezone.utc


def format_date_ru(value: datetime | None, tz: tzinfo = timezone.utc) -> str:
    """Format like ``18.10.2026, 14:03:05``; ``—`` when there is no timestamp."""
    if value is None:
        return EMPTY_VALUE
    return value.astimezone(tz).strftime("%d.%m.%Y, %H:%M:%S")


def results_label(state: MonitorState) -> str:
    return "ЕСТЬ" if state.results_ready else "НЕТ"


def short_status_text(state: MonitorState, note: str = "", tz: tzinfo = timezone.utc) -> str:
    lines = [
        f"Источник: {SOURCE_LABEL}",
        f"Результаты: {results_label(state)}",
        f"Статус: {state.status_label or 'Неизвестно'}",
        f"Проверено: {format_date_ru(state.last_checked_at, tz)}",
    ]
    if note:
        lines.append(f"Примечание: {note}")
    return "\n".join(lines) + "\n"


def watch_view_context(
    state: MonitorState,
    token: str,
    *,
    note: str = "",
    title: str = "Cloud статус ВсОШ",
    tz: tzinfo = timezone.utc,
) -> dict:
    """Template variables for ``watch.html``. Values are escaped by the template."""
    encoded_token = quote(token or "", safe="")
    return {
        "title": title,
        "theme": status_theme(state.status),
        "result_label": results_label(state),
        "status_label": state.status_label or "Неизвестно",
        "checked_at": format_date_ru(state.last_checked_at, tz),
        "message": state.message or EMPTY_VALUE,
        "note": note,
        "status_link": f"/watch/view?token={encoded_token}",
        "check_link": f"/watch/view?token={encoded_token}&check=1",
    }
