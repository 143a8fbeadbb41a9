from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class MonitorStatus(str, Enum):
    INITIALIZING = "initializing"
    PENDING = "pending"
    READY = "ready"
    AUTH_REQUIRED = "auth_required"
    VERIFYING = "verifying"
    ERROR = "error"


STATUS_LABELS: dict[MonitorStatus, str] = {
    MonitorStatus.INITIALIZING: "Инициализация",
    MonitorStatus.PENDING: "Ожидание результатов",
    MonitorStatus.READY: "Результаты опубликованы",
    MonitorStatus.AUTH_REQUIRED: "Нужна авторизация",
    MonitorStatus.VERIFYING: "Проверка/загрузка",
    MonitorStatus.ERROR: "Ошибка проверки",
}

MANUAL_MODE_LABEL = "Ручной режим"


def status_label(status: MonitorStatus) -> str:
    return STATUS_LABELS[MonitorStatus(status)]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class MonitorState:
    """
    One immutable snapshot of the monitor.

    The monitor never mutates a snapshot; every update swaps in a new object,
    so a reader holding a reference can never observe a half-applied update.
    """

    status: MonitorStatus
    status_label: str
    message: str
    check_count: int
    in_flight: bool
    last_checked_at: datetime | None
    next_check_at: datetime | None
    last_change_at: datetime
    last_error: str | None

    @classmethod
    def initial(cls, message: str = "Запуск cloud-монитора", now: datetime | None = None) -> "MonitorState":
        return cls(
            status=MonitorStatus.INITIALIZING,
            status_label=status_label(MonitorStatus.INITIALIZING),
            message=message,
            check_count=0,
            in_flight=False,
            last_checked_at=None,
            next_check_at=None,
            last_change_at=now or utc_now(),
            last_error=None,
        )

    @property
    def results_ready(self) -> bool:
        return self.status is MonitorStatus.READY

    def evolve(self, now: datetime | None = None, **changes: Any) -> "MonitorState":
        """Return a copy with ``changes`` applied; ``last_change_at`` moves only when the status changes."""
        if "status" in changes:
            changes["status"] = MonitorStatus(changes["status"])
            if changes["status"] is not self.status:
                changes["last_change_at"] = now or utc_now()
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "statusLabel": self.status_label,
            "message": self.message,
            "checkCount": self.check_count,
            "inFlight": self.in_flight,
            "lastCheckedAt": _iso(self.last_checked_at),
            "nextCheckAt": _iso(self.next_check_at),
            "lastChangeAt": _iso(self.last_change_at),
            "lastError": self.last_error,
        }
