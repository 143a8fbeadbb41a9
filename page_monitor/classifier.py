"""Classification of a rendered page into a monitor status."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable

from page_monitor.config import MonitorConfig
from page_monitor.state import MonitorStatus


_WHITESPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class PatternSet:
    """Ordered, case-insensitive phrase patterns compiled once."""

    name: str
    patterns: tuple[str, ...]
    _compiled: tuple[re.Pattern[str], ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        compiled = tuple(re.compile(p, re.IGNORECASE) for p in self.patterns)
        object.__setattr__(self, "_compiled", compiled)

    def first_match(self, text: str) -> str | None:
        for source, pattern in zip(self.patterns, self._compiled):
            if pattern.search(text):
                return source
        return None

    def matches(self, text: str) -> bool:
        return self.first_match(text) is not None


CHALLENGE_PATTERNS = PatternSet(
    name="challenge",
    patterns=(
        r"ваш браузер не смог пройти проверку",
        r"enable javascript",
        r"js.?challenge",
        r"проверку браузера",
    ),
)

AUTH_TEXT_PATTERNS = PatternSet(
    name="auth",
    patterns=(
        r"авторизац",
        r"войти",
        r"войдите",
        r"sign in",
        r"log in",
        r"login",
    ),
)

AUTH_URL_MARKERS: tuple[str, ...] = ("/login", "/auth")

MESSAGE_CHALLENGE = "Сработала anti-bot проверка браузера"
MESSAGE_AUTH_REQUIRED = "На cloud-сервере нужна авторизация в Sirius"
MESSAGE_PENDING = "Результатов пока нет"
MESSAGE_READY = "Факт публикации результатов подтвержден"


@dataclass(frozen=True)
class Classification:
    status: MonitorStatus
    message: str
    streak: int


def normalize_text(text: str | None) -> str:
    return _WHITESPACE_RE.sub(" ", str(text or "")).strip()


def _has_pending_text(lower_text: str, pending_texts: Iterable[str]) -> bool:
    for value in pending_texts:
        needle = str(value or "").strip().lower()
        if needle and needle in lower_text:
            return True
    return False


def _is_auth_url(url: str | None) -> bool:
    lower_url = str(url or "").lower()
    return any(marker in lower_url for marker in AUTH_URL_MARKERS)


def evaluate_page(text: str | None, url: str | None, config: MonitorConfig, streak: int) -> Classification:
    """
    Classify page text/URL. First match wins:

    1. anti-bot challenge text  -> VERIFYING, streak kept
    2. login URL or auth text   -> AUTH_REQUIRED, streak kept
    3. configured pending text  -> PENDING, streak reset
    4. anything else            -> streak + 1; VERIFYING until the streak
                                   reaches ``ready_confirm_checks``, then READY
    """
    normalized = normalize_text(text)

    if CHALLENGE_PATTERNS.matches(normalized):
        return Classification(MonitorStatus.VERIFYING, MESSAGE_CHALLENGE, streak)

    if _is_auth_url(url) or AUTH_TEXT_PATTERNS.matches(normalized):
        return Classification(MonitorStatus.AUTH_REQUIRED, MESSAGE_AUTH_REQUIRED, streak)

    if _has_pending_text(normalized.lower(), config.pending_texts):
        return Classification(MonitorStatus.PENDING, MESSAGE_PENDING, 0)

    streak += 1
    threshold = config.ready_confirm_checks
    if streak < threshold:
        return Classification(
            MonitorStatus.VERIFYING,
            f"Подтверждение публикации ({streak}/{threshold})",
            streak,
        )
    return Classification(MonitorStatus.READY, MESSAGE_READY, streak)
