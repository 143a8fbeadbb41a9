from __future__ import annotations

from pathlib import Path

import pytest

from page_monitor.config import MonitorConfig
from tests.fakes import TARGET_URL, FakeSession


@pytest.fixture
def config(tmp_path: Path) -> MonitorConfig:
    return MonitorConfig(
        app_name="Test Agent",
        target_url=TARGET_URL,
        pending_texts=("Ожидание результатов",),
        navigation_settle_seconds=0,
        check_timeout_seconds=7,
        check_interval_seconds=3600,
        ready_confirm_checks=2,
        watch_token="s3cret",
        user_data_dir=str(tmp_path / "profile"),
        display_timezone="UTC",
    )


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()
