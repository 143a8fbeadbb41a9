from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from page_monitor.config import MonitorConfig
from page_monitor.monitor import PageMonitor
from page_monitor.web import create_app
from page_monitor.web.app import USAGE_HINT

from tests.fakes import CLEAN_PAGE, PENDING_PAGE, FakeSession


def _client(config: MonitorConfig, session: FakeSession) -> tuple[TestClient, PageMonitor]:
    monitor = PageMonitor(config, session)
    app = create_app(config, monitor)
    return TestClient(app), monitor


def test_health(config: MonitorConfig, session: FakeSession) -> None:
    client, _ = _client(config, session)
    with client:
        r = client.get("/health")
    assert r.status_code == 200
    assert r.text == "ok\n"
    assert r.headers["cache-control"] == "no-store"


def test_status_reports_manual_mode(config: MonitorConfig, session: FakeSession) -> None:
    client, _ = _client(config, session)
    with client:
        r = client.get("/status")
    assert r.status_code == 200
    body = r.json()
    assert body["ok"] is True
    assert body["service"] == "Test Agent"
    state = body["state"]
    assert state["status"] == "initializing"
    assert state["statusLabel"] == "Ручной режим"
    assert state["nextCheckAt"] is None
    assert state["checkCount"] == 0
    assert state["inFlight"] is False
    assert session.navigations == 0


def test_check_runs_one_manual_check(config: MonitorConfig) -> None:
    session = FakeSession(pages=[PENDING_PAGE])
    client, _ = _client(config, session)
    with client:
        r = client.get("/check")
    assert r.status_code == 200
    state = r.json()["state"]
    assert state["status"] == "pending"
    assert state["checkCount"] == 1
    assert state["lastError"] is None
    assert state["lastCheckedAt"].endswith("Z")
    assert session.navigations == 1


def test_lifespan_shutdown_releases_session(config: MonitorConfig) -> None:
    session = FakeSession(pages=[PENDING_PAGE])
    client, _ = _client(config, session)
    with client:
        client.get("/check")
        assert session.acquired is True
    assert session.close_calls == 1


@pytest.mark.parametrize("params", [{}, {"token": ""}, {"token": "wrong"}, {"token": "s3cret-extra"}])
def test_watch_routes_reject_bad_tokens(config: MonitorConfig, session: FakeSession, params: dict) -> None:
    client, monitor = _client(config, session)
    with client:
        for path in ("/watch/status", "/watch/check", "/watch/view"):
            r = client.get(path, params=params)
            assert r.status_code == 401
            assert r.text == "unauthorized\n"
    assert session.navigations == 0
    assert monitor.get_state().check_count == 0


def test_watch_routes_fail_without_configured_token(config: MonitorConfig, session: FakeSession) -> None:
    cfg = config.model_copy(update={"watch_token": ""})
    client, _ = _client(cfg, session)
    with client:
        r = client.get("/watch/status", params={"token": "anything"})
        # The monitor's own routes keep working.
        assert client.get("/status").status_code == 200
    assert r.status_code == 500
    assert r.text == "watch token is not configured\n"


def test_watch_status_plain_text(config: MonitorConfig, session: FakeSession) -> None:
    client, _ = _client(config, session)
    with client:
        r = client.get("/watch/status", params={"token": "s3cret"})
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/plain")
    assert r.text == (
        "Источник: CLOUD\n"
        "Результаты: НЕТ\n"
        "Статус: Ручной режим\n"
        "Проверено: —\n"
    )


def test_watch_status_accepts_padded_token(config: MonitorConfig, session: FakeSession) -> None:
    client, _ = _client(config, session)
    with client:
        r = client.get("/watch/status", params={"token": "  s3cret "})
    assert r.status_code == 200


def test_watch_check_json_reports_results_ready(config: MonitorConfig) -> None:
    session = FakeSession(pages=[CLEAN_PAGE, CLEAN_PAGE])
    client, _ = _client(config, session)
    with client:
        first = client.get("/watch/check", params={"token": "s3cret", "format": "json"}).json()
        assert first["ok"] is True
        assert first["resultsReady"] is False
        assert first["state"]["status"] == "verifying"

        second = client.get("/watch/check", params={"token": "s3cret", "format": "json"}).json()
        assert second["resultsReady"] is True
        assert second["state"]["status"] == "ready"
        assert second["state"]["checkCount"] == 2

        status = client.get("/watch/status", params={"token": "s3cret", "format": "json"}).json()
        assert status["resultsReady"] is True
        assert status["state"]["checkCount"] == 2

        text = client.get("/watch/status", params={"token": "s3cret"}).text
        assert "Результаты: ЕСТЬ" in text
        assert "Статус: Результаты опубликованы" in text


def test_watch_view_renders_card(config: MonitorConfig, session: FakeSession) -> None:
    client, _ = _client(config, session)
    with client:
        r = client.get("/watch/view", params={"token": "s3cret"})
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/html")
    assert "Ручной режим" in r.text
    assert "Обновить" in r.text
    assert "/watch/view?token=s3cret&amp;check=1" in r.text
    assert session.navigations == 0


def test_watch_view_check_param_triggers_check(config: MonitorConfig) -> None:
    session = FakeSession(pages=[PENDING_PAGE])
    client, monitor = _client(config, session)
    with client:
        r = client.get("/watch/view", params={"token": "s3cret", "check": "1"})
    assert r.status_code == 200
    assert "Результатов пока нет" in r.text
    assert monitor.get_state().check_count == 1


def test_watch_view_encodes_token_in_links(config: MonitorConfig, session: FakeSession) -> None:
    cfg = config.model_copy(update={"watch_token": "a b&c"})
    client, _ = _client(cfg, session)
    with client:
        r = client.get("/watch/view", params={"token": "a b&c"})
    assert r.status_code == 200
    assert "token=a%20b%26c" in r.text
    assert "token=a b&c" not in r.text


def test_unknown_path_returns_usage_hint(config: MonitorConfig, session: FakeSession) -> None:
    client, _ = _client(config, session)
    with client:
        r = client.get("/nope")
    assert r.status_code == 404
    assert r.text == USAGE_HINT


def test_handler_fault_returns_500_and_server_keeps_serving(
    config: MonitorConfig, session: FakeSession, monkeypatch: pytest.MonkeyPatch
) -> None:
    client, monitor = _client(config, session)

    def boom():
        raise RuntimeError("state exploded")

    with client:
        monkeypatch.setattr(monitor, "get_state", boom)
        r = client.get("/status")
        assert r.status_code == 500
        assert r.text == "error: state exploded\n"

        monkeypatch.undo()
        assert client.get("/health").status_code == 200


@pytest.mark.parametrize("method,path", [("POST", "/health"), ("DELETE", "/status"), ("PUT", "/watch/view")])
def test_other_methods_return_usage_hint(
    config: MonitorConfig, session: FakeSession, method: str, path: str
) -> None:
    client, _ = _client(config, session)
    with client:
        r = client.request(method, path, params={"token": "s3cret"})
    assert r.status_code == 404
    assert r.text == USAGE_HINT
    assert r.headers["cache-control"] == "no-store"
