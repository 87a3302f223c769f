"""
Keep-Alive Tests
================
"""

import asyncio

import pytest
import requests

from framecast.keepalive import KeepAlivePinger, resolve_keepalive_url


class FakeResponse:
    def __init__(self, status_code=200):
        self.status_code = status_code
        self.ok = status_code < 400


class TestPingOnce:

    def test_success(self, monkeypatch):
        seen = []
        monkeypatch.setattr(
            requests, "get",
            lambda url, timeout: seen.append(url) or FakeResponse(),
        )
        pinger = KeepAlivePinger("https://frames.example/")

        assert pinger.ping_once()
        assert seen == ["https://frames.example/ping"]
        assert pinger.ping_count == 1

    def test_http_error_counted(self, monkeypatch):
        monkeypatch.setattr(requests, "get", lambda url, timeout: FakeResponse(503))
        pinger = KeepAlivePinger("https://frames.example")

        assert not pinger.ping_once()
        assert pinger.error_count == 1

    def test_connection_error_swallowed(self, monkeypatch):
        def _raise(url, timeout):
            raise requests.ConnectionError("down")

        monkeypatch.setattr(requests, "get", _raise)
        pinger = KeepAlivePinger("https://frames.example")

        assert not pinger.ping_once()
        assert pinger.error_count == 1


@pytest.mark.asyncio
async def test_run_pings_until_stopped(monkeypatch):
    monkeypatch.setattr(requests, "get", lambda url, timeout: FakeResponse())
    pinger = KeepAlivePinger("https://frames.example", interval_seconds=0.01)

    task = asyncio.create_task(pinger.run())
    await asyncio.sleep(0.1)
    await pinger.stop()
    await asyncio.wait_for(task, timeout=1.0)

    assert pinger.ping_count >= 1


class TestResolveUrl:

    def test_disabled_in_development(self):
        assert resolve_keepalive_url(False, None, "development", "https://x.example") is None

    def test_production_uses_external_url(self):
        assert resolve_keepalive_url(False, None, "production", "https://x.example") == "https://x.example"

    def test_explicit_url_wins(self):
        assert resolve_keepalive_url(True, "https://me.example", "development", None) == "https://me.example"

    def test_no_url(self):
        assert resolve_keepalive_url(True, None, "production", None) is None


@pytest.mark.asyncio
async def test_stop_before_start(monkeypatch):
    monkeypatch.setattr(requests, "get", lambda url, timeout: FakeResponse())
    pinger = KeepAlivePinger("https://frames.example", interval_seconds=0.01)

    task = asyncio.create_task(pinger.run())
    await pinger.stop()
    await asyncio.wait_for(task, timeout=0.5)

    assert pinger.ping_count == 0
