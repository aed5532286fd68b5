"""Tests for Health endpoint."""

import pytest
from httpx import AsyncClient

import app.main as main_module
from app.core.config import settings


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient):
    """Health endpoint reports status, environment and version."""
    response = await client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert "env" in data
    assert "version" in data


class TestErrorTracking:
    @pytest.fixture
    def sentry_calls(self, monkeypatch):
        import sentry_sdk

        calls = []
        monkeypatch.setattr(sentry_sdk, "init", lambda **kwargs: calls.append(kwargs))
        return calls

    def test_skipped_without_dsn(self, monkeypatch, sentry_calls):
        monkeypatch.setattr(settings, "SENTRY_DSN", "")
        monkeypatch.setattr(settings, "ENV", "production")

        assert main_module.init_sentry() is False
        assert sentry_calls == []

    def test_skipped_in_dev(self, monkeypatch, sentry_calls):
        monkeypatch.setattr(settings, "SENTRY_DSN", "https://key@sentry.example.com/1")
        monkeypatch.setattr(settings, "ENV", "dev")

        assert main_module.init_sentry() is False
        assert sentry_calls == []

    def test_started_without_pii(self, monkeypatch, sentry_calls):
        monkeypatch.setattr(settings, "SENTRY_DSN", "https://key@sentry.example.com/1")
        monkeypatch.setattr(settings, "ENV", "production")

        assert main_module.init_sentry() is True
        assert len(sentry_calls) == 1
        assert sentry_calls[0]["dsn"] == "https://key@sentry.example.com/1"
        assert sentry_calls[0]["environment"] == "production"
        assert sentry_calls[0]["send_default_pii"] is False
