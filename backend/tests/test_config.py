# @TASK P0-T0.3 - pydantic-settings based application settings

import pytest

from quillnote.config import Settings
from quillnote.dependencies import build_mirror_backend
from quillnote.mirror_gateway.client import HttpMirrorClient
from quillnote.mirror_gateway.memory import InMemoryMirror


class TestSettings:
    def test_defaults(self):
        settings = Settings(_env_file=None)
        assert settings.is_memory_database
        assert settings.MIRROR_BACKEND == "memory"
        assert settings.AUTOSAVE_DEBOUNCE_SECONDS == 1.0
        assert settings.ENFORCE_OWNERSHIP is True

    def test_sync_urls_get_async_drivers(self):
        assert Settings(_env_file=None, DATABASE_URL="sqlite:///:memory:").async_database_url.startswith(
            "sqlite+aiosqlite://"
        )
        pg = Settings(_env_file=None, DATABASE_URL="postgresql://u:p@db/q")
        assert pg.async_database_url == "postgresql+asyncpg://u:p@db/q"
        assert not pg.is_memory_database

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("MIRROR_MAX_ATTEMPTS", "5")
        monkeypatch.setenv("ENFORCE_OWNERSHIP", "false")
        settings = Settings(_env_file=None)
        assert settings.MIRROR_MAX_ATTEMPTS == 5
        assert settings.ENFORCE_OWNERSHIP is False


class TestMirrorBackendSelection:
    def test_memory_and_none(self):
        assert isinstance(build_mirror_backend(Settings(_env_file=None)), InMemoryMirror)
        assert build_mirror_backend(Settings(_env_file=None, MIRROR_BACKEND="none")) is None

    def test_http_requires_url(self):
        with pytest.raises(ValueError):
            build_mirror_backend(Settings(_env_file=None, MIRROR_BACKEND="http"))

    def test_http(self):
        backend = build_mirror_backend(
            Settings(_env_file=None, MIRROR_BACKEND="http", MIRROR_URL="http://mirror.local", MIRROR_API_KEY="k")
        )
        assert isinstance(backend, HttpMirrorClient)
