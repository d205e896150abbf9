import pytest
from pydantic import ValidationError

from asyncquery.config.settings import Settings


class TestSettingsDefaults:
    def test_default_app_env(self) -> None:
        s = Settings()
        assert s.app_env == "dev"

    def test_default_db_port(self) -> None:
        s = Settings()
        assert s.db_port == 5432

    def test_default_worker_pool(self) -> None:
        s = Settings()
        assert s.worker_pool_size == 4
        assert s.worker_queue_size == 16

    def test_default_persistence_attempts(self) -> None:
        s = Settings()
        assert s.persistence_max_attempts == 3

    def test_default_job_poll_interval(self) -> None:
        s = Settings()
        assert s.job_poll_interval_seconds == 5

    def test_default_recovery_timing(self) -> None:
        s = Settings()
        assert s.processing_timeout_seconds == 7200
        assert s.recovery_interval_seconds == 60

    def test_default_backends(self) -> None:
        s = Settings()
        assert s.jsonapi_backend == "http"
        assert s.graphql_backend == "http"
        assert s.backend_timeout_seconds == 30


class TestSettingsFromEnv:
    def test_loads_app_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("APP_ENV", "production")
        s = Settings()
        assert s.app_env == "production"

    def test_loads_log_level(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        s = Settings()
        assert s.log_level == "DEBUG"

    def test_loads_db_host(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DB_HOST", "db.example.com")
        s = Settings()
        assert s.db_host == "db.example.com"

    def test_loads_worker_pool_size(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("WORKER_POOL_SIZE", "8")
        s = Settings()
        assert s.worker_pool_size == 8

    def test_loads_graphql_url(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GRAPHQL_URL", "https://elide.example.com/graphql")
        s = Settings()
        assert s.graphql_url == "https://elide.example.com/graphql"

    def test_loads_retry_delay(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PERSISTENCE_RETRY_BASE_DELAY_SECONDS", "0.5")
        s = Settings()
        assert s.persistence_retry_base_delay_seconds == 0.5


class TestSettingsValidation:
    def test_invalid_db_port_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DB_PORT", "not_a_number")
        with pytest.raises(ValidationError):
            Settings()

    def test_invalid_pool_size_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("WORKER_POOL_SIZE", "abc")
        with pytest.raises(ValidationError):
            Settings()
