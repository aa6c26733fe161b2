"""Tests for MutexConfig and object store selection"""

import logging
from unittest.mock import Mock

import pytest

import cloud_mutex.store.gcs as gcs_module
import cloud_mutex.store.s3 as s3_module
from cloud_mutex.core.config import ENV_STORE_BACKEND, LogConfig, MutexConfig
from cloud_mutex.core.exceptions import ConfigurationError, StoreConnectionError
from cloud_mutex.store.factory import create_object_store, resolve_backend_name
from cloud_mutex.store.filesystem import FilesystemObjectStore

requires_fcntl = pytest.mark.skipif(
    not FilesystemObjectStore.is_supported(), reason="fcntl not available on this platform"
)


@pytest.fixture(autouse=True)
def _no_backend_override(monkeypatch):
    monkeypatch.delenv(ENV_STORE_BACKEND, raising=False)


class TestMutexConfig:
    """MutexConfig defaults, validation and environment overrides"""

    def test_defaults(self):
        config = MutexConfig()

        assert config.bucket == "mutex"
        assert config.acquire_timeout == 10.0
        assert config.initial_retry_delay == 0.001
        assert config.backend == "gcs"
        assert config.create_timeout == 50.0
        assert config.delete_timeout == 10.0
        assert config.validate() is config

    def test_with_bucket(self):
        config = MutexConfig(acquire_timeout=3.0)

        assert config.with_bucket(None) is config
        other = config.with_bucket("locks")
        assert other.bucket == "locks"
        assert other.acquire_timeout == 3.0
        assert config.bucket == "mutex"

    @pytest.mark.parametrize(
        ("overrides", "field"),
        [
            ({"bucket": ""}, "bucket"),
            ({"bucket": "   "}, "bucket"),
            ({"acquire_timeout": -1.0}, "acquire_timeout"),
            ({"delete_timeout": float("inf")}, "delete_timeout"),
            ({"initial_retry_delay": 0.0}, "initial_retry_delay"),
        ],
    )
    def test_validate_rejects_out_of_range_values(self, overrides, field):
        with pytest.raises(ConfigurationError) as exc_info:
            MutexConfig(**overrides).validate()

        assert exc_info.value.field == field

    def test_to_dict_lists_every_setting(self):
        data = MutexConfig(bucket="locks", s3_region="eu-west-1").to_dict()

        assert data["bucket"] == "locks"
        assert data["s3_region"] == "eu-west-1"
        assert data["file_root"] == ".mutex"

    def test_from_env_applies_overrides(self):
        env = {
            "MUTEX_BUCKET": "locks",
            "MUTEX_ACQUIRE_TIMEOUT": "2.5",
            "MUTEX_RETRY_DELAY": "0.01",
            "MUTEX_STORE_BACKEND": " S3 ",
            "MUTEX_S3_REGION": "eu-west-1",
            "MUTEX_S3_ENDPOINT_URL": "http://localhost:9000",
            "MUTEX_FILE_ROOT": "/var/lib/mutex",
        }

        config = MutexConfig.from_env(env)

        assert config.bucket == "locks"
        assert config.acquire_timeout == 2.5
        assert config.initial_retry_delay == 0.01
        assert config.backend == "s3"
        assert config.s3_region == "eu-west-1"
        assert config.s3_endpoint_url == "http://localhost:9000"
        assert config.file_root == "/var/lib/mutex"
        assert config.gcs_project is None

    @pytest.mark.parametrize("value", ["abc", "-1", "nan", "inf"])
    def test_from_env_ignores_invalid_timeout(self, value, caplog):
        with caplog.at_level(logging.WARNING, logger="cloud_mutex.core.config"):
            config = MutexConfig.from_env({"MUTEX_ACQUIRE_TIMEOUT": value})

        assert config.acquire_timeout == 10.0
        assert "Ignoring invalid MUTEX_ACQUIRE_TIMEOUT" in caplog.text

    def test_from_env_ignores_non_positive_retry_delay(self, caplog):
        with caplog.at_level(logging.WARNING, logger="cloud_mutex.core.config"):
            config = MutexConfig.from_env({"MUTEX_RETRY_DELAY": "0"})

        assert config.initial_retry_delay == 0.001
        assert "Ignoring invalid MUTEX_RETRY_DELAY" in caplog.text

    def test_from_env_blank_values_keep_defaults(self):
        config = MutexConfig.from_env({"MUTEX_BUCKET": "  ", "MUTEX_STORE_BACKEND": ""})

        assert config.bucket == "mutex"
        assert config.backend == "gcs"

    def test_from_env_reads_dotenv_from_working_directory(self, tmp_path, monkeypatch):
        # Register the variable so monkeypatch removes whatever load_dotenv sets.
        monkeypatch.setenv("MUTEX_BUCKET", "placeholder")
        monkeypatch.delenv("MUTEX_BUCKET")
        (tmp_path / ".env").write_text("MUTEX_BUCKET=from-dotenv\n", encoding="utf-8")
        monkeypatch.chdir(tmp_path)

        config = MutexConfig.from_env()

        assert config.bucket == "from-dotenv"

    def test_from_env_process_environment_wins_over_dotenv(self, tmp_path, monkeypatch):
        monkeypatch.setenv("MUTEX_BUCKET", "from-env")
        (tmp_path / ".env").write_text("MUTEX_BUCKET=from-dotenv\n", encoding="utf-8")
        monkeypatch.chdir(tmp_path)

        assert MutexConfig.from_env().bucket == "from-env"


class TestStoreFactory:
    """Backend resolution and construction"""

    def test_resolve_known_backends(self):
        assert resolve_backend_name("GCS") == "gcs"
        assert resolve_backend_name("s3") == "s3"
        assert resolve_backend_name(" file ") == "file"

    def test_resolve_defaults_to_gcs(self):
        assert resolve_backend_name() == "gcs"

    def test_resolve_unknown_backend_falls_back_with_warning(self, caplog):
        with caplog.at_level(logging.WARNING, logger="cloud_mutex.store.factory"):
            assert resolve_backend_name("azure") == "gcs"

        assert "Unknown store backend 'azure'" in caplog.text

    @requires_fcntl
    def test_env_selects_filesystem_backend(self, tmp_path, monkeypatch):
        monkeypatch.setenv(ENV_STORE_BACKEND, "file")

        store = create_object_store(MutexConfig(file_root=str(tmp_path / "locks")))
        try:
            assert isinstance(store, FilesystemObjectStore)
            assert (tmp_path / "locks").is_dir()
        finally:
            store.close()

    @requires_fcntl
    def test_explicit_backend_wins_over_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv(ENV_STORE_BACKEND, "s3")

        store = create_object_store(MutexConfig(file_root=str(tmp_path)), backend_name="file")
        try:
            assert store.name == "file"
        finally:
            store.close()

    def test_env_wins_over_config_backend(self, monkeypatch):
        fake_store = Mock()
        fake_store.name = "s3"
        factory = Mock(return_value=fake_store)
        monkeypatch.setattr(s3_module, "S3ObjectStore", factory)
        monkeypatch.setenv(ENV_STORE_BACKEND, "s3")

        config = MutexConfig(backend="file", s3_region="eu-west-1", s3_endpoint_url="http://minio:9000")
        assert create_object_store(config) is fake_store

        factory.assert_called_once_with(region="eu-west-1", endpoint_url="http://minio:9000", request_timeout=50.0)

    def test_unknown_backend_uses_gcs(self, monkeypatch):
        fake_store = Mock()
        fake_store.name = "gcs"
        factory = Mock(return_value=fake_store)
        monkeypatch.setattr(gcs_module, "GCSObjectStore", factory)

        assert create_object_store(MutexConfig(gcs_project="proj"), backend_name="azure") is fake_store
        factory.assert_called_once_with(project="proj")

    def test_connection_errors_pass_through_unchanged(self, monkeypatch):
        error = StoreConnectionError("creates storage client error", operation="storage.Client")
        monkeypatch.setattr(gcs_module, "GCSObjectStore", Mock(side_effect=error))

        with pytest.raises(StoreConnectionError) as exc_info:
            create_object_store(MutexConfig())

        assert exc_info.value is error

    def test_other_failures_are_wrapped(self, monkeypatch):
        monkeypatch.setattr(s3_module, "S3ObjectStore", Mock(side_effect=ValueError("Invalid endpoint")))

        with pytest.raises(StoreConnectionError) as exc_info:
            create_object_store(MutexConfig(backend="s3"))

        assert exc_info.value.operation == "open s3 store"
        assert isinstance(exc_info.value.original_error, ValueError)
        assert isinstance(exc_info.value.__cause__, ValueError)


def test_log_config_from_env():
    config = LogConfig.from_env({"LOG_LEVEL": " debug ", "LOG_FORMAT": "JSON"})

    assert config.level == "DEBUG"
    assert config.log_format == "json"
    assert LogConfig.from_env({}) == LogConfig()
