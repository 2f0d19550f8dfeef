"""Tests for layered configuration loading (defaults < YAML < ENV < CLI)."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from schrodrive.infrastructure.config.load import load_config
from schrodrive.infrastructure.config.schema import AppConfig, GatewayConfig, split_csv

_ENV_NAMES = (
    "PROWLARR_URL",
    "PROWLARR_API_KEY",
    "JACKETT_URL",
    "JACKETT_API_KEY",
    "JACKETT_TIMEOUT_MS",
    "PROVIDERS",
    "TORBOX_API_KEY",
    "RD_ACCESS_TOKEN",
    "OVERSEERR_URL",
    "OVERSEERR_API_KEY",
    "OVERSEERR_AUTH",
    "POLL_INTERVAL_S",
    "RUN_POLLER",
    "INDEXER_PROVIDER",
    "LOG_LEVEL",
    "ENVIRONMENT",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
        monkeypatch.delenv(f"SCHRODRIVE_{name}", raising=False)


@pytest.fixture()
def yaml_config(tmp_path: Path) -> Path:
    config = {
        "environment": "prod",
        "indexer": {
            "provider": "prowlarr",
            "prowlarr": {
                "url": "http://prowlarr.local/",
                "api_key": "yaml-key",
                "categories": "2000,5000",
            },
        },
        "debrid": {"providers": ["realdebrid"], "rd_access_token": "yaml-token"},
        "logging": {"level": "DEBUG"},
    }
    path = tmp_path / "config.yaml"
    path.write_text(yaml.dump(config), encoding="utf-8")
    return path


class TestDefaults:
    def test_defaults(self) -> None:
        config = load_config()
        assert config.app_name == "schrodrive"
        assert config.environment == "dev"
        assert config.log_format == "console"
        assert config.indexer.provider == "auto"
        assert config.indexer.jackett.timeout_seconds == 10.0
        assert config.indexer.prowlarr.timeout_seconds == 120.0
        assert config.debrid.providers == ["torbox", "realdebrid"]
        assert config.overseerr.poll_interval_seconds == 30.0
        assert config.overseerr.processed_capacity == 1000
        assert config.services.run_webhook is True
        assert config.services.run_poller is False
        assert config.gateway.throttle_delays["torbox"] == 5.0


class TestYamlLayer:
    def test_yaml_overrides_defaults(self, yaml_config: Path) -> None:
        config = load_config(config_path=yaml_config)
        assert config.environment == "prod"
        assert config.log_format == "json"
        assert config.log_level == "DEBUG"
        assert config.indexer.provider == "prowlarr"
        assert config.indexer.prowlarr.url == "http://prowlarr.local"
        assert config.indexer.prowlarr.categories == ["2000", "5000"]
        assert config.debrid.providers == ["realdebrid"]
        assert config.debrid.rd_access_token == "yaml-token"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(config_path=tmp_path / "nope.yaml")

    def test_non_mapping_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ValueError):
            load_config(config_path=path)


class TestEnvLayer:
    def test_bare_names_accepted(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PROWLARR_URL", "http://env-prowlarr:9696")
        monkeypatch.setenv("PROWLARR_API_KEY", "env-key")
        monkeypatch.setenv("TORBOX_API_KEY", "tb")
        monkeypatch.setenv("PROVIDERS", "realdebrid, torbox")
        monkeypatch.setenv("RUN_POLLER", "true")
        monkeypatch.setenv("POLL_INTERVAL_S", "12")

        config = load_config()

        assert config.indexer.prowlarr.url == "http://env-prowlarr:9696"
        assert config.indexer.prowlarr.is_configured
        assert config.debrid.torbox_api_key == "tb"
        assert config.debrid.providers == ["realdebrid", "torbox"]
        assert config.services.run_poller is True
        assert config.overseerr.poll_interval_seconds == 12.0

    def test_prefixed_names_and_timeout_ms(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SCHRODRIVE_JACKETT_TIMEOUT_MS", "2500")
        monkeypatch.setenv("SCHRODRIVE_OVERSEERR_AUTH", "Bearer hook")

        config = load_config()

        assert config.indexer.jackett.timeout_seconds == 2.5
        assert config.overseerr.webhook_auth == "Bearer hook"

    def test_env_beats_yaml(self, monkeypatch: pytest.MonkeyPatch, yaml_config: Path) -> None:
        monkeypatch.setenv("PROWLARR_API_KEY", "env-key")
        config = load_config(config_path=yaml_config)
        assert config.indexer.prowlarr.api_key == "env-key"

    def test_dotenv_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        dotenv = tmp_path / ".env"
        dotenv.write_text("RD_ACCESS_TOKEN=from-dotenv\n", encoding="utf-8")
        try:
            config = load_config(dotenv_path=dotenv)
        finally:
            monkeypatch.delenv("RD_ACCESS_TOKEN", raising=False)
        assert config.debrid.rd_access_token == "from-dotenv"


class TestCliLayer:
    def test_cli_beats_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SCHRODRIVE_LOG_LEVEL", "ERROR")
        config = load_config(cli_overrides={"log_level": "WARNING", "log_format": "json"})
        assert config.log_level == "WARNING"
        assert config.log_format == "json"


class TestSchema:
    def test_gateway_cap_must_exceed_base(self) -> None:
        with pytest.raises(ValidationError):
            GatewayConfig(backoff_base_seconds=100, backoff_max_seconds=10)

    def test_unknown_debrid_provider_rejected(self) -> None:
        with pytest.raises(ValidationError):
            AppConfig.model_validate({"debrid": {"providers": "premiumize"}})

    def test_secrets_masked_in_dump(self) -> None:
        config = AppConfig.model_validate(
            {
                "debrid": {"torbox_api_key": "secret"},
                "indexer": {"jackett": {"api_key": "jk"}},
            }
        )
        dumped = config.to_sectioned_dict()
        assert dumped["debrid"]["torbox_api_key"] == "***"
        assert dumped["indexer"]["jackett"]["api_key"] == "***"
        assert dumped["logging"] == {"level": "INFO", "format": "console"}

    def test_split_csv(self) -> None:
        assert split_csv(" a, b,,c ") == ["a", "b", "c"]
        assert split_csv(None) == []
        assert split_csv([1, " 2 "]) == ["1", "2"]
