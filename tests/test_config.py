from pathlib import Path

import pytest
import yaml

from confluence_scraper import config as cfg


def write_config(tmp_path: Path, data: dict) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


def minimal_target(**overrides) -> dict:
    target = {"name": "wiki", "url": "https://confluence.example.com"}
    target.update(overrides)
    return target


def test_load_config_resolves_env(monkeypatch, tmp_path: Path):
    monkeypatch.setenv("CONFLUENCE_PASSWORD", "secret123")
    data = {
        "scraper": {"otelCollectorEndpoint": "http://collector:4317"},
        "targets": [
            minimal_target(username="admin", password="${CONFLUENCE_PASSWORD}")
        ],
    }
    loaded = cfg.load_config(write_config(tmp_path, data))
    target = loaded.targets[0]
    assert target.password == "secret123"
    assert target.httpTimeout == "1h"
    assert target.max_connections == 5


def test_target_defaults_and_derived_values():
    target = cfg.TargetConfig(**minimal_target(httpTimeout="5s", maxConnections=2))
    assert target.timeout_seconds == 5.0
    assert target.max_connections == 2
    assert target.tls.insecureSkipVerify is False


@pytest.mark.parametrize("value", [0, -3])
def test_non_positive_max_connections_falls_back_to_default(value):
    target = cfg.TargetConfig(**minimal_target(maxConnections=value))
    assert target.max_connections == cfg.DEFAULT_MAX_CONNECTIONS


@pytest.mark.parametrize("url", ["confluence.example.com", "ftp://host", "http://"])
def test_target_url_must_be_absolute_http(url):
    with pytest.raises(ValueError):
        cfg.TargetConfig(**minimal_target(url=url))


def test_target_rejects_bad_timeout_and_frequency():
    with pytest.raises(ValueError):
        cfg.TargetConfig(**minimal_target(httpTimeout="soon"))
    with pytest.raises(ValueError):
        cfg.TargetConfig(**minimal_target(frequency="often"))


def test_tls_key_requires_cert():
    with pytest.raises(ValueError):
        cfg.TlsConfig(keyFile="client.key")
    tls = cfg.TlsConfig(certFile="client.crt", keyFile="client.key")
    assert tls.certFile == "client.crt"


def test_duplicate_target_names_rejected():
    with pytest.raises(ValueError):
        cfg.AppConfig(
            scraper=cfg.ScraperSettings(otelCollectorEndpoint="http://collector"),
            targets=[cfg.TargetConfig(**minimal_target()), cfg.TargetConfig(**minimal_target())],
        )


def test_frequency_for_uses_default():
    app_config = cfg.AppConfig(
        scraper=cfg.ScraperSettings(
            otelCollectorEndpoint="http://collector", defaultFrequency="10min"
        ),
        targets=[
            cfg.TargetConfig(**minimal_target()),
            cfg.TargetConfig(**minimal_target(name="other", frequency="1h")),
        ],
    )
    assert app_config.frequency_for(app_config.targets[0]) == "10min"
    assert app_config.frequency_for(app_config.targets[1]) == "1h"


def test_unknown_keys_rejected(tmp_path: Path):
    data = {
        "scraper": {"otelCollectorEndpoint": "http://collector:4317"},
        "targets": [minimal_target(retries=3)],
    }
    with pytest.raises(ValueError, match="Invalid configuration"):
        cfg.load_config(write_config(tmp_path, data))


def test_load_config_missing_file_raises(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        cfg.load_config(tmp_path / "nope.yaml")
