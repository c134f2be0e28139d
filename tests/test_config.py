from __future__ import annotations

import json
from pathlib import Path

import pytest

from pgsetup.config import load_settings, settings_from_dict
from pgsetup.models import Flavor, PrimaryDescriptor
from pgsetup.services.errors import ConfigException


def _write(tmp_path: Path, content: str, name: str = "config.json") -> Path:
    path = tmp_path / name
    path.write_text(content)
    return path


def test_load_json_config_with_defaults(tmp_path) -> None:
    path = _write(tmp_path, json.dumps({"primary": {"address": "10.1.1.1", "port": 5432}}))

    settings = load_settings(path)

    assert settings.static_primary == PrimaryDescriptor(address="10.1.1.1", port=5432)
    assert settings.flavor is Flavor.SDC
    assert settings.database == "moray"
    assert settings.role == "moray"
    assert settings.admin_user == "postgres"
    assert settings.sentinel_path == Path("/var/tmp/.moray-pg-setup-done")
    assert settings.pool.max_connections == 4


def test_load_yaml_config_with_overrides(tmp_path) -> None:
    path = _write(
        tmp_path,
        "primary:\n"
        "  address: db.example.com\n"
        "  port: 6432\n"
        "database: buckets\n"
        "role: svc_role\n"
        "sentinel_path: /tmp/done\n"
        "pg:\n"
        "  max_connections: 2\n"
        "  query_timeout: 30\n",
        name="config.yml",
    )

    settings = load_settings(path, flavor=Flavor.MANTA)

    assert settings.flavor is Flavor.MANTA
    assert settings.database == "buckets"
    assert settings.role == "svc_role"
    assert settings.sentinel_path == Path("/tmp/done")
    assert settings.pool.max_connections == 2
    assert settings.pool.query_timeout == 30


def test_env_overrides_database_name(monkeypatch) -> None:
    monkeypatch.setenv("PGSETUP_DB_NAME", "moray_test")
    settings = settings_from_dict({"primary": {"address": "h", "port": 1}})
    assert settings.database == "moray_test"


def test_legacy_env_overrides_database_name(monkeypatch) -> None:
    monkeypatch.setenv("MORAY_DB_NAME", "moray_legacy")
    settings = settings_from_dict({"primary": {"address": "h", "port": 1}, "database": "buckets"})
    assert settings.database == "moray_legacy"


def test_new_env_name_wins_over_legacy(monkeypatch) -> None:
    monkeypatch.setenv("MORAY_DB_NAME", "moray_legacy")
    monkeypatch.setenv("PGSETUP_DB_NAME", "moray_test")
    settings = settings_from_dict({"primary": {"address": "h", "port": 1}})
    assert settings.database == "moray_test"


def test_env_database_name_is_validated(monkeypatch) -> None:
    monkeypatch.setenv("PGSETUP_DB_NAME", "bad name;")
    with pytest.raises(ConfigException):
        settings_from_dict({"primary": {"address": "h", "port": 1}})


@pytest.mark.parametrize(
    "raw",
    [
        {},
        {"primary": {"address": "h"}},
        {"primary": {"address": "h", "port": 70000}},
        {"primary": {"address": "h", "port": 5432}, "role": "moray; DROP TABLE x"},
        {"primary": {"address": "h", "port": 5432}, "pg": {"max_connections": 0}},
        ["not", "an", "object"],
    ],
)
def test_invalid_config_is_rejected(raw) -> None:
    with pytest.raises(ConfigException):
        settings_from_dict(raw)


def test_missing_file_is_config_error(tmp_path) -> None:
    with pytest.raises(ConfigException):
        load_settings(tmp_path / "absent.json")


def test_malformed_file_is_config_error(tmp_path) -> None:
    path = _write(tmp_path, "primary: [unclosed")
    with pytest.raises(ConfigException):
        load_settings(path)
