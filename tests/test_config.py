"""Tests for ServerConfig loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from bqls import config as config_module
from bqls.config import ServerConfig, load_config
from bqls.sqlintel import SchemaField


def test_load_config_returns_defaults_when_missing(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config_module, "CONFIG_FILE", tmp_path / "config.toml")

    result = load_config()

    assert result == ServerConfig()
    assert result.dialect == "bigquery"
    assert result.cache_metadata is True


def test_load_config_reads_values(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config_path = tmp_path / "config.toml"
    config_path.write_text(
        """
project_id = "my-project"
location = "EU"
log_level = "debug"
diagnostics_delay = 0.25
cache_metadata = false

[tables."my-project.sales.orders"]
description = "Orders"

[[tables."my-project.sales.orders".schema]]
name = "id"
type = "INTEGER"
mode = "REQUIRED"

[[tables."my-project.sales.orders".schema]]
name = "customer"
type = "RECORD"
fields = [{ name = "email", type = "STRING", description = "Contact" }]
"""
    )
    monkeypatch.setattr(config_module, "CONFIG_FILE", config_path)

    result = load_config()

    assert result.project_id == "my-project"
    assert result.location == "EU"
    assert result.log_level == "debug"
    assert result.diagnostics_delay == 0.25
    assert result.cache_metadata is False
    metadata = result.table_metadata()["my-project.sales.orders"]
    assert metadata.full_id == "my-project.sales.orders"
    assert metadata.description == "Orders"
    assert metadata.schema[0] == SchemaField("id", "INTEGER", "REQUIRED")
    assert metadata.schema[1].fields == (SchemaField("email", "STRING", description="Contact"),)


def test_load_config_handles_toml_errors(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config_path = tmp_path / "config.toml"
    config_path.write_text("project_id = [unterminated")
    monkeypatch.setattr(config_module, "CONFIG_FILE", config_path)

    assert load_config() == ServerConfig()


def test_load_config_handles_invalid_values(tmp_path: Path) -> None:
    config_path = tmp_path / "config.toml"
    config_path.write_text('diagnostics_delay = "soon"')

    assert load_config(config_path) == ServerConfig()
