"""Server configuration loading helpers."""

from __future__ import annotations

from pathlib import Path

import tomllib

from pydantic import BaseModel, Field, ValidationError

from .sqlintel.models import SchemaField, TableMetadata

CONFIG_FILE = Path.home() / ".config" / "bqls" / "config.toml"


class SchemaFieldConfig(BaseModel):
    """Column definition of an offline table."""

    name: str
    type: str = "STRING"
    mode: str = ""
    description: str = ""
    fields: list[SchemaFieldConfig] = Field(default_factory=list)

    def to_schema_field(self) -> SchemaField:
        return SchemaField(
            name=self.name,
            type=self.type,
            mode=self.mode,
            description=self.description,
            fields=tuple(child.to_schema_field() for child in self.fields),
        )


class TableConfig(BaseModel):
    """Offline table definition used when BigQuery is not reachable."""

    description: str = ""
    schema_fields: list[SchemaFieldConfig] = Field(default_factory=list, alias="schema")

    model_config = {"populate_by_name": True}


class ServerConfig(BaseModel):
    """Shape of the configuration file."""

    project_id: str | None = None
    location: str | None = None
    dialect: str = "bigquery"
    log_level: str = "INFO"
    log_file: str | None = None
    diagnostics_delay: float = 0.0
    cache_metadata: bool = True
    tables: dict[str, TableConfig] = Field(default_factory=dict)

    def table_metadata(self) -> dict[str, TableMetadata]:
        """Return the offline tables keyed by their dotted path."""

        return {
            path: TableMetadata(
                full_id=path,
                description=table.description,
                schema=tuple(item.to_schema_field() for item in table.schema_fields),
            )
            for path, table in self.tables.items()
        }


def load_config(path: Path | None = None) -> ServerConfig:
    """Load configuration from disk; fall back to defaults if missing or malformed."""

    config_path = path or CONFIG_FILE
    try:
        with config_path.open("rb") as handle:
            raw = tomllib.load(handle)
    except FileNotFoundError:
        return ServerConfig()
    except (tomllib.TOMLDecodeError, OSError):
        return ServerConfig()

    try:
        return ServerConfig.model_validate(raw)
    except ValidationError:
        return ServerConfig()


__all__ = ["CONFIG_FILE", "SchemaFieldConfig", "ServerConfig", "TableConfig", "load_config"]
