# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

import os
import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

import yaml
from pydantic import ValidationError

from database_exporter.configuration.export_config import ExportDatabaseConfig
from database_exporter.utils.constants import DEFAULT_CONFIG_PATH
from database_exporter.utils.exceptions import ErrorCode, ExporterException
from database_exporter.utils.loggings import get_logger

logger = get_logger(__name__)

ENV_FIELDS = ("username", "password", "database", "host", "port")

CONFIG_TEMPLATE = """\
# Each table is one database to export, its name is used as the output
# directory and the catalog schema.
#
# database_type: sqlserver | postgres | mysql | sqlite
# Values like ${ENV_VAR} are read from the environment.

[example_postgres]
database_type = "postgres"
username = "reader"
password = "${EXAMPLE_POSTGRES_PASSWORD}"
database = "app"
host = "localhost"
port = 5432

# Per-table row caps, -1 means the table has no cap of its own
[example_postgres.override_limits]
audit_log = 1000

[[example_postgres.custom_queries]]
name = "active_users"
description = "Users that logged in during the last month"
query = "SELECT id, email FROM users WHERE last_login > now() - interval '30 days'"

[example_sqlite]
database_type = "sqlite"
database = "~/data/local.db"
"""


@dataclass
class ConfigLoadResult:
    """Valid entries by name, and the validation error of every rejected entry."""

    configs: Dict[str, ExportDatabaseConfig] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)


def parse_config_path(config_file: str = "") -> Path:
    config_path = Path(config_file or DEFAULT_CONFIG_PATH).expanduser()
    if not config_path.exists():
        raise ExporterException(
            code=ErrorCode.COMMON_FILE_NOT_FOUND,
            message=f"Configuration file not found: {config_path}. "
            f"Create one with `database-exporter init --path {config_path}`",
        )
    return config_path


def read_config_file(config_path: Path) -> Dict[str, Any]:
    try:
        if config_path.suffix.lower() in (".yml", ".yaml"):
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        else:
            with open(config_path, "rb") as f:
                data = tomllib.load(f)
    except (yaml.YAMLError, tomllib.TOMLDecodeError) as e:
        raise ExporterException(
            ErrorCode.COMMON_CONFIG_ERROR, message_args={"config_error": f"Unable to parse {config_path}: {e}"}
        ) from e
    if not isinstance(data, dict):
        raise ExporterException(
            ErrorCode.COMMON_CONFIG_ERROR,
            message_args={"config_error": f"{config_path} must map configuration names to database settings"},
        )
    return data


def parse_export_configs(data: Dict[str, Any]) -> ConfigLoadResult:
    """Validate every entry on its own, an invalid entry does not reject the others."""
    result = ConfigLoadResult()
    for name, entry in data.items():
        if not isinstance(entry, dict):
            result.errors[name] = "entry must be a table of database settings"
            continue
        entry = dict(entry)
        for key in ENV_FIELDS:
            if isinstance(entry.get(key), str):
                entry[key] = resolve_env(entry[key])
        try:
            result.configs[name] = ExportDatabaseConfig.model_validate(entry)
        except ValidationError as e:
            result.errors[name] = _format_validation_error(e)
    for name, error in result.errors.items():
        logger.error(f"Invalid configuration `{name}`, it will be skipped: {error}")
    return result


def load_export_configs(config_file: str = "") -> ConfigLoadResult:
    config_path = parse_config_path(config_file)
    logger.info(f"Loading configuration from {config_path}")
    return parse_export_configs(read_config_file(config_path))


def write_config_template(config_file: str = "") -> Path:
    """Write a commented example configuration, never overwriting an existing file."""
    config_path = Path(config_file or DEFAULT_CONFIG_PATH).expanduser()
    if config_path.exists():
        raise ExporterException(ErrorCode.COMMON_FILE_EXISTS, message_args={"file_name": str(config_path)})
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(CONFIG_TEMPLATE, encoding="utf-8")
    return config_path


def resolve_env(value: str) -> str:
    if not value or not isinstance(value, str):
        return value

    pattern = r"\${([^}]+)}"

    def replace_env(match):
        env_var = match.group(1)
        return os.getenv(env_var, f"<MISSING:{env_var}>")

    return re.sub(pattern, replace_env, value)


def _format_validation_error(e: ValidationError) -> str:
    messages = []
    for error in e.errors():
        location = ".".join(str(part) for part in error.get("loc", ()))
        message = error.get("msg", "")
        messages.append(f"{location}: {message}" if location else message)
    return "; ".join(messages)
