"""
Configuration models for the Supabase Migrator.

This module defines Pydantic models for the source and destination
projects and for each pipeline stage, plus the loader that builds a
MigrationConfig from a YAML/JSON file and environment overrides.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
from urllib.parse import urlparse

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from supabase_migrator.core.exceptions import ConfigurationError
from supabase_migrator.models.session import Stage


# Environment variable -> (project side, field)
ENV_OVERRIDES = {
    "SOURCE_DB_URL": ("source", "db_url"),
    "SOURCE_PROJECT_URL": ("source", "url"),
    "SOURCE_SERVICE_KEY": ("source", "service_key"),
    "SOURCE_PROJECT_REF": ("source", "project_ref"),
    "SUPABASE_ACCESS_TOKEN": ("source", "access_token"),
    "DEST_DB_URL": ("destination", "db_url"),
    "DEST_PROJECT_URL": ("destination", "url"),
    "DEST_SERVICE_KEY": ("destination", "service_key"),
}


class ProjectConfig(BaseModel):
    """Connection settings for one Supabase project."""
    url: str = Field(..., description="Project API base URL")
    service_key: str
    db_url: str
    project_ref: Optional[str] = None
    access_token: Optional[str] = None

    @field_validator('url')
    @classmethod
    def url_must_be_http(cls, v):
        parsed = urlparse(v)
        if parsed.scheme not in ('http', 'https') or not parsed.netloc:
            raise ValueError(f'Project URL must be an http(s) URL: {v}')
        return v.rstrip('/')

    @field_validator('db_url')
    @classmethod
    def db_url_must_be_postgres(cls, v):
        if urlparse(v).scheme not in ('postgres', 'postgresql'):
            raise ValueError('Database URL must use the postgres:// or postgresql:// scheme')
        return v

    @field_validator('service_key')
    @classmethod
    def service_key_must_not_be_empty(cls, v):
        if not v or not v.strip():
            raise ValueError('Service key cannot be empty')
        return v.strip()


class DumpConfig(BaseModel):
    """Settings for the dump/restore tooling."""
    work_dir: str = "."
    supabase_bin: str = "supabase"
    psql_bin: str = "psql"
    history_schema: str = "supabase_migrations"
    keep_artifacts: bool = True


class StorageConfig(BaseModel):
    """Settings for the object transfer stage."""
    page_size: int = Field(default=1000, ge=0)  # 0 = single bulk listing call
    max_concurrency: int = Field(default=1, ge=1, le=32)
    preserve_visibility: bool = True
    timeout: float = Field(default=60.0, gt=0)


class SecretsConfig(BaseModel):
    """Settings for the encryption root key migration."""
    management_api_url: str = "https://api.supabase.com"
    root_key_path: str = "/etc/postgresql-custom/pgsodium_root.key"

    @field_validator('management_api_url')
    @classmethod
    def strip_trailing_slash(cls, v):
        return v.rstrip('/')


class MigrationOptions(BaseModel):
    """Run-level toggles."""
    skip_stages: List[Stage] = Field(default_factory=list)
    report_file: Optional[str] = None


class MigrationConfig(BaseModel):
    """Complete migration configuration."""
    source: ProjectConfig
    destination: ProjectConfig
    dump: DumpConfig = Field(default_factory=DumpConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    secrets: SecretsConfig = Field(default_factory=SecretsConfig)
    options: MigrationOptions = Field(default_factory=MigrationOptions)

    def enabled_stages(self) -> List[Stage]:
        """Stages that will run, in pipeline order."""
        return [stage for stage in Stage if stage not in self.options.skip_stages]


def _read_config_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ConfigurationError(f"Configuration file not found: {path}")

    suffix = path.suffix.lower()
    try:
        with open(path, 'r', encoding='utf-8') as f:
            if suffix in ('.yaml', '.yml'):
                data = yaml.safe_load(f)
            elif suffix == '.json':
                data = json.load(f)
            else:
                raise ConfigurationError(f"Unsupported file format: {path.suffix}")
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML format: {e}")
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON format: {e}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError("Configuration file must contain a mapping")
    return data


def _apply_env_overrides(data: Dict[str, Any], environ: Dict[str, str]) -> None:
    for env_name, (side, field) in ENV_OVERRIDES.items():
        value = environ.get(env_name)
        if value:
            data.setdefault(side, {})[field] = value


def load_config(
    path: Optional[Union[str, Path]] = None,
    environ: Optional[Dict[str, str]] = None
) -> MigrationConfig:
    """
    Build the migration configuration.

    Args:
        path: Optional YAML or JSON configuration file
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Validated MigrationConfig

    Raises:
        ConfigurationError: If the file is missing, malformed or invalid
    """
    data = _read_config_file(Path(path)) if path else {}
    _apply_env_overrides(data, dict(os.environ) if environ is None else environ)

    try:
        return MigrationConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid configuration: {e}",
            details={"errors": e.errors(include_url=False)}
        )
