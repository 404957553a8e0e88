"""
Data models for the Supabase Migrator.

This module contains the Pydantic models used for configuration and
run-state tracking.
"""

from supabase_migrator.models.config import (
    MigrationConfig,
    ProjectConfig,
    DumpConfig,
    StorageConfig,
    SecretsConfig,
    MigrationOptions,
    load_config,
)
from supabase_migrator.models.session import (
    MigrationSession,
    RunState,
    Stage,
    StageResult,
    StageStatus,
)

__all__ = [
    # Configuration models
    "MigrationConfig",
    "ProjectConfig",
    "DumpConfig",
    "StorageConfig",
    "SecretsConfig",
    "MigrationOptions",
    "load_config",
    # Session models
    "MigrationSession",
    "RunState",
    "Stage",
    "StageResult",
    "StageStatus",
]
