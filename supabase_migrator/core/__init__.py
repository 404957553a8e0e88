"""
Core module for the Supabase Migrator.

This module contains the exception hierarchy shared by every stage.
"""

from supabase_migrator.core.exceptions import (
    MigratorError,
    ConfigurationError,
    ProcessError,
    StorageError,
    ProvisionError,
    TransferError,
    CatalogError,
    SecretMigrationError,
    StageError,
)

__all__ = [
    "MigratorError",
    "ConfigurationError",
    "ProcessError",
    "StorageError",
    "ProvisionError",
    "TransferError",
    "CatalogError",
    "SecretMigrationError",
    "StageError",
]
