"""
Custom exceptions for the Supabase Migrator.

This module defines the exception hierarchy used across the migration
pipeline. Object-scoped errors (provisioning and transfer) are converted
into report entries by the transfer engine; everything else propagates to
the orchestrator and aborts the run.
"""

from typing import Any, Dict, Optional


class MigratorError(Exception):
    """Base exception class for Supabase Migrator errors."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}


class ConfigurationError(MigratorError):
    """Raised when there's an error in configuration."""
    pass


class ProcessError(MigratorError):
    """Raised when an external command exits non-zero or cannot be launched."""

    def __init__(
        self,
        message: str,
        command: str,
        returncode: Optional[int] = None,
        stderr: str = "",
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.command = command
        self.returncode = returncode
        self.stderr = stderr


class StorageError(MigratorError):
    """Raised when the storage API answers with an error status."""

    def __init__(self, message: str, status_code: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.status_code = status_code

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404

    @property
    def is_conflict(self) -> bool:
        return self.status_code == 409


class ProvisionError(MigratorError):
    """Raised when a destination bucket cannot be confirmed or created."""

    def __init__(self, message: str, bucket_id: str, **kwargs):
        super().__init__(message, **kwargs)
        self.bucket_id = bucket_id


class TransferError(MigratorError):
    """Raised when a single object fails to download or upload."""

    def __init__(self, message: str, object_id: str, phase: str, **kwargs):
        super().__init__(message, **kwargs)
        self.object_id = object_id
        self.phase = phase


class CatalogError(MigratorError):
    """Raised when the source object catalog cannot be listed."""
    pass


class SecretMigrationError(MigratorError):
    """Raised when the encryption root key cannot be fetched or applied."""

    def __init__(self, message: str, status_code: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.status_code = status_code


class StageError(MigratorError):
    """Raised by the orchestrator when a pipeline stage fails."""

    def __init__(self, stage: str, cause: BaseException):
        super().__init__(
            f"Stage '{stage}' failed: {cause}",
            details={"stage": stage, "cause": type(cause).__name__}
        )
        self.stage = stage
        self.cause = cause
