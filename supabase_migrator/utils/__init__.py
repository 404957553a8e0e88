"""
Utility modules for the Supabase Migrator.
"""

from supabase_migrator.utils.command import CommandRunner, CompletedOutput
from supabase_migrator.utils.logging import (
    LogCategory,
    StageLogger,
    StructuredFormatter,
    get_logger,
    setup_logging,
)
from supabase_migrator.utils.sanitize import redact

__all__ = [
    "CommandRunner",
    "CompletedOutput",
    "LogCategory",
    "StageLogger",
    "StructuredFormatter",
    "get_logger",
    "setup_logging",
    "redact",
]
