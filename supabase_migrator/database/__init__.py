"""
Relational stages of the migration: dump, restore, history and secrets.
"""

from .dump import DatabaseMigrator, DumpArtifacts
from .secrets import SecretMigrator

__all__ = [
    "DatabaseMigrator",
    "DumpArtifacts",
    "SecretMigrator",
]
