"""
Supabase Migrator

Moves a Supabase project's database, migration history, encryption root
key and storage objects to a second, independently running instance.
"""

__version__ = "0.1.0"

from supabase_migrator.models.config import MigrationConfig, load_config
from supabase_migrator.models.session import MigrationSession, RunState, Stage

__all__ = [
    "MigrationConfig",
    "MigrationSession",
    "RunState",
    "Stage",
    "load_config",
]
