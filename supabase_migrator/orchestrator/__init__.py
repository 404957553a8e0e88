"""
Orchestrator module for the Supabase Migrator.

This module sequences the migration stages and defines the run's
success and failure semantics.
"""

from .orchestrator import MigrationOrchestrator

__all__ = [
    "MigrationOrchestrator",
]
