"""
Command-line interface for the Supabase Migrator.
"""

from supabase_migrator.cli.main import main

__all__ = ["main"]
