"""
Reporting for migration runs.
"""

from supabase_migrator.monitoring.report import (
    POST_MIGRATION_CHECKLIST,
    build_report,
    load_failed_object_ids,
    render_summary,
    write_report,
)

__all__ = [
    "POST_MIGRATION_CHECKLIST",
    "build_report",
    "load_failed_object_ids",
    "render_summary",
    "write_report",
]
