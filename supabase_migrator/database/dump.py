"""
Relational dump and restore stages.

Dumps are taken with the Supabase CLI (`supabase db dump`) and loaded with
psql in a single transaction. The dump files are opaque artifacts passed
from the backup stage to the restore stages.
"""

import logging
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import List

from supabase_migrator.core.exceptions import MigratorError
from supabase_migrator.models.config import DumpConfig
from supabase_migrator.utils.command import CommandRunner

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DumpArtifacts:
    """Dump files produced and consumed by the relational stages."""
    roles: Path
    schema: Path
    data: Path
    history_schema: Path
    history_data: Path

    @classmethod
    def in_dir(cls, work_dir: str) -> "DumpArtifacts":
        base = Path(work_dir)
        return cls(
            roles=base / "roles.sql",
            schema=base / "schema.sql",
            data=base / "data.sql",
            history_schema=base / "history_schema.sql",
            history_data=base / "history_data.sql",
        )

    def all(self) -> List[Path]:
        return [self.roles, self.schema, self.data, self.history_schema, self.history_data]

    def cleanup(self) -> None:
        """Delete whichever artifacts exist."""
        for path in self.all():
            if path.exists():
                path.unlink()
                logger.debug(f"Removed dump artifact {path}")


class DatabaseMigrator:
    """Runs the backup, restore and history migration stages."""

    def __init__(
        self,
        source_db_url: str,
        destination_db_url: str,
        runner: CommandRunner,
        config: DumpConfig
    ):
        self.source_db_url = source_db_url
        self.destination_db_url = destination_db_url
        self.runner = runner
        self.config = config
        self.artifacts = DumpArtifacts.in_dir(config.work_dir)

    def _dump_command(self, output: Path, *flags: str) -> str:
        parts = [
            self.config.supabase_bin, "db", "dump",
            "--db-url", self.source_db_url,
            "-f", str(output),
            *flags,
        ]
        return shlex.join(parts)

    def _psql_command(self, *args: str) -> str:
        parts = [
            self.config.psql_bin,
            "--single-transaction",
            "--variable", "ON_ERROR_STOP=1",
            *args,
            "--dbname", self.destination_db_url,
        ]
        return shlex.join(parts)

    def _require(self, *paths: Path) -> None:
        missing = [str(path) for path in paths if not path.exists()]
        if missing:
            raise MigratorError(
                f"Missing dump artifacts: {', '.join(missing)}",
                code="MISSING_DUMP_ARTIFACT",
                details={"missing": missing}
            )

    async def backup(self) -> DumpArtifacts:
        """Dump roles, schema and data from the source database."""
        logger.info("Backing up the old database...")
        Path(self.config.work_dir).mkdir(parents=True, exist_ok=True)

        await self.runner.run(self._dump_command(self.artifacts.roles, "--role-only"))
        await self.runner.run(self._dump_command(self.artifacts.schema))
        await self.runner.run(self._dump_command(self.artifacts.data, "--use-copy", "--data-only"))
        return self.artifacts

    async def restore(self) -> None:
        """Load roles, schema and data into the destination in one transaction."""
        logger.info("Restoring to the new database...")
        self._require(self.artifacts.roles, self.artifacts.schema, self.artifacts.data)

        # Triggers and foreign keys stay disabled while data.sql loads
        await self.runner.run(self._psql_command(
            "--file", str(self.artifacts.roles),
            "--file", str(self.artifacts.schema),
            "--command", "SET session_replication_role = replica",
            "--file", str(self.artifacts.data),
        ))

    async def migrate_history(self) -> None:
        """Copy the migration history schema and its rows."""
        logger.info("Preserving migration history...")
        schema = self.config.history_schema

        await self.runner.run(self._dump_command(self.artifacts.history_schema, "--schema", schema))
        await self.runner.run(self._dump_command(
            self.artifacts.history_data, "--use-copy", "--data-only", "--schema", schema
        ))
        await self.runner.run(self._psql_command(
            "--file", str(self.artifacts.history_schema),
            "--file", str(self.artifacts.history_data),
        ))
