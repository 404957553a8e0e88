"""
Migration orchestrator.

Runs the pipeline stages in their fixed order: backup, secret migration,
restore, history migration and object transfer. A failing stage aborts the
run; per-object failures inside the object transfer stage do not.
"""

import logging
import uuid
from typing import Any, Awaitable, Callable, Collection, Dict, List, Optional

from supabase_migrator.core.exceptions import CatalogError, StageError
from supabase_migrator.database.dump import DatabaseMigrator
from supabase_migrator.database.secrets import SecretMigrator
from supabase_migrator.models.config import MigrationConfig
from supabase_migrator.models.session import (
    MigrationSession, Stage, StageResult, STAGE_ORDER
)
from supabase_migrator.storage.client import BackendClientPair
from supabase_migrator.transfer.base import TransferProgress
from supabase_migrator.transfer.engine import ObjectTransferEngine
from supabase_migrator.utils.command import CommandRunner
from supabase_migrator.utils.logging import StageLogger

logger = logging.getLogger(__name__)


class MigrationOrchestrator:
    """
    Coordinates a full project migration.

    Collaborators are built from the configuration unless injected; injected
    ones are left open, the ones built here are closed when the run ends.
    """

    def __init__(
        self,
        config: MigrationConfig,
        runner: Optional[CommandRunner] = None,
        database: Optional[DatabaseMigrator] = None,
        secrets: Optional[SecretMigrator] = None,
        clients: Optional[BackendClientPair] = None,
        transfer_engine: Optional[ObjectTransferEngine] = None
    ):
        self.config = config
        self.runner = runner or CommandRunner()
        self.database = database or DatabaseMigrator(
            config.source.db_url,
            config.destination.db_url,
            self.runner,
            config.dump,
        )
        self.secrets = secrets or SecretMigrator(
            config.source,
            config.destination.db_url,
            self.runner,
            config.secrets,
            psql_bin=config.dump.psql_bin,
        )
        self._clients = clients
        self._transfer_engine = transfer_engine
        self._owns_clients = False
        self._progress_callbacks: List[Callable[[Stage, StageResult], None]] = []
        self._transfer_progress_callback: Optional[Callable[[TransferProgress], None]] = None
        self.failure: Optional[StageError] = None

    def add_progress_callback(self, callback: Callable[[Stage, StageResult], None]):
        """Add a callback notified on every stage status change."""
        self._progress_callbacks.append(callback)

    def set_transfer_progress_callback(self, callback: Callable[[TransferProgress], None]):
        """Forward object transfer progress to a callback."""
        self._transfer_progress_callback = callback

    def _notify_progress(self, stage: Stage, result: StageResult):
        for callback in self._progress_callbacks:
            try:
                callback(stage, result)
            except Exception as e:
                logger.warning(f"Progress callback failed: {e}")

    async def run(
        self,
        stages: Optional[Collection[Stage]] = None,
        object_ids: Optional[Collection[str]] = None,
        run_id: Optional[str] = None
    ) -> MigrationSession:
        """
        Execute the pipeline.

        Args:
            stages: Stages to run (defaults to the configuration's enabled
                stages); the others are recorded as skipped
            object_ids: Restrict the object transfer to these ids
            run_id: Optional run identifier (generates a UUID if not provided)

        Returns:
            The session in state COMPLETED or ABORTED
        """
        enabled = set(stages if stages is not None else self.config.enabled_stages())
        session = MigrationSession(
            id=run_id or str(uuid.uuid4()),
            stages=[StageResult(stage=stage) for stage in STAGE_ORDER],
        )
        stage_logger = StageLogger(session.id)
        self.failure = None

        handlers: Dict[Stage, Callable[[], Awaitable[Dict[str, Any]]]] = {
            Stage.BACKUP: self._run_backup,
            Stage.SECRET_MIGRATION: self._run_secret_migration,
            Stage.RESTORE: self._run_restore,
            Stage.HISTORY_MIGRATION: self._run_history_migration,
            Stage.OBJECT_TRANSFER: lambda: self._run_object_transfer(session, object_ids),
        }

        session.start()
        try:
            for result in session.stages:
                stage = result.stage
                if stage not in enabled:
                    result.skip()
                    stage_logger.stage_skipped(stage.value)
                    self._notify_progress(stage, result)
                    continue

                result.start()
                stage_logger.stage_start(stage.value, result.title)
                self._notify_progress(stage, result)

                try:
                    details = await handlers[stage]()
                except Exception as e:
                    result.fail(e)
                    stage_logger.stage_failed(stage.value, str(e), result.error_code)
                    self._notify_progress(stage, result)
                    self.failure = StageError(stage.value, e)
                    session.abort(stage, e)
                    return session

                result.complete(**details)
                stage_logger.stage_complete(stage.value, result.duration or 0.0)
                self._notify_progress(stage, result)

            session.complete()
            stage_logger.info("Migration completed successfully!")
            return session
        finally:
            await self._cleanup()

    async def _run_backup(self) -> Dict[str, Any]:
        artifacts = await self.database.backup()
        return {"artifacts": [str(path) for path in (artifacts.roles, artifacts.schema, artifacts.data)]}

    async def _run_secret_migration(self) -> Dict[str, Any]:
        await self.secrets.migrate()
        return {"root_key_path": self.config.secrets.root_key_path}

    async def _run_restore(self) -> Dict[str, Any]:
        await self.database.restore()
        return {}

    async def _run_history_migration(self) -> Dict[str, Any]:
        await self.database.migrate_history()
        return {"schema": self.config.dump.history_schema}

    async def _run_object_transfer(
        self,
        session: MigrationSession,
        object_ids: Optional[Collection[str]]
    ) -> Dict[str, Any]:
        if self._transfer_engine is None:
            if self._clients is None:
                self._clients = BackendClientPair.from_config(self.config)
                self._owns_clients = True
            self._transfer_engine = ObjectTransferEngine.from_config(self._clients, self.config.storage)

        if self._transfer_progress_callback:
            self._transfer_engine.set_progress_callback(self._transfer_progress_callback)

        try:
            report = await self._transfer_engine.transfer_all(object_ids=object_ids)
        except CatalogError as e:
            session.transfer_report = e.details.get("partial_report")
            raise

        session.transfer_report = report.to_dict()
        return {"succeeded": report.succeeded, "failed": report.failed_count}

    async def _cleanup(self) -> None:
        if self._owns_clients and self._clients is not None:
            await self._clients.aclose()
            self._clients = None
            self._transfer_engine = None
            self._owns_clients = False

        if not self.config.dump.keep_artifacts:
            self.database.artifacts.cleanup()
