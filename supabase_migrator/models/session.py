"""
Session models for the Supabase Migrator.

This module defines the pipeline stages, per-stage results and the
run-level session that the orchestrator updates as it goes.
"""

from datetime import datetime, UTC
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class Stage(str, Enum):
    """Migration pipeline stages, in execution order."""
    BACKUP = "backup"
    SECRET_MIGRATION = "secret_migration"
    RESTORE = "restore"
    HISTORY_MIGRATION = "history_migration"
    OBJECT_TRANSFER = "object_transfer"


STAGE_ORDER: List[Stage] = list(Stage)

STAGE_TITLES: Dict[Stage, str] = {
    Stage.BACKUP: "Back up source database",
    Stage.SECRET_MIGRATION: "Migrate encryption root key",
    Stage.RESTORE: "Restore destination database",
    Stage.HISTORY_MIGRATION: "Preserve migration history",
    Stage.OBJECT_TRANSFER: "Migrate storage objects",
}


class StageStatus(str, Enum):
    """Status of a single stage."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class RunState(str, Enum):
    """Terminal and non-terminal states of a migration run."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"


class StageResult(BaseModel):
    """Outcome of one pipeline stage."""
    stage: Stage
    status: StageStatus = StageStatus.PENDING
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration: Optional[float] = None  # seconds
    error: Optional[str] = None
    error_code: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)

    @property
    def title(self) -> str:
        return STAGE_TITLES[self.stage]

    def start(self):
        """Mark stage as started."""
        self.status = StageStatus.RUNNING
        self.start_time = datetime.now(UTC)

    def complete(self, **details):
        """Mark stage as completed."""
        self.status = StageStatus.COMPLETED
        self._finish()
        self.details.update(details)

    def fail(self, error: BaseException):
        """Mark stage as failed with the causing exception."""
        self.status = StageStatus.FAILED
        self.error = str(error)
        self.error_code = getattr(error, "code", type(error).__name__)
        self._finish()

    def skip(self):
        """Mark stage as skipped by configuration."""
        self.status = StageStatus.SKIPPED

    def _finish(self):
        self.end_time = datetime.now(UTC)
        if self.start_time:
            self.duration = (self.end_time - self.start_time).total_seconds()


class MigrationSession(BaseModel):
    """State of a complete migration run."""
    id: str
    state: RunState = RunState.PENDING
    stages: List[StageResult] = Field(default_factory=list)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration: Optional[float] = None  # seconds
    aborted_stage: Optional[Stage] = None
    error: Optional[str] = None
    # Serialized RunReport of the object transfer stage, when it ran
    transfer_report: Optional[Dict[str, Any]] = None

    def start(self):
        """Start the migration run."""
        self.state = RunState.RUNNING
        self.start_time = datetime.now(UTC)

    def complete(self):
        """Complete the migration run."""
        self.state = RunState.COMPLETED
        self._finish()

    def abort(self, stage: Stage, error: BaseException):
        """Abort the run at the given stage."""
        self.state = RunState.ABORTED
        self.aborted_stage = stage
        self.error = str(error)
        self._finish()

    def _finish(self):
        self.end_time = datetime.now(UTC)
        if self.start_time:
            self.duration = (self.end_time - self.start_time).total_seconds()

    def get_stage(self, stage: Stage) -> Optional[StageResult]:
        """Get the result record of a stage."""
        for result in self.stages:
            if result.stage == stage:
                return result
        return None
