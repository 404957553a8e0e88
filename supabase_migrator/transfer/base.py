"""
Data structures for the object transfer stage.

This module defines per-object outcomes, the aggregated run report and the
progress snapshot handed to progress callbacks.
"""

from dataclasses import dataclass, field
from datetime import datetime, UTC
from enum import Enum
from typing import Any, Dict, List, Optional

from supabase_migrator.storage.models import StoredObject


class TransferStatus(str, Enum):
    """Status of the transfer stage."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class OutcomeStatus(str, Enum):
    """Result of transferring a single object."""
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class FailurePhase(str, Enum):
    """Where a single object's transfer failed."""
    PROVISION = "provision"
    DOWNLOAD = "download"
    UPLOAD = "upload"
    UNEXPECTED = "unexpected"


@dataclass
class TransferOutcome:
    """Outcome of one source object."""
    object_id: str
    bucket_id: str
    name: str
    status: OutcomeStatus
    phase: Optional[FailurePhase] = None
    reason: Optional[str] = None
    bytes_transferred: int = 0

    @property
    def succeeded(self) -> bool:
        return self.status == OutcomeStatus.SUCCEEDED

    @classmethod
    def success(cls, obj: StoredObject, size: int) -> "TransferOutcome":
        return cls(obj.id, obj.bucket_id, obj.name, OutcomeStatus.SUCCEEDED, bytes_transferred=size)

    @classmethod
    def failure(cls, obj: StoredObject, phase: FailurePhase, reason: str) -> "TransferOutcome":
        return cls(obj.id, obj.bucket_id, obj.name, OutcomeStatus.FAILED, phase=phase, reason=reason)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "object_id": self.object_id,
            "bucket_id": self.bucket_id,
            "name": self.name,
            "status": self.status.value,
        }
        if self.succeeded:
            data["bytes"] = self.bytes_transferred
        else:
            data["phase"] = self.phase.value if self.phase else None
            data["reason"] = self.reason
        return data


@dataclass
class RunReport:
    """Aggregated per-object results of one transfer run, in catalog order."""
    outcomes: List[TransferOutcome] = field(default_factory=list)
    buckets_created: List[str] = field(default_factory=list)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    def add(self, outcome: TransferOutcome) -> None:
        self.outcomes.append(outcome)

    @property
    def succeeded(self) -> int:
        """Number of objects transferred successfully."""
        return sum(1 for outcome in self.outcomes if outcome.succeeded)

    @property
    def failed(self) -> List[TransferOutcome]:
        """Outcomes of the objects that could not be transferred."""
        return [outcome for outcome in self.outcomes if not outcome.succeeded]

    @property
    def failed_count(self) -> int:
        return len(self.outcomes) - self.succeeded

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def total_bytes(self) -> int:
        return sum(outcome.bytes_transferred for outcome in self.outcomes)

    @property
    def duration(self) -> Optional[float]:
        if not self.start_time or not self.end_time:
            return None
        return (self.end_time - self.start_time).total_seconds()

    def start(self) -> None:
        self.start_time = datetime.now(UTC)

    def finish(self) -> None:
        self.end_time = datetime.now(UTC)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "succeeded": self.succeeded,
            "failed_count": self.failed_count,
            "total_bytes": self.total_bytes,
            "buckets_created": list(self.buckets_created),
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "failed": [outcome.to_dict() for outcome in self.failed],
        }


@dataclass
class TransferProgress:
    """Progress snapshot of the transfer stage."""
    transferred_files: int = 0
    failed_files: int = 0
    transferred_bytes: int = 0
    current_file: Optional[str] = None
    status: TransferStatus = TransferStatus.PENDING

    @property
    def processed_files(self) -> int:
        return self.transferred_files + self.failed_files
