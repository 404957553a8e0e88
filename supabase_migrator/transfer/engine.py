"""
Object transfer engine.

Copies every object in the source project's storage catalog to the
destination: provision the bucket, download the payload, upload it with
upsert and the original metadata. Each object gets exactly one outcome in
the run report; a failing object never stops the others. Only a failure
to enumerate the catalog is fatal.
"""

import asyncio
import logging
from typing import AsyncIterator, Callable, Collection, List, Optional, Set

import httpx

from supabase_migrator.core.exceptions import (
    CatalogError, ProvisionError, StorageError, TransferError
)
from supabase_migrator.models.config import StorageConfig
from supabase_migrator.storage.client import BackendClientPair
from supabase_migrator.storage.models import StoredObject
from supabase_migrator.transfer.base import (
    FailurePhase, RunReport, TransferOutcome, TransferProgress, TransferStatus
)
from supabase_migrator.transfer.provisioner import BucketProvisioner

logger = logging.getLogger(__name__)


class ObjectTransferEngine:
    """
    Transfers all stored objects from the source to the destination project.

    With max_concurrency of 1 objects are processed strictly one at a time,
    so a single payload is held in memory. Higher values transfer objects
    of a batch concurrently; the provisioner's per-bucket lock keeps bucket
    creation ahead of every upload into that bucket.
    """

    def __init__(
        self,
        clients: BackendClientPair,
        page_size: int = 1000,
        max_concurrency: int = 1,
        preserve_visibility: bool = True
    ):
        """
        Initialize the engine.

        Args:
            clients: Source and destination storage clients
            page_size: Catalog listing page size, 0 for a single bulk call
            max_concurrency: Maximum number of objects in flight
            preserve_visibility: Copy each bucket's public flag when creating it
        """
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")

        self.clients = clients
        self.preserve_visibility = preserve_visibility
        self.provisioner = self._new_provisioner()
        self.page_size = page_size
        self.max_concurrency = max_concurrency
        self._progress = TransferProgress()
        self._progress_callback: Optional[Callable[[TransferProgress], None]] = None

    @classmethod
    def from_config(cls, clients: BackendClientPair, config: StorageConfig) -> "ObjectTransferEngine":
        return cls(
            clients,
            page_size=config.page_size,
            max_concurrency=config.max_concurrency,
            preserve_visibility=config.preserve_visibility,
        )

    def _new_provisioner(self) -> BucketProvisioner:
        return BucketProvisioner(
            self.clients.destination,
            visibility_source=self.clients.source if self.preserve_visibility else None
        )

    def set_progress_callback(self, callback: Callable[[TransferProgress], None]) -> None:
        """Set a callback function to receive progress updates."""
        self._progress_callback = callback

    def _update_progress(self, **kwargs) -> None:
        for key, value in kwargs.items():
            if hasattr(self._progress, key):
                setattr(self._progress, key, value)

        if self._progress_callback:
            try:
                self._progress_callback(self._progress)
            except Exception as e:
                logger.warning(f"Progress callback failed: {e}")

    async def transfer_all(self, object_ids: Optional[Collection[str]] = None) -> RunReport:
        """
        Transfer every object in the source catalog.

        Args:
            object_ids: Restrict the run to these object ids (failure-only
                remediation); all objects when omitted

        Returns:
            RunReport with one outcome per enumerated object, in catalog order

        Raises:
            CatalogError: If the source catalog cannot be enumerated
        """
        report = RunReport()
        report.start()
        # Provisioned buckets are tracked per run
        self.provisioner = self._new_provisioner()
        self._progress = TransferProgress()
        self._update_progress(status=TransferStatus.RUNNING)
        logger.info("Migrating storage objects...")

        try:
            if self.max_concurrency == 1:
                async for obj in self._catalog(object_ids):
                    report.add(await self.transfer_object(obj))
            else:
                batch: List[StoredObject] = []
                async for obj in self._catalog(object_ids):
                    batch.append(obj)
                    if len(batch) >= self.max_concurrency * 4:
                        report.outcomes.extend(await self._transfer_batch(batch))
                        batch = []
                if batch:
                    report.outcomes.extend(await self._transfer_batch(batch))
        except CatalogError as e:
            report.buckets_created = self.provisioner.created
            report.finish()
            e.details["partial_report"] = report.to_dict()
            self._update_progress(status=TransferStatus.FAILED)
            logger.error(f"Object transfer aborted after {report.total} objects: {e}")
            raise

        report.buckets_created = self.provisioner.created
        report.finish()
        self._update_progress(status=TransferStatus.COMPLETED, current_file=None)

        logger.info(
            f"Storage transfer finished: {report.succeeded} succeeded, "
            f"{report.failed_count} failed, {report.total_bytes} bytes"
        )
        return report

    async def _catalog(self, object_ids: Optional[Collection[str]]) -> AsyncIterator[StoredObject]:
        wanted = set(object_ids) if object_ids is not None else None
        seen: Set[str] = set()

        async for obj in self.clients.source.iter_objects(page_size=self.page_size):
            if obj.id in seen:
                # Offset paging can repeat a row when the catalog shifts
                logger.debug(f"Skipping repeated catalog entry {obj.id}")
                continue
            seen.add(obj.id)

            if wanted is not None and obj.id not in wanted:
                continue
            yield obj

    async def _transfer_batch(self, batch: List[StoredObject]) -> List[TransferOutcome]:
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def bounded(obj: StoredObject) -> TransferOutcome:
            async with semaphore:
                return await self.transfer_object(obj)

        return list(await asyncio.gather(*(bounded(obj) for obj in batch)))

    async def transfer_object(self, obj: StoredObject) -> TransferOutcome:
        """
        Transfer one object and return its outcome. Never raises for
        object-level failures.
        """
        logger.info(f"Moving {obj.id}")
        self._update_progress(current_file=obj.path)

        phase = FailurePhase.PROVISION
        try:
            await self.provisioner.ensure(obj.bucket_id)

            phase = FailurePhase.DOWNLOAD
            try:
                data = await self.clients.source.download(obj.bucket_id, obj.name)
            except (StorageError, httpx.HTTPError) as e:
                raise TransferError(f"Download failed: {e}", object_id=obj.id, phase=phase.value)

            if obj.size is not None and len(data) != obj.size:
                logger.warning(
                    f"Size mismatch for {obj.id}: catalog says {obj.size} bytes, downloaded {len(data)}"
                )

            phase = FailurePhase.UPLOAD
            try:
                await self.clients.destination.upload(
                    obj.bucket_id,
                    obj.name,
                    data,
                    content_type=obj.content_type,
                    cache_control=obj.cache_control,
                    upsert=True,
                )
            except (StorageError, httpx.HTTPError) as e:
                raise TransferError(f"Upload failed: {e}", object_id=obj.id, phase=phase.value)

        except (ProvisionError, TransferError) as e:
            return self._record_failure(obj, phase, str(e))
        except Exception as e:
            logger.exception(f"Unexpected error moving {obj.id} during {phase.value}")
            return self._record_failure(
                obj, FailurePhase.UNEXPECTED, f"{type(e).__name__} during {phase.value}: {e}"
            )

        self._update_progress(
            transferred_files=self._progress.transferred_files + 1,
            transferred_bytes=self._progress.transferred_bytes + len(data),
        )
        return TransferOutcome.success(obj, len(data))

    def _record_failure(self, obj: StoredObject, phase: FailurePhase, reason: str) -> TransferOutcome:
        logger.error(f"Error moving {obj.id} ({obj.path}) at {phase.value}: {reason}")
        self._update_progress(failed_files=self._progress.failed_files + 1)
        return TransferOutcome.failure(obj, phase, reason)
