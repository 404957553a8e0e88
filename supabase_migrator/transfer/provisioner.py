"""
Destination bucket provisioning.

BucketProvisioner makes sure a bucket exists at the destination before the
first object is uploaded into it, creating it when the destination reports
it missing. Confirmed buckets are remembered for the rest of the run; failed
lookups are not, so the next object in the same bucket retries.
"""

import asyncio
import logging
from typing import Dict, FrozenSet, List, Optional, Set

import httpx

from supabase_migrator.core.exceptions import ProvisionError, StorageError
from supabase_migrator.storage.client import StorageClient

logger = logging.getLogger(__name__)


class BucketProvisioner:
    """Ensures destination buckets exist, at most once per bucket per run."""

    def __init__(self, destination: StorageClient, visibility_source: Optional[StorageClient] = None):
        """
        Args:
            destination: Client of the project receiving the buckets
            visibility_source: Client to read each bucket's public flag from
                when creating it; new buckets are private when omitted
        """
        self.destination = destination
        self.visibility_source = visibility_source
        self._provisioned: Set[str] = set()
        self._created: List[str] = []
        self._locks: Dict[str, asyncio.Lock] = {}

    @property
    def provisioned(self) -> FrozenSet[str]:
        """Buckets confirmed or created during this run."""
        return frozenset(self._provisioned)

    @property
    def created(self) -> List[str]:
        """Buckets created during this run, in creation order."""
        return list(self._created)

    async def ensure(self, bucket_id: str) -> None:
        """
        Make sure a bucket exists at the destination.

        Raises:
            ProvisionError: If the bucket cannot be looked up or created
        """
        if bucket_id in self._provisioned:
            return

        lock = self._locks.setdefault(bucket_id, asyncio.Lock())
        async with lock:
            # Another worker may have provisioned it while we waited
            if bucket_id in self._provisioned:
                return

            if await self._exists(bucket_id):
                logger.debug(f"Bucket '{bucket_id}' already exists at destination")
            else:
                await self._create(bucket_id)

            self._provisioned.add(bucket_id)

    async def _exists(self, bucket_id: str) -> bool:
        try:
            await self.destination.get_bucket(bucket_id)
            return True
        except StorageError as e:
            if e.is_not_found:
                return False
            raise ProvisionError(f"Failed to look up bucket '{bucket_id}': {e}", bucket_id=bucket_id)
        except httpx.HTTPError as e:
            raise ProvisionError(f"Failed to look up bucket '{bucket_id}': {e}", bucket_id=bucket_id)

    async def _create(self, bucket_id: str) -> None:
        public = await self._source_visibility(bucket_id)

        try:
            await self.destination.create_bucket(bucket_id, public=public)
        except StorageError as e:
            if e.is_conflict:
                logger.debug(f"Bucket '{bucket_id}' was created concurrently")
                return
            raise ProvisionError(f"Failed to create bucket '{bucket_id}': {e}", bucket_id=bucket_id)
        except httpx.HTTPError as e:
            raise ProvisionError(f"Failed to create bucket '{bucket_id}': {e}", bucket_id=bucket_id)

        self._created.append(bucket_id)
        logger.info(f"Created bucket '{bucket_id}' ({'public' if public else 'private'})")

    async def _source_visibility(self, bucket_id: str) -> bool:
        if self.visibility_source is None:
            return False

        try:
            bucket = await self.visibility_source.get_bucket(bucket_id)
        except (StorageError, httpx.HTTPError) as e:
            raise ProvisionError(
                f"Failed to read visibility of source bucket '{bucket_id}': {e}",
                bucket_id=bucket_id
            )
        return bucket.public
