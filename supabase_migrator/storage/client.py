"""
HTTP client for the Supabase storage control plane.

StorageClient talks to one project: the object catalog is read through the
REST API (storage schema) and buckets and object payloads go through the
Storage API. BackendClientPair bundles the source and destination clients
for a run.
"""

import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, Optional
from urllib.parse import quote

import httpx

from supabase_migrator.core.exceptions import CatalogError, StorageError
from supabase_migrator.models.config import MigrationConfig, ProjectConfig
from supabase_migrator.storage.models import Container, StoredObject
from supabase_migrator.utils.sanitize import redact

logger = logging.getLogger(__name__)

CATALOG_COLUMNS = "id,bucket_id,name,metadata,created_at"


class StorageClient:
    """
    Storage API client for a single Supabase project.

    Every call authenticates with the project's service key, which bypasses
    row-level security on the storage schema.
    """

    def __init__(
        self,
        project: ProjectConfig,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        label: str = "project"
    ):
        """
        Initialize the client.

        Args:
            project: Project connection settings
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
            label: Name used in log lines ("source" or "destination")
        """
        self.project = project
        self.label = label
        self._client = httpx.AsyncClient(
            base_url=project.url,
            headers={
                "apikey": project.service_key,
                "Authorization": f"Bearer {project.service_key}",
            },
            timeout=timeout,
            transport=transport,
        )

    def _error(self, response: httpx.Response, action: str) -> StorageError:
        status_code = response.status_code
        try:
            body: Any = response.json()
        except ValueError:
            body = response.text

        message = body
        if isinstance(body, dict):
            message = body.get("message") or body.get("error") or body
            # The storage API wraps some errors (missing bucket, duplicate) in a
            # 400 response carrying the real status in the body
            embedded = str(body.get("statusCode", ""))
            if status_code == 400 and embedded.isdigit():
                status_code = int(embedded)

        return StorageError(
            f"{action} failed on {self.label} ({response.status_code}): "
            f"{redact(str(message), [self.project.service_key])}",
            status_code=status_code,
        )

    async def iter_objects(self, page_size: int = 1000) -> AsyncIterator[StoredObject]:
        """
        Enumerate the project's object catalog.

        Rows are ordered by (created_at, id) so repeated runs see the same
        order. A page_size of 0 fetches the whole catalog in one request.

        Raises:
            CatalogError: If any page cannot be fetched or parsed
        """
        offset = 0
        while True:
            params: Dict[str, Any] = {"select": CATALOG_COLUMNS, "order": "created_at.asc,id.asc"}
            if page_size:
                params.update(limit=page_size, offset=offset)

            try:
                response = await self._client.get(
                    "/rest/v1/objects",
                    params=params,
                    headers={"Accept-Profile": "storage"},
                )
            except httpx.HTTPError as e:
                raise CatalogError(f"Error getting objects from {self.label}: {e}")

            if response.is_error:
                raise CatalogError(
                    f"Error getting objects from {self.label}: {self._error(response, 'List objects')}",
                    details={"status_code": response.status_code},
                )

            try:
                rows = response.json()
                page = [StoredObject.from_row(row) for row in rows]
            except (ValueError, KeyError, TypeError) as e:
                raise CatalogError(f"Malformed object catalog from {self.label}: {e}")

            for obj in page:
                yield obj

            if not page_size or len(page) < page_size:
                return
            offset += page_size

    async def get_bucket(self, bucket_id: str) -> Container:
        """
        Fetch a bucket.

        Raises:
            StorageError: With is_not_found set when the bucket does not exist
        """
        response = await self._client.get(f"/storage/v1/bucket/{quote(bucket_id, safe='')}")
        if response.is_error:
            raise self._error(response, f"Get bucket '{bucket_id}'")
        return Container.from_json(response.json())

    async def create_bucket(self, bucket_id: str, public: bool = False) -> Container:
        """Create a bucket with the given visibility."""
        response = await self._client.post(
            "/storage/v1/bucket",
            json={"id": bucket_id, "name": bucket_id, "public": public},
        )
        if response.is_error:
            raise self._error(response, f"Create bucket '{bucket_id}'")
        return Container(id=bucket_id, name=bucket_id, public=public)

    async def download(self, bucket_id: str, name: str) -> bytes:
        """Download an object's payload."""
        response = await self._client.get(self._object_url(bucket_id, name))
        if response.is_error:
            raise self._error(response, f"Download '{bucket_id}/{name}'")
        return response.content

    async def upload(
        self,
        bucket_id: str,
        name: str,
        data: bytes,
        content_type: Optional[str] = None,
        cache_control: Optional[str] = None,
        upsert: bool = True
    ) -> None:
        """
        Upload an object's payload.

        Content type and cache control are sent as given; with upsert an
        existing object at the same path is replaced.
        """
        headers = {"x-upsert": "true" if upsert else "false"}
        if content_type:
            headers["Content-Type"] = content_type
        if cache_control:
            headers["Cache-Control"] = cache_control

        response = await self._client.post(self._object_url(bucket_id, name), content=data, headers=headers)
        if response.is_error:
            raise self._error(response, f"Upload '{bucket_id}/{name}'")

    @staticmethod
    def _object_url(bucket_id: str, name: str) -> str:
        return f"/storage/v1/object/{quote(bucket_id, safe='')}/{quote(name, safe='/')}"

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()


@dataclass
class BackendClientPair:
    """Independently configured source and destination storage clients."""
    source: StorageClient
    destination: StorageClient

    @classmethod
    def from_config(
        cls,
        config: MigrationConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> "BackendClientPair":
        timeout = config.storage.timeout
        return cls(
            source=StorageClient(config.source, timeout=timeout, transport=transport, label="source"),
            destination=StorageClient(config.destination, timeout=timeout, transport=transport, label="destination"),
        )

    async def aclose(self) -> None:
        await self.source.aclose()
        await self.destination.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
