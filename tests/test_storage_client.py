"""
Tests for the storage API client and storage data structures.
"""

import httpx
import pytest

from supabase_migrator.core.exceptions import CatalogError, StorageError
from supabase_migrator.storage.client import BackendClientPair, StorageClient
from supabase_migrator.storage.models import Container, StoredObject


class TestStoredObject:
    """Test StoredObject parsing."""

    def test_from_row(self):
        obj = StoredObject.from_row({
            "id": "3f1c",
            "bucket_id": "avatars",
            "name": "users/1.png",
            "metadata": {"mimetype": "image/png", "cacheControl": "max-age=3600", "size": "42"},
        })

        assert obj.id == "3f1c"
        assert obj.path == "avatars/users/1.png"
        assert obj.content_type == "image/png"
        assert obj.cache_control == "max-age=3600"
        assert obj.size == 42

    def test_from_row_without_metadata(self):
        obj = StoredObject.from_row({"id": 7, "bucket_id": "b", "name": "n", "metadata": None})

        assert obj.id == "7"
        assert obj.content_type is None
        assert obj.cache_control is None
        assert obj.size is None

    def test_container_from_json(self):
        container = Container.from_json({"id": "docs", "public": True})

        assert container == Container(id="docs", name="docs", public=True)


class TestStorageClient:
    """Test StorageClient against the fake backend."""

    @pytest.mark.asyncio
    async def test_authentication_headers(self, clients, source_backend):
        source_backend.add_bucket("docs")

        await clients.source.get_bucket("docs")

        request = source_backend.requests[-1]
        assert request.headers["apikey"] == "source-service-key"
        assert request.headers["authorization"] == "Bearer source-service-key"

    @pytest.mark.asyncio
    async def test_missing_bucket_is_not_found(self, clients):
        with pytest.raises(StorageError) as exc_info:
            await clients.destination.get_bucket("nope")

        assert exc_info.value.is_not_found
        assert not exc_info.value.is_conflict

    @pytest.mark.asyncio
    async def test_duplicate_bucket_is_conflict(self, clients, destination_backend):
        destination_backend.add_bucket("docs")

        with pytest.raises(StorageError) as exc_info:
            await clients.destination.create_bucket("docs")

        assert exc_info.value.is_conflict

    @pytest.mark.asyncio
    async def test_create_bucket_sends_visibility(self, clients, destination_backend):
        container = await clients.destination.create_bucket("media", public=True)

        assert container.public is True
        assert destination_backend.buckets["media"]["public"] is True

    @pytest.mark.asyncio
    async def test_download_and_upload(self, clients, source_backend, destination_backend):
        source_backend.add_object("docs", "nested/dir/file name.txt", b"content")
        destination_backend.add_bucket("docs")

        data = await clients.source.download("docs", "nested/dir/file name.txt")
        await clients.destination.upload("docs", "nested/dir/file name.txt", data,
                                         content_type="text/plain", cache_control="no-store")

        stored = destination_backend.objects[("docs", "nested/dir/file name.txt")]
        assert stored["data"] == b"content"
        assert stored["content_type"] == "text/plain"
        assert stored["cache_control"] == "no-store"

    @pytest.mark.asyncio
    async def test_upload_without_upsert_conflicts(self, clients, destination_backend):
        destination_backend.add_object("docs", "a.txt")

        with pytest.raises(StorageError) as exc_info:
            await clients.destination.upload("docs", "a.txt", b"x", upsert=False)

        assert exc_info.value.is_conflict

    @pytest.mark.asyncio
    async def test_error_message_does_not_leak_service_key(self, source_project):
        def handler(request):
            return httpx.Response(403, json={"message": "bad key source-service-key"})

        client = StorageClient(source_project, transport=httpx.MockTransport(handler), label="source")
        with pytest.raises(StorageError) as exc_info:
            await client.download("docs", "a.txt")
        await client.aclose()

        assert "source-service-key" not in str(exc_info.value)
        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_catalog_http_error(self, source_project):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        async with StorageClient(source_project, transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(CatalogError):
                async for _ in client.iter_objects():
                    pass

    @pytest.mark.asyncio
    async def test_malformed_catalog(self, source_project):
        def handler(request):
            return httpx.Response(200, json=[{"bucket_id": "docs"}])

        async with StorageClient(source_project, transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(CatalogError) as exc_info:
                async for _ in client.iter_objects():
                    pass

        assert "Malformed" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_catalog_orders_by_creation(self, clients, source_backend):
        source_backend.add_object("docs", "a.txt")

        objects = [obj async for obj in clients.source.iter_objects(page_size=10)]

        request = source_backend.requests[-1]
        assert request.url.params["order"] == "created_at.asc,id.asc"
        assert [obj.name for obj in objects] == ["a.txt"]


class TestBackendClientPair:
    """Test BackendClientPair construction."""

    @pytest.mark.asyncio
    async def test_from_config(self, migration_config, transport, source_backend, destination_backend):
        source_backend.add_bucket("docs")
        destination_backend.add_bucket("docs")

        async with BackendClientPair.from_config(migration_config, transport=transport) as pair:
            assert pair.source.label == "source"
            assert pair.destination.label == "destination"
            await pair.source.get_bucket("docs")
            await pair.destination.get_bucket("docs")

        assert source_backend.count("GET", "/storage/v1/bucket/docs") == 1
        assert destination_backend.count("GET", "/storage/v1/bucket/docs") == 1
