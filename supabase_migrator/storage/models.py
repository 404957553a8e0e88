"""
Data structures for storage objects and buckets.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class StoredObject:
    """A single object row from the source project's storage catalog."""
    id: str
    bucket_id: str
    name: str
    content_type: Optional[str] = None
    cache_control: Optional[str] = None
    size: Optional[int] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "StoredObject":
        """Build from a storage.objects row as returned by the REST API."""
        metadata = row.get("metadata") or {}
        size = metadata.get("size")
        return cls(
            id=str(row["id"]),
            bucket_id=row["bucket_id"],
            name=row["name"],
            content_type=metadata.get("mimetype"),
            cache_control=metadata.get("cacheControl"),
            size=int(size) if size is not None else None,
        )

    @property
    def path(self) -> str:
        return f"{self.bucket_id}/{self.name}"


@dataclass(frozen=True)
class Container:
    """A storage bucket."""
    id: str
    name: str
    public: bool = False

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "Container":
        return cls(
            id=data["id"],
            name=data.get("name") or data["id"],
            public=bool(data.get("public", False)),
        )
