"""
Storage control-plane access for the Supabase Migrator.
"""

from .client import BackendClientPair, StorageClient
from .models import Container, StoredObject

__all__ = [
    'BackendClientPair',
    'StorageClient',
    'Container',
    'StoredObject',
]
