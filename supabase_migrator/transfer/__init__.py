"""
Object transfer module for the Supabase Migrator.

This module copies storage objects between projects, provisioning
destination buckets on demand and reporting per-object outcomes.
"""

from .base import FailurePhase, OutcomeStatus, RunReport, TransferOutcome, TransferProgress
from .engine import ObjectTransferEngine
from .provisioner import BucketProvisioner

__all__ = [
    'FailurePhase',
    'OutcomeStatus',
    'RunReport',
    'TransferOutcome',
    'TransferProgress',
    'ObjectTransferEngine',
    'BucketProvisioner',
]
