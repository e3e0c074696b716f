"""
Storage collaborators: job records and blob objects.
"""

from .blob_store import BlobStore, BlobStores, InMemoryBlobStore, LocalBlobStore
from .job_store import InMemoryJobStore, JobNotFoundError, JobStore

__all__ = [
    'BlobStore',
    'BlobStores',
    'InMemoryBlobStore',
    'LocalBlobStore',
    'InMemoryJobStore',
    'JobNotFoundError',
    'JobStore',
]
