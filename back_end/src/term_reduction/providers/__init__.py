"""
Providers Module - External Collaborators for Term Reduction

Ports (abstract base classes) for similarity and annotation lookups, with
in-memory test doubles and HTTP / SQLite backed implementations.
"""

from .base_provider import BaseAnnotationProvider, BaseSimilarityProvider
from .memory_provider import InMemoryAnnotationProvider, InMemorySimilarityProvider
from .http_similarity_provider import HTTPSimilarityProvider
from .sqlite_provider import SQLiteAnnotationProvider, SQLiteSimilarityProvider

__all__ = [
    'BaseAnnotationProvider',
    'BaseSimilarityProvider',
    'InMemoryAnnotationProvider',
    'InMemorySimilarityProvider',
    'HTTPSimilarityProvider',
    'SQLiteAnnotationProvider',
    'SQLiteSimilarityProvider'
]
