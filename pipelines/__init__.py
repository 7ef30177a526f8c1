"""Pipelines package for the reindexer.

Provides the reindex orchestration and the document-to-index-record transform.
"""

from .document_index import (
    DocumentIndexBuilder,
    is_indexable,
    clean_title,
    clean_content,
    to_identifier
)
from .reindex import ReindexOrchestrator

__all__ = [
    # Document index
    'DocumentIndexBuilder',
    'is_indexable',
    'clean_title',
    'clean_content',
    'to_identifier',

    # Orchestration
    'ReindexOrchestrator'
]
