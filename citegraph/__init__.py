"""
citegraph - project-scoped citation graph builder.
"""

from .core.config import CitegraphConfig
from .core.db import ArticleStore
from .core.errors import CitegraphError, StorageError, LookupFailed, GraphBuildCancelled
from .core.models import GraphRequest, GraphResult, GraphNode, GraphEdge, GraphLevel
from .graph.builder import CitationGraphBuilder
from .graph.request import normalize_request
from .providers.pubmed import PubMedLookup
from .providers.crossref import CrossrefLookup
from .export.formats import GraphExporter

__version__ = "0.1.0"

__all__ = [
    "CitegraphConfig",
    "ArticleStore",
    "CitegraphError",
    "StorageError",
    "LookupFailed",
    "GraphBuildCancelled",
    "GraphRequest",
    "GraphResult",
    "GraphNode",
    "GraphEdge",
    "GraphLevel",
    "CitationGraphBuilder",
    "normalize_request",
    "PubMedLookup",
    "CrossrefLookup",
    "GraphExporter"
]
