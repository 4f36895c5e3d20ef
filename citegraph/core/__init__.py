from .models import (
    ArticleRow, PartialArticle, GraphNode, GraphEdge, GraphRequest, GraphResult,
    GraphLevel, MembershipStatus, StatusFilter, SortBy, EnrichmentResult, LevelCounts
)
from .config import CitegraphConfig, LimitsConfig, EnrichmentConfig, ProviderConfig
from .db import ArticleStore, StoreCapabilities
from .errors import CitegraphError, StorageError, LookupFailed, GraphBuildCancelled
from .resilience import RetryConfig, retry_with_backoff, setup_logging
