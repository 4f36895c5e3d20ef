"""
citation graph builder - one request, one independent graph.
seeds -> levels -> links -> enrichment -> facets -> result.
"""

import logging
import threading
import time
from typing import Optional, Mapping, Any

from ..core.config import CitegraphConfig
from ..core.db import ArticleStore
from ..core.models import GraphRequest, GraphResult, EnrichmentResult
from ..providers.base import BibliographicLookup
from ..providers.crossref import CrossrefLookup
from ..providers.pubmed import PubMedLookup
from .assembler import ResultAssembler
from .enrichment import EnrichmentFetcher
from .expansion import ExpansionContext, LevelExpander
from .links import LinkResolver
from .request import normalize_request
from .seed_loader import SeedLoader

logger = logging.getLogger("citegraph.builder")


class CitationGraphBuilder:
    """
    builds a project's citation graph.
    holds no per-request state, so one instance serves concurrent requests.
    """

    def __init__(
        self,
        store: ArticleStore,
        lookup: Optional[BibliographicLookup] = None,
        config: Optional[CitegraphConfig] = None,
        doi_lookup: Optional[BibliographicLookup] = None
    ):
        self.store = store
        self.lookup = lookup
        self.doi_lookup = doi_lookup
        self.config = config or CitegraphConfig()

        # components
        self.seed_loader = SeedLoader(store)
        self.expander = LevelExpander(store, self.config.limits)
        self.enricher = EnrichmentFetcher(lookup, self.config.enrichment, doi_lookup=doi_lookup)
        self.assembler = ResultAssembler()

    @classmethod
    def from_config(cls, config: CitegraphConfig,
                    store: Optional[ArticleStore] = None) -> 'CitationGraphBuilder':
        """builder with the configured store, pubmed and crossref lookups."""
        if store is None:
            store = ArticleStore(config.storage.db_path,
                                 create_schema=config.storage.create_schema)
        if not config.enrichment.enabled:
            return cls(store, config=config)
        return cls(
            store,
            lookup=PubMedLookup(config.providers),
            config=config,
            doi_lookup=CrossrefLookup(config.providers),
        )

    def build_from_params(self, project_id: str, params: Mapping[str, Any],
                          cancel_event: Optional[threading.Event] = None) -> GraphResult:
        """build from raw query-string parameters."""
        request = normalize_request(params, self.config.limits)
        return self.build(project_id, request, cancel_event)

    def build(
        self,
        project_id: str,
        request: Optional[GraphRequest] = None,
        cancel_event: Optional[threading.Event] = None
    ) -> GraphResult:
        """
        build the graph for a project.
        StorageError propagates; nothing partial is returned.
        raises GraphBuildCancelled when cancel_event is set mid-build.
        """
        request = request or GraphRequest()
        start = time.monotonic()
        logger.info(
            f"[builder] project {project_id}: depth={request.depth} "
            f"links={request.max_links_per_node} nodes={request.max_total_nodes}"
        )

        ctx = ExpansionContext.for_request(request, cancel_event)
        ctx.check_cancelled()
        ctx.seed_rows = self.seed_loader.load(project_id, request)

        self.expander.expand(ctx)

        ctx.check_cancelled()
        LinkResolver().resolve(ctx)

        enrichment = EnrichmentResult()
        if ctx.graph.nodes:
            ctx.check_cancelled()
            enrichment = self.enricher.enrich(ctx.graph, cancel_event)

        ctx.check_cancelled()
        source_queries = None
        if self.store.capabilities.source_query:
            source_queries = self.store.list_source_queries(project_id)
        year_range = self.store.project_year_range(project_id)

        result = self.assembler.assemble(
            ctx,
            enrichment=enrichment,
            source_queries=source_queries,
            year_range=year_range,
        )

        logger.info(
            f"[builder] project {project_id}: {len(result.nodes)} nodes, "
            f"{len(result.edges)} edges in {time.monotonic() - start:.2f}s"
        )
        return result
