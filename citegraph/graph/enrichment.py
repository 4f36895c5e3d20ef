"""
enrichment fetcher - fills in metadata of placeholder nodes.
pmid placeholders go to pubmed, doi placeholders to crossref.
best effort: a failed or slow lookup never fails the graph.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait, FIRST_COMPLETED
from dataclasses import dataclass
from typing import List, Optional, Dict, Any

from ..analysis.stats_quality import stats_quality
from ..core.config import EnrichmentConfig
from ..core.errors import GraphBuildCancelled
from ..core.identifiers import normalize_doi, normalize_pmid
from ..core.models import EnrichmentResult, GraphNode, PartialArticle
from ..providers.base import BibliographicLookup
from .nodes import node_label
from .working_graph import CitationGraph

logger = logging.getLogger("citegraph.enrichment")

# how often the wait loop looks at the cancel event
POLL_INTERVAL = 0.1


@dataclass
class EnrichmentJob:
    """one batched lookup call."""
    kind: str   # "pmid" or "doi"
    lookup: BibliographicLookup
    ids: List[str]
    throttle_ms: int


def _placeholder_key(node: GraphNode, kind: str) -> Optional[str]:
    if not node.is_placeholder:
        return None
    if kind == "pmid":
        return node.pmid
    # doi placeholders carry no pmid
    return None if node.pmid else node.doi


class EnrichmentFetcher:
    """
    one batched call per lookup and build, all lookups running
    side by side under a shared timeout.
    """

    def __init__(self, lookup: Optional[BibliographicLookup],
                 config: Optional[EnrichmentConfig] = None,
                 doi_lookup: Optional[BibliographicLookup] = None):
        self.lookup = lookup
        self.doi_lookup = doi_lookup
        self.config = config or EnrichmentConfig()

    def _placeholder_ids(self, graph: CitationGraph, kind: str, cap: int) -> List[str]:
        ids = []
        seen = set()
        for node in graph.nodes.values():
            key = _placeholder_key(node, kind)
            if not key or key in seen:
                continue
            seen.add(key)
            ids.append(key)
            if len(ids) >= cap:
                break
        return ids

    def placeholder_pmids(self, graph: CitationGraph) -> List[str]:
        """distinct pmids of unresolved nodes, in graph order, capped."""
        return self._placeholder_ids(graph, "pmid", self.config.max_batch)

    def placeholder_dois(self, graph: CitationGraph) -> List[str]:
        return self._placeholder_ids(graph, "doi", self.config.max_doi_batch)

    def jobs(self, graph: CitationGraph) -> List[EnrichmentJob]:
        jobs = []
        if self.lookup is not None:
            pmids = self.placeholder_pmids(graph)
            if pmids:
                jobs.append(EnrichmentJob("pmid", self.lookup, pmids, self.config.throttle_ms))
        if self.doi_lookup is not None:
            dois = self.placeholder_dois(graph)
            if dois:
                jobs.append(EnrichmentJob("doi", self.doi_lookup, dois, self.config.doi_throttle_ms))
        return jobs

    def enrich(self, graph: CitationGraph,
               cancel_event: Optional[threading.Event] = None) -> EnrichmentResult:
        """update matched placeholders in place."""
        result = EnrichmentResult()
        if not self.config.enabled:
            return result

        jobs = self.jobs(graph)
        if not jobs:
            return result

        for job in jobs:
            logger.info(
                f"[enrichment] fetching {len(job.ids)} {job.kind} placeholders "
                f"from {job.lookup.name}"
            )
        outcomes = self._fetch(jobs, cancel_event)

        for job in jobs:
            outcome = outcomes[job.kind]
            if isinstance(outcome, Exception):
                logger.warning(f"[enrichment] {job.lookup.name} lookup failed: {outcome}")
                result.record(job.lookup.name, len(job.ids),
                              error=str(outcome) or type(outcome).__name__)
                continue
            updated = self.apply(graph, outcome, kind=job.kind)
            result.record(job.lookup.name, len(job.ids), updated)

        logger.info(f"[enrichment] updated {result.updated}/{result.requested} placeholders")
        return result

    def _fetch(self, jobs: List[EnrichmentJob],
               cancel_event: Optional[threading.Event]) -> Dict[str, Any]:
        """
        run every lookup on its own worker thread, give up at the deadline.
        returns kind -> fetched articles, or the exception that ended the call.
        """
        timeout = self.config.timeout_seconds
        deadline = time.monotonic() + timeout
        outcomes: Dict[str, Any] = {}

        executor = ThreadPoolExecutor(max_workers=len(jobs), thread_name_prefix="citegraph-enrich")
        try:
            futures = {
                executor.submit(job.lookup.fetch_by_ids, job.ids, job.throttle_ms): job
                for job in jobs
            }
            pending = set(futures)
            while pending:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    for future in pending:
                        future.cancel()
                        outcomes[futures[future].kind] = TimeoutError(
                            f"enrichment timed out after {timeout:g}s"
                        )
                    break

                done, pending = wait(pending, timeout=min(POLL_INTERVAL, remaining),
                                     return_when=FIRST_COMPLETED)
                for future in done:
                    job = futures[future]
                    try:
                        outcomes[job.kind] = future.result() or []
                    except Exception as e:
                        outcomes[job.kind] = e

                if pending and cancel_event is not None and cancel_event.is_set():
                    for future in pending:
                        future.cancel()
                    raise GraphBuildCancelled("graph build cancelled during enrichment")
        finally:
            # never block the request on a stuck lookup
            executor.shutdown(wait=False, cancel_futures=True)
        return outcomes

    def apply(self, graph: CitationGraph, articles: List[PartialArticle],
              kind: str = "pmid") -> int:
        """copy fetched metadata onto placeholders, returns nodes updated."""
        normalize = normalize_pmid if kind == "pmid" else normalize_doi
        by_key: Dict[str, PartialArticle] = {}
        for article in articles or []:
            key = normalize(article.pmid if kind == "pmid" else article.doi)
            if key:
                by_key.setdefault(key, article)

        updated = 0
        for node in graph.nodes.values():
            key = _placeholder_key(node, kind)
            article = by_key.get(key) if key else None
            if article is None:
                continue
            self._update_node(node, article)
            updated += 1
        return updated

    @staticmethod
    def _update_node(node: GraphNode, article: PartialArticle):
        if article.title:
            node.title = article.title
        if article.year:
            node.year = article.year
        if article.doi:
            node.doi = normalize_doi(article.doi)
        if article.authors:
            node.authors = ", ".join(article.authors)
        if article.journal:
            node.journal = article.journal
        if article.cited_by_count is not None:
            node.cited_by_count = article.cited_by_count
        node.label = node_label(article.authors, node.year)
        if article.abstract:
            node.stats_quality = stats_quality(article.abstract)
