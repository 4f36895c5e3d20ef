"""
link resolver - citation edges between nodes already in the graph.
"""

import logging
from collections import Counter
from typing import Optional, Dict, Any, List

from ..core.identifiers import to_string_list, extract_doi
from ..core.models import ArticleRow, GraphLevel
from .expansion import ExpansionContext

logger = logging.getLogger("citegraph.links")


def crossref_reference_dois(raw_json: Optional[Dict[str, Any]]) -> List[str]:
    """dois from stored crossref reference metadata."""
    if not isinstance(raw_json, dict):
        return []
    crossref = raw_json.get("crossref")
    if not isinstance(crossref, dict):
        return []
    references = crossref.get("references") or crossref.get("reference") or []
    if not isinstance(references, list):
        return []

    dois = []
    for ref in references:
        if not isinstance(ref, dict):
            continue
        doi = ref.get("DOI") or ref.get("doi")
        if not doi:
            doi = extract_doi(ref.get("unstructured"))
        if doi:
            dois.append(str(doi))
    return dois


class LinkResolver:
    """
    emits source -> target (source cites target) edges.
    every citation between two nodes in the graph is kept; the
    per-article cap applies to candidates, not to edges.
    """

    def __init__(self):
        self.stats = Counter()

    def resolve(self, ctx: ExpansionContext) -> int:
        """add every resolvable edge, returns number of edges added."""
        self.stats.clear()
        before = len(ctx.graph.edges)

        articles = [a for a in ctx.loaded_articles() if ctx.graph.has_node(a.id)]
        for article in articles:
            self._link_references(ctx, article)
            self._link_citing(ctx, article)

        # crossref metadata covers references pubmed does not index
        for article in ctx.articles_by_level[GraphLevel.PROJECT]:
            for doi in crossref_reference_dois(article.raw_json):
                self._emit(ctx, article.id, ctx.index.resolve(doi=doi), "crossref")

        added = len(ctx.graph.edges) - before
        logger.info(
            f"[links] {added} edges from {len(articles)} articles "
            f"(pmid={self.stats['pmid']}, doi={self.stats['doi']}, "
            f"citing={self.stats['citing']}, crossref={self.stats['crossref']})"
        )
        return added

    def _link_references(self, ctx: ExpansionContext, article: ArticleRow):
        for pmid in to_string_list(article.reference_pmids):
            self._emit(ctx, article.id, ctx.index.resolve(pmid=pmid), "pmid")
        for doi in to_string_list(article.reference_dois):
            self._emit(ctx, article.id, ctx.index.resolve(doi=doi), "doi")

    def _link_citing(self, ctx: ExpansionContext, article: ArticleRow):
        for pmid in to_string_list(article.cited_by_pmids):
            self._emit(ctx, ctx.index.resolve(pmid=pmid), article.id, "citing")

    def _emit(self, ctx: ExpansionContext, source_id: Optional[str],
              target_id: Optional[str], kind: str) -> bool:
        # add_edge drops self-loops, duplicates and unknown endpoints
        if not ctx.graph.add_edge(source_id, target_id):
            return False
        self.stats[kind] += 1
        return True

