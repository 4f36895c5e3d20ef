"""
level expander - budget-bounded breadth expansion around a project.
levels run strictly 1 -> 2 -> 0 -> 3; each level's "already present"
check depends on the index state left by the previous ones.
"""

import logging
import threading
from collections import Counter
from dataclasses import dataclass, field
from typing import List, Optional, Dict, Set, Iterable, Tuple

from ..core.config import LimitsConfig
from ..core.db import ArticleStore
from ..core.errors import GraphBuildCancelled
from ..core.identifiers import to_string_list, normalize_doi, normalize_pmid
from ..core.models import ArticleRow, GraphLevel, GraphRequest, SortBy
from .identifier_index import IdentifierIndex
from .working_graph import CitationGraph
from .nodes import article_node, placeholder_node, cited_by_count

logger = logging.getLogger("citegraph.expansion")

# citation/year ranking looks up at most this many candidates
RANKING_LOOKUP_LIMIT = 5000


@dataclass(frozen=True)
class ExternalId:
    """an identifier pointing outside the current graph."""
    kind: str   # "pmid" or "doi"
    value: str

    @classmethod
    def pmid(cls, value: str) -> Optional['ExternalId']:
        value = normalize_pmid(value)
        return cls("pmid", value) if value else None

    @classmethod
    def doi(cls, value: str) -> Optional['ExternalId']:
        value = normalize_doi(value)
        return cls("doi", value) if value else None

    def resolve_in(self, index: IdentifierIndex) -> Optional[str]:
        if self.kind == "pmid":
            return index.resolve(pmid=self.value)
        return index.resolve(doi=self.value)


@dataclass
class ExpansionContext:
    """
    all mutable state of one graph build.
    only the expander and link resolver write to it, one level at a time.
    """
    request: GraphRequest
    graph: CitationGraph
    index: IdentifierIndex = field(default_factory=IdentifierIndex)
    cancel_event: Optional[threading.Event] = None

    # raw level-1 rows as returned by the seed loader
    seed_rows: List[ArticleRow] = field(default_factory=list)

    # storage rows that became nodes, per level
    articles_by_level: Dict[GraphLevel, List[ArticleRow]] = field(
        default_factory=lambda: {level: [] for level in GraphLevel}
    )

    # level-0 candidates are excluded from related work
    citing_candidates: Set[ExternalId] = field(default_factory=set)

    # stats
    available_references: int = 0
    available_citing: int = 0

    @classmethod
    def for_request(cls, request: GraphRequest,
                    cancel_event: Optional[threading.Event] = None) -> 'ExpansionContext':
        return cls(
            request=request,
            graph=CitationGraph(request.max_total_nodes),
            cancel_event=cancel_event,
        )

    def check_cancelled(self):
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise GraphBuildCancelled("graph build cancelled")

    def loaded_articles(self) -> List[ArticleRow]:
        """seed rows plus every storage row loaded at levels 0/2/3."""
        seen: Set[str] = set()
        out: List[ArticleRow] = []
        ordered = (
            self.seed_rows
            + self.articles_by_level[GraphLevel.CITING]
            + self.articles_by_level[GraphLevel.REFERENCE]
            + self.articles_by_level[GraphLevel.RELATED]
        )
        for article in ordered:
            if article.id not in seen:
                seen.add(article.id)
                out.append(article)
        return out


def reference_ids(article: ArticleRow) -> Iterable[ExternalId]:
    """outgoing references: pmids first, then crossref dois."""
    for pmid in to_string_list(article.reference_pmids):
        ext = ExternalId.pmid(pmid)
        if ext:
            yield ext
    for doi in to_string_list(article.reference_dois):
        ext = ExternalId.doi(doi)
        if ext:
            yield ext


def citing_ids(article: ArticleRow) -> Iterable[ExternalId]:
    for pmid in to_string_list(article.cited_by_pmids):
        ext = ExternalId.pmid(pmid)
        if ext:
            yield ext


class LevelExpander:
    """
    grows the graph level by level around the project's articles.
    storage lookups are batched and bounded by the remaining budget.
    """

    def __init__(self, store: ArticleStore, limits: Optional[LimitsConfig] = None):
        self.store = store
        self.limits = limits or LimitsConfig()

    def expand(self, ctx: ExpansionContext) -> ExpansionContext:
        """run every level the requested depth allows."""
        ctx.check_cancelled()
        self.add_project_level(ctx)

        if ctx.request.depth >= 2:
            ctx.check_cancelled()
            self.expand_references(ctx)

        if ctx.request.depth >= 3:
            ctx.check_cancelled()
            self.expand_citing(ctx)
            ctx.check_cancelled()
            self.expand_related(ctx)

        counts = ctx.graph.level_counts()
        logger.info(
            f"[expansion] depth {ctx.request.depth}: L0={counts.level0} L1={counts.level1} "
            f"L2={counts.level2} L3={counts.level3} "
            f"({len(ctx.graph.nodes)}/{ctx.graph.max_nodes} nodes)"
        )
        return ctx

    # level 1

    def add_project_level(self, ctx: ExpansionContext):
        """one node per project article, until the budget runs out."""
        added = 0
        for article in ctx.seed_rows:
            if ctx.graph.is_full:
                logger.info(
                    f"[expansion] node budget reached during level 1 "
                    f"({added}/{len(ctx.seed_rows)} project articles)"
                )
                break
            if ctx.graph.has_node(article.id) or ctx.index.resolve(article.doi, article.pmid):
                continue
            if ctx.graph.add_node(article_node(article, GraphLevel.PROJECT)):
                ctx.index.register(article.id, doi=article.doi, pmid=article.pmid)
                ctx.articles_by_level[GraphLevel.PROJECT].append(article)
                added += 1

    # level 2

    def expand_references(self, ctx: ExpansionContext):
        """articles the project references."""
        sources = ctx.articles_by_level[GraphLevel.PROJECT]
        candidates, available = self._collect_candidates(ctx, sources, reference_ids)
        ctx.available_references = available
        logger.info(
            f"[expansion] level 2: {len(candidates)} reference candidates "
            f"({available} external references, sort={ctx.request.sort_by.value})"
        )
        self._resolve_candidates(ctx, candidates, GraphLevel.REFERENCE)

    # level 0

    def expand_citing(self, ctx: ExpansionContext):
        """articles citing the project."""
        sources = ctx.articles_by_level[GraphLevel.PROJECT]
        candidates, available = self._collect_candidates(ctx, sources, citing_ids)
        ctx.available_citing = available
        ctx.citing_candidates = set(candidates)
        logger.info(f"[expansion] level 0: {len(candidates)} citing candidates")
        self._resolve_candidates(ctx, candidates, GraphLevel.CITING)

    # level 3

    def expand_related(self, ctx: ExpansionContext):
        """articles that cite the same references as the project."""
        references = ctx.articles_by_level[GraphLevel.REFERENCE]
        if not references:
            return

        seen: Set[ExternalId] = set()
        candidates: List[ExternalId] = []
        for article in references:
            for ext in citing_ids(article):
                if ext in seen or ext in ctx.citing_candidates:
                    continue
                if ext.resolve_in(ctx.index):
                    continue
                seen.add(ext)
                candidates.append(ext)

        cap = min(self.limits.max_related_candidates, ctx.graph.remaining_budget)
        logger.info(f"[expansion] level 3: {len(candidates)} related candidates, cap {cap}")
        self._resolve_candidates(ctx, candidates[:cap], GraphLevel.RELATED)

    # shared

    def _collect_candidates(
        self,
        ctx: ExpansionContext,
        articles: List[ArticleRow],
        extract
    ) -> Tuple[List[ExternalId], int]:
        """
        unresolved identifiers nominated by each article, at most
        max_links_per_node per article. returns (candidates, total seen).
        """
        cap = ctx.request.max_links_per_node
        first_seen: Dict[ExternalId, int] = {}
        frequency: Counter = Counter()
        available = 0

        for article in articles:
            nominated: Set[ExternalId] = set()
            for ext in extract(article):
                if ext in nominated or ext.resolve_in(ctx.index):
                    continue
                available += 1
                if len(nominated) >= cap:
                    continue
                nominated.add(ext)
                frequency[ext] += 1
                first_seen.setdefault(ext, len(first_seen))

        candidates = list(first_seen)
        if ctx.request.sort_by == SortBy.FREQUENCY:
            candidates.sort(key=lambda e: (-frequency[e], first_seen[e]))
        elif ctx.request.sort_by in (SortBy.CITATIONS, SortBy.YEAR):
            candidates = self._rank_by_storage(ctx.request.sort_by, candidates)
        return candidates, available

    def _rank_by_storage(self, sort_by: SortBy,
                         candidates: List[ExternalId]) -> List[ExternalId]:
        """
        order candidates by citation count or year of their stored article.
        candidates unknown to the store rank last, in first-seen order.
        """
        head = candidates[:RANKING_LOOKUP_LIMIT]
        rows = self.store.find_articles_by_external_ids(
            pmids=[e.value for e in head if e.kind == "pmid"],
            dois=[e.value for e in head if e.kind == "doi"],
        )

        score: Dict[ExternalId, int] = {}
        for row in rows:
            value = cited_by_count(row) if sort_by == SortBy.CITATIONS else (row.year or 0)
            for ext in (ExternalId.pmid(row.pmid), ExternalId.doi(row.doi)):
                if ext:
                    score.setdefault(ext, value)

        # sorted is stable, ties keep first-seen order
        ranked = sorted(head, key=lambda e: -score.get(e, -1))
        return ranked + candidates[RANKING_LOOKUP_LIMIT:]

    def _resolve_candidates(
        self,
        ctx: ExpansionContext,
        candidates: List[ExternalId],
        level: GraphLevel
    ) -> List[ArticleRow]:
        """
        batch-resolve candidates against storage and add them as nodes.
        truncation to the remaining budget happens before the lookup.
        """
        budget = ctx.graph.remaining_budget
        if not candidates:
            return []
        if budget <= 0:
            logger.info(f"[expansion] level {level.value}: node budget exhausted, skipped")
            return []

        batch = candidates[:budget]
        request = ctx.request
        rows = self.store.find_articles_by_external_ids(
            pmids=[e.value for e in batch if e.kind == "pmid"],
            dois=[e.value for e in batch if e.kind == "doi"],
            year_from=request.year_from,
            year_to=request.year_to,
            min_stats_quality=request.min_stats_quality,
        )
        if request.sort_by == SortBy.YEAR:
            rows = sorted(rows, key=lambda r: -(r.year or 0))

        found: Set[ExternalId] = set()
        for row in rows:
            for ext in (ExternalId.pmid(row.pmid), ExternalId.doi(row.doi)):
                if ext:
                    found.add(ext)

        added: List[ArticleRow] = []
        for row in rows:
            if ctx.graph.is_full:
                break
            if ctx.graph.has_node(row.id) or ctx.index.resolve(row.doi, row.pmid):
                continue
            if ctx.graph.add_node(article_node(row, level)):
                ctx.index.register(row.id, doi=row.doi, pmid=row.pmid)
                added.append(row)

        placeholders = 0
        # with year/quality filters a miss may just be filtered out
        if not request.has_filters:
            for ext in batch:
                if ctx.graph.is_full:
                    break
                if ext in found or ext.resolve_in(ctx.index):
                    continue
                pmid = ext.value if ext.kind == "pmid" else None
                doi = ext.value if ext.kind == "doi" else None
                node_id = ctx.index.register_placeholder(pmid=pmid, doi=doi)
                if ctx.graph.add_node(placeholder_node(node_id, level, pmid=pmid, doi=doi)):
                    placeholders += 1

        ctx.articles_by_level[level].extend(added)
        logger.info(
            f"[expansion] level {level.value}: {len(added)} from storage, "
            f"{placeholders} placeholders (batch {len(batch)}/{len(candidates)})"
        )
        return added
