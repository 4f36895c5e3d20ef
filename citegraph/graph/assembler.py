"""
result assembler - built graph + facets -> GraphResult.
"""

from typing import Optional, List, Dict, Any, Tuple

from ..core.models import GraphResult, EnrichmentResult
from .expansion import ExpansionContext


class ResultAssembler:
    """pure: reads the build context, touches nothing."""

    def assemble(
        self,
        ctx: ExpansionContext,
        enrichment: Optional[EnrichmentResult] = None,
        source_queries: Optional[List[str]] = None,
        year_range: Optional[Tuple[Optional[int], Optional[int]]] = None
    ) -> GraphResult:
        graph = ctx.graph
        counts = graph.level_counts()

        facets: Dict[str, Any] = {}
        # absent when the store has no source_query column
        if source_queries is not None:
            facets["sourceQueries"] = list(source_queries)
        low, high = year_range or (None, None)
        facets["yearRange"] = {"min": low, "max": high}

        stats = graph.stats()
        stats.update({
            "levelCounts": counts.to_dict(),
            "availableReferences": ctx.available_references,
            "availableCiting": ctx.available_citing,
            "seedArticles": len(ctx.seed_rows),
        })

        return GraphResult(
            nodes=list(graph.nodes.values()),
            edges=list(graph.edges),
            level_counts=counts,
            available_facets=facets,
            applied_limits=ctx.request.limits(),
            stats=stats,
            enrichment=enrichment or EnrichmentResult(),
        )
