"""
seed loader - the project's own articles (level 1).
"""

import logging
from typing import List

from ..core.db import ArticleStore
from ..core.models import ArticleRow, GraphRequest, MembershipStatus

logger = logging.getLogger("citegraph.seeds")


class SeedLoader:
    """loads level-1 candidates under the request's filters."""

    def __init__(self, store: ArticleStore):
        self.store = store

    def load(self, project_id: str, request: GraphRequest) -> List[ArticleRow]:
        rows = self.store.list_project_articles(
            project_id,
            status_filter=request.filter,
            year_from=request.year_from,
            year_to=request.year_to,
            min_stats_quality=request.min_stats_quality,
            source_queries=request.source_queries,
            sources=request.sources,
        )

        # deleted memberships are never part of a graph
        visible = [r for r in rows if r.status != MembershipStatus.DELETED.value]
        if len(visible) != len(rows):
            logger.warning(
                f"[seeds] store returned {len(rows) - len(visible)} deleted memberships, dropped"
            )

        logger.info(
            f"[seeds] project {project_id}: {len(visible)} articles "
            f"(filter={request.filter.value})"
        )
        return visible
