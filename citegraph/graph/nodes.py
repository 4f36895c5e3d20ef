"""
graph node construction from storage rows and unresolved identifiers.
"""

from typing import Optional, Sequence, Any

from ..core.models import ArticleRow, GraphNode, GraphLevel
from ..core.identifiers import to_string_list, normalize_doi


def first_author_token(authors: Sequence[str]) -> str:
    """first word of the first author ("Smith J" -> "Smith")."""
    for author in authors or ():
        author = (author or "").strip()
        if author:
            return author.split()[0].rstrip(",")
    return "Unknown"


def node_label(authors: Sequence[str], year: Optional[int]) -> str:
    return f"{first_author_token(authors)} ({year or '?'})"


def _as_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def cited_by_count(article: ArticleRow) -> int:
    """best citation count across pubmed, europe pmc and crossref."""
    raw = article.raw_json or {}
    pubmed = len(to_string_list(article.cited_by_pmids))
    europe_pmc = _as_int(raw.get("europePMCCitations"))
    crossref = _as_int(article.crossref_cited_by_count or raw.get("crossrefCitedByCount"))
    return max(pubmed, europe_pmc, crossref)


def article_node(article: ArticleRow, level: GraphLevel) -> GraphNode:
    """node for an article found in storage."""
    if level == GraphLevel.PROJECT:
        status = article.status or "candidate"
        source = article.source or "pubmed"
    else:
        status = level.status_tag
        source = article.source

    return GraphNode(
        id=article.id,
        label=node_label(article.authors, article.year),
        graph_level=level,
        status=status,
        title=article.title or None,
        authors=", ".join(article.authors) or None,
        journal=article.journal or None,
        year=article.year,
        doi=article.doi,
        pmid=article.pmid,
        cited_by_count=cited_by_count(article),
        stats_quality=article.stats_quality or 0,
        source=source,
    )


def placeholder_node(node_id: str, level: GraphLevel,
                     pmid: Optional[str] = None,
                     doi: Optional[str] = None) -> GraphNode:
    """bare node for an identifier that is not in storage."""
    if pmid:
        label = f"PMID:{pmid}"
    else:
        doi = normalize_doi(doi)
        label = f"DOI:{doi[:20]}..." if doi and len(doi) > 20 else f"DOI:{doi}"

    return GraphNode(
        id=node_id,
        label=label,
        graph_level=level,
        status=level.status_tag,
        pmid=pmid,
        doi=doi if not pmid else None,
        is_placeholder=True,
        source="crossref" if not pmid else None,
    )
