"""
collection importer - load a JSON export of articles into the store.
supports a bare list or one wrapped in papers/articles/results/data/items.
"""

import json
import logging
from typing import List, Optional, Dict, Any

from ..core.db import ArticleStore
from ..core.identifiers import normalize_doi, normalize_pmid, to_string_list
from ..core.models import ArticleRow, MembershipStatus

logger = logging.getLogger("citegraph.inputs")


def _extract_field(item: Dict, keys: List[str]) -> Any:
    """first present, non-empty value among keys."""
    for key in keys:
        if key and key in item and item[key] not in (None, ""):
            return item[key]
    return None


def _parse_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _parse_year(value: Any) -> Optional[int]:
    return _parse_int(str(value)[:4]) if value is not None else None


def _parse_authors(value: Any) -> tuple:
    if isinstance(value, str):
        return tuple(a.strip() for a in value.split(',') if a.strip())
    if isinstance(value, list):
        return tuple(str(a).strip() for a in value if str(a).strip())
    return ()


def _parse_status(value: Any) -> MembershipStatus:
    try:
        return MembershipStatus(str(value).strip().lower())
    except ValueError:
        return MembershipStatus.CANDIDATE


def read_records(path: str) -> List[Dict[str, Any]]:
    """raw article dicts from a JSON file."""
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)

    if isinstance(data, dict):
        for key in ['articles', 'papers', 'results', 'data', 'items']:
            if key in data:
                data = data[key]
                break

    if not isinstance(data, list):
        logger.warning(f"[collection] unexpected JSON format in {path}")
        return []
    return [item for item in data if isinstance(item, dict)]


def record_to_article(item: Dict[str, Any]) -> Optional[ArticleRow]:
    """map one export record to an ArticleRow; None without doi, pmid or title."""
    doi = normalize_doi(_extract_field(item, ['doi', 'DOI', 'Doi']))
    pmid = normalize_pmid(_extract_field(item, ['pmid', 'PMID', 'pubmed_id']))
    title = _extract_field(item, ['title', 'title_en', 'Title'])
    if not (doi or pmid or title):
        return None

    quality = _extract_field(item, ['statsQuality', 'stats_quality'])
    crossref_count = _extract_field(item, ['crossrefCitedByCount', 'crossref_cited_by_count'])

    return ArticleRow(
        id=str(_extract_field(item, ['id']) or ""),
        doi=doi,
        pmid=pmid,
        title=title,
        authors=_parse_authors(_extract_field(item, ['authors', 'Authors'])),
        year=_parse_year(_extract_field(item, ['year', 'Year', 'publication_year'])),
        journal=_extract_field(item, ['journal', 'venue', 'Journal']),
        source=_extract_field(item, ['source']) or "pubmed",
        reference_pmids=to_string_list(_extract_field(item, ['referencePmids', 'reference_pmids'])),
        reference_dois=to_string_list(_extract_field(item, ['referenceDois', 'reference_dois'])),
        cited_by_pmids=to_string_list(_extract_field(item, ['citedByPmids', 'cited_by_pmids'])),
        crossref_cited_by_count=_parse_int(crossref_count),
        stats_quality=_parse_int(quality) or 0,
        raw_json=_extract_field(item, ['rawJson', 'raw_json']),
    )


def import_collection(
    store: ArticleStore,
    records: List[Dict[str, Any]],
    project_id: Optional[str] = None
) -> Dict[str, int]:
    """
    store every record; with a project id, also record memberships
    (status/sourceQuery fields). articles already stored are reused by doi/pmid.
    """
    counts = {"articles": 0, "reused": 0, "memberships": 0, "skipped": 0}

    for item in records:
        article = record_to_article(item)
        if article is None:
            counts["skipped"] += 1
            continue

        existing = store.find_articles_by_external_ids(
            pmids=[article.pmid] if article.pmid else [],
            dois=[article.doi] if article.doi else [],
        )
        if existing:
            article_id = existing[0].id
            counts["reused"] += 1
        else:
            article_id = store.add_article(article)
            counts["articles"] += 1

        if project_id:
            store.add_membership(
                project_id,
                article_id,
                status=_parse_status(_extract_field(item, ['status']) or "candidate"),
                source_query=_extract_field(item, ['sourceQuery', 'source_query']),
            )
            counts["memberships"] += 1

    logger.info(
        f"[collection] imported {counts['articles']} articles "
        f"({counts['reused']} reused, {counts['skipped']} skipped)"
    )
    return counts
