"""
shared fixtures: on-disk sqlite store, article factory, fake lookup.
"""

import threading

import pytest

from citegraph.core.config import CitegraphConfig
from citegraph.core.db import ArticleStore
from citegraph.core.models import ArticleRow, MembershipStatus, PartialArticle
from citegraph.graph.builder import CitationGraphBuilder
from citegraph.providers.base import BibliographicLookup


class FakeLookup(BibliographicLookup):
    """in-memory lookup; records every call."""

    def __init__(self, articles=None, error=None, block=None, key="pmid", name="fake"):
        self.name = name
        self.articles = {getattr(a, key): a for a in (articles or [])}
        self.error = error
        # event the call waits on before answering
        self.block = block
        self.calls = []

    def fetch_by_ids(self, ids, throttle_ms=200):
        self.calls.append((list(ids), throttle_ms))
        if self.block is not None:
            self.block.wait(5)
        if self.error:
            raise self.error
        return [self.articles[i] for i in ids if i in self.articles]


@pytest.fixture
def store(tmp_path):
    """empty store with the full schema."""
    return ArticleStore(str(tmp_path / "citegraph.db"))


@pytest.fixture
def add_article(store):
    """factory: store an article, optionally as a project member."""
    def _add(article_id, pmid=None, doi=None, year=2020, authors=("Smith J",),
             project=None, status=MembershipStatus.SELECTED, source_query=None, **fields):
        store.add_article(ArticleRow(
            id=article_id,
            pmid=pmid,
            doi=doi,
            title=f"Article {article_id}",
            authors=tuple(authors),
            year=year,
            journal="Test Journal",
            **fields
        ))
        if project:
            store.add_membership(project, article_id, status=status, source_query=source_query)
        return article_id
    return _add


@pytest.fixture
def offline_config():
    return CitegraphConfig.offline()


@pytest.fixture
def builder(store, offline_config):
    """builder without external enrichment."""
    return CitationGraphBuilder(store, config=offline_config)


@pytest.fixture
def abc_project(add_article):
    """
    project p1 with selected articles A, B, C.
    A references B by pmid, C references pmid 999 (not stored).
    """
    add_article("A", pmid="101", doi="10.1000/a", project="p1",
                reference_pmids=["102"], stats_quality=3)
    add_article("B", pmid="102", doi="10.1000/b", project="p1", stats_quality=1)
    add_article("C", pmid="103", doi="10.1000/c", project="p1",
                reference_pmids=["999"], stats_quality=2)
    return "p1"


@pytest.fixture
def release():
    """event released at teardown so blocked lookup threads finish."""
    event = threading.Event()
    yield event
    event.set()


@pytest.fixture
def partial_999():
    return PartialArticle(
        pmid="999",
        doi="10.1000/XYZ",
        title="External article",
        authors=["Doe J", "Roe R"],
        journal="External Journal",
        year=2018,
        abstract="Treatment improved outcomes (p < 0.0001; 95% CI 1.2-2.4).",
    )


@pytest.fixture
def crossref_work():
    return PartialArticle(
        doi="10.2000/ext",
        title="Crossref-only article",
        authors=["Kim S", "Park J"],
        journal="Registry Journal",
        year=2015,
        abstract="Risk fell (p = 0.004).",
        cited_by_count=42,
    )
