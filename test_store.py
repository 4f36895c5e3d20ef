#!/usr/bin/env python3
"""
test the sqlite article store: queries, capabilities, failures.

run with: pytest test_store.py -v
"""

import sqlite3

import pytest

from citegraph.core.db import ArticleStore
from citegraph.core.errors import StorageError
from citegraph.core.models import ArticleRow, GraphRequest, MembershipStatus, StatusFilter
from citegraph.graph.builder import CitationGraphBuilder


LEGACY_SCHEMA = """
    CREATE TABLE articles (
        id TEXT PRIMARY KEY, doi TEXT, pmid TEXT, title_en TEXT, authors TEXT,
        year INTEGER, journal TEXT, source TEXT, raw_json TEXT
    );
    CREATE TABLE project_articles (
        project_id TEXT NOT NULL, article_id TEXT NOT NULL, status TEXT NOT NULL,
        PRIMARY KEY (project_id, article_id)
    );
    INSERT INTO articles (id, doi, pmid, title_en, authors, year)
        VALUES ('L1', '10.1/l1', '11', 'Legacy one', '["Old A"]', 1999);
    INSERT INTO articles (id, doi, pmid, title_en, authors, year)
        VALUES ('L2', '10.1/l2', '12', 'Legacy two', 'Older B, Third C', 2001);
    INSERT INTO project_articles VALUES ('old', 'L1', 'selected');
    INSERT INTO project_articles VALUES ('old', 'L2', 'deleted');
"""


@pytest.fixture
def legacy_store(tmp_path):
    """database from before the citation columns existed."""
    path = tmp_path / "legacy.db"
    conn = sqlite3.connect(str(path))
    conn.executescript(LEGACY_SCHEMA)
    conn.commit()
    conn.close()
    return ArticleStore(str(path), create_schema=False)


class TestArticleStore:

    def test_capabilities_full_schema(self, store):
        caps = store.capabilities

        assert caps.reference_columns
        assert caps.reference_dois
        assert caps.source_query
        assert caps.stats_quality

    def test_round_trip_fields(self, store, add_article):
        add_article("A", pmid="1", doi="10.1/A", project="p", source_query="q1",
                    reference_pmids=["2", "3"], cited_by_pmids=["4"],
                    raw_json={"europePMCCitations": 7}, stats_quality=2)

        row = store.list_project_articles("p")[0]

        assert row.doi == "10.1/a"
        assert row.authors == ("Smith J",)
        assert row.status == "selected"
        assert row.source_query == "q1"
        assert row.stats_quality == 2
        assert row.raw_json == {"europePMCCitations": 7}
        assert row.reference_pmids == '["2", "3"]'

    def test_lookup_case_insensitive_doi(self, store, add_article):
        add_article("A", doi="10.1/MixedCase")

        rows = store.find_articles_by_external_ids(dois=["10.1/MIXEDCASE"])

        assert [r.id for r in rows] == ["A"]

    def test_lookup_dedups_and_filters(self, store, add_article):
        add_article("A", pmid="1", doi="10.1/a", year=2000)
        add_article("B", pmid="2", year=2020, stats_quality=3)

        rows = store.find_articles_by_external_ids(pmids=["1", "2"], dois=["10.1/a"])
        assert sorted(r.id for r in rows) == ["A", "B"]

        rows = store.find_articles_by_external_ids(pmids=["1", "2"], year_from=2010)
        assert [r.id for r in rows] == ["B"]

        rows = store.find_articles_by_external_ids(pmids=["1", "2"], min_stats_quality=3)
        assert [r.id for r in rows] == ["B"]

        assert store.find_articles_by_external_ids() == []

    def test_lookup_large_batch(self, store, add_article):
        for i in range(0, 1200, 3):
            add_article(f"A{i}", pmid=str(i))

        rows = store.find_articles_by_external_ids(pmids=[str(i) for i in range(1200)])

        assert len(rows) == 400

    def test_status_filters(self, store, add_article):
        add_article("S", pmid="1", project="p", status=MembershipStatus.SELECTED)
        add_article("D", pmid="2", project="p", status=MembershipStatus.DELETED)
        add_article("X", pmid="3", project="p", status=MembershipStatus.EXCLUDED)

        assert [r.id for r in store.list_project_articles("p")] == ["S", "X"]
        assert [r.id for r in store.list_project_articles("p", StatusFilter.EXCLUDED)] == ["X"]
        assert store.project_year_range("p") == (2020, 2020)

    def test_sources_filter(self, store, add_article):
        add_article("P", pmid="1", project="p")
        add_article("W", pmid="2", project="p", source="wiley")

        assert [r.id for r in store.list_project_articles("p", sources=["pubmed"])] == ["P"]
        assert [r.id for r in store.list_project_articles("p", sources=["wiley"])] == ["W"]

    def test_membership_upsert(self, store, add_article):
        add_article("A", pmid="1", project="p", status=MembershipStatus.CANDIDATE)
        store.add_membership("p", "A", MembershipStatus.SELECTED, source_query="q")

        rows = store.list_project_articles("p")
        assert len(rows) == 1
        assert rows[0].status == "selected"

    def test_placeholder_id_rejected(self, store):
        with pytest.raises(ValueError):
            store.add_article(ArticleRow(id="pmid:1", pmid="1"))

    def test_generated_id(self, store):
        article_id = store.add_article(ArticleRow(id="", pmid="77"))

        assert len(article_id) == 32
        assert store.count_articles() == 1

    def test_duplicate_pmid_is_storage_error(self, store, add_article):
        add_article("A", pmid="1")

        with pytest.raises(StorageError):
            add_article("B", pmid="1")

    def test_unopenable_database(self, tmp_path):
        with pytest.raises(StorageError):
            ArticleStore(str(tmp_path))


class TestLegacySchema:

    def test_capabilities_probed(self, legacy_store):
        caps = legacy_store.capabilities

        assert not caps.reference_columns
        assert not caps.reference_dois
        assert not caps.source_query
        assert not caps.stats_quality

    def test_reads_with_empty_defaults(self, legacy_store):
        rows = legacy_store.list_project_articles("old")

        assert [r.id for r in rows] == ["L1"]
        assert rows[0].reference_pmids is None
        assert rows[0].stats_quality == 0
        assert legacy_store.list_source_queries("old") is None

    def test_comma_separated_authors(self, legacy_store):
        rows = legacy_store.find_articles_by_external_ids(pmids=["12"])

        assert rows[0].authors == ("Older B", "Third C")

    def test_graph_without_citation_columns(self, legacy_store):
        builder = CitationGraphBuilder(legacy_store)
        builder.config.enrichment.enabled = False

        result = builder.build("old", GraphRequest(depth=3, min_stats_quality=2))

        assert result.node_ids() == ["L1"]
        assert result.edges == []
        assert "sourceQueries" not in result.available_facets
        assert result.available_facets["yearRange"] == {"min": 1999, "max": 1999}
