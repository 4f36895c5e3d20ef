"""
sqlite article store.
read side of the project literature: articles + project memberships.
"""

import sqlite3
import json
import uuid
import logging
from typing import List, Optional, Dict, Any, Tuple, Iterable, Sequence
from pathlib import Path
from dataclasses import dataclass
from contextlib import contextmanager

from .models import ArticleRow, MembershipStatus, StatusFilter
from .errors import StorageError
from .identifiers import normalize_doi, normalize_pmid, is_placeholder_id

logger = logging.getLogger("citegraph.db")

# sqlite default SQLITE_MAX_VARIABLE_NUMBER is 999 on older builds
MAX_PARAMS_PER_QUERY = 500


SCHEMA = """
    -- global article table (dedup by doi/pmid)
    CREATE TABLE IF NOT EXISTS articles (
        id TEXT PRIMARY KEY,
        doi TEXT,
        pmid TEXT,
        title_en TEXT,
        authors TEXT,                 -- json list
        year INTEGER,
        journal TEXT,
        source TEXT,
        raw_json TEXT,
        reference_pmids TEXT,         -- json list
        cited_by_pmids TEXT,          -- json list
        reference_dois TEXT,          -- json list
        crossref_cited_by_count INTEGER,
        stats_quality INTEGER DEFAULT 0
    );

    CREATE UNIQUE INDEX IF NOT EXISTS idx_articles_doi ON articles(doi);
    CREATE UNIQUE INDEX IF NOT EXISTS idx_articles_pmid ON articles(pmid);
    CREATE INDEX IF NOT EXISTS idx_articles_year ON articles(year);

    -- project membership
    CREATE TABLE IF NOT EXISTS project_articles (
        project_id TEXT NOT NULL,
        article_id TEXT NOT NULL REFERENCES articles(id) ON DELETE CASCADE,
        status TEXT NOT NULL DEFAULT 'candidate',
        source_query TEXT,
        PRIMARY KEY (project_id, article_id)
    );

    CREATE INDEX IF NOT EXISTS idx_project_articles_status
        ON project_articles(project_id, status);
"""


@dataclass(frozen=True)
class StoreCapabilities:
    """optional columns present in this database. probed once."""
    reference_columns: bool = True    # reference_pmids + cited_by_pmids
    reference_dois: bool = True
    source_query: bool = True
    stats_quality: bool = True
    crossref_counts: bool = True


def _chunks(items: Sequence[str], size: int) -> Iterable[Sequence[str]]:
    for i in range(0, len(items), size):
        yield items[i:i + size]


def _placeholders(n: int) -> str:
    return ", ".join("?" for _ in range(n))


class ArticleStore:
    """
    sqlite-backed article/membership store.
    all sqlite errors surface as StorageError.
    """

    def __init__(self, db_path: str = "citegraph.db", create_schema: bool = True):
        self.db_path = Path(db_path)
        if create_schema:
            self._init_db()
        self.capabilities = self._probe_capabilities()
        logger.debug(f"[db] capabilities for {self.db_path}: {self.capabilities}")

    def _init_db(self):
        """create tables if they don't exist."""
        with self._conn() as conn:
            conn.executescript(SCHEMA)

    @contextmanager
    def _conn(self):
        """context manager for db connection."""
        try:
            conn = sqlite3.connect(str(self.db_path))
        except sqlite3.Error as e:
            raise StorageError(f"cannot open {self.db_path}: {e}") from e
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StorageError(str(e)) from e
        finally:
            conn.close()

    def _probe_capabilities(self) -> StoreCapabilities:
        """check which optional columns exist."""
        with self._conn() as conn:
            article_cols = {r["name"] for r in conn.execute("PRAGMA table_info(articles)")}
            membership_cols = {r["name"] for r in conn.execute("PRAGMA table_info(project_articles)")}

        return StoreCapabilities(
            reference_columns={"reference_pmids", "cited_by_pmids"} <= article_cols,
            reference_dois="reference_dois" in article_cols,
            source_query="source_query" in membership_cols,
            stats_quality="stats_quality" in article_cols,
            crossref_counts="crossref_cited_by_count" in article_cols,
        )

    # read side

    def _article_columns(self, alias: str = "a") -> str:
        """select list; absent optional columns read as empty defaults."""
        caps = self.capabilities
        cols = [
            f"{alias}.id", f"{alias}.doi", f"{alias}.pmid", f"{alias}.title_en",
            f"{alias}.authors", f"{alias}.year", f"{alias}.journal",
            f"{alias}.source", f"{alias}.raw_json",
        ]
        if caps.reference_columns:
            cols += [f"{alias}.reference_pmids", f"{alias}.cited_by_pmids"]
        else:
            cols += ["NULL AS reference_pmids", "NULL AS cited_by_pmids"]
        cols.append(f"{alias}.reference_dois" if caps.reference_dois else "NULL AS reference_dois")
        cols.append(
            f"{alias}.crossref_cited_by_count" if caps.crossref_counts
            else "NULL AS crossref_cited_by_count"
        )
        cols.append(
            f"COALESCE({alias}.stats_quality, 0) AS stats_quality" if caps.stats_quality
            else "0 AS stats_quality"
        )
        return ", ".join(cols)

    def _filter_clause(
        self,
        year_from: Optional[int],
        year_to: Optional[int],
        min_stats_quality: Optional[int],
        alias: str = "a"
    ) -> Tuple[str, List[Any]]:
        """shared year / stats-quality conditions."""
        sql = ""
        params: List[Any] = []
        if year_from is not None:
            sql += f" AND {alias}.year >= ?"
            params.append(year_from)
        if year_to is not None:
            sql += f" AND {alias}.year <= ?"
            params.append(year_to)
        if self.capabilities.stats_quality and min_stats_quality and min_stats_quality > 0:
            sql += f" AND COALESCE({alias}.stats_quality, 0) >= ?"
            params.append(min_stats_quality)
        return sql, params

    def list_project_articles(
        self,
        project_id: str,
        status_filter: StatusFilter = StatusFilter.ALL,
        year_from: Optional[int] = None,
        year_to: Optional[int] = None,
        min_stats_quality: Optional[int] = None,
        source_queries: Optional[List[str]] = None,
        sources: Optional[List[str]] = None
    ) -> List[ArticleRow]:
        """
        project members joined with their article.
        deleted memberships are never returned.
        """
        params: List[Any] = [project_id]

        if status_filter == StatusFilter.ALL:
            status_sql = " AND pa.status != ?"
            params.append(MembershipStatus.DELETED.value)
        else:
            status_sql = " AND pa.status = ?"
            params.append(status_filter.value)

        source_query_sql = ""
        if self.capabilities.source_query and source_queries:
            source_query_sql = f" AND pa.source_query IN ({_placeholders(len(source_queries))})"
            params.extend(source_queries)

        filter_sql, filter_params = self._filter_clause(year_from, year_to, min_stats_quality)
        params.extend(filter_params)

        sources_sql = ""
        if sources:
            sources_sql = f" AND COALESCE(a.source, 'pubmed') IN ({_placeholders(len(sources))})"
            params.extend(sources)

        membership_cols = "pa.status"
        membership_cols += ", pa.source_query" if self.capabilities.source_query else ", NULL AS source_query"

        sql = f"""
            SELECT {self._article_columns()}, {membership_cols}
            FROM project_articles pa
            JOIN articles a ON a.id = pa.article_id
            WHERE pa.project_id = ?{status_sql}{source_query_sql}{filter_sql}{sources_sql}
            ORDER BY pa.rowid
        """

        with self._conn() as conn:
            rows = conn.execute(sql, params).fetchall()

        return [self._row_to_article(r) for r in rows]

    def find_articles_by_external_ids(
        self,
        pmids: Optional[List[str]] = None,
        dois: Optional[List[str]] = None,
        year_from: Optional[int] = None,
        year_to: Optional[int] = None,
        min_stats_quality: Optional[int] = None
    ) -> List[ArticleRow]:
        """
        batch lookup by exact pmid or case-insensitive doi.
        same year/quality filters as the project query.
        """
        pmids = [p for p in (normalize_pmid(p) for p in (pmids or [])) if p]
        dois = [d for d in (normalize_doi(d) for d in (dois or [])) if d]
        if not pmids and not dois:
            return []

        filter_sql, filter_params = self._filter_clause(year_from, year_to, min_stats_quality)
        found: Dict[str, ArticleRow] = {}

        with self._conn() as conn:
            for chunk in _chunks(pmids, MAX_PARAMS_PER_QUERY):
                sql = f"""
                    SELECT {self._article_columns()}
                    FROM articles a
                    WHERE a.pmid IN ({_placeholders(len(chunk))}){filter_sql}
                    ORDER BY a.rowid
                """
                for r in conn.execute(sql, list(chunk) + filter_params):
                    found.setdefault(r["id"], self._row_to_article(r))

            for chunk in _chunks(dois, MAX_PARAMS_PER_QUERY):
                sql = f"""
                    SELECT {self._article_columns()}
                    FROM articles a
                    WHERE LOWER(a.doi) IN ({_placeholders(len(chunk))}){filter_sql}
                    ORDER BY a.rowid
                """
                for r in conn.execute(sql, list(chunk) + filter_params):
                    found.setdefault(r["id"], self._row_to_article(r))

        return list(found.values())

    def list_source_queries(self, project_id: str) -> Optional[List[str]]:
        """distinct source_query labels, None when the column is absent."""
        if not self.capabilities.source_query:
            return None
        with self._conn() as conn:
            rows = conn.execute(
                """
                SELECT DISTINCT source_query FROM project_articles
                WHERE project_id = ? AND status != ?
                  AND source_query IS NOT NULL AND source_query != ''
                ORDER BY source_query
                """,
                (project_id, MembershipStatus.DELETED.value)
            ).fetchall()
        return [r["source_query"] for r in rows]

    def project_year_range(self, project_id: str) -> Tuple[Optional[int], Optional[int]]:
        """min/max publication year over the project's visible articles."""
        with self._conn() as conn:
            row = conn.execute(
                """
                SELECT MIN(a.year) AS min_year, MAX(a.year) AS max_year
                FROM project_articles pa
                JOIN articles a ON a.id = pa.article_id
                WHERE pa.project_id = ? AND pa.status != ? AND a.year IS NOT NULL
                """,
                (project_id, MembershipStatus.DELETED.value)
            ).fetchone()
        return row["min_year"], row["max_year"]

    # write side (imports and fixtures)

    def add_article(self, article: ArticleRow) -> str:
        """insert an article, returns its storage id."""
        article_id = article.id or uuid.uuid4().hex
        if is_placeholder_id(article_id):
            raise ValueError(f"storage id may not use a placeholder prefix: {article_id}")

        with self._conn() as conn:
            conn.execute(
                """
                INSERT INTO articles (
                    id, doi, pmid, title_en, authors, year, journal, source, raw_json,
                    reference_pmids, cited_by_pmids, reference_dois,
                    crossref_cited_by_count, stats_quality
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    article_id,
                    normalize_doi(article.doi),
                    normalize_pmid(article.pmid),
                    article.title,
                    json.dumps(list(article.authors)),
                    article.year,
                    article.journal,
                    article.source,
                    json.dumps(article.raw_json) if article.raw_json is not None else None,
                    self._dump_list(article.reference_pmids),
                    self._dump_list(article.cited_by_pmids),
                    self._dump_list(article.reference_dois),
                    article.crossref_cited_by_count,
                    article.stats_quality or 0,
                )
            )
        return article_id

    def add_membership(
        self,
        project_id: str,
        article_id: str,
        status: MembershipStatus = MembershipStatus.CANDIDATE,
        source_query: Optional[str] = None
    ):
        """attach an article to a project (upsert)."""
        with self._conn() as conn:
            conn.execute(
                """
                INSERT INTO project_articles (project_id, article_id, status, source_query)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(project_id, article_id)
                DO UPDATE SET status = excluded.status, source_query = excluded.source_query
                """,
                (project_id, article_id, status.value, source_query)
            )

    def count_articles(self) -> int:
        with self._conn() as conn:
            return conn.execute("SELECT COUNT(*) FROM articles").fetchone()[0]

    # helpers

    def _dump_list(self, value: Any) -> Optional[str]:
        if value is None:
            return None
        if isinstance(value, str):
            return value
        return json.dumps([str(v) for v in value])

    def _row_to_article(self, row: sqlite3.Row) -> ArticleRow:
        """convert db row to ArticleRow."""
        keys = row.keys()

        authors: Tuple[str, ...] = ()
        if row["authors"]:
            try:
                parsed = json.loads(row["authors"])
                if isinstance(parsed, list):
                    authors = tuple(str(a) for a in parsed)
                else:
                    authors = (str(parsed),)
            except ValueError:
                authors = tuple(a.strip() for a in row["authors"].split(",") if a.strip())

        raw_json = None
        if row["raw_json"]:
            try:
                raw_json = json.loads(row["raw_json"])
            except ValueError:
                logger.debug(f"[db] unreadable raw_json for article {row['id']}")

        return ArticleRow(
            id=row["id"],
            doi=row["doi"],
            pmid=row["pmid"],
            title=row["title_en"],
            authors=authors,
            year=row["year"],
            journal=row["journal"],
            source=row["source"],
            reference_pmids=row["reference_pmids"],
            reference_dois=row["reference_dois"],
            cited_by_pmids=row["cited_by_pmids"],
            crossref_cited_by_count=row["crossref_cited_by_count"],
            stats_quality=row["stats_quality"] or 0,
            raw_json=raw_json if isinstance(raw_json, dict) else None,
            status=row["status"] if "status" in keys else None,
            source_query=row["source_query"] if "source_query" in keys else None,
        )
