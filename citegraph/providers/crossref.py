"""
crossref lookup for DOI placeholders.
docs: https://api.crossref.org/swagger-ui/index.html
free; polite pool when the user agent carries a mailto.
"""

import re
import html
import time
import logging
import threading
from typing import List, Optional, Dict, Any, Callable
from urllib.parse import quote

import httpx

from ..core.config import ProviderConfig
from ..core.errors import LookupFailed
from ..core.identifiers import normalize_doi
from ..core.models import PartialArticle
from ..core.resilience import RetryConfig, retry_with_backoff
from .base import BibliographicLookup

logger = logging.getLogger("citegraph.providers.crossref")

# date fields in order of preference
DATE_FIELDS = ("issued", "published", "published-print", "published-online", "created")

TAG_PATTERN = re.compile(r'<[^>]*>')


class CrossrefLookup(BibliographicLookup):
    """
    crossref /works client keyed by doi.
    one request per doi; a doi crossref does not know is skipped.
    """

    name = "crossref"
    BASE_URL = "https://api.crossref.org"

    def __init__(
        self,
        config: Optional[ProviderConfig] = None,
        client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.config = config or ProviderConfig()
        self._session = client
        self.sleep = sleep
        self._last_request = 0.0
        self._rate_lock = threading.Lock()
        self.headers = {
            'User-Agent': f'citegraph/0.1 (mailto:{self.config.crossref_mailto})'
        }

        retry = RetryConfig(
            max_attempts=max(1, self.config.max_retries),
            retryable_exceptions=(
                ConnectionError,
                TimeoutError,
                OSError,
                httpx.TransportError,
            )
        )
        self._get = retry_with_backoff(retry, sleep=sleep)(self._get_once)

    @property
    def session(self) -> httpx.Client:
        """lazy client initialization."""
        if self._session is None or self._session.is_closed:
            self._session = httpx.Client(timeout=self.config.request_timeout)
        return self._session

    def close(self):
        if self._session and not self._session.is_closed:
            self._session.close()
            self._session = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def _rate_limit(self, throttle_ms: int = 0):
        min_delay = throttle_ms / 1000.0
        with self._rate_lock:
            elapsed = time.monotonic() - self._last_request
            if self._last_request and elapsed < min_delay:
                self.sleep(min_delay - elapsed)
            self._last_request = time.monotonic()

    def _get_once(self, doi: str, throttle_ms: int = 0) -> Optional[Dict[str, Any]]:
        """work metadata for one doi, None when crossref does not know it."""
        self._rate_limit(throttle_ms)
        url = f"{self.BASE_URL}/works/{quote(doi, safe='/')}"
        response = self.session.get(url, headers=self.headers)

        if response.status_code == 404:
            return None
        if response.status_code == 429:
            logger.warning(f"[crossref] rate limited on {doi}")
            raise ConnectionError("rate limited")
        if response.status_code >= 500:
            logger.warning(f"[crossref] server error {response.status_code} on {doi}")
            raise ConnectionError(f"server error {response.status_code}")
        if response.status_code != 200:
            raise LookupFailed(f"crossref returned {response.status_code} for {doi}")

        try:
            data = response.json()
        except ValueError as e:
            raise LookupFailed(f"crossref returned invalid json for {doi}") from e
        message = data.get("message") if isinstance(data, dict) else None
        return message if isinstance(message, dict) else None

    def fetch_by_ids(self, ids: List[str], throttle_ms: int = 100) -> List[PartialArticle]:
        """
        fetch metadata for dois one at a time.
        single failures are skipped; raises LookupFailed only when
        every doi failed.
        """
        dois = []
        for doi in ids:
            doi = normalize_doi(doi)
            if doi and doi not in dois:
                dois.append(doi)
        if not dois:
            return []

        articles = []
        errors = []
        for doi in dois:
            try:
                work = self._get(doi, throttle_ms)
            except (LookupFailed, OSError, httpx.HTTPError) as e:
                logger.debug(f"[crossref] {doi}: {e}")
                errors.append(str(e))
                continue
            if work:
                articles.append(self.parse_work(work, doi))

        if errors and len(errors) == len(dois):
            raise LookupFailed(f"crossref lookup failed for all {len(dois)} dois: {errors[-1]}")

        logger.info(
            f"[crossref] fetched {len(articles)}/{len(dois)} works"
            + (f", {len(errors)} failed" if errors else "")
        )
        return articles

    @staticmethod
    def _parse_year(work: Dict[str, Any]) -> Optional[int]:
        for key in DATE_FIELDS:
            parts = (work.get(key) or {}).get('date-parts') or [[]]
            if parts and parts[0] and parts[0][0]:
                try:
                    return int(parts[0][0])
                except (TypeError, ValueError):
                    continue
        return None

    @staticmethod
    def _parse_author(author: Dict[str, Any]) -> Optional[str]:
        """family name plus initials, same shape as pubmed author names."""
        family = (author.get('family') or '').strip()
        given = (author.get('given') or '').strip()
        if not family:
            return author.get('name') or given or None
        initials = ''.join(part[0] for part in re.split(r'[\s.\-]+', given) if part)
        return f"{family} {initials}".strip()

    @classmethod
    def parse_work(cls, work: Dict[str, Any], doi: Optional[str] = None) -> PartialArticle:
        """crossref work json to PartialArticle."""
        titles = [t for t in work.get("title") or [] if t]
        journals = work.get('container-title') or []

        authors = []
        for author in work.get('author') or []:
            name = cls._parse_author(author) if isinstance(author, dict) else None
            if name:
                authors.append(name)

        abstract = work.get('abstract')
        if abstract:
            # jats markup and entities
            abstract = " ".join(html.unescape(TAG_PATTERN.sub(" ", abstract)).split())

        cited_by = work.get('is-referenced-by-count')
        return PartialArticle(
            doi=normalize_doi(work.get('DOI')) or normalize_doi(doi),
            title=titles[0].strip() if titles else None,
            authors=authors,
            journal=journals[0] if journals else None,
            year=cls._parse_year(work),
            abstract=abstract or None,
            cited_by_count=int(cited_by) if isinstance(cited_by, int) else None,
        )
