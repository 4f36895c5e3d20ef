"""
pubmed lookup using NCBI E-utilities.
docs: https://www.ncbi.nlm.nih.gov/books/NBK25501/
no api key required, but rate limited to 3 req/sec (10 with key).
"""

import re
import time
import logging
import threading
import xml.etree.ElementTree as ET
from typing import List, Optional, Dict, Callable

import httpx

from ..core.config import ProviderConfig
from ..core.errors import LookupFailed
from ..core.identifiers import normalize_doi, normalize_pmid
from ..core.models import PartialArticle
from ..core.resilience import RetryConfig, retry_with_backoff
from .base import BibliographicLookup

logger = logging.getLogger("citegraph.providers.pubmed")

# efetch accepts up to 200 ids per GET
FETCH_BATCH = 200


class PubMedLookup(BibliographicLookup):
    """
    pubmed efetch client.
    rate limit: 3 req/sec without key, 10 req/sec with key.
    """

    name = "pubmed"
    BASE_URL = "https://eutils.ncbi.nlm.nih.gov/entrez/eutils"

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
        self._rate_lock = threading.Lock()  # thread-safe rate limiting

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
        """close the http client."""
        if self._session and not self._session.is_closed:
            self._session.close()
            self._session = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def _rate_limit(self, throttle_ms: int = 0):
        """ensure we don't exceed rate limit."""
        min_delay = max(self.config.min_delay, throttle_ms / 1000.0)
        with self._rate_lock:
            elapsed = time.monotonic() - self._last_request
            if self._last_request and elapsed < min_delay:
                self.sleep(min_delay - elapsed)
            self._last_request = time.monotonic()

    def _get_once(self, endpoint: str, params: Dict, throttle_ms: int = 0) -> httpx.Response:
        """single request; transient failures raise retryable errors."""
        params = dict(params)
        params['email'] = self.config.pubmed_email
        if self.config.pubmed_api_key:
            params['api_key'] = self.config.pubmed_api_key

        self._rate_limit(throttle_ms)
        response = self.session.get(f"{self.BASE_URL}/{endpoint}", params=params)

        if response.status_code == 429:
            # rate limited - raise to trigger retry
            logger.warning(f"[pubmed] rate limited on {endpoint}")
            raise ConnectionError("rate limited")
        if response.status_code >= 500:
            logger.warning(f"[pubmed] server error {response.status_code} on {endpoint}")
            raise ConnectionError(f"server error {response.status_code}")
        if response.status_code != 200:
            raise LookupFailed(f"pubmed returned {response.status_code} for {endpoint}")
        return response

    def fetch_by_ids(self, ids: List[str], throttle_ms: int = 200) -> List[PartialArticle]:
        """efetch metadata for pmids, in batches of 200."""
        pmids = []
        for pmid in ids:
            pmid = normalize_pmid(pmid)
            if pmid and pmid.isdigit() and pmid not in pmids:
                pmids.append(pmid)
        if not pmids:
            return []

        articles = []
        for i in range(0, len(pmids), FETCH_BATCH):
            batch = pmids[i:i + FETCH_BATCH]
            params = {
                'db': 'pubmed',
                'id': ','.join(batch),
                'retmode': 'xml'
            }
            try:
                response = self._get('efetch.fcgi', params, throttle_ms)
            except (OSError, httpx.HTTPError) as e:
                raise LookupFailed(f"pubmed efetch failed: {e}") from e

            articles.extend(self.parse_efetch(response.content))

        logger.info(f"[pubmed] fetched {len(articles)}/{len(pmids)} articles")
        return articles

    @classmethod
    def parse_efetch(cls, content: bytes) -> List[PartialArticle]:
        try:
            root = ET.fromstring(content)
        except ET.ParseError as e:
            raise LookupFailed(f"pubmed xml parse error: {e}") from e

        articles = []
        for element in root.findall('.//PubmedArticle'):
            article = cls._parse_article(element)
            if article:
                articles.append(article)
        return articles

    @staticmethod
    def _parse_year(art: ET.Element) -> Optional[int]:
        candidates = [
            art.findtext('.//Journal/JournalIssue/PubDate/Year'),
            art.findtext('.//ArticleDate/Year'),
            art.findtext('.//Journal/JournalIssue/PubDate/MedlineDate'),
        ]
        for text in candidates:
            match = re.search(r'\d{4}', text or '')
            if match:
                return int(match.group(0))
        return None

    @classmethod
    def _parse_article(cls, article: ET.Element) -> Optional[PartialArticle]:
        """parse pubmed article xml to PartialArticle."""
        medline = article.find('.//MedlineCitation')
        if medline is None:
            return None

        pmid = normalize_pmid(medline.findtext('PMID', ''))
        art = medline.find('Article')
        if not pmid or art is None:
            return None

        title_elem = art.find('ArticleTitle')
        title = ''.join(title_elem.itertext()).strip() if title_elem is not None else ''

        # abstract
        abstract_parts = art.findall('.//Abstract/AbstractText')
        abstract = ' '.join(''.join(a.itertext()) for a in abstract_parts).strip()

        # authors as "LastName Initials"
        authors = []
        for author in art.findall('.//AuthorList/Author'):
            lastname = author.findtext('LastName', '')
            initials = author.findtext('Initials', '')
            if lastname:
                authors.append(f"{lastname} {initials}".strip())
            elif author.findtext('CollectiveName'):
                authors.append(author.findtext('CollectiveName'))

        journal = art.findtext('.//Journal/Title') or None

        # doi
        doi = None
        for id_elem in article.findall('.//PubmedData/ArticleIdList/ArticleId'):
            if id_elem.get('IdType') == 'doi' and id_elem.text:
                doi = normalize_doi(id_elem.text)
                break
        if doi is None:
            for eloc in art.findall('ELocationID'):
                if eloc.get('EIdType') == 'doi' and eloc.text:
                    doi = normalize_doi(eloc.text)
                    break

        return PartialArticle(
            pmid=pmid,
            doi=doi,
            title=title or None,
            authors=authors,
            journal=journal,
            year=cls._parse_year(art),
            abstract=abstract or None,
        )
