"""
base interface for bibliographic lookups.
placeholder enrichment talks to every source through this interface.
"""

from abc import ABC, abstractmethod
from typing import List

from ..core.models import PartialArticle


class BibliographicLookup(ABC):
    """abstract base class for metadata sources keyed by one identifier kind."""

    name: str = "base"

    @abstractmethod
    def fetch_by_ids(self, ids: List[str], throttle_ms: int = 200) -> List[PartialArticle]:
        """
        fetch metadata for a batch of identifiers (pmids or dois).
        throttle_ms is the pause between consecutive upstream requests.
        raises LookupFailed when the batch cannot be fetched.
        """
        pass
