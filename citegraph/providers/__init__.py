from .base import BibliographicLookup
from .pubmed import PubMedLookup
from .crossref import CrossrefLookup
