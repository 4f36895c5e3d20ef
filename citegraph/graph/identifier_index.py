"""
identifier index - doi/pmid -> node id lookup.
the one place that decides whether an article is already a node.
"""

from typing import Optional, Dict

from ..core.identifiers import (
    normalize_doi, normalize_pmid,
    pmid_placeholder_id, doi_placeholder_id
)


class IdentifierIndex:
    """
    maps external identifiers to graph node ids.
    dois are keyed lower-cased, pmids as exact strings.
    first registration wins; later ones never overwrite.
    """

    def __init__(self):
        self.doi_to_node: Dict[str, str] = {}
        self.pmid_to_node: Dict[str, str] = {}

    def register(self, node_id: str, doi: Optional[str] = None,
                 pmid: Optional[str] = None):
        """record the identifiers of a node."""
        doi = normalize_doi(doi)
        pmid = normalize_pmid(pmid)
        if doi:
            self.doi_to_node.setdefault(doi, node_id)
        if pmid:
            self.pmid_to_node.setdefault(pmid, node_id)

    def resolve(self, doi: Optional[str] = None,
                pmid: Optional[str] = None) -> Optional[str]:
        """existing node id for either identifier, doi first."""
        doi = normalize_doi(doi)
        if doi and doi in self.doi_to_node:
            return self.doi_to_node[doi]
        pmid = normalize_pmid(pmid)
        if pmid and pmid in self.pmid_to_node:
            return self.pmid_to_node[pmid]
        return None

    def placeholder_id(self, pmid: Optional[str] = None,
                       doi: Optional[str] = None) -> str:
        """synthetic id for an identifier not found in storage."""
        pmid = normalize_pmid(pmid)
        if pmid:
            return pmid_placeholder_id(pmid)
        doi = normalize_doi(doi)
        if doi:
            return doi_placeholder_id(doi)
        raise ValueError("placeholder needs a pmid or a doi")

    def register_placeholder(self, pmid: Optional[str] = None,
                             doi: Optional[str] = None) -> str:
        """
        register an unresolved identifier, returns its node id.
        an identifier that is already known keeps its existing node.
        """
        existing = self.resolve(doi=doi, pmid=pmid)
        if existing:
            return existing
        node_id = self.placeholder_id(pmid=pmid, doi=doi)
        self.register(node_id, doi=doi, pmid=pmid)
        return node_id
