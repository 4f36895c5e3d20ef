"""
identifier helpers: doi/pmid normalization and array field parsing.
"""

import re
import json
from typing import Any, List, Optional


PMID_PREFIX = "pmid:"
DOI_PREFIX = "doi:"

# greedy on purpose: takes everything up to the next whitespace
DOI_PATTERN = re.compile(r'10\.\d{4,}/[^\s]+')


def normalize_doi(doi: Optional[str]) -> Optional[str]:
    """normalize DOI format for comparison."""
    if not doi:
        return None
    doi = str(doi).strip()
    lowered = doi.lower()
    for prefix in ("https://doi.org/", "http://doi.org/", "https://dx.doi.org/", "doi:"):
        if lowered.startswith(prefix):
            doi = doi[len(prefix):]
            break
    doi = doi.strip()
    return doi.lower() or None


def normalize_pmid(pmid: Any) -> Optional[str]:
    """pmids are matched as exact strings."""
    if pmid is None:
        return None
    pmid = str(pmid).strip()
    return pmid or None


def extract_doi(text: Optional[str]) -> Optional[str]:
    """first doi-looking token in unstructured citation text."""
    if not text:
        return None
    match = DOI_PATTERN.search(text)
    return match.group(0) if match else None


def to_string_list(value: Any) -> List[str]:
    """
    read an array column whatever shape the driver returned.
    handles native lists/tuples, postgres text arrays ("{a,b}"),
    json text ('["a","b"]') and None. never raises.
    """
    if value is None:
        return []

    if isinstance(value, (list, tuple, set)):
        items = value
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return []
        if text.startswith("{") and text.endswith("}"):
            items = text[1:-1].split(",")
        elif text.startswith("["):
            try:
                items = json.loads(text)
            except ValueError:
                return []
            if not isinstance(items, list):
                return []
        else:
            items = text.split(",")
    else:
        return []

    out = []
    for item in items:
        if item is None:
            continue
        s = str(item).strip().strip('"')
        if s and s.upper() != "NULL":
            out.append(s)
    return out


def pmid_placeholder_id(pmid: str) -> str:
    return f"{PMID_PREFIX}{pmid}"


def doi_placeholder_id(doi: str) -> str:
    return f"{DOI_PREFIX}{doi}"


def is_placeholder_id(node_id: str) -> bool:
    return node_id.startswith(PMID_PREFIX) or node_id.startswith(DOI_PREFIX)
