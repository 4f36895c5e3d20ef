"""
core data models for citegraph.
project-scoped citation graph builder.
"""

from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any, Tuple
from enum import Enum


class MembershipStatus(Enum):
    """status of an article inside a project."""
    SELECTED = "selected"
    CANDIDATE = "candidate"
    EXCLUDED = "excluded"
    DELETED = "deleted"      # never visible to the graph


class StatusFilter(Enum):
    """which project memberships seed the graph."""
    ALL = "all"              # everything except deleted
    SELECTED = "selected"
    EXCLUDED = "excluded"


class GraphLevel(Enum):
    """provenance level of a node."""
    CITING = 0       # cites the project's articles
    PROJECT = 1      # member of the project
    REFERENCE = 2    # referenced by the project's articles
    RELATED = 3      # cites the same references as the project

    @property
    def status_tag(self) -> str:
        """status shown for nodes that are not project members."""
        return {
            GraphLevel.CITING: "citing",
            GraphLevel.REFERENCE: "reference",
            GraphLevel.RELATED: "related",
        }.get(self, "")


class SortBy(Enum):
    """ordering of external candidates before the budget cut."""
    DEFAULT = "default"      # first-seen order
    FREQUENCY = "frequency"  # most shared references first
    CITATIONS = "citations"  # most cited stored articles first
    YEAR = "year"            # newest stored articles first


VALID_SOURCES = ("pubmed", "doaj", "wiley")


@dataclass(frozen=True)
class ArticleRow:
    """
    article record as read from storage.
    array fields keep whatever shape the driver produced;
    use identifiers.to_string_list to read them.
    """
    id: str
    doi: Optional[str] = None
    pmid: Optional[str] = None
    title: Optional[str] = None
    authors: Tuple[str, ...] = ()
    year: Optional[int] = None
    journal: Optional[str] = None
    source: Optional[str] = None

    # citation data
    reference_pmids: Any = None
    reference_dois: Any = None
    cited_by_pmids: Any = None
    crossref_cited_by_count: Optional[int] = None
    stats_quality: int = 0

    # free-form provenance metadata
    raw_json: Optional[Dict[str, Any]] = None

    # membership (only set for project rows)
    status: Optional[str] = None
    source_query: Optional[str] = None


@dataclass
class PartialArticle:
    """article metadata returned by an external lookup."""
    pmid: Optional[str] = None
    doi: Optional[str] = None
    title: Optional[str] = None
    authors: List[str] = field(default_factory=list)
    journal: Optional[str] = None
    year: Optional[int] = None
    abstract: Optional[str] = None
    cited_by_count: Optional[int] = None


@dataclass
class GraphNode:
    """node in a citation graph."""
    id: str
    label: str
    graph_level: GraphLevel
    status: str
    title: Optional[str] = None
    authors: Optional[str] = None
    journal: Optional[str] = None
    year: Optional[int] = None
    doi: Optional[str] = None
    pmid: Optional[str] = None
    cited_by_count: int = 0
    stats_quality: int = 0
    source: Optional[str] = None
    is_placeholder: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """serialize for the json response."""
        return {
            "id": self.id,
            "label": self.label,
            "title": self.title,
            "authors": self.authors,
            "journal": self.journal,
            "year": self.year,
            "status": self.status,
            "doi": self.doi,
            "pmid": self.pmid,
            "citedByCount": self.cited_by_count,
            "graphLevel": self.graph_level.value,
            "statsQuality": self.stats_quality,
            "source": self.source,
            "isPlaceholder": self.is_placeholder,
        }


@dataclass(frozen=True)
class GraphEdge:
    """directed edge: source cites target."""
    source_id: str
    target_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {"source": self.source_id, "target": self.target_id}


@dataclass
class GraphRequest:
    """
    sanitized graph query.
    limits are taken as given here; request.normalize_request
    does the clamping for http callers.
    """
    filter: StatusFilter = StatusFilter.ALL
    depth: int = 1
    year_from: Optional[int] = None
    year_to: Optional[int] = None
    min_stats_quality: Optional[int] = None
    source_queries: List[str] = field(default_factory=list)
    sources: List[str] = field(default_factory=list)
    sort_by: SortBy = SortBy.FREQUENCY
    max_links_per_node: int = 10
    max_total_nodes: int = 500

    @property
    def has_filters(self) -> bool:
        """year/quality filters make a storage miss ambiguous."""
        return (
            self.year_from is not None
            or self.year_to is not None
            or bool(self.min_stats_quality)
        )

    def limits(self) -> Dict[str, Any]:
        return {
            "depth": self.depth,
            "maxLinksPerNode": self.max_links_per_node,
            "maxTotalNodes": self.max_total_nodes,
        }


@dataclass
class EnrichmentResult:
    """
    outcome of a placeholder enrichment pass.
    top-level fields are totals over every lookup; sources holds
    the per-lookup breakdown keyed by lookup name.
    """
    requested: int = 0
    updated: int = 0
    failed: bool = False
    error: Optional[str] = None
    sources: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    def record(self, name: str, requested: int, updated: int = 0,
               error: Optional[str] = None):
        """add one lookup's outcome to the totals."""
        self.sources[name] = {
            "requested": requested,
            "updated": updated,
            "failed": error is not None,
            "error": error,
        }
        self.requested += requested
        self.updated += updated
        if error is not None:
            self.failed = True
            self.error = self.error or error

    def to_dict(self) -> Dict[str, Any]:
        return {
            "requested": self.requested,
            "updated": self.updated,
            "failed": self.failed,
            "error": self.error,
            "sources": dict(self.sources),
        }


@dataclass
class LevelCounts:
    """node count per graph level."""
    level0: int = 0
    level1: int = 0
    level2: int = 0
    level3: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "level0": self.level0,
            "level1": self.level1,
            "level2": self.level2,
            "level3": self.level3,
        }


@dataclass
class GraphResult:
    """final response of a graph build."""
    nodes: List[GraphNode] = field(default_factory=list)
    edges: List[GraphEdge] = field(default_factory=list)
    level_counts: LevelCounts = field(default_factory=LevelCounts)
    available_facets: Dict[str, Any] = field(default_factory=dict)
    applied_limits: Dict[str, Any] = field(default_factory=dict)
    stats: Dict[str, Any] = field(default_factory=dict)
    enrichment: EnrichmentResult = field(default_factory=EnrichmentResult)

    def node_ids(self) -> List[str]:
        return [n.id for n in self.nodes]

    def to_dict(self) -> Dict[str, Any]:
        """serialize for export."""
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
            "levelCounts": self.level_counts.to_dict(),
            "availableFacets": self.available_facets,
            "appliedLimits": self.applied_limits,
            "stats": self.stats,
            "enrichment": self.enrichment.to_dict(),
        }
