"""
citation graph - bounded node/edge container for one request.
hard node limit, no eviction: once full, further nodes are rejected.
"""

import logging
from typing import List, Optional, Dict, Any, Set, Tuple

from ..core.models import GraphNode, GraphEdge, LevelCounts

logger = logging.getLogger("citegraph.graph")


class CitationGraph:
    """
    directed citation graph with a fixed node budget.
    node ids are unique, edges are unique (source, target) pairs,
    self-loops and dangling edges are rejected.
    """

    def __init__(self, max_nodes: int):
        self.max_nodes = max(0, max_nodes)

        # insertion-ordered node storage
        self.nodes: Dict[str, GraphNode] = {}

        # edge storage
        self.edges: List[GraphEdge] = []
        self.edge_index: Set[Tuple[str, str]] = set()

        # stats
        self.rejected_nodes = 0

    @property
    def remaining_budget(self) -> int:
        return max(0, self.max_nodes - len(self.nodes))

    @property
    def is_full(self) -> bool:
        return len(self.nodes) >= self.max_nodes

    def has_node(self, node_id: str) -> bool:
        return node_id in self.nodes

    def get_node(self, node_id: str) -> Optional[GraphNode]:
        return self.nodes.get(node_id)

    def add_node(self, node: GraphNode) -> bool:
        """add node; first insertion wins, budget is never exceeded."""
        if node.id in self.nodes:
            return False

        if self.is_full:
            self.rejected_nodes += 1
            return False

        self.nodes[node.id] = node
        return True

    def add_edge(self, source_id: Optional[str], target_id: Optional[str]) -> bool:
        """add edge source -> target (source cites target)."""
        if not source_id or not target_id or source_id == target_id:
            return False

        # both nodes must exist
        if source_id not in self.nodes or target_id not in self.nodes:
            return False

        edge_key = (source_id, target_id)
        if edge_key in self.edge_index:
            return False

        self.edges.append(GraphEdge(source_id=source_id, target_id=target_id))
        self.edge_index.add(edge_key)
        return True

    def has_edge(self, source_id: str, target_id: str) -> bool:
        return (source_id, target_id) in self.edge_index

    def level_counts(self) -> LevelCounts:
        counts = LevelCounts()
        for node in self.nodes.values():
            attr = f"level{node.graph_level.value}"
            setattr(counts, attr, getattr(counts, attr) + 1)
        return counts

    def stats(self) -> Dict[str, Any]:
        """get graph statistics."""
        return {
            "totalNodes": len(self.nodes),
            "totalEdges": len(self.edges),
            "placeholders": sum(1 for n in self.nodes.values() if n.is_placeholder),
            "rejectedNodes": self.rejected_nodes,
            "capacity": f"{len(self.nodes)}/{self.max_nodes}",
        }
