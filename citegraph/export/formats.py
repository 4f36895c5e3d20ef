"""
export formats - JSON and GraphML.
"""

import json
import logging
from pathlib import Path
from datetime import datetime

import networkx as nx

from ..core.models import GraphResult

logger = logging.getLogger("citegraph.export")


def to_networkx(result: GraphResult) -> nx.DiGraph:
    """directed graph with node attributes; None values are left out."""
    G = nx.DiGraph()
    for node in result.nodes:
        attrs = {
            key: value
            for key, value in node.to_dict().items()
            if key != "id" and value is not None
        }
        G.add_node(node.id, **attrs)

    for edge in result.edges:
        G.add_edge(edge.source_id, edge.target_id)
    return G


class GraphExporter:
    """
    exports a built graph to files.
    """

    def __init__(self, output_dir: str = "output"):
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def export_json(self, result: GraphResult, filename: str = "graph.json") -> str:
        """export to JSON format."""
        data = result.to_dict()
        data["meta"] = {
            "generated_at": datetime.now().isoformat(),
            "node_count": len(result.nodes),
            "edge_count": len(result.edges),
        }

        path = self.output_dir / filename
        with open(path, 'w') as f:
            json.dump(data, f, indent=2, default=str)

        logger.info(f"[export] wrote JSON to {path}")
        return str(path)

    def export_graphml(self, result: GraphResult, filename: str = "graph.graphml") -> str:
        """export to GraphML format for Gephi/yEd."""
        path = self.output_dir / filename
        nx.write_graphml(to_networkx(result), str(path))

        logger.info(f"[export] wrote GraphML to {path}")
        return str(path)
