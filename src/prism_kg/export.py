"""Export graphs to various formats.

Supports native JSON, GraphML, GEXF (Gephi) and CSV. GraphML/GEXF flatten
complex attributes (lists, dicts) to strings for compatibility.
"""

import csv
import json
import logging
from pathlib import Path
from typing import Any

import networkx as nx

from prism_kg.graph.models import GraphData
from prism_kg.graph.render import to_networkx
from prism_kg.graph.store import GraphStore

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = ("json", "graphml", "gexf", "csv")


def export_graph(data: GraphData, output_path: Path, fmt: str) -> Path:
    """Export a graph to the specified format.

    Args:
        data: Graph to export
        output_path: Where to write the output (file, or directory for CSV)
        fmt: One of "json", "graphml", "gexf", "csv"

    Returns:
        Path to the written file (or directory for CSV)
    """
    fmt = fmt.lower()
    if fmt not in SUPPORTED_FORMATS:
        raise ValueError(f"Unsupported format: {fmt}. Supported: {', '.join(SUPPORTED_FORMATS)}")

    output_path.parent.mkdir(parents=True, exist_ok=True)

    if fmt == "json":
        return _export_json(data, output_path)
    elif fmt == "graphml":
        return _export_graphml(data, output_path)
    elif fmt == "gexf":
        return _export_gexf(data, output_path)
    return _export_csv(data, output_path)


def _export_json(data: GraphData, output_path: Path) -> Path:
    """Export in the same JSON layout the store persists."""
    return GraphStore(data).save(output_path)


def _flatten_value(value: Any) -> str | int | float | bool:
    """Flatten complex values to strings for GraphML/GEXF compatibility."""
    if isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, (list, tuple)):
        if any(isinstance(v, (dict, list, tuple, set)) for v in value):
            return json.dumps(value, default=str)
        return "; ".join(str(v) for v in value)
    if isinstance(value, dict):
        return json.dumps(value, default=str)
    return str(value)


def _build_flat_graph(data: GraphData) -> nx.Graph:
    """Render view with every attribute flattened and a display ``label`` on edges."""
    graph = to_networkx(data)
    flat = nx.Graph()
    for node_id, attrs in graph.nodes(data=True):
        flat.add_node(node_id, **{k: _flatten_value(v) for k, v in attrs.items() if v is not None})
    for source, target, attrs in graph.edges(data=True):
        flat_attrs = {k: _flatten_value(v) for k, v in attrs.items() if v is not None}
        # Gephi/yEd show 'label' on edges
        flat_attrs["label"] = attrs.get("relation", "")
        flat.add_edge(source, target, **flat_attrs)
    return flat


def _export_graphml(data: GraphData, output_path: Path) -> Path:
    """Export as GraphML (yEd, Gephi, Cytoscape)."""
    flat = _build_flat_graph(data)
    nx.write_graphml(flat, str(output_path))
    logger.info(f"GraphML exported: {flat.number_of_nodes()} nodes, {flat.number_of_edges()} edges -> {output_path}")
    return output_path


def _export_gexf(data: GraphData, output_path: Path) -> Path:
    """Export as GEXF (Gephi native format)."""
    flat = _build_flat_graph(data)
    nx.write_gexf(flat, str(output_path))
    logger.info(f"GEXF exported: {flat.number_of_nodes()} nodes, {flat.number_of_edges()} edges -> {output_path}")
    return output_path


def _export_csv(data: GraphData, output_dir: Path) -> Path:
    """Export as CSV (entities.csv + relations.csv)."""
    output_dir.mkdir(parents=True, exist_ok=True)

    entity_fields = ["id", "label", "type", "category", "summary", "tags", "aliases", "significance", "provider", "model"]
    with open(output_dir / "entities.csv", "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=entity_fields)
        writer.writeheader()
        for entity in data.entities:
            writer.writerow({
                "id": entity.id,
                "label": entity.label,
                "type": entity.type,
                "category": entity.category,
                "summary": entity.summary,
                "tags": "; ".join(entity.tags),
                "aliases": "; ".join(entity.aliases),
                "significance": entity.significance,
                "provider": entity.provenance.provider if entity.provenance else "",
                "model": entity.provenance.model if entity.provenance else "",
            })

    relation_fields = ["source", "target", "relation", "weight"]
    with open(output_dir / "relations.csv", "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=relation_fields)
        writer.writeheader()
        for rel in data.relations:
            writer.writerow({
                "source": rel.source,
                "target": rel.target,
                "relation": rel.relation,
                "weight": rel.weight,
            })

    logger.info(
        f"CSV exported: {len(data.entities)} entities, {len(data.relations)} relations -> {output_dir}"
    )
    return output_dir
