"""Render boundary: the only place stored relations become live references.

A layout/render engine needs relation endpoints as entity objects. Rather
than rewriting stored relations in place, ``bind_relations`` produces
separate ``BoundRelation`` objects, and ``unbind_relations`` converts back
to stored ``Relation`` objects before anything is persisted.

Also carries the category → color/shape tables that drive visual encoding.
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

import networkx as nx

from prism_kg.graph.models import Entity, GraphData, Relation

logger = logging.getLogger(__name__)

NODE_REL_SIZE = 4  # base radius multiplier

CATEGORY_COLORS: dict[str, str] = {
    "Person": "#2563eb",
    "Organization": "#7c3aed",
    "Event": "#e11d48",
    "Location": "#059669",
    "Concept": "#d97706",
    "Technology": "#0891b2",
    "default": "#64748b",
}

CATEGORY_SHAPES: dict[str, str] = {
    "Person": "circle",
    "Organization": "square",
    "Event": "diamond",
    "Location": "triangle",
    "Concept": "pentagon",
    "Technology": "hexagon",
    "default": "circle",
}


@dataclass
class BoundRelation:
    """A relation whose endpoints are resolved entity objects."""

    source: Entity
    target: Entity
    relation: str
    weight: float

    @property
    def source_id(self) -> str:
        return self.source.id

    @property
    def target_id(self) -> str:
        return self.target.id


def style_for(category: str) -> dict[str, str]:
    """Color and shape for a category, falling back to the defaults."""
    return {
        "color": CATEGORY_COLORS.get(category, CATEGORY_COLORS["default"]),
        "shape": CATEGORY_SHAPES.get(category, CATEGORY_SHAPES["default"]),
    }


def node_radius(significance: int) -> float:
    """Radius grows with the square root of significance."""
    return NODE_REL_SIZE * max(1, significance) ** 0.5


def bind_relations(
    entities: Sequence[Entity], relations: Iterable[Relation]
) -> list[BoundRelation]:
    """Resolve stored relations into entity references for rendering.

    Relations with an endpoint missing from ``entities`` are skipped.
    """
    by_id = {entity.id: entity for entity in entities}
    bound: list[BoundRelation] = []
    for rel in relations:
        source = by_id.get(rel.source)
        target = by_id.get(rel.target)
        if source is None or target is None:
            logger.debug(f"Cannot bind {rel.source} → {rel.target}: endpoint missing")
            continue
        bound.append(BoundRelation(source, target, rel.relation, rel.weight))
    return bound


def unbind_relations(bound: Iterable[BoundRelation]) -> list[Relation]:
    """Convert render-bound relations back to stored, id-only relations."""
    return [
        Relation(
            source=rel.source_id,
            target=rel.target_id,
            relation=rel.relation,
            weight=rel.weight,
        )
        for rel in bound
    ]


def to_networkx(data: GraphData) -> nx.Graph:
    """Build an undirected NetworkX view for layout engines and exporters.

    Node attributes include the entity fields plus ``color``, ``shape`` and
    ``radius``. Edge attributes keep the original direction in
    ``source`` / ``target``.
    """
    graph = nx.Graph()
    for entity in data.entities:
        attrs = entity.model_dump(exclude={"id"}, exclude_none=True)
        attrs.update(style_for(entity.category))
        attrs["radius"] = node_radius(entity.significance)
        graph.add_node(entity.id, **attrs)

    for rel in data.relations:
        if not graph.has_node(rel.source) or not graph.has_node(rel.target):
            continue
        graph.add_edge(
            rel.source,
            rel.target,
            source=rel.source,
            target=rel.target,
            relation=rel.relation,
            weight=rel.weight,
        )
    return graph
