"""Graph data model, consolidation and storage.

Only the data models are re-exported here; import the engine and store
from their modules (``prism_kg.graph.consolidate``, ``prism_kg.graph.store``).
"""

from prism_kg.graph.models import (
    AppStatus,
    ConsolidationResult,
    Entity,
    GraphData,
    Provenance,
    Relation,
    RelationLike,
)

__all__ = [
    "AppStatus",
    "ConsolidationResult",
    "Entity",
    "GraphData",
    "Provenance",
    "Relation",
    "RelationLike",
]
