"""Pydantic models for graph entities and relations.

Relations come in two shapes. ``Relation`` is the stored form and always
holds bare entity ids. The render layer works with ``BoundRelation``
(see ``prism_kg.graph.render``), which holds live ``Entity`` references.
Both expose ``source_id`` / ``target_id`` so the consolidation engine can
read endpoints through ``RelationLike`` without caring which one it got.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Protocol

from pydantic import BaseModel, Field

DEFAULT_CATEGORY = "Concept"


class AppStatus(str, Enum):
    """Lifecycle state of the graph store as seen by the UI."""

    IDLE = "IDLE"
    LOADING = "LOADING"
    GENERATING = "GENERATING"
    SWITCHING_PROVIDER = "SWITCHING_PROVIDER"
    ERROR = "ERROR"


class Provenance(BaseModel):
    """Which provider/model produced an entity, and when."""

    provider: str
    model: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


class Entity(BaseModel):
    """A graph node. Mutated in place only when a duplicate merges into it."""

    id: str  # canonical snake_case token
    label: str
    type: str = ""
    category: str = DEFAULT_CATEGORY  # drives color/shape, not identity
    summary: str = ""
    tags: list[str] = Field(default_factory=list)
    aliases: list[str] = Field(default_factory=list)
    significance: int = Field(default=5, ge=1, le=10)
    position: tuple[float, float] | None = None  # owned by the layout engine
    provenance: Provenance | None = None


class Relation(BaseModel):
    """A stored relation between two entity ids."""

    source: str
    target: str
    relation: str = "RELATED_TO"
    weight: float = Field(default=0.5, gt=0.0, le=1.0)

    @property
    def source_id(self) -> str:
        return self.source

    @property
    def target_id(self) -> str:
        return self.target


class RelationLike(Protocol):
    """Anything with readable endpoint ids, predicate and weight."""

    @property
    def source_id(self) -> str: ...

    @property
    def target_id(self) -> str: ...

    relation: str
    weight: float


class GraphData(BaseModel):
    """A complete graph snapshot, or an incoming batch."""

    entities: list[Entity] = Field(default_factory=list)
    relations: list[Relation] = Field(default_factory=list)


@dataclass
class ConsolidationResult:
    """Outcome of merging an incoming batch into an existing graph."""

    entities: list[Entity]
    relations: list[RelationLike]
    merged_count: int = 0
    dropped_relations: int = field(default=0, compare=False)
