"""Canonical graph holder: serializes ingestion, persists, republishes."""

import json
import logging
import threading
from collections import Counter
from collections.abc import Callable
from datetime import datetime
from importlib.metadata import version as _get_version
from pathlib import Path
from typing import Any

from pydantic import ValidationError

try:
    __version__ = _get_version("prism-kg")
except Exception:
    __version__ = "unknown"

from prism_kg.graph.consolidate import consolidate_graph_data
from prism_kg.graph.models import (
    AppStatus,
    ConsolidationResult,
    Entity,
    GraphData,
    Relation,
)

logger = logging.getLogger(__name__)

Listener = Callable[[GraphData], None]


def _unique_relations(relations: list[Relation]) -> list[Relation]:
    """Drop self-loops and edges repeating an unordered pair (first one wins)."""
    signatures: set[str] = set()
    unique: list[Relation] = []
    for relation in relations:
        source, target = relation.source, relation.target
        if source == target:
            logger.warning(f"Skipping self-loop on {source}")
            continue
        if f"{source}|{target}" in signatures or f"{target}|{source}" in signatures:
            logger.warning(f"Skipping duplicate relation {source} → {target}")
            continue
        signatures.add(f"{source}|{target}")
        unique.append(relation)
    return unique



def _rows(data: dict, key: str) -> list:
    rows = data.get(key) or []
    if not isinstance(rows, list):
        logger.warning(f"Ignoring non-list {key!r} section: {type(rows).__name__}")
        return []
    return rows

class GraphStore:
    """Holds the current graph and runs every ingestion through consolidation.

    Ingestion is serialized with a lock: consolidation is not commutative,
    so at most one batch may be merged against a snapshot at a time.
    """

    def __init__(self, data: GraphData | None = None, path: Path | None = None) -> None:
        data = data or GraphData()
        self._entities: list[Entity] = list(data.entities)
        self._relations: list[Relation] = list(data.relations)
        self.path = path
        self.status = AppStatus.IDLE
        self.last_error: str | None = None
        self.last_merged_count = 0
        self.created_at = datetime.now()
        self.updated_at = datetime.now()
        self._lock = threading.Lock()
        self._listeners: list[Listener] = []

    @classmethod
    def open(cls, path: Path, seed: GraphData | None = None) -> "GraphStore":
        """Load the store at ``path``, or seed and save it if it doesn't exist yet."""
        if path.exists():
            return cls.load(path)

        from prism_kg.graph.seed import load_seed

        logger.info(f"No graph at {path}, seeding initial dataset")
        store = cls(seed or load_seed(), path=path)
        store.save()
        return store

    @classmethod
    def load(cls, path: str | Path) -> "GraphStore":
        """Load a store from JSON. Missing file → empty store bound to ``path``."""
        path = Path(path)
        store = cls(path=path)
        if not path.exists():
            return store

        data = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError(f"Expected a JSON object in {path}")

        metadata = data.get("metadata")
        if not isinstance(metadata, dict):
            metadata = {}
        for attr in ("created_at", "updated_at"):
            stamp = metadata.get(attr)
            if isinstance(stamp, str):
                try:
                    setattr(store, attr, datetime.fromisoformat(stamp))
                except ValueError:
                    logger.warning(f"Ignoring bad {attr} timestamp: {stamp!r}")

        seen: set[str] = set()
        for raw in _rows(data, "entities"):
            if not isinstance(raw, dict):
                logger.warning(f"Skipping non-object entity row: {raw!r}")
                continue
            if not isinstance(raw.get("id"), str) or not raw["id"] or raw["id"] in seen:
                continue
            try:
                store._entities.append(Entity.model_validate(raw))
            except ValidationError as e:
                logger.warning(f"Skipping invalid entity {raw.get('id')!r}: {e}")
                continue
            seen.add(raw["id"])

        relations: list[Relation] = []
        for raw in _rows(data, "relations"):
            if not isinstance(raw, dict):
                logger.warning(f"Skipping non-object relation row: {raw!r}")
                continue
            source, target = raw.get("source"), raw.get("target")
            if not (isinstance(source, str) and isinstance(target, str)) or not {source, target} <= seen:
                logger.warning(f"Skipping dangling relation {source} → {target}")
                continue
            try:
                relations.append(Relation.model_validate(raw))
            except ValidationError as e:
                logger.warning(f"Skipping invalid relation {source} → {target}: {e}")

        store._relations = _unique_relations(relations)
        return store

    def export(self) -> dict[str, Any]:
        """Export the store as a JSON-serializable dict."""
        category_counts = Counter(e.category for e in self._entities)
        metadata = {
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "entity_count": self.entity_count,
            "relation_count": self.relation_count,
            "category_summary": dict(category_counts),
            "prism_kg_version": __version__,
        }
        return {
            "metadata": metadata,
            "entities": [e.model_dump(mode="json", exclude_none=True) for e in self._entities],
            "relations": [r.model_dump(mode="json") for r in self._relations],
        }

    def save(self, path: str | Path | None = None) -> Path:
        """Save to JSON (defaults to the path the store was opened with)."""
        target = Path(path) if path else self.path
        if target is None:
            raise ValueError("No path given and store has no default path")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps(self.export(), indent=2, ensure_ascii=False))
        logger.info(
            f"Graph saved: {self.entity_count} entities, "
            f"{self.relation_count} relations → {target}"
        )
        return target

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def entities(self) -> list[Entity]:
        return list(self._entities)

    @property
    def relations(self) -> list[Relation]:
        return list(self._relations)

    @property
    def entity_count(self) -> int:
        return len(self._entities)

    @property
    def relation_count(self) -> int:
        return len(self._relations)

    def snapshot(self) -> GraphData:
        """Current graph as GraphData (new lists, same entity objects)."""
        return GraphData.model_construct(
            entities=list(self._entities), relations=list(self._relations)
        )

    def get_entity(self, entity_id: str) -> Entity | None:
        return next((e for e in self._entities if e.id == entity_id), None)

    def entities_by_category(self, category: str) -> list[Entity]:
        return [e for e in self._entities if e.category == category]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a callback for every new snapshot. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def set_status(self, status: AppStatus, error: str | None = None) -> None:
        self.status = status
        self.last_error = error
        logger.debug(f"Status → {status.value}" + (f" ({error})" if error else ""))

    def set_graph(self, data: GraphData) -> None:
        """Replace the graph wholesale (no consolidation)."""
        with self._lock:
            self._entities = list(data.entities)
            self._relations = _unique_relations(data.relations)
            self.updated_at = datetime.now()
        self._publish()

    def ingest(self, batch: GraphData) -> ConsolidationResult:
        """Consolidate a batch into the graph, persist, and notify listeners."""
        with self._lock:
            result = consolidate_graph_data(
                self._entities,
                self._relations,
                batch.entities,
                batch.relations,
            )
            self._entities = result.entities
            self._relations = list(result.relations)
            self.last_merged_count = result.merged_count
            self.updated_at = datetime.now()
            if self.path is not None:
                self.save()

        if result.merged_count:
            logger.info(f"Consolidated {result.merged_count} duplicate entities")
        self._publish()
        return result

    def _publish(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            listener(snapshot)
