"""Library-usable pipeline functions.

Each function corresponds to a CLI command but takes explicit parameters
(a ``GraphStore`` and a ``ProviderContext``) instead of reading from
config/CLI args. Every path that adds data to the graph goes through
``GraphStore.ingest``, so every batch is consolidated.
"""

import json
import logging
from pathlib import Path

from prism_kg.generate.prompts import build_correlation_prompt, build_topic_prompt
from prism_kg.generate.providers import (
    Candidate,
    GenerationOutcome,
    ProviderContext,
)
from prism_kg.generate.sanitize import sanitize_graph_data
from prism_kg.graph.models import AppStatus, ConsolidationResult
from prism_kg.graph.store import GraphStore

logger = logging.getLogger(__name__)


def _generate_into(
    store: GraphStore, context: ProviderContext, prompt: str
) -> tuple[GenerationOutcome, ConsolidationResult]:
    def on_attempt(index: int, candidate: Candidate) -> None:
        if index > 0:
            store.set_status(AppStatus.SWITCHING_PROVIDER)
            logger.info(f"Switching provider: trying {candidate}")

    store.set_status(AppStatus.GENERATING)
    try:
        outcome = context.generate(prompt, on_attempt=on_attempt)
        result = store.ingest(outcome.data)
    except Exception as e:
        store.set_status(AppStatus.ERROR, str(e))
        raise

    store.set_status(AppStatus.IDLE)
    return outcome, result


def run_explore(
    store: GraphStore, context: ProviderContext, topic: str
) -> tuple[GenerationOutcome, ConsolidationResult]:
    """Generate a graph around a topic and consolidate it into the store.

    Args:
        store: Graph store to ingest into
        context: Provider context used for generation
        topic: Free-text topic to explore

    Returns:
        (generation outcome with every attempt, consolidation result)

    Raises:
        ValueError: If the topic is empty
        GenerationError: If every provider in the plan fails
    """
    topic = topic.strip()
    if not topic:
        raise ValueError("Topic must not be empty")

    logger.info(f"Exploring topic: {topic}")
    return _generate_into(store, context, build_topic_prompt(topic))


def run_correlate(
    store: GraphStore, context: ProviderContext, source_id: str, target_id: str
) -> tuple[GenerationOutcome, ConsolidationResult]:
    """Ask for intermediate entities linking two existing entities.

    Args:
        store: Graph store holding both entities
        context: Provider context used for generation
        source_id: Id of the first entity
        target_id: Id of the second entity

    Returns:
        (generation outcome with every attempt, consolidation result)

    Raises:
        ValueError: If either id is unknown or both are the same
        GenerationError: If every provider in the plan fails
    """
    if source_id == target_id:
        raise ValueError("Cannot correlate an entity with itself")

    source = store.get_entity(source_id)
    target = store.get_entity(target_id)
    missing = [eid for eid, e in ((source_id, source), (target_id, target)) if e is None]
    if missing:
        raise ValueError(f"Unknown entity id(s): {', '.join(missing)}")

    logger.info(f"Correlating {source.label} <-> {target.label}")
    return _generate_into(store, context, build_correlation_prompt(source, target))


def run_ingest_file(store: GraphStore, path: Path) -> ConsolidationResult:
    """Consolidate a graph JSON file (LLM-shaped or exported) into the store.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the file isn't a JSON object
    """
    if not path.exists():
        raise FileNotFoundError(f"Graph file not found: {path}")

    raw = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError(f"Expected a JSON object in {path}")

    batch = sanitize_graph_data(raw)
    logger.info(f"Ingesting {len(batch.entities)} entities, {len(batch.relations)} relations from {path}")
    return store.ingest(batch)


def run_export(
    store: GraphStore,
    fmt: str = "json",
    export_path: Path | None = None,
) -> Path:
    """Export the store's current graph.

    Args:
        store: Graph store to export
        fmt: Export format (json, graphml, gexf, csv)
        export_path: Output path; defaults next to the store file

    Returns:
        Path to exported file (or directory for CSV)
    """
    from prism_kg.export import export_graph

    if export_path is None:
        if store.path is None:
            raise ValueError("No export path given and store has no path")
        export_path = store.path.parent / ("csv" if fmt.lower() == "csv" else f"graph.{fmt.lower()}")

    return export_graph(store.snapshot(), export_path, fmt)
