"""Consolidation engine: merge an incoming batch into an existing graph.

Every incoming entity is resolved against the current entity list (which
grows as the batch is processed, so later entities can match earlier ones
from the same batch). Duplicates fold their tags, aliases and significance
into the entity they matched; everything else is appended. Incoming
relations are then rewired to the resolved ids and kept only when both
endpoints resolve, they are not self-loops, and no relation already joins
the same unordered pair.

Pure and synchronous. Never raises: malformed or duplicate relations are
dropped, not reported.
"""

import logging
from collections.abc import Sequence

from prism_kg.graph.models import ConsolidationResult, Entity, Relation, RelationLike
from prism_kg.resolve.identity import same_entity

logger = logging.getLogger(__name__)

MAX_SIGNIFICANCE = 10


def _union(existing: list[str], incoming: list[str]) -> list[str]:
    """Order-preserving union; never drops anything already in ``existing``."""
    merged = list(existing)
    seen = set(merged)
    for item in incoming:
        if item not in seen:
            merged.append(item)
            seen.add(item)
    return merged


def merge_entity_metadata(target: Entity, duplicate: Entity) -> None:
    """Fold ``duplicate`` into ``target`` in place.

    Tags and aliases accumulate, significance only ever rises (capped at 10).
    Label, type, category, summary, position and provenance of ``target`` win.
    """
    target.tags = _union(target.tags, duplicate.tags)
    target.aliases = _union(target.aliases, duplicate.aliases)
    target.significance = min(
        MAX_SIGNIFICANCE, max(target.significance, duplicate.significance)
    )


def _signature(source_id: str, target_id: str) -> str:
    return f"{source_id}|{target_id}"


def consolidate_graph_data(
    existing_entities: Sequence[Entity],
    existing_relations: Sequence[RelationLike],
    incoming_entities: Sequence[Entity],
    incoming_relations: Sequence[RelationLike],
) -> ConsolidationResult:
    """Merge new entities/relations into an existing graph without duplicates.

    Args:
        existing_entities: Current graph entities. The list is copied, but
            entities that absorb a duplicate are mutated in place.
        existing_relations: Current graph relations, stored or render-bound.
            Returned unchanged at the head of the result.
        incoming_entities: Newly generated entities, in input order.
        incoming_relations: Newly generated relations, in input order.

    Returns:
        ConsolidationResult with the accumulated entity list, existing
        relations followed by the accepted new ones, and the merge count.
    """
    final_entities: list[Entity] = list(existing_entities)
    resolved_id: dict[str, str] = {}  # incoming id -> canonical id
    merged_count = 0

    for incoming in incoming_entities:
        match = next((e for e in final_entities if same_entity(e, incoming)), None)
        if match is not None:
            resolved_id[incoming.id] = match.id
            merged_count += 1
            merge_entity_metadata(match, incoming)
            logger.debug(f"Merged {incoming.id!r} into {match.id!r}")
        else:
            final_entities.append(incoming)
            resolved_id[incoming.id] = incoming.id

    signatures = {
        _signature(rel.source_id, rel.target_id) for rel in existing_relations
    }

    accepted: list[Relation] = []
    dropped = 0

    for rel in incoming_relations:
        source = resolved_id.get(rel.source_id)
        target = resolved_id.get(rel.target_id)

        if source is None or target is None:
            logger.debug(
                f"Dropping relation {rel.relation}: unresolved endpoint "
                f"({rel.source_id} → {rel.target_id})"
            )
            dropped += 1
            continue

        if source == target:
            logger.debug(f"Dropping relation {rel.relation}: self-loop on {source}")
            dropped += 1
            continue

        forward = _signature(source, target)
        if forward in signatures or _signature(target, source) in signatures:
            logger.debug(
                f"Dropping relation {rel.relation}: {source} and {target} already connected"
            )
            dropped += 1
            continue

        # No re-validation: weight and predicate carry over as given
        accepted.append(
            Relation.model_construct(
                source=source,
                target=target,
                relation=rel.relation,
                weight=rel.weight,
            )
        )
        signatures.add(forward)

    if merged_count or accepted:
        logger.info(
            f"Consolidated {len(incoming_entities)} entities ({merged_count} merged), "
            f"{len(accepted)}/{len(incoming_relations)} relations accepted"
        )

    return ConsolidationResult(
        entities=final_entities,
        relations=[*existing_relations, *accepted],
        merged_count=merged_count,
        dropped_relations=dropped,
    )
