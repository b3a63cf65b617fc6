"""Clean raw LLM graph output before it reaches the graph store.

LLMs drift from the schema: ids with spaces or capitals, significance as a
float or nested under ``metrics``, weights out of range, relations pointing
at entities they never emitted. Everything here is lenient: bad entries are
dropped or coerced, never raised.
"""

import logging
import math
import re
from typing import Any

from pydantic import ValidationError

from prism_kg.graph.models import DEFAULT_CATEGORY, Entity, GraphData, Relation

logger = logging.getLogger(__name__)

DEFAULT_SIGNIFICANCE = 5
DEFAULT_WEIGHT = 0.5
MIN_WEIGHT = 0.1

_WHITESPACE = re.compile(r"\s+")


def clean_id(raw_id: str) -> str:
    """Canonical token form: lowercase, trimmed, whitespace runs → ``_``."""
    return _WHITESPACE.sub("_", raw_id.strip().lower())


def _clamp_significance(value: Any) -> int:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return DEFAULT_SIGNIFICANCE
    if not math.isfinite(number):
        return DEFAULT_SIGNIFICANCE
    return max(1, min(10, round(number)))


def _clamp_weight(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return DEFAULT_WEIGHT
    if not math.isfinite(number):
        return DEFAULT_WEIGHT
    return max(MIN_WEIGHT, min(1.0, number))


def _string_list(value: Any) -> list[str]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return []
    items = [str(v).strip() for v in value if isinstance(v, (str, int, float))]
    return list(dict.fromkeys(v for v in items if v))


def _row_list(raw: dict, key: str, legacy_key: str) -> list:
    rows = raw.get(key) or raw.get(legacy_key) or []
    if not isinstance(rows, list):
        logger.warning(f"Ignoring non-list {key!r} in LLM output: {type(rows).__name__}")
        return []
    return rows


def _build_entity(raw: dict) -> Entity | None:
    entity_id = clean_id(str(raw.get("id") or ""))
    label = str(raw.get("label") or raw.get("name") or "").strip()
    if not entity_id or not label:
        logger.debug(f"Skipping entity without id/label: {raw!r}")
        return None

    significance = raw.get("significance")
    if significance is None and isinstance(raw.get("metrics"), dict):
        significance = raw["metrics"].get("significance")

    try:
        return Entity(
            id=entity_id,
            label=label,
            type=str(raw.get("type") or ""),
            category=str(raw.get("category") or raw.get("groupLabel") or DEFAULT_CATEGORY),
            summary=str(raw.get("summary") or ""),
            tags=_string_list(raw.get("tags")),
            aliases=_string_list(raw.get("aliases")),
            significance=_clamp_significance(significance),
        )
    except ValidationError as e:
        logger.debug(f"Skipping invalid entity {entity_id!r}: {e}")
        return None


def sanitize_graph_data(raw: dict) -> GraphData:
    """Turn a parsed LLM response into a valid, self-contained GraphData.

    Accepts ``entities``/``relations`` or the older ``nodes``/``links`` keys.
    Duplicate ids within the batch collapse to the last occurrence (kept at
    the first occurrence's position). Relations whose endpoints are not in
    the batch are dropped.
    """
    if not isinstance(raw, dict):
        logger.warning(f"Expected a JSON object from the LLM, got {type(raw).__name__}")
        return GraphData()

    raw_entities = _row_list(raw, "entities", "nodes")
    raw_relations = _row_list(raw, "relations", "links")

    by_id: dict[str, Entity] = {}
    for item in raw_entities:
        if not isinstance(item, dict):
            continue
        entity = _build_entity(item)
        if entity is not None:
            by_id[entity.id] = entity

    relations: list[Relation] = []
    for item in raw_relations:
        if not isinstance(item, dict):
            continue
        source = clean_id(str(item.get("source") or ""))
        target = clean_id(str(item.get("target") or ""))
        if source not in by_id or target not in by_id:
            logger.debug(f"Skipping relation with unknown endpoint: {source} → {target}")
            continue
        relations.append(
            Relation(
                source=source,
                target=target,
                relation=str(item.get("relation") or "RELATED_TO"),
                weight=_clamp_weight(item.get("weight")),
            )
        )

    return GraphData(entities=list(by_id.values()), relations=relations)
