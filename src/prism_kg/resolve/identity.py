"""Pairwise entity identity heuristic.

Two entity records denote the same real-world entity when any rule fires,
checked in order:

1. exact id
2. case-insensitive label
3. label similarity above LABEL_SIMILARITY_THRESHOLD
4. any alias pair equal ignoring case, or similar above ALIAS_SIMILARITY_THRESHOLD

The relation is symmetric but not transitive: A~B and B~C does not imply A~C.
Callers resolve order-dependently (first match wins) rather than clustering.
"""

from prism_kg.graph.models import Entity
from prism_kg.resolve.similarity import string_similarity

LABEL_SIMILARITY_THRESHOLD = 0.85
ALIAS_SIMILARITY_THRESHOLD = 0.90


def _aliases_overlap(aliases_a: list[str], aliases_b: list[str]) -> bool:
    for alias_a in aliases_a:
        for alias_b in aliases_b:
            if alias_a.lower() == alias_b.lower():
                return True
            if string_similarity(alias_a, alias_b) > ALIAS_SIMILARITY_THRESHOLD:
                return True
    return False


def same_entity(a: Entity, b: Entity) -> bool:
    """Return True if ``a`` and ``b`` look like the same entity."""
    if a.id == b.id:
        return True

    if a.label.lower() == b.label.lower():
        return True

    if string_similarity(a.label, b.label) > LABEL_SIMILARITY_THRESHOLD:
        return True

    if a.aliases and b.aliases and _aliases_overlap(a.aliases, b.aliases):
        return True

    return False
