"""Lexical entity resolution: string similarity and identity rules."""

from prism_kg.resolve.identity import (
    ALIAS_SIMILARITY_THRESHOLD,
    LABEL_SIMILARITY_THRESHOLD,
    same_entity,
)
from prism_kg.resolve.similarity import string_similarity

__all__ = [
    "ALIAS_SIMILARITY_THRESHOLD",
    "LABEL_SIMILARITY_THRESHOLD",
    "same_entity",
    "string_similarity",
]
