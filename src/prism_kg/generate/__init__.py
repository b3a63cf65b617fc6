"""AI graph generation: prompts, LLM client, sanitization, provider fallback."""

from prism_kg.generate.llm_client import LLMClient, parse_llm_json
from prism_kg.generate.providers import (
    GenerationError,
    GenerationOutcome,
    ProviderContext,
    default_providers,
)
from prism_kg.generate.sanitize import clean_id, sanitize_graph_data

__all__ = [
    "GenerationError",
    "GenerationOutcome",
    "LLMClient",
    "ProviderContext",
    "clean_id",
    "default_providers",
    "parse_llm_json",
    "sanitize_graph_data",
]
