"""prism-kg: AI-populated knowledge graph with duplicate consolidation.

Generates entities and relations for a topic through a rotating set of
LLM providers and merges every batch into one persistent graph, folding
lexical duplicates (same id, same label, near-identical label or alias)
into the entities already present.
"""

__version__ = "0.1.0"

from prism_kg.export import export_graph
from prism_kg.generate.providers import GenerationError, ProviderContext
from prism_kg.graph.consolidate import consolidate_graph_data
from prism_kg.graph.models import ConsolidationResult, Entity, GraphData, Relation
from prism_kg.graph.store import GraphStore
from prism_kg.pipeline import run_correlate, run_explore, run_export, run_ingest_file
from prism_kg.resolve import same_entity, string_similarity

__all__ = [
    "__version__",
    "ConsolidationResult",
    "Entity",
    "GenerationError",
    "GraphData",
    "GraphStore",
    "ProviderContext",
    "Relation",
    "consolidate_graph_data",
    "export_graph",
    "run_correlate",
    "run_explore",
    "run_export",
    "run_ingest_file",
    "same_entity",
    "string_similarity",
]
