"""Shared test fixtures for prism-kg."""

import tempfile
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from prism_kg.graph.models import Entity, GraphData, Relation


@pytest.fixture
def sample_entities() -> list[Entity]:
    """A small existing graph's entities."""
    return [
        Entity(
            id="jfk",
            label="John F. Kennedy",
            type="President",
            category="Person",
            tags=["USA"],
            significance=9,
        ),
        Entity(
            id="usa",
            label="USA",
            type="Country",
            category="Location",
            aliases=["United States of America"],
            significance=8,
        ),
        Entity(
            id="apollo_program",
            label="Apollo Program",
            type="Space Program",
            category="Event",
            tags=["space"],
        ),
    ]


@pytest.fixture
def sample_relations() -> list[Relation]:
    """Relations between the sample entities."""
    return [
        Relation(source="jfk", target="usa", relation="LEADER_OF", weight=0.9),
        Relation(source="jfk", target="apollo_program", relation="LAUNCHED", weight=0.8),
    ]


@pytest.fixture
def sample_graph(sample_entities, sample_relations) -> GraphData:
    """The sample entities and relations as one GraphData."""
    return GraphData(entities=sample_entities, relations=sample_relations)


@pytest.fixture
def raw_llm_graph() -> dict:
    """A parsed LLM response as it typically arrives (messy ids, mixed keys)."""
    return {
        "entities": [
            {
                "id": "Moon Landing",
                "label": "Moon Landing",
                "category": "Event",
                "tags": ["space", "1969"],
                "significance": 9.4,
            },
            {
                "id": "neil_armstrong",
                "name": "Neil Armstrong",
                "groupLabel": "Person",
                "metrics": {"significance": 8},
            },
            {"id": "", "label": "No id"},
        ],
        "relations": [
            {"source": "neil_armstrong", "target": "moon landing", "relation": "PARTICIPATED_IN", "weight": 3},
            {"source": "neil_armstrong", "target": "ghost", "relation": "KNEW"},
        ],
    }


@pytest.fixture
def tmp_dir():
    """Temporary directory that cleans up after test."""
    with tempfile.TemporaryDirectory() as d:
        yield Path(d)


@pytest.fixture
def mock_llm(raw_llm_graph):
    """Mock LLMClient that returns the raw LLM graph."""
    llm = MagicMock()
    llm.model = "test-model"
    llm.call_json.return_value = raw_llm_graph
    llm.last_call_tokens = 1200
    llm.total_input_tokens = 0
    llm.total_output_tokens = 0
    return llm
