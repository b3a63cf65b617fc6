"""Prompts for graph generation.

Two entry points: exploring a topic from scratch, and bridging two
entities already in the graph. Both ask for the same JSON shape, which
``prism_kg.generate.sanitize`` then cleans.
"""

from prism_kg.graph.models import Entity

CATEGORIES = ("Person", "Organization", "Event", "Location", "Concept", "Technology")

SYSTEM_MESSAGE = (
    "You are a knowledge graph generator. Respond with a single valid JSON "
    "object matching the requested schema and nothing else."
)

OUTPUT_SCHEMA = f"""OUTPUT SCHEMA:
{{
  "entities": [
    {{
      "id": "snake_case_unique_id",
      "label": "Human readable name",
      "type": "Specific type (e.g. Hypothesis, Treaty, Scientist)",
      "category": "one of: {', '.join(CATEGORIES)}",
      "summary": "One or two sentences",
      "tags": ["keyword"],
      "aliases": ["alternate name"],
      "significance": 1-10
    }}
  ],
  "relations": [
    {{
      "source": "entity id",
      "target": "entity id",
      "relation": "UPPER_SNAKE_PREDICATE",
      "weight": 0.1-1.0
    }}
  ]
}}"""


def build_topic_prompt(topic: str, min_entities: int = 15, max_entities: int = 20) -> str:
    """Prompt for a fresh graph around ``topic``."""
    return f"""Generate a knowledge graph for the topic: "{topic}".

Create {min_entities}-{max_entities} entities and at least {min_entities + 5} relations.
Cover people, organizations, events, locations and concepts where relevant.
Give every entity a significance score (1-10) reflecting its importance to the topic.
Use consistent snake_case ids and include tags and any well-known aliases.
Every relation must reference ids from the entities list.

{OUTPUT_SCHEMA}"""


def build_correlation_prompt(entity_a: Entity, entity_b: Entity) -> str:
    """Prompt for intermediate entities connecting two existing entities."""
    return f"""Find the connections between "{entity_a.label}" (id: {entity_a.id}) and "{entity_b.label}" (id: {entity_b.id}).

Create intermediate entities that bridge them and relations forming at least one path
from {entity_a.id} to {entity_b.id}.
Include both endpoint entities in the output and re-use their exact ids: {entity_a.id}, {entity_b.id}.
Use snake_case ids for new entities and include tags and aliases.

Context:
- {entity_a.label}: {entity_a.summary or entity_a.type}
- {entity_b.label}: {entity_b.summary or entity_b.type}

{OUTPUT_SCHEMA}"""
