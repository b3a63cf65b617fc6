"""Tests for prism_kg.graph.consolidate."""

from prism_kg.graph.consolidate import consolidate_graph_data, merge_entity_metadata
from prism_kg.graph.models import Entity, Relation
from prism_kg.graph.render import BoundRelation, bind_relations


def _pair(rel) -> frozenset[str]:
    return frozenset((rel.source_id, rel.target_id))


def _assert_graph_invariants(result) -> None:
    ids = [e.id for e in result.entities]
    assert len(ids) == len(set(ids)), "duplicate entity ids"

    pairs = [_pair(r) for r in result.relations]
    assert len(pairs) == len(set(pairs)), "duplicate unordered edges"

    known = set(ids)
    for rel in result.relations:
        assert rel.source_id in known and rel.target_id in known, "dangling edge"


class TestEntityMerging:
    """Test entity resolution and metadata merging."""

    def test_new_entity_appended(self, sample_entities):
        """An unmatched entity is appended unchanged."""
        moon = Entity(id="moon", label="Moon", category="Location")
        result = consolidate_graph_data(sample_entities, [], [moon], [])
        assert result.merged_count == 0
        assert len(result.entities) == len(sample_entities) + 1
        assert result.entities[-1] is moon

    def test_case_insensitive_label_merge(self):
        """Existing usa absorbs incoming united_states labelled 'usa'."""
        existing = [Entity(id="usa", label="USA")]
        incoming = [Entity(id="united_states", label="usa")]
        result = consolidate_graph_data(existing, [], incoming, [])
        assert result.merged_count == 1
        assert [e.id for e in result.entities] == ["usa"]

    def test_jfk_not_merged(self):
        """Initialism with no shared alias stays a separate entity."""
        existing = [Entity(id="jfk", label="John F. Kennedy", tags=["USA"], significance=9)]
        incoming = [Entity(id="john_f_kennedy", label="JFK", tags=["President"], significance=7)]
        result = consolidate_graph_data(existing, [], incoming, [])
        assert result.merged_count == 0
        assert [e.id for e in result.entities] == ["jfk", "john_f_kennedy"]
        assert result.entities[0].tags == ["USA"]

    def test_metadata_union(self, sample_entities):
        """Tags and aliases accumulate; existing label and summary win."""
        jfk = sample_entities[0]
        incoming = Entity(
            id="jfk",
            label="Jack Kennedy",
            summary="Different summary",
            tags=["President", "USA"],
            aliases=["JFK"],
            significance=7,
        )
        consolidate_graph_data(sample_entities, [], [incoming], [])
        assert jfk.tags == ["USA", "President"]
        assert jfk.aliases == ["JFK"]
        assert jfk.significance == 9
        assert jfk.label == "John F. Kennedy"
        assert jfk.summary == ""

    def test_merged_in_place(self, sample_entities):
        """The matched entity object itself is updated; the input list is not."""
        original_list = list(sample_entities)
        incoming = Entity(id="apollo_program", label="Apollo", tags=["NASA"])
        result = consolidate_graph_data(sample_entities, [], [incoming], [])
        assert result.entities is not sample_entities
        assert sample_entities == original_list
        assert result.entities[2] is sample_entities[2]
        assert sample_entities[2].tags == ["space", "NASA"]

    def test_significance_rises_and_caps(self):
        """Significance takes the max and never exceeds 10."""
        target = Entity(id="x", label="X", significance=4)
        merge_entity_metadata(target, Entity(id="x", label="X", significance=10))
        assert target.significance == 10
        merge_entity_metadata(target, Entity(id="x", label="X", significance=2))
        assert target.significance == 10

    def test_same_batch_duplicates(self, sample_entities):
        """The second of two same-batch duplicates merges into the first."""
        incoming = [
            Entity(id="area_51", label="Area 51", tags=["base"]),
            Entity(id="area51", label="AREA 51", tags=["secret"]),
        ]
        result = consolidate_graph_data(sample_entities, [], incoming, [])
        assert result.merged_count == 1
        assert len(result.entities) == len(sample_entities) + 1
        assert result.entities[-1].id == "area_51"
        assert result.entities[-1].tags == ["base", "secret"]

    def test_first_match_wins(self):
        """An entity matching several existing ones merges into the earliest."""
        existing = [
            Entity(id="ufo", label="UFO", aliases=["UAP"]),
            Entity(id="uap", label="Unidentified Aerial Phenomena"),
        ]
        incoming = [Entity(id="uap", label="UAP Sightings", aliases=["uap"])]
        result = consolidate_graph_data(existing, [], incoming, [])
        assert result.merged_count == 1
        assert existing[0].aliases == ["UAP", "uap"]
        assert existing[1].aliases == []

    def test_monotonicity(self, sample_entities):
        """Merges never shrink tags/aliases or lower significance."""
        before = {e.id: (len(e.tags), len(e.aliases), e.significance) for e in sample_entities}
        incoming = [
            Entity(id="jfk", label="JFK", tags=[], significance=1),
            Entity(id="usa", label="USA", aliases=["America"], significance=3),
        ]
        result = consolidate_graph_data(sample_entities, [], incoming, [])
        for entity in result.entities:
            tags, aliases, significance = before[entity.id]
            assert len(entity.tags) >= tags
            assert len(entity.aliases) >= aliases
            assert entity.significance >= significance


class TestRelationFiltering:
    """Test relation rewiring and duplicate/dangling filtering."""

    def test_reversed_duplicate_dropped(self, sample_entities, sample_relations):
        """usa → jfk is dropped when jfk → usa already exists."""
        incoming_entities = [Entity(id="jfk", label="John F. Kennedy"), Entity(id="usa", label="USA")]
        incoming_relations = [Relation(source="usa", target="jfk", relation="GOVERNED_BY")]
        result = consolidate_graph_data(
            sample_entities, sample_relations, incoming_entities, incoming_relations
        )
        assert len(result.relations) == len(sample_relations)
        assert result.dropped_relations == 1

    def test_unresolved_endpoint_dropped(self):
        """A relation to an id nowhere in the batch is dropped without raising."""
        result = consolidate_graph_data(
            [], [], [], [Relation(source="ghost", target="phantom", relation="HAUNTS")]
        )
        assert result.entities == []
        assert result.relations == []
        assert result.dropped_relations == 1

    def test_existing_id_must_be_in_batch(self, sample_entities, sample_relations):
        """Relations resolve through the batch only, not the existing graph."""
        incoming_entities = [Entity(id="moon", label="Moon")]
        incoming_relations = [Relation(source="apollo_program", target="moon", relation="REACHED")]
        result = consolidate_graph_data(
            sample_entities, sample_relations, incoming_entities, incoming_relations
        )
        assert len(result.relations) == len(sample_relations)

    def test_rewired_to_canonical_ids(self, sample_entities, sample_relations):
        """Accepted relations point at the entity their endpoint merged into."""
        incoming_entities = [
            Entity(id="united_states", label="usa"),
            Entity(id="moon", label="Moon"),
        ]
        incoming_relations = [Relation(source="united_states", target="moon", relation="LANDED_ON", weight=0.7)]
        result = consolidate_graph_data(
            sample_entities, sample_relations, incoming_entities, incoming_relations
        )
        new = result.relations[-1]
        assert isinstance(new, Relation)
        assert (new.source, new.target, new.relation, new.weight) == ("usa", "moon", "LANDED_ON", 0.7)
        assert incoming_relations[0].source == "united_states"

    def test_self_loop_after_merge_dropped(self, sample_entities):
        """Two ids that resolve to the same entity cannot be linked."""
        incoming_entities = [
            Entity(id="jfk", label="John F. Kennedy"),
            Entity(id="john_kennedy", label="john f. kennedy"),
        ]
        incoming_relations = [Relation(source="john_kennedy", target="jfk", relation="SAME_AS")]
        result = consolidate_graph_data(sample_entities, [], incoming_entities, incoming_relations)
        assert result.relations == []
        assert result.merged_count == 2

    def test_same_batch_duplicate_edges(self):
        """Only the first of a↔b relations within one batch is kept."""
        incoming_entities = [Entity(id="a", label="Alpha"), Entity(id="b", label="Beta")]
        incoming_relations = [
            Relation(source="a", target="b", relation="KNOWS"),
            Relation(source="b", target="a", relation="KNOWN_BY"),
            Relation(source="a", target="b", relation="LIKES"),
        ]
        result = consolidate_graph_data([], [], incoming_entities, incoming_relations)
        assert [r.relation for r in result.relations] == ["KNOWS"]
        assert result.dropped_relations == 2

    def test_existing_relations_untouched(self, sample_entities, sample_relations):
        """Existing relations come first and are the same objects."""
        incoming_entities = [Entity(id="moon", label="Moon"), Entity(id="usa", label="USA")]
        incoming_relations = [Relation(source="usa", target="moon", relation="VISITED")]
        result = consolidate_graph_data(
            sample_entities, sample_relations, incoming_entities, incoming_relations
        )
        assert result.relations[: len(sample_relations)] == sample_relations
        assert all(a is b for a, b in zip(result.relations, sample_relations))
        assert len(result.relations) == len(sample_relations) + 1

    def test_bound_existing_relations(self, sample_entities, sample_relations):
        """Render-bound existing relations are read through their entity ids."""
        bound = bind_relations(sample_entities, sample_relations)
        incoming_entities = [Entity(id="usa", label="USA"), Entity(id="jfk", label="JFK Jr")]
        incoming_relations = [Relation(source="usa", target="jfk", relation="GOVERNED_BY")]
        result = consolidate_graph_data(sample_entities, bound, incoming_entities, incoming_relations)
        assert len(result.relations) == len(bound)
        assert all(isinstance(r, BoundRelation) for r in result.relations)

    def test_bound_incoming_relations(self, sample_entities):
        """Incoming relations may also arrive render-bound."""
        moon = Entity(id="moon", label="Moon")
        usa = Entity(id="usa", label="USA")
        incoming = [BoundRelation(usa, moon, "VISITED", 0.6)]
        result = consolidate_graph_data(sample_entities, [], [moon, usa], incoming)
        assert len(result.relations) == 1
        assert result.relations[0].source == "usa"
        assert result.relations[0].target == "moon"


class TestGraphProperties:
    """Invariants that hold for every consolidation."""

    def test_empty_batch_is_noop(self, sample_entities, sample_relations):
        """Nothing incoming → same entities and relations, zero merges."""
        result = consolidate_graph_data(sample_entities, sample_relations, [], [])
        assert result.entities == sample_entities
        assert result.relations == sample_relations
        assert result.merged_count == 0

    def test_reingest_is_idempotent(self, sample_graph):
        """Re-ingesting the graph's own contents merges everything and adds nothing."""
        entities = [e.model_copy(deep=True) for e in sample_graph.entities]
        relations = [r.model_copy() for r in sample_graph.relations]
        result = consolidate_graph_data(
            sample_graph.entities, sample_graph.relations, entities, relations
        )
        assert result.merged_count == len(entities)
        assert len(result.entities) == len(sample_graph.entities)
        assert len(result.relations) == len(sample_graph.relations)

    def test_invariants_across_batches(self, sample_graph):
        """No duplicate ids, no duplicate unordered edges, no dangling edges."""
        batches = [
            (
                [Entity(id="moon", label="Moon"), Entity(id="usa", label="usa"), Entity(id="nasa", label="NASA")],
                [
                    Relation(source="nasa", target="moon", relation="EXPLORED"),
                    Relation(source="moon", target="nasa", relation="EXPLORED_BY"),
                    Relation(source="usa", target="nasa", relation="FUNDS"),
                    Relation(source="nasa", target="nowhere", relation="LOST"),
                ],
            ),
            (
                [Entity(id="n_a_s_a", label="N.A.S.A."), Entity(id="the_moon", label="moon"), Entity(id="jfk", label="JFK")],
                [
                    Relation(source="n_a_s_a", target="the_moon", relation="ORBITED"),
                    Relation(source="jfk", target="n_a_s_a", relation="FUNDED"),
                    Relation(source="jfk", target="jfk", relation="SELF"),
                ],
            ),
        ]
        entities, relations = list(sample_graph.entities), list(sample_graph.relations)
        for batch_entities, batch_relations in batches:
            result = consolidate_graph_data(entities, relations, batch_entities, batch_relations)
            _assert_graph_invariants(result)
            entities, relations = result.entities, list(result.relations)

        ids = [e.id for e in entities]
        assert "n_a_s_a" not in ids  # "N.A.S.A." normalizes to "nasa"
        assert "the_moon" not in ids
