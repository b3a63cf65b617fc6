"""Tests for prism_kg.graph.render (bound relations, styling, networkx view)."""

import math

import networkx as nx

from prism_kg.graph.models import GraphData, Relation
from prism_kg.graph.render import (
    CATEGORY_COLORS,
    NODE_REL_SIZE,
    BoundRelation,
    bind_relations,
    node_radius,
    style_for,
    to_networkx,
    unbind_relations,
)


class TestBoundRelations:
    """Test conversion between stored and render-bound relations."""

    def test_bind(self, sample_entities, sample_relations):
        """Bound relations hold the entity objects themselves."""
        bound = bind_relations(sample_entities, sample_relations)
        assert len(bound) == 2
        assert bound[0].source is sample_entities[0]
        assert bound[0].target is sample_entities[1]
        assert bound[0].source_id == "jfk"
        assert bound[0].target_id == "usa"

    def test_bind_skips_dangling(self, sample_entities):
        """Relations with a missing endpoint are not bound."""
        bound = bind_relations(sample_entities, [Relation(source="jfk", target="ghost")])
        assert bound == []

    def test_stored_relations_untouched(self, sample_entities, sample_relations):
        """Binding never rewrites the stored relations."""
        bind_relations(sample_entities, sample_relations)
        assert sample_relations[0].source == "jfk"
        assert isinstance(sample_relations[0].source, str)

    def test_unbind(self, sample_entities, sample_relations):
        """Unbinding gives back equal id-only relations."""
        bound = bind_relations(sample_entities, sample_relations)
        assert unbind_relations(bound) == sample_relations

    def test_relation_like_surface(self, sample_entities):
        """Stored and bound relations expose the same endpoint properties."""
        stored = Relation(source="jfk", target="usa", relation="LEADER_OF", weight=0.9)
        bound = BoundRelation(sample_entities[0], sample_entities[1], "LEADER_OF", 0.9)
        assert (stored.source_id, stored.target_id) == (bound.source_id, bound.target_id)


class TestStyling:
    """Test category styling and node sizing."""

    def test_known_category(self):
        """Known categories get their own color and shape."""
        style = style_for("Person")
        assert style["color"] == CATEGORY_COLORS["Person"]
        assert style["shape"] == "circle"
        assert style_for("Event")["shape"] == "diamond"

    def test_unknown_category(self):
        """Unknown categories fall back to the default style."""
        assert style_for("Cryptid")["color"] == CATEGORY_COLORS["default"]

    def test_node_radius(self):
        """Radius scales with the square root of significance."""
        assert node_radius(1) == NODE_REL_SIZE
        assert math.isclose(node_radius(9), NODE_REL_SIZE * 3)
        assert node_radius(0) == NODE_REL_SIZE


class TestNetworkxView:
    """Test the undirected networkx view."""

    def test_nodes_and_edges(self, sample_graph):
        """Every entity is a node and every relation an edge."""
        graph = to_networkx(sample_graph)
        assert isinstance(graph, nx.Graph)
        assert graph.number_of_nodes() == 3
        assert graph.number_of_edges() == 2

    def test_node_attributes(self, sample_graph):
        """Nodes carry entity fields plus styling."""
        graph = to_networkx(sample_graph)
        node = graph.nodes["jfk"]
        assert node["label"] == "John F. Kennedy"
        assert node["shape"] == "circle"
        assert node["radius"] == node_radius(9)
        assert "position" not in node

    def test_edge_direction_kept(self, sample_graph):
        """Edge attributes remember the stored direction."""
        graph = to_networkx(sample_graph)
        edge = graph.edges["usa", "jfk"]
        assert edge["source"] == "jfk"
        assert edge["target"] == "usa"
        assert edge["relation"] == "LEADER_OF"

    def test_dangling_edges_skipped(self, sample_entities):
        """Relations to unknown ids are left out of the view."""
        data = GraphData(entities=sample_entities, relations=[Relation(source="jfk", target="ghost")])
        assert to_networkx(data).number_of_edges() == 0
