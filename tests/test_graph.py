# Tests for the graph model and node catalog
"""
Tests for Node/Edge/GraphModel validation and catalog defaults.
"""

import pytest

from lumina.catalog import NODE_CATALOG, NodeType, get_definition
from lumina.errors import GraphError
from lumina.graph import DynamicSocket, Edge, GraphModel, Node, new_node_id


def make_graph(*specs):
    """Build a graph from (id, type) pairs."""
    graph = GraphModel()
    for node_id, node_type in specs:
        graph.add_node(Node.create(node_id, node_type))
    return graph


class TestCatalog:
    """Test the static node catalog."""

    def test_every_node_type_has_definition(self):
        """Each NodeType has exactly one catalog entry."""
        assert set(NODE_CATALOG) == set(NodeType)

    def test_lookup_by_string_tag(self):
        """Definitions can be looked up by their string tag."""
        assert get_definition('blur').type == NodeType.BLUR

    def test_fresh_params_are_independent(self):
        """Default params are deep-copied for every node."""
        first = get_definition(NodeType.TABLE).fresh_params()
        first['rows'].append(['2', 'world'])
        assert get_definition(NodeType.TABLE).fresh_params()['rows'] == [['id', 'text'], ['1', 'hello']]

    def test_math_defaults(self):
        """Math nodes start with inputs a and b and default code."""
        definition = get_definition(NodeType.MATH)
        assert [s['label'] for s in definition.fresh_inputs()] == ['a', 'b']
        assert 'return' in definition.default_code

    def test_to_dict_uses_editor_keys(self):
        data = get_definition(NodeType.MATH).to_dict()
        assert data['type'] == 'math'
        assert 'defaultCode' in data
        assert 'defaultInputs' in data


class TestNode:
    """Test node creation and serialization."""

    def test_create_uses_catalog_defaults(self):
        node = Node.create('b1', NodeType.BLUR)
        assert node.params == {'radius': 5, 'type': 'gaussian'}
        assert node.dirty is True
        assert node.label == 'Blur'

    def test_create_normalizes_dynamic_inputs(self):
        node = Node.create('m1', 'math')
        assert node.dynamic_inputs == [DynamicSocket('a', 'a'), DynamicSocket('b', 'b')]

    def test_parameter_names_are_input_sockets(self):
        """Params can be overridden through same-named input sockets."""
        node = Node.create('c1', NodeType.CROP)
        assert {'image', 'x', 'y', 'width', 'height'} <= node.input_socket_ids()

    def test_dict_round_trip(self):
        node = Node.create('m1', NodeType.MATH, position=(10, 20), code='return a;')
        restored = Node.from_dict(node.to_dict())
        assert restored.id == 'm1'
        assert restored.position == (10.0, 20.0)
        assert restored.code == 'return a;'
        assert restored.dynamic_inputs == node.dynamic_inputs

    def test_new_node_id_prefix(self):
        assert new_node_id(NodeType.BLUR).startswith('blur_')


class TestGraphModel:
    """Test graph mutations and validation."""

    def test_creation_order_assigned(self):
        graph = make_graph(('a', 'number'), ('b', 'number'))
        assert graph.nodes['a'].order == 0
        assert graph.nodes['b'].order == 1

    def test_duplicate_node_rejected(self):
        graph = make_graph(('a', 'number'))
        with pytest.raises(GraphError):
            graph.add_node(Node.create('a', 'number'))

    def test_unknown_node_raises(self):
        with pytest.raises(GraphError):
            GraphModel().get_node('missing')

    def test_edge_to_undeclared_socket_rejected(self):
        graph = make_graph(('n', 'number'), ('b', 'blur'))
        with pytest.raises(GraphError):
            graph.add_edge(Edge('e1', 'n', 'value', 'b', 'nonexistent'))
        with pytest.raises(GraphError):
            graph.add_edge(Edge('e2', 'n', 'bogus', 'b', 'radius'))

    def test_edge_to_param_socket_accepted(self):
        graph = make_graph(('n', 'number'), ('b', 'blur'))
        graph.add_edge(Edge('e1', 'n', 'value', 'b', 'radius'))
        assert len(graph.edges) == 1

    def test_second_edge_into_same_input_rejected(self):
        """An input socket accepts a single edge."""
        graph = make_graph(('n1', 'number'), ('n2', 'number'), ('b', 'blur'))
        graph.add_edge(Edge('e1', 'n1', 'value', 'b', 'radius'))
        with pytest.raises(GraphError):
            graph.add_edge(Edge('e2', 'n2', 'value', 'b', 'radius'))

    def test_remove_node_removes_incident_edges(self):
        graph = make_graph(('n', 'number'), ('b', 'blur'), ('o', 'output'))
        graph.add_edge(Edge('e1', 'n', 'value', 'b', 'radius'))
        graph.add_edge(Edge('e2', 'b', 'image', 'o', 'input'))
        graph.remove_node('b')
        assert graph.edges == []

    def test_reachable_from_terminates_on_cycle(self):
        graph = make_graph(('a', 'output'), ('b', 'output'), ('c', 'output'))
        graph.add_edge(Edge('e1', 'a', 'value', 'b', 'input'))
        graph.add_edge(Edge('e2', 'b', 'value', 'a', 'input'))
        graph.add_edge(Edge('e3', 'b', 'value', 'c', 'input'))
        assert graph.reachable_from('a') == ['a', 'b', 'c']

    def test_prune_edges_after_socket_removal(self):
        graph = make_graph(('n', 'number'), ('m', 'math'))
        graph.add_edge(Edge('e1', 'n', 'value', 'm', 'a'))
        graph.nodes['m'].dynamic_inputs = [DynamicSocket('b', 'b')]
        removed = graph.prune_edges('m')
        assert [e.id for e in removed] == ['e1']
        assert graph.edges == []
