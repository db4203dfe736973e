"""
Unit tests for the Project aggregate.
"""

import pytest
from hypothesis import given, settings, strategies as st

from app_builder_core.exceptions import (
    CorruptDocumentError, GraphInvariantError, InvalidEndpointError, InvalidPropsError, SelfLoopError
)
from app_builder_core.models import Connection, ConnectionType
from app_builder_core.project import Project
from app_builder_core.serialization import from_document, to_document
from app_builder_core.validator import ValidationPolicy, ViolationKind


@pytest.fixture
def project():
    return Project('proj_0001', 'Demo')


class TestEditing:
    """End-to-end editing scenarios."""

    def test_connect_then_remove_target(self, project):
        c1 = project.add_component('Button')
        c2 = project.add_component('Card')
        assert c1.props.text == 'Click me'

        edge = project.connect(c1.id, c2.id, 'action', 'onClick')
        assert edge.type is ConnectionType.ACTION
        assert edge.label == 'onClick'

        assert project.remove_component(c2.id) is True
        assert project.components.ids() == [c1.id]
        assert project.connections.list() == []
        assert project.validate() == []

    def test_duplicate_has_no_connections(self, project):
        c1 = project.add_component('Button', {'name': 'Primary'})
        c2 = project.add_component('Card')
        project.connect(c1.id, c2.id)

        c3 = project.duplicate_component(c1.id)

        assert c3.id not in (c1.id, c2.id)
        assert c3.props == c1.props
        assert project.connections.for_component(c3.id) == []
        assert len(project.connections) == 1

    def test_update_and_move(self, project):
        c1 = project.add_component('Text')
        project.update_component(c1.id, {'text': 'Hello'})
        project.move_component(c1.id, 10, -5)
        assert c1.props.text == 'Hello'
        assert (c1.position.x, c1.position.y) == (10.0, -5.0)

    def test_connect_rejections_leave_graph_intact(self, project):
        c1 = project.add_component('Button')
        with pytest.raises(SelfLoopError):
            project.connect(c1.id, c1.id)
        with pytest.raises(InvalidEndpointError):
            project.connect(c1.id, 'ghost')
        assert len(project.connections) == 0

    def test_self_loops_under_policy(self):
        project = Project('p', policy=ValidationPolicy(allow_self_loops=True),
                          check_invariants=True)
        c1 = project.add_component('List')
        project.connect(c1.id, c1.id)
        assert project.validate() == []

    def test_next_display_name(self, project):
        assert project.next_display_name('Button') == 'Button_1'
        project.add_component('Button', {'name': 'Button_1'})
        project.add_component('Button', {'name': 'Button_3'})
        assert project.next_display_name('Button') == 'Button_2'
        assert project.next_display_name('Card') == 'Card_1'


class TestImportComponents:
    """Test cases for the atomic batch import."""

    def test_import_applies_defaults(self, project):
        added = project.import_components([
            {'type': 'Button', 'props': {'position': {'x': 5, 'y': 5}}},
            {'type': 'Text', 'props': {'text': 'Welcome', 'style': {'color': 'navy'}}},
        ])
        assert [c.type for c in added] == ['Button', 'Text']
        assert added[0].props.text == 'Click me'
        assert added[0].props.style['backgroundColor'] == '#3B82F6'
        assert added[1].props.text == 'Welcome'
        assert added[1].props.style == {'color': 'navy'}
        assert len(project.components) == 2

    def test_import_with_connections(self, project):
        existing = project.add_component('Card')
        project.import_components(
            [{'id': 'btn', 'type': 'Button'}],
            [{'id': 'e1', 'from': 'btn', 'to': existing.id, 'type': 'action'}],
        )
        assert project.connections.get('e1').to_id == existing.id

    def test_import_is_all_or_nothing(self, project):
        project.add_component('Card')
        with pytest.raises(CorruptDocumentError) as exc_info:
            project.import_components([
                {'type': 'Button'},
                {'type': 'Text', 'props': {'style': {'fontSize': 16}}},
            ])
        assert exc_info.value.violations[0].kind is ViolationKind.MALFORMED_ENTRY
        assert len(project.components) == 1

    def test_import_rejects_dangling_connection(self, project):
        with pytest.raises(CorruptDocumentError):
            project.import_components(
                [{'id': 'btn', 'type': 'Button'}],
                [{'id': 'e1', 'from': 'btn', 'to': 'ghost'}],
            )
        assert len(project.components) == 0
        assert len(project.connections) == 0

    def test_import_rejects_id_collision(self, project):
        existing = project.add_component('Card')
        with pytest.raises(CorruptDocumentError):
            project.import_components([{'id': existing.id, 'type': 'Button'}])
        assert len(project.components) == 1

    def test_import_requires_list(self, project):
        with pytest.raises(CorruptDocumentError):
            project.import_components({'type': 'Button'})


class TestInvariantChecking:
    """Test cases for the post-mutation invariant check."""

    def test_broken_graph_detected(self):
        project = Project('p', check_invariants=True)
        c1 = project.add_component('Card')
        project.connections.insert(Connection(id='bad', from_id=c1.id, to_id='ghost'))

        with pytest.raises(GraphInvariantError) as exc_info:
            project.add_component('Text')
        assert exc_info.value.operation == 'add_component'
        assert exc_info.value.violations[0].kind is ViolationKind.DANGLING_ENDPOINT

    def test_disabled_by_default(self, project):
        c1 = project.add_component('Card')
        project.connections.insert(Connection(id='bad', from_id=c1.id, to_id='ghost'))
        project.add_component('Text')
        assert len(project.validate()) == 1


@settings(max_examples=50)
@given(
    st.integers(min_value=2, max_value=6),
    st.lists(st.tuples(st.integers(0, 5), st.integers(0, 5)), max_size=15),
    st.integers(0, 5),
)
def test_removal_never_leaves_dangling_edges(size, pairs, victim):
    """Property test: any removal keeps the graph consistent."""
    project = Project('p', check_invariants=True)
    ids = [project.add_component('Card').id for _ in range(size)]
    for a, b in pairs:
        a, b = a % size, b % size
        if a != b:
            project.connect(ids[a], ids[b])

    removed_id = ids[victim % size]
    project.remove_component(removed_id)

    assert project.validate() == []
    assert all(not c.involves(removed_id) for c in project.connections.list())


_prop_values = st.one_of(
    st.none(),
    st.text(max_size=5),
    st.integers(-5, 5),
    st.booleans(),
    st.lists(st.integers(0, 3), max_size=2),
    st.dictionaries(st.sampled_from(['x', 'y', 'color']),
                    st.one_of(st.integers(-50, 50), st.text(max_size=3)), max_size=3),
)


@settings(max_examples=100)
@given(st.lists(
    st.dictionaries(
        st.sampled_from(['name', 'text', 'position', 'style', 'placeholder', 'disabled']),
        _prop_values, max_size=3,
    ),
    max_size=4,
))
def test_accepted_updates_survive_reload(updates):
    """Property test: every update the project accepts can be stored and reloaded."""
    project = Project('p')
    component = project.add_component('Input')
    for partial in updates:
        try:
            project.update_component(component.id, partial)
        except InvalidPropsError:
            continue

    document = to_document(project)
    assert to_document(from_document(document)) == document
