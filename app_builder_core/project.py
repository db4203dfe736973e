"""
Project aggregate: one project's component and connection stores.

All mutations of a project graph go through this class so that the optional
post-mutation invariant check covers every path, including the atomic batch
import used for AI generated components.
"""

from typing import Any, Dict, List, Optional, Union

from .codec import component_from_dict, connection_from_dict
from .component_registry import ComponentRegistry, default_registry
from .component_store import ComponentStore
from .connection_store import ConnectionStore
from .exceptions import CorruptDocumentError, GraphInvariantError
from .ids import IdAllocator
from .models import Component, Connection, ConnectionType
from .validator import ValidationPolicy, Violation, validate


class Project:
    """Aggregate root holding a project's metadata and component graph."""

    def __init__(self, project_id: str, project_name: str = "", description: str = "",
                 status: str = "created", schema: Optional[Dict[str, Any]] = None,
                 created_by: Optional[Dict[str, Any]] = None,
                 registry: Optional[ComponentRegistry] = None,
                 policy: Optional[ValidationPolicy] = None,
                 check_invariants: bool = False,
                 id_allocator: Optional[IdAllocator] = None):
        self.project_id = project_id
        self.project_name = project_name
        self.description = description
        self.status = status
        self.schema = schema
        self.created_by = created_by
        self.policy = policy or ValidationPolicy()
        self.check_invariants = check_invariants
        self.registry = registry or default_registry()
        self.id_allocator = id_allocator or IdAllocator()

        self.components = ComponentStore(self.registry, self.id_allocator)
        self.connections = ConnectionStore(self.components, self.policy.allow_self_loops)

    # -- components -------------------------------------------------------

    def add_component(self, component_type: str, initial_props: Optional[Dict[str, Any]] = None) -> Component:
        component = self.components.add(component_type, initial_props)
        self._after_mutation('add_component')
        return component

    def update_component(self, component_id: str, partial_props: Dict[str, Any]) -> Component:
        component = self.components.update(component_id, partial_props)
        self._after_mutation('update_component')
        return component

    def move_component(self, component_id: str, dx: float, dy: float) -> Component:
        component = self.components.move(component_id, dx, dy)
        self._after_mutation('move_component')
        return component

    def duplicate_component(self, component_id: str) -> Component:
        component = self.components.duplicate(component_id)
        self._after_mutation('duplicate_component')
        return component

    def remove_component(self, component_id: str) -> bool:
        removed = self.components.remove(component_id)
        self._after_mutation('remove_component')
        return removed

    def next_display_name(self, component_type: str) -> str:
        """First unused ``<Type>_<n>`` name, used for palette drops."""
        taken = {c.props.name for c in self.components.list()}
        n = 1
        while f"{component_type}_{n}" in taken:
            n += 1
        return f"{component_type}_{n}"

    # -- connections ------------------------------------------------------

    def connect(self, from_id: str, to_id: str,
                connection_type: Union[str, ConnectionType] = ConnectionType.DATA,
                label: Optional[str] = None) -> Connection:
        connection = self.connections.connect(from_id, to_id, connection_type, label)
        self._after_mutation('connect')
        return connection

    def disconnect(self, connection_id: str) -> bool:
        removed = self.connections.disconnect(connection_id)
        self._after_mutation('disconnect')
        return removed

    # -- batch import -----------------------------------------------------

    def import_components(self, raw_components: List[Any],
                          raw_connections: Optional[List[Any]] = None) -> List[Component]:
        """Add a batch of externally produced components in one step.

        Entries missing ``text`` or ``style`` get the registry defaults, the
        same as a manual placement. Every entry is decoded and the combined
        graph validated before anything is stored; on any problem
        CorruptDocumentError is raised and the project is left untouched.
        """
        if not isinstance(raw_components, list):
            raise CorruptDocumentError("Imported components must be a list")
        if raw_connections is not None and not isinstance(raw_connections, list):
            raise CorruptDocumentError("Imported connections must be a list")

        violations: List[Violation] = []
        staged: List[Component] = []
        for index, raw in enumerate(raw_components):
            component = component_from_dict(raw, index, violations, self.id_allocator)
            if component is None:
                continue
            raw_props = raw.get('props') or {}
            if 'text' not in raw_props:
                component.props.text = self.registry.default_text(component.type) or None
            if 'style' not in raw_props:
                component.props.style = self.registry.default_style(component.type)
            staged.append(component)

        staged_connections: List[Connection] = []
        for index, raw in enumerate(raw_connections or []):
            connection = connection_from_dict(raw, index, violations)
            if connection is not None:
                staged_connections.append(connection)

        violations.extend(validate(
            self.components.list() + staged,
            self.connections.list() + staged_connections,
            self.policy,
        ))
        if violations:
            raise CorruptDocumentError(
                f"Rejected import of {len(raw_components)} components", violations
            )

        for component in staged:
            self.components.insert(component)
        for connection in staged_connections:
            self.connections.insert(connection)
        self._after_mutation('import_components')
        return staged

    # -- checks -----------------------------------------------------------

    def validate(self) -> List[Violation]:
        return validate(self.components.list(), self.connections.list(), self.policy)

    def _after_mutation(self, operation: str):
        if not self.check_invariants:
            return
        violations = self.validate()
        if violations:
            raise GraphInvariantError(operation, violations)

    def __repr__(self) -> str:
        return (f"Project(project_id={self.project_id!r}, components={len(self.components)}, "
                f"connections={len(self.connections)})")
