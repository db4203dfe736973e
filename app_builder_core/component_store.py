"""
Component Store: the ordered collection of placed components.

The store owns component creation, mutation, duplication and deletion.
Deletion notifies removal listeners before returning, which is how the
connection store cascades edge cleanup and the interaction controller drops
a stale selection.
"""

from typing import Any, Callable, Dict, Iterator, List, Optional

from .component_registry import ComponentRegistry, default_registry
from .exceptions import InvalidPropsError, NotFoundError
from .ids import IdAllocator
from .models import Component, ComponentProps, Position, is_number


RemovalListener = Callable[[str], None]


class ComponentStore:
    """Insertion-ordered store of the components of one project."""

    def __init__(self, registry: Optional[ComponentRegistry] = None,
                 id_allocator: Optional[IdAllocator] = None):
        self.registry = registry or default_registry()
        self.id_allocator = id_allocator or IdAllocator()
        self._components: Dict[str, Component] = {}
        self._removal_listeners: List[RemovalListener] = []

    def add_removal_listener(self, listener: RemovalListener):
        """Register a callback invoked with the id of each removed component."""
        self._removal_listeners.append(listener)

    def add(self, component_type: str, initial_props: Optional[Dict[str, Any]] = None) -> Component:
        """Place a new component of ``component_type`` with registry defaults applied."""
        component_id = self.id_allocator.new_id('component')
        props = ComponentProps(
            text=self.registry.default_text(component_type) or None,
            style=self.registry.default_style(component_type),
        )
        if initial_props:
            props = props.merged(initial_props, component_id)

        component = Component(id=component_id, type=component_type, props=props)
        self._components[component.id] = component
        return component

    def insert(self, component: Component) -> Component:
        """Append an already-built component (project load and batch import)."""
        if component.id in self._components:
            raise ValueError(f"Duplicate component id: {component.id}")
        self._components[component.id] = component
        return component

    def get(self, component_id: str) -> Component:
        component = self._components.get(component_id)
        if component is None:
            raise NotFoundError('component', component_id)
        return component

    def find(self, component_id: str) -> Optional[Component]:
        return self._components.get(component_id)

    def update(self, component_id: str, partial_props: Dict[str, Any]) -> Component:
        """Shallow-merge ``partial_props`` into the component's props.

        ``style`` is replaced as a whole; callers wanting a key-level style
        edit merge it themselves before calling.
        """
        component = self.get(component_id)
        component.props = component.props.merged(partial_props, component_id)
        return component

    def move(self, component_id: str, dx: float, dy: float) -> Component:
        """Offset a component's position by (dx, dy)."""
        component = self.get(component_id)
        if not is_number(dx) or not is_number(dy):
            raise InvalidPropsError('position', {'dx': dx, 'dy': dy}, component_id)
        return self.update(component_id, {'position': component.position.moved(dx, dy)})

    def move_to(self, component_id: str, x: float, y: float) -> Component:
        return self.update(component_id, {'position': Position(x, y)})

    def duplicate(self, component_id: str) -> Component:
        """Copy a component under a fresh id. Connections are not copied."""
        original = self.get(component_id)
        clone = Component(
            id=self.id_allocator.new_id('component'),
            type=original.type,
            props=original.props.copy(),
            code=original.code,
        )
        self._components[clone.id] = clone
        return clone

    def remove(self, component_id: str) -> bool:
        """Delete a component; deleting an absent id is a no-op."""
        if self._components.pop(component_id, None) is None:
            return False
        for listener in self._removal_listeners:
            listener(component_id)
        return True

    def list(self) -> List[Component]:
        """Snapshot of the components in insertion order."""
        return list(self._components.values())

    def ids(self) -> List[str]:
        return list(self._components)

    def clear(self):
        for component_id in list(self._components):
            self.remove(component_id)

    def __contains__(self, component_id: object) -> bool:
        return component_id in self._components

    def __len__(self) -> int:
        return len(self._components)

    def __iter__(self) -> Iterator[Component]:
        return iter(self.list())
