"""
Connection Store: typed edges between the components of one project.

Edges are only created between two distinct components present in the bound
component store. Removing a component cascades to every edge touching it.
Parallel edges with the same endpoints and type are kept apart.
"""

from typing import Dict, Iterator, List, Optional, Union

from .component_store import ComponentStore
from .exceptions import InvalidEndpointError, NotFoundError, SelfLoopError
from .models import Connection, ConnectionType


class ConnectionStore:
    """Multigraph of connections bound to a component store."""

    def __init__(self, components: ComponentStore, allow_self_loops: bool = False):
        self.components = components
        self.id_allocator = components.id_allocator
        self.allow_self_loops = allow_self_loops
        self._connections: Dict[str, Connection] = {}
        components.add_removal_listener(self.cascade_remove_for_component)

    def connect(self, from_id: str, to_id: str,
                connection_type: Union[str, ConnectionType] = ConnectionType.DATA,
                label: Optional[str] = None) -> Connection:
        """Create an edge from ``from_id`` to ``to_id``.

        Raises InvalidEndpointError, SelfLoopError or InvalidTypeError when a
        precondition fails; nothing is stored in that case.
        """
        for endpoint in (from_id, to_id):
            if endpoint not in self.components:
                raise InvalidEndpointError(endpoint)
        if from_id == to_id and not self.allow_self_loops:
            raise SelfLoopError(from_id)
        resolved_type = ConnectionType.parse(connection_type)

        connection = Connection(
            id=self.id_allocator.new_id('connection'),
            from_id=from_id,
            to_id=to_id,
            type=resolved_type,
            label=label,
        )
        self._connections[connection.id] = connection
        return connection

    def insert(self, connection: Connection) -> Connection:
        """Store an already-built edge (project load and batch import)."""
        if connection.id in self._connections:
            raise ValueError(f"Duplicate connection id: {connection.id}")
        self._connections[connection.id] = connection
        return connection

    def disconnect(self, connection_id: str) -> bool:
        """Remove an edge; removing an absent id is a no-op."""
        return self._connections.pop(connection_id, None) is not None

    def cascade_remove_for_component(self, component_id: str) -> List[Connection]:
        """Drop every edge with ``component_id`` at either end."""
        removed = [c for c in self._connections.values() if c.involves(component_id)]
        for connection in removed:
            del self._connections[connection.id]
        return removed

    def get(self, connection_id: str) -> Connection:
        connection = self._connections.get(connection_id)
        if connection is None:
            raise NotFoundError('connection', connection_id)
        return connection

    def find(self, connection_id: str) -> Optional[Connection]:
        return self._connections.get(connection_id)

    def list(self) -> List[Connection]:
        return list(self._connections.values())

    def for_component(self, component_id: str) -> List[Connection]:
        """Incoming and outgoing edges of one component."""
        return [c for c in self._connections.values() if c.involves(component_id)]

    def outgoing(self, component_id: str) -> List[Connection]:
        return [c for c in self._connections.values() if c.from_id == component_id]

    def incoming(self, component_id: str) -> List[Connection]:
        return [c for c in self._connections.values() if c.to_id == component_id]

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._connections

    def __len__(self) -> int:
        return len(self._connections)

    def __iter__(self) -> Iterator[Connection]:
        return iter(self.list())
