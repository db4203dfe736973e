"""
Graph consistency checks for a component/connection pair.

``validate`` is a pure function: it never mutates its inputs and reports
every violation it finds rather than stopping at the first one.
"""

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from .models import Component, Connection, ConnectionType


class ViolationKind(Enum):
    """Categories of graph inconsistency."""
    DUPLICATE_COMPONENT_ID = "duplicate_component_id"
    DUPLICATE_CONNECTION_ID = "duplicate_connection_id"
    DANGLING_ENDPOINT = "dangling_endpoint"
    SELF_LOOP = "self_loop"
    INVALID_CONNECTION_TYPE = "invalid_connection_type"
    MALFORMED_ENTRY = "malformed_entry"


@dataclass
class Violation:
    """One consistency problem, pointing at the offending id."""
    kind: ViolationKind
    subject_id: Optional[str]
    message: str
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'kind': self.kind.value,
            'id': self.subject_id,
            'message': self.message,
            **self.details,
        }


@dataclass
class ValidationPolicy:
    """Tunable rules for ``validate``."""
    allow_self_loops: bool = False


def validate(components: Iterable[Component], connections: Iterable[Connection],
             policy: Optional[ValidationPolicy] = None) -> List[Violation]:
    """Return every violation in the graph; an empty list means consistent."""
    policy = policy or ValidationPolicy()
    components = list(components)
    connections = list(connections)
    violations: List[Violation] = []

    component_counts = Counter(c.id for c in components)
    for component_id, count in component_counts.items():
        if count > 1:
            violations.append(Violation(
                ViolationKind.DUPLICATE_COMPONENT_ID, component_id,
                f"Component id {component_id} appears {count} times",
                {'count': count},
            ))

    connection_counts = Counter(c.id for c in connections)
    for connection_id, count in connection_counts.items():
        if count > 1:
            violations.append(Violation(
                ViolationKind.DUPLICATE_CONNECTION_ID, connection_id,
                f"Connection id {connection_id} appears {count} times",
                {'count': count},
            ))

    present = set(component_counts)
    for connection in connections:
        for end, endpoint in (('from', connection.from_id), ('to', connection.to_id)):
            if endpoint not in present:
                violations.append(Violation(
                    ViolationKind.DANGLING_ENDPOINT, connection.id,
                    f"Connection {connection.id} references missing component {endpoint}",
                    {'end': end, 'componentId': endpoint},
                ))

        if connection.from_id == connection.to_id and not policy.allow_self_loops:
            violations.append(Violation(
                ViolationKind.SELF_LOOP, connection.id,
                f"Connection {connection.id} joins component {connection.from_id} to itself",
                {'componentId': connection.from_id},
            ))

        if not isinstance(connection.type, ConnectionType):
            violations.append(Violation(
                ViolationKind.INVALID_CONNECTION_TYPE, connection.id,
                f"Connection {connection.id} has invalid type {connection.type!r}",
                {'type': str(connection.type)},
            ))

    return violations


def is_consistent(components: Iterable[Component], connections: Iterable[Connection],
                  policy: Optional[ValidationPolicy] = None) -> bool:
    return not validate(components, connections, policy)
