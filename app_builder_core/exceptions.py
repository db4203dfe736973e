"""
Error taxonomy for the canvas component graph.

Every error carries a ``kind`` tag plus the offending identifier so that
callers can build a precise user-facing message without parsing strings.
"""

from typing import Any, Dict, List, Optional


class BuilderError(Exception):
    """Base exception for all graph errors."""

    kind = 'builder_error'

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Structured form of the error, safe to serialize as JSON."""
        payload = {'kind': self.kind, 'message': self.message}
        payload.update(self.details)
        return payload


class NotFoundError(BuilderError):
    """Raised when a component, connection or project id is absent."""

    kind = 'not_found'

    def __init__(self, entity: str, entity_id: str):
        super().__init__(
            f"{entity.capitalize()} not found: {entity_id}",
            {'entity': entity, 'id': entity_id},
        )
        self.entity = entity
        self.entity_id = entity_id


class ConnectionRejectedError(BuilderError):
    """Base for connection-creation precondition failures."""

    kind = 'connection_rejected'


class InvalidEndpointError(ConnectionRejectedError):
    """Raised when a connection endpoint does not exist in the project."""

    kind = 'invalid_endpoint'

    def __init__(self, component_id: str):
        super().__init__(
            f"Connection endpoint does not exist: {component_id}",
            {'id': component_id},
        )
        self.component_id = component_id


class SelfLoopError(ConnectionRejectedError):
    """Raised when a connection would join a component to itself."""

    kind = 'self_loop'

    def __init__(self, component_id: str):
        super().__init__(
            f"Component cannot be connected to itself: {component_id}",
            {'id': component_id},
        )
        self.component_id = component_id


class InvalidTypeError(ConnectionRejectedError):
    """Raised when a connection type is not one of the supported kinds."""

    kind = 'invalid_type'

    def __init__(self, connection_type: Any):
        super().__init__(
            f"Invalid connection type: {connection_type!r}",
            {'type': str(connection_type)},
        )
        self.connection_type = connection_type


class CorruptDocumentError(BuilderError):
    """Raised when a document or imported batch fails validation."""

    kind = 'corrupt_document'

    def __init__(self, message: str, violations: Optional[List[Any]] = None):
        violations = list(violations or [])
        super().__init__(message, {
            'violations': [
                v.to_dict() if hasattr(v, 'to_dict') else str(v) for v in violations
            ],
        })
        self.violations = violations


class InvalidPropsError(BuilderError):
    """Raised when a prop value has the wrong shape for its key."""

    kind = 'invalid_props'

    def __init__(self, field_name: str, value: Any, component_id: Optional[str] = None):
        super().__init__(
            f"Invalid {field_name} for component {component_id}: {value!r}",
            {'id': component_id, 'field': field_name},
        )
        self.field_name = field_name
        self.value = value
        self.component_id = component_id


class GraphInvariantError(BuilderError):
    """Raised when a store mutation leaves the graph inconsistent."""

    kind = 'graph_invariant'

    def __init__(self, operation: str, violations: List[Any]):
        super().__init__(
            f"Graph invariant broken after {operation}",
            {'operation': operation, 'violations': [v.to_dict() for v in violations]},
        )
        self.operation = operation
        self.violations = violations


class UpstreamUnavailableError(BuilderError):
    """Raised when the persistence or AI collaborator fails or times out."""

    kind = 'upstream_unavailable'

    def __init__(self, service: str, message: str, details: Optional[Dict[str, Any]] = None):
        merged = {'service': service}
        merged.update(details or {})
        super().__init__(message, merged)
        self.service = service
