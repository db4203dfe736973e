"""
App Builder Core - the canvas component graph of the visual application builder.

This package holds the authoritative in-memory model of one project's placed
components and the typed connections between them, together with the
consistency rules, the document/source-text projections and the selection
state machine used by the builder canvas.
"""

__version__ = "0.1.0"
__author__ = "App Builder Development Team"

from .ids import IdAllocator
from .exceptions import (
    BuilderError, NotFoundError, ConnectionRejectedError, InvalidEndpointError,
    SelfLoopError, InvalidTypeError, InvalidPropsError, CorruptDocumentError, GraphInvariantError,
    UpstreamUnavailableError
)
from .models import (
    Position, ComponentProps, Component, ConnectionType, Connection,
    PointRole, PointSide, ConnectionPoint, connection_points
)
from .component_registry import ComponentRegistry, ComponentTypeSpec, default_registry
from .component_store import ComponentStore
from .connection_store import ConnectionStore
from .validator import ValidationPolicy, Violation, ViolationKind, validate
from .project import Project
from .serialization import to_document, from_document, to_source_text
from .interaction import InteractionController, Idle, Selected, Connecting

__all__ = [
    "IdAllocator",
    "BuilderError",
    "NotFoundError",
    "ConnectionRejectedError",
    "InvalidEndpointError",
    "SelfLoopError",
    "InvalidTypeError",
    "InvalidPropsError",
    "CorruptDocumentError",
    "GraphInvariantError",
    "UpstreamUnavailableError",
    "Position",
    "ComponentProps",
    "Component",
    "ConnectionType",
    "Connection",
    "PointRole",
    "PointSide",
    "ConnectionPoint",
    "connection_points",
    "ComponentRegistry",
    "ComponentTypeSpec",
    "default_registry",
    "ComponentStore",
    "ConnectionStore",
    "ValidationPolicy",
    "Violation",
    "ViolationKind",
    "validate",
    "Project",
    "to_document",
    "from_document",
    "to_source_text",
    "InteractionController",
    "Idle",
    "Selected",
    "Connecting",
]
