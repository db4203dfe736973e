"""
Serialization Adapter for project graphs.

Converts a Project to and from the document persisted in the project store,
and projects it to the "generated code" preview text. None of these functions
touch storage themselves.
"""

import json
from typing import Any, Dict, List, Optional

from .codec import component_from_dict, component_to_dict, connection_from_dict, connection_to_dict
from .component_registry import ComponentRegistry
from .exceptions import CorruptDocumentError
from .ids import IdAllocator
from .models import Component
from .project import Project
from .validator import ValidationPolicy, Violation, ViolationKind, validate


DOCUMENT_FIELDS = (
    'projectId', 'projectName', 'description', 'status',
    'createdBy', 'components', 'connections', 'schema',
)


def to_document(project: Project) -> Dict[str, Any]:
    """Flatten a project into its persisted document shape."""
    document: Dict[str, Any] = {
        'projectId': project.project_id,
        'projectName': project.project_name,
        'description': project.description,
        'status': project.status,
        'components': [component_to_dict(c) for c in project.components.list()],
        'connections': [connection_to_dict(c) for c in project.connections.list()],
    }
    if project.created_by is not None:
        document['createdBy'] = project.created_by
    if project.schema is not None:
        document['schema'] = project.schema
    return document


def from_document(document: Any, registry: Optional[ComponentRegistry] = None,
                  policy: Optional[ValidationPolicy] = None,
                  check_invariants: bool = False) -> Project:
    """Rebuild a project from a persisted document.

    The whole document is decoded and validated before the project is
    assembled; any problem raises CorruptDocumentError and no project is
    returned.
    """
    if not isinstance(document, dict):
        raise CorruptDocumentError("Project document is not an object")

    violations: List[Violation] = []
    project_id = document.get('projectId')
    if not isinstance(project_id, str) or not project_id:
        violations.append(Violation(
            ViolationKind.MALFORMED_ENTRY, None, "Document has no projectId", {'field': 'projectId'}
        ))

    raw_components = document.get('components')
    raw_connections = document.get('connections')
    if raw_components is None:
        raw_components = []
    if raw_connections is None:
        raw_connections = []
    for key, value in (('components', raw_components), ('connections', raw_connections)):
        if not isinstance(value, list):
            violations.append(Violation(
                ViolationKind.MALFORMED_ENTRY, project_id if isinstance(project_id, str) else None,
                f"Document {key} is not a list", {'field': key},
            ))
    if violations:
        raise CorruptDocumentError(f"Corrupt project document {project_id!r}", violations)

    id_allocator = IdAllocator()
    components = [
        component_from_dict(raw, index, violations, id_allocator)
        for index, raw in enumerate(raw_components)
    ]
    connections = [
        connection_from_dict(raw, index, violations)
        for index, raw in enumerate(raw_connections)
    ]
    components = [c for c in components if c is not None]
    connections = [c for c in connections if c is not None]

    policy = policy or ValidationPolicy()
    violations.extend(validate(components, connections, policy))
    if violations:
        raise CorruptDocumentError(f"Corrupt project document {project_id!r}", violations)

    project = Project(
        project_id=project_id,
        project_name=document.get('projectName') or "",
        description=document.get('description') or "",
        status=document.get('status') or "created",
        schema=document.get('schema'),
        created_by=document.get('createdBy'),
        registry=registry,
        policy=policy,
        check_invariants=check_invariants,
        id_allocator=id_allocator,
    )
    for component in components:
        project.components.insert(component)
    for connection in connections:
        project.connections.insert(connection)
    return project


def dumps(project: Project) -> str:
    """Document as a JSON string."""
    return json.dumps(to_document(project))


def loads(text: str, registry: Optional[ComponentRegistry] = None,
          policy: Optional[ValidationPolicy] = None) -> Project:
    try:
        document = json.loads(text)
    except json.JSONDecodeError as e:
        raise CorruptDocumentError(f"Project document is not valid JSON: {e}") from e
    return from_document(document, registry, policy)


def _style_literal(style: Dict[str, str]) -> str:
    # Matches JSON.stringify: insertion order, no whitespace.
    return json.dumps(style, separators=(',', ':'), ensure_ascii=False)


def render_component(component: Component, index: int, registry: ComponentRegistry) -> str:
    """JSX line for one component, or a placeholder comment."""
    template = registry.code_template(component.type)
    if template is None:
        return f"<!-- {component.type} component -->"
    return template.format(
        key=index,
        style=_style_literal(component.props.style),
        text=component.props.text if component.props.text is not None else "",
    )


def to_source_text(project: Project, registry: Optional[ComponentRegistry] = None) -> str:
    """Render the project as a React component preview.

    Deterministic: the same project always renders to the same string.
    """
    registry = registry or project.registry
    body = "\n".join(
        render_component(component, index, registry)
        for index, component in enumerate(project.components.list())
    )
    return (
        "import React from 'react';\n"
        "\n"
        "const GeneratedComponent = () => {\n"
        "  return (\n"
        "    <div>\n"
        f"      {body}\n"
        "    </div>\n"
        "  );\n"
        "};\n"
        "\n"
        "export default GeneratedComponent;"
    )
