"""
Dict conversion for individual components and connections.

Decoding never raises for bad input: problems are appended to a violation
list so that a caller can report every defect of a document at once and then
decide to reject it as a whole.
"""

from typing import Any, Dict, List, Optional

from .ids import IdAllocator
from .models import (
    CORE_PROP_KEYS, Component, ComponentProps, Connection, ConnectionType, Position,
    is_number, is_style_map
)
from .validator import Violation, ViolationKind


def component_to_dict(component: Component) -> Dict[str, Any]:
    """Persisted shape of one component."""
    props: Dict[str, Any] = {}
    if component.props.name is not None:
        props['name'] = component.props.name
    if component.props.text is not None:
        props['text'] = component.props.text
    props['position'] = component.props.position.to_dict()
    props['style'] = dict(component.props.style)
    for key, value in component.props.extra.items():
        props[key] = value

    data: Dict[str, Any] = {'id': component.id, 'type': component.type, 'props': props}
    if component.code is not None:
        data['code'] = component.code
    return data


def connection_to_dict(connection: Connection) -> Dict[str, Any]:
    """Persisted shape of one connection."""
    connection_type = connection.type
    data: Dict[str, Any] = {
        'id': connection.id,
        'from': connection.from_id,
        'to': connection.to_id,
        'type': connection_type.value if isinstance(connection_type, ConnectionType) else connection_type,
    }
    if connection.label is not None:
        data['label'] = connection.label
    return data


def _malformed(violations: List[Violation], subject_id: Optional[str], message: str, **details):
    violations.append(Violation(ViolationKind.MALFORMED_ENTRY, subject_id, message, details))


def _decode_position(raw: Any, subject_id: Optional[str], violations: List[Violation]) -> Position:
    if raw is None:
        return Position()
    if not isinstance(raw, dict) or not is_number(raw.get('x')) or not is_number(raw.get('y')):
        _malformed(violations, subject_id, f"Component {subject_id} has an invalid position",
                   field='position')
        return Position()
    return Position(float(raw['x']), float(raw['y']))


def _decode_style(raw: Any, subject_id: Optional[str], violations: List[Violation]) -> Dict[str, str]:
    if raw is None:
        return {}
    if not is_style_map(raw):
        _malformed(violations, subject_id, f"Component {subject_id} has an invalid style map",
                   field='style')
        return {}
    return dict(raw)


def component_from_dict(raw: Any, index: int, violations: List[Violation],
                        id_allocator: Optional[IdAllocator] = None) -> Optional[Component]:
    """Decode one component entry.

    Entries stored without an id get a fresh one from ``id_allocator``.
    Returns None when the entry is unusable; the reason is in ``violations``.
    """
    if not isinstance(raw, dict):
        _malformed(violations, None, f"Component entry {index} is not an object", index=index)
        return None

    component_id = raw.get('id')
    if component_id is None and id_allocator is not None:
        component_id = id_allocator.new_id('component')
    if not isinstance(component_id, str) or not component_id:
        _malformed(violations, None, f"Component entry {index} has no usable id", index=index)
        return None

    component_type = raw.get('type')
    if not isinstance(component_type, str) or not component_type:
        _malformed(violations, component_id, f"Component {component_id} has no type", field='type')
        return None

    raw_props = raw.get('props') or {}
    if not isinstance(raw_props, dict):
        _malformed(violations, component_id, f"Component {component_id} props is not an object",
                   field='props')
        return None

    before = len(violations)
    for key in ('name', 'text'):
        if raw_props.get(key) is not None and not isinstance(raw_props[key], str):
            _malformed(violations, component_id, f"Component {component_id} {key} is not a string",
                       field=key)
    props = ComponentProps(
        name=raw_props.get('name'),
        text=raw_props.get('text'),
        position=_decode_position(raw_props.get('position'), component_id, violations),
        style=_decode_style(raw_props.get('style'), component_id, violations),
        extra={k: v for k, v in raw_props.items() if k not in CORE_PROP_KEYS},
    )

    code = raw.get('code')
    if code is not None and not isinstance(code, str):
        _malformed(violations, component_id, f"Component {component_id} code is not a string",
                   field='code')

    if len(violations) > before:
        return None
    return Component(id=component_id, type=component_type, props=props, code=code)


def connection_from_dict(raw: Any, index: int, violations: List[Violation]) -> Optional[Connection]:
    """Decode one connection entry.

    Unknown connection types are kept verbatim so that the validator reports
    them alongside any other problem of the document.
    """
    if not isinstance(raw, dict):
        _malformed(violations, None, f"Connection entry {index} is not an object", index=index)
        return None

    connection_id = raw.get('id')
    if not isinstance(connection_id, str) or not connection_id:
        _malformed(violations, None, f"Connection entry {index} has no usable id", index=index)
        return None

    endpoints = {}
    for end in ('from', 'to'):
        value = raw.get(end)
        if not isinstance(value, str) or not value:
            _malformed(violations, connection_id,
                       f"Connection {connection_id} has no '{end}' component", field=end)
            return None
        endpoints[end] = value

    label = raw.get('label')
    if label is not None and not isinstance(label, str):
        _malformed(violations, connection_id, f"Connection {connection_id} label is not a string",
                   field='label')
        return None

    raw_type = raw.get('type', ConnectionType.DATA.value)
    try:
        connection_type = ConnectionType(raw_type)
    except ValueError:
        connection_type = raw_type

    return Connection(
        id=connection_id,
        from_id=endpoints['from'],
        to_id=endpoints['to'],
        type=connection_type,
        label=label,
    )
