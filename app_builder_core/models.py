"""
Core data models for the canvas component graph.

This module defines the placed components, the typed connections between them
and the derived connection points used by the interaction layer.
"""

import copy
from dataclasses import dataclass, field
from enum import Enum
from numbers import Real
from typing import Any, Dict, List, Optional, Union

from .exceptions import InvalidPropsError, InvalidTypeError


# Prop keys with a dedicated field on ComponentProps; everything else is extra.
CORE_PROP_KEYS = ('name', 'text', 'position', 'style')


def is_number(value: Any) -> bool:
    """Real number that is not a bool."""
    return isinstance(value, Real) and not isinstance(value, bool)


def is_style_map(value: Any) -> bool:
    """Mapping of style property names to string values."""
    return isinstance(value, dict) and all(
        isinstance(k, str) and isinstance(v, str) for k, v in value.items()
    )


@dataclass
class Position:
    """Canvas offset of a component."""
    x: float = 0.0
    y: float = 0.0

    def moved(self, dx: float, dy: float) -> 'Position':
        return Position(self.x + dx, self.y + dy)

    def to_dict(self) -> Dict[str, float]:
        return {'x': self.x, 'y': self.y}


@dataclass
class ComponentProps:
    """Property bag of a placed component."""
    name: Optional[str] = None
    text: Optional[str] = None
    position: Position = field(default_factory=Position)
    style: Dict[str, str] = field(default_factory=dict)
    extra: Dict[str, Any] = field(default_factory=dict)

    def copy(self) -> 'ComponentProps':
        """Deep copy, so style and extra maps are never shared."""
        return ComponentProps(
            name=self.name,
            text=self.text,
            position=Position(self.position.x, self.position.y),
            style=dict(self.style),
            extra=copy.deepcopy(self.extra),
        )

    def merged(self, partial: Dict[str, Any], component_id: Optional[str] = None) -> 'ComponentProps':
        """Return a copy with ``partial`` shallow-merged at the top level.

        ``style`` is replaced wholesale, not merged key by key. Values are
        held to the same shape a stored document must have; a bad one raises
        InvalidPropsError naming ``component_id`` and nothing is merged.
        """
        result = self.copy()
        for key, value in partial.items():
            if key == 'position':
                result.position = _coerce_position(value, component_id)
            elif key == 'style':
                if value is not None and not is_style_map(value):
                    raise InvalidPropsError('style', value, component_id)
                result.style = dict(value or {})
            elif key in ('name', 'text'):
                if value is not None and not isinstance(value, str):
                    raise InvalidPropsError(key, value, component_id)
                setattr(result, key, value)
            else:
                result.extra[key] = copy.deepcopy(value)
        return result


def _coerce_position(value: Any, component_id: Optional[str]) -> Position:
    if isinstance(value, Position):
        x, y = value.x, value.y
    elif isinstance(value, dict):
        x, y = value.get('x'), value.get('y')
    else:
        raise InvalidPropsError('position', value, component_id)
    if not is_number(x) or not is_number(y):
        raise InvalidPropsError('position', value, component_id)
    return Position(float(x), float(y))


@dataclass
class Component:
    """A placed visual element on the canvas."""
    id: str
    type: str
    props: ComponentProps = field(default_factory=ComponentProps)
    code: Optional[str] = None

    @property
    def position(self) -> Position:
        return self.props.position


class ConnectionType(Enum):
    """Kinds of edges between components."""
    DATA = "data"
    ACTION = "action"
    PARENT_CHILD = "parent-child"

    @classmethod
    def parse(cls, value: Union[str, 'ConnectionType']) -> 'ConnectionType':
        """Resolve a string or enum member, raising InvalidTypeError otherwise."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise InvalidTypeError(value) from None


@dataclass
class Connection:
    """A directed, typed edge between two components."""
    id: str
    from_id: str
    to_id: str
    type: ConnectionType = ConnectionType.DATA
    label: Optional[str] = None

    def involves(self, component_id: str) -> bool:
        """Whether either endpoint is ``component_id``."""
        return self.from_id == component_id or self.to_id == component_id


class PointRole(Enum):
    """Direction a connection point accepts."""
    INPUT = "input"
    OUTPUT = "output"


class PointSide(Enum):
    """Edge of the component a connection point is anchored to."""
    TOP = "top"
    RIGHT = "right"
    BOTTOM = "bottom"
    LEFT = "left"


@dataclass(frozen=True)
class ConnectionPoint:
    """Presentation-only anchor derived from a component; never persisted."""
    id: str
    component_id: str
    role: PointRole
    side: PointSide


_POINT_LAYOUT = (
    (PointRole.INPUT, PointSide.LEFT),
    (PointRole.INPUT, PointSide.TOP),
    (PointRole.OUTPUT, PointSide.RIGHT),
    (PointRole.OUTPUT, PointSide.BOTTOM),
)


def connection_points(component: Component) -> List[ConnectionPoint]:
    """Derive the connection points drawn around ``component``."""
    return [
        ConnectionPoint(
            id=f"{component.id}:{role.value}:{side.value}",
            component_id=component.id,
            role=role,
            side=side,
        )
        for role, side in _POINT_LAYOUT
    ]
