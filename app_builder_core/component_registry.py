"""
Component type registry for the builder palette.

Each registered type carries its palette metadata (category, description,
icon), the defaults applied when a component of that type is placed, and an
optional JSX template used by the source-text projection. Types that are not
registered resolve to empty defaults and no template.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass
class ComponentTypeSpec:
    """Defines a component type that can be placed on the canvas."""
    type_name: str
    category: str = "General"
    description: str = ""
    icon: str = "square"  # Lucide icon name
    default_text: str = ""
    default_style: Dict[str, str] = field(default_factory=dict)
    code_template: Optional[str] = None
    tags: List[str] = field(default_factory=list)

    def matches_search(self, query: str) -> bool:
        """Check if this type matches a search query."""
        query_lower = query.lower()
        return (
            query_lower in self.type_name.lower() or
            query_lower in self.description.lower() or
            any(query_lower in tag.lower() for tag in self.tags) or
            query_lower in self.category.lower()
        )

    def to_dict(self) -> Dict[str, object]:
        return {
            'type': self.type_name,
            'category': self.category,
            'description': self.description,
            'icon': self.icon,
            'defaultText': self.default_text,
            'defaultStyle': dict(self.default_style),
            'hasTemplate': self.code_template is not None,
        }


class ComponentRegistry:
    """Map of type name to its defaults and code template."""

    def __init__(self):
        self._types: Dict[str, ComponentTypeSpec] = {}

    def register(self, spec: ComponentTypeSpec) -> ComponentTypeSpec:
        """Register or replace a component type."""
        self._types[spec.type_name] = spec
        return spec

    def unregister(self, type_name: str) -> bool:
        return self._types.pop(type_name, None) is not None

    def get(self, type_name: str) -> Optional[ComponentTypeSpec]:
        return self._types.get(type_name)

    def is_registered(self, type_name: str) -> bool:
        return type_name in self._types

    def types(self) -> List[ComponentTypeSpec]:
        """All registered types in registration order."""
        return list(self._types.values())

    def categories(self) -> Dict[str, List[ComponentTypeSpec]]:
        """Registered types grouped by palette category."""
        grouped: Dict[str, List[ComponentTypeSpec]] = {}
        for spec in self._types.values():
            grouped.setdefault(spec.category, []).append(spec)
        return grouped

    def default_text(self, type_name: str) -> str:
        spec = self._types.get(type_name)
        return spec.default_text if spec else ""

    def default_style(self, type_name: str) -> Dict[str, str]:
        """A fresh copy of the type's default style."""
        spec = self._types.get(type_name)
        return dict(spec.default_style) if spec else {}

    def code_template(self, type_name: str) -> Optional[str]:
        spec = self._types.get(type_name)
        return spec.code_template if spec else None

    def search(self, query: str, limit: int = 50) -> List[ComponentTypeSpec]:
        """Search registered types, best matches first."""
        if not query.strip():
            return self.types()[:limit]

        results = []
        query_lower = query.lower()

        for spec in self._types.values():
            score = 0

            if spec.type_name.lower() == query_lower:
                score += 100
            elif query_lower in spec.type_name.lower():
                score += 50

            if query_lower in spec.description.lower():
                score += 20

            for tag in spec.tags:
                if query_lower in tag.lower():
                    score += 30

            if query_lower in spec.category.lower():
                score += 10

            if score > 0:
                results.append((score, spec))

        # sort is stable, so equal scores keep registration order
        results.sort(key=lambda x: x[0], reverse=True)
        return [spec for score, spec in results[:limit]]


# Types with concrete defaults and a JSX template.
_CORE_TYPES = [
    ComponentTypeSpec(
        type_name='Button',
        category='Basic',
        description='Interactive button element',
        icon='mouse-pointer',
        default_text='Click me',
        default_style={
            'backgroundColor': '#3B82F6',
            'color': 'white',
            'padding': '8px 16px',
            'borderRadius': '4px',
            'border': 'none',
            'cursor': 'pointer',
        },
        code_template='<button key="{key}" style={{{style}}}>{text}</button>',
    ),
    ComponentTypeSpec(
        type_name='Text',
        category='Basic',
        description='Text content block',
        icon='type',
        default_text='Sample text',
        default_style={
            'color': '#374151',
            'fontSize': '16px',
            'fontFamily': 'inherit',
        },
        code_template='<p key="{key}" style={{{style}}}>{text}</p>',
    ),
    ComponentTypeSpec(
        type_name='Input',
        category='Basic',
        description='Text input field',
        icon='square',
        default_text='Enter text...',
        default_style={
            'border': '1px solid #D1D5DB',
            'borderRadius': '4px',
            'padding': '8px 12px',
            'fontSize': '14px',
        },
        code_template='<input key="{key}" style={{{style}}} placeholder="{text}" />',
    ),
    ComponentTypeSpec(
        type_name='Card',
        category='Basic',
        description='Content container card',
        icon='credit-card',
        default_text='Card content',
        default_style={
            'backgroundColor': 'white',
            'border': '1px solid #E5E7EB',
            'borderRadius': '8px',
            'padding': '16px',
            'boxShadow': '0 1px 3px rgba(0, 0, 0, 0.1)',
        },
        code_template='<div key="{key}" style={{{style}}}>{text}</div>',
    ),
]

# Palette-only types: listed and placeable, no defaults and no template.
_PALETTE_TYPES = {
    'Basic': [
        ('Image', 'image', 'Image display element'),
        ('List', 'list', 'List of items'),
    ],
    'Forms': [
        ('EmailInput', 'mail', 'Email input field'),
        ('PhoneInput', 'phone', 'Phone number input'),
        ('TextArea', 'type', 'Multi-line text input'),
        ('Select', 'list', 'Dropdown selection'),
        ('Checkbox', 'check', 'Checkbox input'),
        ('Radio', 'mouse-pointer', 'Radio button input'),
    ],
    'Layout': [
        ('Container', 'square', 'Layout container'),
        ('Row', 'square', 'Horizontal row'),
        ('Column', 'square', 'Vertical column'),
        ('Grid', 'square', 'Grid layout'),
        ('Flex', 'square', 'Flexbox container'),
        ('Spacer', 'square', 'Empty space'),
    ],
    'Navigation': [
        ('Navbar', 'menu', 'Navigation bar'),
        ('Breadcrumb', 'square', 'Breadcrumb navigation'),
        ('Pagination', 'square', 'Page navigation'),
        ('Tabs', 'square', 'Tab navigation'),
        ('Sidebar', 'menu', 'Side navigation'),
    ],
    'Media': [
        ('Video', 'square', 'Video player'),
        ('Audio', 'square', 'Audio player'),
        ('Gallery', 'image', 'Image gallery'),
        ('Carousel', 'square', 'Image carousel'),
    ],
    'Interactive': [
        ('Modal', 'square', 'Modal dialog'),
        ('Tooltip', 'info', 'Tooltip element'),
        ('Dropdown', 'square', 'Dropdown menu'),
        ('Accordion', 'square', 'Collapsible content'),
        ('Slider', 'square', 'Range slider'),
        ('Rating', 'star', 'Star rating'),
    ],
    'Feedback': [
        ('Alert', 'alert-circle', 'Alert message'),
        ('Toast', 'info', 'Toast notification'),
        ('Progress', 'square', 'Progress bar'),
        ('Loading', 'square', 'Loading spinner'),
        ('Badge', 'star', 'Status badge'),
    ],
    'Data': [
        ('Table', 'square', 'Data table'),
        ('Chart', 'square', 'Data visualization'),
        ('Calendar', 'calendar', 'Calendar widget'),
        ('Search', 'search', 'Search input'),
        ('Filter', 'filter', 'Filter controls'),
    ],
}


def default_registry() -> ComponentRegistry:
    """Build a fresh registry holding the standard builder palette."""
    registry = ComponentRegistry()
    for spec in _CORE_TYPES:
        registry.register(ComponentTypeSpec(
            type_name=spec.type_name,
            category=spec.category,
            description=spec.description,
            icon=spec.icon,
            default_text=spec.default_text,
            default_style=dict(spec.default_style),
            code_template=spec.code_template,
        ))
    for category, entries in _PALETTE_TYPES.items():
        for type_name, icon, description in entries:
            registry.register(ComponentTypeSpec(
                type_name=type_name,
                category=category,
                description=description,
                icon=icon,
            ))
    return registry
