"""
Selection/Interaction Controller for the builder canvas.

Tracks the current selection explicitly as a small state machine and turns
palette drops and point-to-point drags into store operations. Every event is
handled synchronously from every state; events that make no sense in the
current state are ignored.

    Idle --click component--> Selected
    Selected --click background / selected component removed--> Idle
    Selected --drag from output point--> Connecting
    Connecting --drop on input of another component--> Selected (edge created)
    Connecting --drag cancelled / invalid drop--> Selected (no edge)
"""

from dataclasses import dataclass
from typing import Callable, Optional, Tuple, Union

from .models import Component, Connection, ConnectionType, PointRole, Position
from .project import Project


@dataclass(frozen=True)
class Idle:
    """Nothing selected."""


@dataclass(frozen=True)
class Selected:
    component_id: str


@dataclass(frozen=True)
class Connecting:
    source_component_id: str
    source_point_role: PointRole = PointRole.OUTPUT


InteractionState = Union[Idle, Selected, Connecting]
StateListener = Callable[[InteractionState, InteractionState], None]


class InteractionController:
    """Owns the selection state for one editing session of a project."""

    def __init__(self, project: Project):
        self.project = project
        self.state: InteractionState = Idle()
        self.on_state_changed: Optional[StateListener] = None
        project.components.add_removal_listener(self.component_removed)

    @property
    def selected_component_id(self) -> Optional[str]:
        if isinstance(self.state, Selected):
            return self.state.component_id
        if isinstance(self.state, Connecting):
            return self.state.source_component_id
        return None

    @property
    def selected_component(self) -> Optional[Component]:
        component_id = self.selected_component_id
        return self.project.components.find(component_id) if component_id else None

    # -- pointer events ---------------------------------------------------

    def click_component(self, component_id: str):
        """Select a component; ignored while a connection drag is active."""
        if isinstance(self.state, Connecting):
            return
        if component_id not in self.project.components:
            return
        self._transition(Selected(component_id))

    def click_background(self):
        if isinstance(self.state, Selected):
            self._transition(Idle())

    def start_connection_drag(self, component_id: str, point_role: PointRole = PointRole.OUTPUT):
        """Begin dragging an edge out of one of ``component_id``'s points.

        Only output points start a drag.
        """
        if isinstance(self.state, Connecting):
            return
        if point_role is not PointRole.OUTPUT or component_id not in self.project.components:
            return
        self._transition(Connecting(component_id, point_role))

    def drop_on_point(self, target_component_id: str, point_role: PointRole = PointRole.INPUT,
                      connection_type: Union[str, ConnectionType] = ConnectionType.DATA,
                      label: Optional[str] = None) -> Optional[Connection]:
        """Finish a drag over a point; returns the new edge if one was made.

        The drag always ends here. If the edge is rejected the error is
        raised after the controller is back in ``Selected(source)``.
        """
        if not isinstance(self.state, Connecting):
            return None

        source_id = self.state.source_component_id
        connection = None
        try:
            if (point_role is PointRole.INPUT
                    and target_component_id != source_id
                    and target_component_id in self.project.components):
                connection = self.project.connect(source_id, target_component_id, connection_type, label)
        finally:
            self._transition(Selected(source_id))
        return connection

    def cancel_drag(self):
        if isinstance(self.state, Connecting):
            self._transition(Selected(self.state.source_component_id))

    # -- palette ----------------------------------------------------------

    def drop_from_palette(self, component_type: str,
                          position: Tuple[float, float] = (100.0, 100.0)) -> Component:
        """Place a new component dropped from the palette."""
        return self.project.add_component(component_type, {
            'name': self.project.next_display_name(component_type),
            'position': Position(float(position[0]), float(position[1])),
        })

    def delete_selected(self) -> bool:
        """Remove the selected component, if any."""
        if not isinstance(self.state, Selected):
            return False
        return self.project.remove_component(self.state.component_id)

    # -- store notifications ----------------------------------------------

    def component_removed(self, component_id: str):
        """Drop a selection or drag that refers to a removed component."""
        if self.selected_component_id == component_id:
            self._transition(Idle())

    def _transition(self, new_state: InteractionState):
        old_state = self.state
        self.state = new_state
        if self.on_state_changed and old_state != new_state:
            self.on_state_changed(old_state, new_state)
