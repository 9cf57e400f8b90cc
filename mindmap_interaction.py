# mindmap_interaction.py – pointer gestures on the mind map as a state machine
"""
    IDLE ──down on node──▶ PRESSED ──moved ≥ click_distance──▶ DRAGGING
      ▲                       │                                   │
      └──────up (click)───────┘◀──────────────up (release)────────┘

PRESSED is the undecided start of a drag.  Nothing in the layout changes
until the pointer has travelled `click_distance` from where it went down;
letting go before that is a click and reports the node to the host.

While DRAGGING the node is pinned to the pointer and the engine is kept
warm with `drag_alpha_target`, so neighbours react live.  Releasing unpins
and lets the layout cool down again on its own.
"""
from __future__ import annotations

from enum import Enum
from typing import Callable, Hashable, Optional, Tuple
import logging
import math

from mindmap_graph import GraphModel, NodeState
from mindmap_layout import LayoutEngine

log = logging.getLogger(__name__)


class Phase(Enum):
    IDLE = "idle"
    PRESSED = "pressed"
    DRAGGING = "dragging"


class InteractionController:
    def __init__(self, model: GraphModel, engine: LayoutEngine,
                 on_node_selected: Optional[Callable[[NodeState], None]] = None):
        self.model = model
        self.engine = engine
        self.on_node_selected = on_node_selected
        self.phase = Phase.IDLE
        self.node_id: Optional[Hashable] = None
        self._origin: Tuple[float, float] = (0.0, 0.0)
        self._disposed = False

    @property
    def click_distance(self) -> float:
        return self.engine.config.click_distance

    @property
    def hit_radius(self) -> float:
        return self.engine.config.node_radius

    # -------------------------------------------------------------- events
    def pointer_down(self, x: float, y: float) -> Phase:
        if self._disposed or self.phase is not Phase.IDLE:
            return self.phase
        node_id = self.model.node_at(x, y, self.hit_radius)
        if node_id is None:
            return self.phase
        self.phase = Phase.PRESSED
        self.node_id = node_id
        self._origin = (x, y)
        return self.phase

    def pointer_move(self, x: float, y: float) -> Phase:
        if self._disposed:
            return self.phase
        if self.phase is Phase.PRESSED:
            ox, oy = self._origin
            if math.hypot(x - ox, y - oy) >= self.click_distance:
                self._begin_drag(x, y)
        elif self.phase is Phase.DRAGGING:
            self.model.pin_node(self.node_id, x, y)
        return self.phase

    def pointer_up(self, x: float, y: float) -> Phase:
        if self._disposed:
            return self.phase
        if self.phase is Phase.PRESSED:
            ox, oy = self._origin
            if math.hypot(x - ox, y - oy) >= self.click_distance:
                # moved and released without an intervening move event
                self._begin_drag(x, y)
                self._end_drag()
            else:
                self._click()
        elif self.phase is Phase.DRAGGING:
            self.model.pin_node(self.node_id, x, y)
            self._end_drag()
        return self.phase

    def pointer_cancel(self) -> Phase:
        if self.phase is Phase.DRAGGING:
            self._end_drag()
        self._reset()
        return self.phase

    def dispose(self) -> None:
        self._reset()
        self._disposed = True
        self.on_node_selected = None

    # -------------------------------------------------------------- transitions
    def _begin_drag(self, x: float, y: float) -> None:
        self.phase = Phase.DRAGGING
        self.model.pin_node(self.node_id, x, y)
        self.engine.reheat(alpha_target=self.engine.config.drag_alpha_target)
        log.debug("drag started on %r", self.node_id)

    def _end_drag(self) -> None:
        if self.node_id in self.model:
            self.model.unpin_node(self.node_id)
        self.engine.alpha_target = 0.0
        log.debug("drag ended on %r", self.node_id)
        self._reset()

    def _click(self) -> None:
        node_id = self.node_id
        self._reset()
        if self.on_node_selected is not None and node_id in self.model:
            self.on_node_selected(self.model.node_state(node_id))

    def _reset(self) -> None:
        self.phase = Phase.IDLE
        self.node_id = None
