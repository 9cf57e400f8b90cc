#!/usr/bin/env python3
# mindmap_view.py – one mind-map visualization: model + layout + pointer + viewport + renderer
"""
`MindMapView` is the piece a host embeds.  It owns exactly one of each
component and wires them together:

    snapshot ──load()──▶ GraphModel ──▶ LayoutEngine ──tick──▶ render() ──▶ draw(frame)
                             ▲                ▲
      pointer events ──▶ InteractionController │
      container size ──▶ ViewportManager ──────┘

After `destroy()` the engine is stopped (once) and every later pointer or
resize call is silently ignored.

Run this module for an interactive matplotlib window on a random graph.
"""
from __future__ import annotations

from typing import Any, Callable, Mapping, Optional, Tuple
import logging
import random

from mindmap_graph import GHOST, SOLID, GraphModel, NodeState, snapshot_from_networkx
from mindmap_interaction import InteractionController, Phase
from mindmap_layout import LayoutEngine, SimulationConfig, TickSnapshot
from mindmap_render import DEFAULT_STYLE, Frame, Style, draw_matplotlib, render
from mindmap_viewport import DEFAULT_HEIGHT, DEFAULT_WIDTH, ViewportManager

log = logging.getLogger(__name__)


class MindMapView:
    def __init__(self, snapshot: Optional[Mapping[str, Any]] = None,
                 on_node_selected: Optional[Callable[[NodeState], None]] = None,
                 draw: Optional[Callable[[Frame], None]] = None,
                 size: Tuple[float, float] = (DEFAULT_WIDTH, DEFAULT_HEIGHT),
                 config: Optional[SimulationConfig] = None,
                 scheduler=None,
                 style: Style = DEFAULT_STYLE):
        self.config = (config or SimulationConfig()).validate()
        self.style = style
        self.draw = draw
        self.last_frame: Optional[Frame] = None
        self._destroyed = False

        self.model = GraphModel(initial_radius=self.config.initial_radius)
        self.engine = LayoutEngine(self.model, self.config, scheduler)
        self.viewport = ViewportManager(self.engine, self.redraw, *size)
        self.controller = InteractionController(self.model, self.engine, on_node_selected)
        self._unsubscribe = self.engine.on_tick(self.redraw)

        if snapshot is not None:
            self.load(snapshot)

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    def load(self, snapshot: Mapping[str, Any]) -> None:
        """Replace the graph and start laying it out; `ValidationError` keeps the old one."""
        if self._destroyed:
            return
        self.controller.pointer_cancel()
        self.model.load_snapshot(snapshot, center=self.viewport.center)
        if len(self.model) == 0:
            log.info("empty mind map, nothing to animate")
        self.engine.reset()
        self.engine.start()
        self.redraw()

    def redraw(self, snapshot: Optional[TickSnapshot] = None) -> Optional[Frame]:
        if self._destroyed:
            return None
        self.last_frame = render(self.model, snapshot, self.style, self.viewport.size)
        if self.draw is not None:
            self.draw(self.last_frame)
        return self.last_frame

    # -------------------------------------------------------------- host events
    def resize(self, width: float, height: float) -> None:
        if not self._destroyed:
            self.viewport.resize(width, height)

    def pointer_down(self, x: float, y: float) -> Optional[Phase]:
        return None if self._destroyed else self.controller.pointer_down(x, y)

    def pointer_move(self, x: float, y: float) -> Optional[Phase]:
        return None if self._destroyed else self.controller.pointer_move(x, y)

    def pointer_up(self, x: float, y: float) -> Optional[Phase]:
        return None if self._destroyed else self.controller.pointer_up(x, y)

    def pointer_cancel(self) -> Optional[Phase]:
        return None if self._destroyed else self.controller.pointer_cancel()

    def destroy(self) -> None:
        if self._destroyed:
            return
        self._destroyed = True
        self._unsubscribe()
        self.controller.dispose()
        self.viewport.dispose()
        self.engine.dispose()  # the one and only stop()
        self.draw = None
        log.debug("mind map view destroyed")


# ---------------------------------------------------------------------------
#  matplotlib host
# ---------------------------------------------------------------------------
class MatplotlibFrameScheduler:
    """One single-shot canvas timer per requested frame."""

    def __init__(self, canvas, interval_ms: int = 16):
        self.canvas = canvas
        self.interval_ms = interval_ms

    def request(self, callback):
        timer = self.canvas.new_timer(interval=self.interval_ms)
        timer.single_shot = True
        timer.add_callback(callback)
        timer.start()
        return timer

    def cancel(self, timer) -> None:
        timer.stop()


def demo_snapshot(n: int = 20, p: float = 0.1, seed: Optional[int] = None) -> dict:
    import networkx as nx

    G = nx.erdos_renyi_graph(n, p, seed=seed)
    rng = random.Random(seed)
    for key in G.nodes:
        G.nodes[key]["label"] = f"sana {key}"
        G.nodes[key]["status"] = SOLID if rng.random() < 0.4 else GHOST
    for u, v in G.edges:
        G.edges[u, v]["relation_type"] = rng.choice(["synonym", "related", "derived"])
    return snapshot_from_networkx(G)


def main():
    import matplotlib.pyplot as plt

    logging.basicConfig(level=logging.INFO)
    fig, ax = plt.subplots(figsize=(8, 6))

    def draw(frame: Frame):
        draw_matplotlib(ax, frame)
        fig.canvas.draw_idle()

    def selected(state: NodeState):
        print(f"selected {state.node.label!r} ({state.node.status}) at ({state.x:.1f}, {state.y:.1f})")

    view = MindMapView(on_node_selected=selected, draw=draw,
                       scheduler=MatplotlibFrameScheduler(fig.canvas))
    view.load(demo_snapshot(seed=0))

    def inside(event):
        return event.inaxes is ax and event.xdata is not None

    fig.canvas.mpl_connect("button_press_event",
                           lambda e: inside(e) and view.pointer_down(e.xdata, e.ydata))
    fig.canvas.mpl_connect("motion_notify_event",
                           lambda e: inside(e) and view.pointer_move(e.xdata, e.ydata))
    fig.canvas.mpl_connect("button_release_event",
                           lambda e: view.pointer_up(e.xdata, e.ydata) if inside(e) else view.pointer_cancel())
    fig.canvas.mpl_connect("resize_event",
                           lambda e: view.resize(ax.bbox.width, ax.bbox.height))
    fig.canvas.mpl_connect("close_event", lambda e: view.destroy())
    plt.show()


if __name__ == "__main__":
    main()
