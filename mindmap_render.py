# mindmap_render.py – mind map → draw primitives (+ a matplotlib painter)
"""
`render()` is a pure function: it reads a `GraphModel` (and optionally a
`TickSnapshot` for positions) and returns a `Frame` of plain records.  It
never writes to the model.  Paint order is edges, then node circles, then
labels, so text always sits on top.

`draw_matplotlib()` turns a `Frame` into patches/lines/text on an Axes; any
other backend only needs to walk the same three tuples.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Hashable, Mapping, Optional, Tuple

from mindmap_graph import GraphModel, SOLID

Color = str


@dataclass(frozen=True)
class StatusStyle:
    fill: Color
    stroke: Color
    dash: Optional[Tuple[float, float]]  # None → solid stroke
    glow: Optional[Color]


@dataclass(frozen=True)
class Style:
    node_radius: float = 30.0
    node_stroke_width: float = 3.0
    solid: StatusStyle = StatusStyle("#10b981", "#059669", None, "#10b981")
    ghost: StatusStyle = StatusStyle("#94a3b8", "#64748b", (5.0, 5.0), None)
    glow_radius: float = 10.0
    edge_stroke: Color = "#475569"
    edge_width: float = 2.0
    edge_opacity: float = 0.6
    label_color: Color = "white"
    label_size: float = 12.0
    label_weight: str = "bold"
    background: Color = "#0f172a"

    def for_status(self, status: str) -> StatusStyle:
        return self.solid if status == SOLID else self.ghost


DEFAULT_STYLE = Style()


@dataclass(frozen=True)
class Line:
    x1: float
    y1: float
    x2: float
    y2: float
    stroke: Color
    width: float
    opacity: float
    source_id: Hashable = None
    target_id: Hashable = None
    relation_type: Optional[str] = None


@dataclass(frozen=True)
class Circle:
    node_id: Hashable
    cx: float
    cy: float
    r: float
    fill: Color
    stroke: Color
    stroke_width: float
    dash: Optional[Tuple[float, float]]
    glow: Optional[Color]
    glow_radius: float = 0.0


@dataclass(frozen=True)
class Label:
    node_id: Hashable
    x: float
    y: float
    text: str
    color: Color
    size: float
    weight: str
    anchor: str = "middle"


@dataclass(frozen=True)
class LegendEntry:
    text: str
    style: StatusStyle


LEGEND = (("Mastered", "solid"), ("Learning", "ghost"))


@dataclass(frozen=True)
class Frame:
    lines: Tuple[Line, ...]
    circles: Tuple[Circle, ...]
    labels: Tuple[Label, ...]
    legend: Tuple[LegendEntry, ...] = ()
    size: Tuple[float, float] = (0.0, 0.0)
    background: Color = DEFAULT_STYLE.background

    def __len__(self):
        return len(self.lines) + len(self.circles) + len(self.labels)


def render(model: GraphModel, snapshot=None, style: Style = DEFAULT_STYLE,
           size: Tuple[float, float] = (0.0, 0.0)) -> Frame:
    """Draw primitives for every edge and node at the current (or snapshot) positions."""
    positions: Mapping[Hashable, Tuple[float, float]] = (
        snapshot.positions if snapshot is not None else model.positions())

    lines = []
    for edge, source, target in model.resolved_edges():
        x1, y1 = positions[source.id]
        x2, y2 = positions[target.id]
        lines.append(Line(x1, y1, x2, y2, style.edge_stroke, style.edge_width, style.edge_opacity,
                          source.id, target.id, edge.relation_type))

    circles, labels = [], []
    for node in model.nodes:
        x, y = positions[node.id]
        look = style.for_status(node.status)
        circles.append(Circle(node.id, x, y, style.node_radius, look.fill, look.stroke,
                              style.node_stroke_width, look.dash, look.glow,
                              style.glow_radius if look.glow else 0.0))
        labels.append(Label(node.id, x, y, node.label, style.label_color,
                            style.label_size, style.label_weight))

    legend = tuple(LegendEntry(text, style.for_status(status)) for text, status in LEGEND)
    return Frame(tuple(lines), tuple(circles), tuple(labels), legend,
                 (float(size[0]), float(size[1])), style.background)


# ---------------------------------------------------------------------------
#  matplotlib backend
# ---------------------------------------------------------------------------
def draw_matplotlib(ax, frame: Frame) -> None:
    """Paint `frame` onto `ax` in screen orientation (y grows downward)."""
    from matplotlib.patches import Circle as CirclePatch, Patch

    ax.clear()
    ax.set_facecolor(frame.background)
    ax.set_aspect("equal")
    ax.set_axis_off()
    width, height = frame.size
    if width > 0 and height > 0:
        ax.set_xlim(0, width)
        ax.set_ylim(height, 0)

    for line in frame.lines:
        ax.plot([line.x1, line.x2], [line.y1, line.y2], color=line.stroke,
                lw=line.width, alpha=line.opacity, zorder=1)

    for c in frame.circles:
        if c.glow:
            ax.add_patch(CirclePatch((c.cx, c.cy), c.r + c.glow_radius, facecolor=c.glow,
                                     edgecolor="none", alpha=0.25, zorder=2))
        ax.add_patch(CirclePatch((c.cx, c.cy), c.r, facecolor=c.fill, edgecolor=c.stroke,
                                 lw=c.stroke_width,
                                 linestyle=(0, c.dash) if c.dash else "solid", zorder=3))

    for label in frame.labels:
        ax.text(label.x, label.y, label.text, color=label.color, fontsize=label.size,
                fontweight=label.weight, ha="center", va="center", zorder=4)

    if frame.legend:
        handles = [Patch(facecolor=e.style.fill, edgecolor=e.style.stroke,
                         linestyle="--" if e.style.dash else "-", label=e.text)
                   for e in frame.legend]
        ax.legend(handles=handles, loc="lower left", frameon=True)
