# mindmap_graph.py – node/edge arena + per-node layout tensors for the mind map
"""
The graph a mind-map view draws: an **arena** of immutable node records
keyed by id, an edge list that only ever stores ids, and three tensors
(`pos`, `vel`, `pin`) that the layout engine integrates in place.

Edges are resolved to arena indices only when asked (`edge_index()` for the
hot loop, `resolved_edges()` for readers), so a reload can swap every node
without leaving stale references behind.

`load()` is all-or-nothing: everything is validated and built on the side,
and only swapped in once nothing is wrong.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Hashable, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple
import logging

import numpy as np
import torch

log = logging.getLogger(__name__)

# Set torch device (CPU or CUDA if available)
device = torch.device("cuda" if torch.cuda.is_available() else "cpu")
DTYPE = torch.float64

GHOST, SOLID = "ghost", "solid"
STATUSES = (GHOST, SOLID)

DEFAULT_INITIAL_RADIUS = 10.0
PHYLLOTAXIS_ANGLE = np.pi * (3.0 - np.sqrt(5.0))


class ValidationError(ValueError):
    """A snapshot that cannot be loaded; `problems` lists every reason."""

    def __init__(self, problems: Sequence[str]):
        self.problems = list(problems)
        super().__init__("invalid graph: " + "; ".join(self.problems))


class DegenerateInputWarning(UserWarning):
    """Input the view tolerates but cannot lay out (e.g. a zero-size viewport)."""


@dataclass(frozen=True)
class Node:
    id: Hashable
    label: str
    status: str = GHOST
    category: Optional[str] = None


@dataclass(frozen=True)
class Edge:
    source_id: Hashable
    target_id: Hashable
    relation_type: Optional[str] = None


@dataclass(frozen=True)
class NodeState:
    """A node record plus where the layout currently has it."""
    node: Node
    x: float
    y: float
    vx: float
    vy: float
    pin: Optional[Tuple[float, float]] = None

    @property
    def id(self):
        return self.node.id


def phyllotaxis(n: int, cx: float = 0.0, cy: float = 0.0,
                radius: float = DEFAULT_INITIAL_RADIUS) -> np.ndarray:
    """Sunflower spiral around (cx, cy); no two points coincide."""
    i = np.arange(n, dtype=np.float64)
    r = radius * np.sqrt(0.5 + i)
    a = i * PHYLLOTAXIS_ANGLE
    return np.stack([cx + r * np.cos(a), cy + r * np.sin(a)], axis=1).reshape(n, 2)


def _coord(raw: Mapping, key: str) -> Optional[float]:
    value = raw.get(key)
    if value is None:
        return None
    try:
        f = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{key!r} must be a number, got {value!r}") from None
    if not np.isfinite(f):
        raise ValueError(f"{key!r} must be finite, got {value!r}")
    return f


def _check_id(value, key: str) -> Hashable:
    try:
        hash(value)
    except TypeError:
        raise TypeError(f"{key!r} must be hashable, got {type(value).__name__}") from None
    return value


class GraphModel:
    """Validated node/edge snapshot and the layout state of every node."""

    def __init__(self, initial_radius: float = DEFAULT_INITIAL_RADIUS):
        self.initial_radius = initial_radius
        self.version = 0  # bumped by every successful load
        self.nodes: List[Node] = []
        self.edges: List[Edge] = []
        self._index: Dict[Hashable, int] = {}
        self.pos = torch.zeros((0, 2), dtype=DTYPE, device=device)
        self.vel = torch.zeros_like(self.pos)
        self.pin = torch.zeros_like(self.pos)
        self.fixed = torch.zeros(0, dtype=torch.bool, device=device)

    # -------------------------------------------------------------- loading
    def load(self, nodes: Iterable[Any], edges: Iterable[Any] = (),
             center: Tuple[float, float] = (0.0, 0.0)) -> None:
        """
        Replace the whole graph.  `nodes` are `Node` records or mappings with
        `id`, `label` (or `word`), `status`, `category` and optional `x`, `y`,
        `vx`, `vy`; `edges` are `Edge` records or mappings with `source`,
        `target`, `relation_type`.  Raises `ValidationError` listing every
        problem and leaves the previous graph untouched.
        """
        problems: List[str] = []
        new_nodes: List[Node] = []
        seeds: List[Tuple[Optional[float], ...]] = []
        index: Dict[Hashable, int] = {}

        for k, raw in enumerate(nodes):
            try:
                node, seed = self._coerce_node(raw)
            except (KeyError, TypeError, ValueError) as exc:
                problems.append(f"node #{k}: {exc}")
                continue
            if node.id in index:
                problems.append(f"duplicate node id {node.id!r}")
                continue
            index[node.id] = len(new_nodes)
            new_nodes.append(node)
            seeds.append(seed)

        new_edges: List[Edge] = []
        for k, raw in enumerate(edges):
            try:
                edge = self._coerce_edge(raw)
            except (KeyError, TypeError, ValueError) as exc:
                problems.append(f"edge #{k}: {exc}")
                continue
            for end, ref in (("source", edge.source_id), ("target", edge.target_id)):
                if ref not in index:
                    problems.append(f"edge #{k} {edge.source_id!r}->{edge.target_id!r}: "
                                    f"unknown {end} node {ref!r}")
            new_edges.append(edge)

        if problems:
            raise ValidationError(problems)

        n = len(new_nodes)
        pos = phyllotaxis(n, center[0], center[1], self.initial_radius)
        vel = np.zeros((n, 2), dtype=np.float64)
        for i, (x, y, vx, vy) in enumerate(seeds):
            if x is not None and y is not None:
                pos[i] = (x, y)
            vel[i] = (vx or 0.0, vy or 0.0)

        # nothing below can fail, swap everything at once
        self.nodes = new_nodes
        self.edges = new_edges
        self._index = index
        self.pos = torch.tensor(pos, dtype=DTYPE, device=device).reshape(n, 2)
        self.vel = torch.tensor(vel, dtype=DTYPE, device=device).reshape(n, 2)
        self.pin = torch.zeros_like(self.pos)
        self.fixed = torch.zeros(n, dtype=torch.bool, device=device)
        self.version += 1
        log.info("loaded graph: %d nodes, %d edges", n, len(new_edges))

    def load_snapshot(self, data: Mapping[str, Any],
                      center: Tuple[float, float] = (0.0, 0.0)) -> None:
        """Load the host's `{"nodes": [...], "links": [...]}` shape."""
        missing = [key for key in ("nodes", "links") if key not in data]
        if missing:
            raise ValidationError([f"snapshot has no {key!r}" for key in missing])
        self.load(data["nodes"] or (), data["links"] or (), center=center)

    @staticmethod
    def _coerce_node(raw) -> Tuple[Node, Tuple[Optional[float], ...]]:
        if isinstance(raw, Node):
            _check_id(raw.id, "id")
            return raw, (None, None, None, None)
        if not isinstance(raw, Mapping):
            raise TypeError(f"expected a mapping, got {type(raw).__name__}")
        label = raw.get("label", raw.get("word"))
        if label is None:
            raise KeyError("missing 'label'")
        status = raw.get("status", GHOST)
        if status not in STATUSES:
            raise ValueError(f"status must be one of {STATUSES}, got {status!r}")
        node = Node(id=_check_id(raw["id"], "id"), label=str(label), status=status,
                    category=raw.get("category"))
        seed = tuple(_coord(raw, k) for k in ("x", "y", "vx", "vy"))
        return node, seed

    @staticmethod
    def _coerce_edge(raw) -> Edge:
        if isinstance(raw, Edge):
            _check_id(raw.source_id, "source")
            _check_id(raw.target_id, "target")
            return raw
        if not isinstance(raw, Mapping):
            raise TypeError(f"expected a mapping, got {type(raw).__name__}")
        return Edge(source_id=_check_id(raw["source"], "source"),
                    target_id=_check_id(raw["target"], "target"),
                    relation_type=raw.get("relation_type"))

    # -------------------------------------------------------------- lookups
    def __len__(self) -> int:
        return len(self.nodes)

    def __contains__(self, node_id) -> bool:
        return node_id in self._index

    @property
    def ids(self) -> List[Hashable]:
        return [node.id for node in self.nodes]

    def get_node(self, node_id) -> Optional[Node]:
        i = self._index.get(node_id)
        return None if i is None else self.nodes[i]

    def index_of(self, node_id) -> int:
        try:
            return self._index[node_id]
        except KeyError:
            raise KeyError(f"no node with id {node_id!r}") from None

    def node_state(self, node_id) -> NodeState:
        i = self.index_of(node_id)
        x, y = self.pos[i].tolist()
        vx, vy = self.vel[i].tolist()
        pin = tuple(self.pin[i].tolist()) if bool(self.fixed[i]) else None
        return NodeState(self.nodes[i], x, y, vx, vy, pin)

    def position(self, node_id) -> Tuple[float, float]:
        x, y = self.pos[self.index_of(node_id)].tolist()
        return x, y

    def positions(self) -> Dict[Hashable, Tuple[float, float]]:
        return {node.id: (x, y) for node, (x, y) in zip(self.nodes, self.pos.tolist())}

    def resolved_edges(self) -> Iterator[Tuple[Edge, Node, Node]]:
        for edge in self.edges:
            yield edge, self.nodes[self._index[edge.source_id]], self.nodes[self._index[edge.target_id]]

    def edge_index(self) -> torch.Tensor:
        """(E, 2) arena indices, built fresh for the caller."""
        pairs = [(self._index[e.source_id], self._index[e.target_id]) for e in self.edges]
        return torch.tensor(pairs, dtype=torch.long, device=device).reshape(len(pairs), 2)

    def degree(self) -> torch.Tensor:
        deg = torch.zeros(len(self.nodes), dtype=DTYPE, device=device)
        idx = self.edge_index()
        if idx.numel():
            ones = torch.ones(idx.size(0), dtype=DTYPE, device=device)
            deg.index_add_(0, idx[:, 0], ones)
            deg.index_add_(0, idx[:, 1], ones)
        return deg

    def node_at(self, x: float, y: float, radius: float) -> Optional[Hashable]:
        """Topmost node (last painted) whose circle contains (x, y)."""
        if not self.nodes:
            return None
        d2 = ((self.pos - torch.tensor([x, y], dtype=DTYPE, device=device)) ** 2).sum(dim=1)
        hits = torch.nonzero(d2 <= radius * radius).flatten()
        if hits.numel() == 0:
            return None
        return self.nodes[int(hits[-1])].id

    # -------------------------------------------------------------- pinning
    def set_position(self, node_id, x: float, y: float) -> None:
        i = self.index_of(node_id)
        self.pos[i, 0] = x
        self.pos[i, 1] = y

    def pin_node(self, node_id, x: float, y: float) -> None:
        """Fix a node at (x, y); the position follows immediately."""
        i = self.index_of(node_id)
        self.pin[i, 0] = x
        self.pin[i, 1] = y
        self.fixed[i] = True
        self.pos[i] = self.pin[i]
        self.vel[i] = 0.0

    def unpin_node(self, node_id) -> None:
        self.fixed[self.index_of(node_id)] = False

    def is_pinned(self, node_id) -> bool:
        return bool(self.fixed[self.index_of(node_id)])


def snapshot_from_networkx(G) -> Dict[str, list]:
    """
    Host-shaped snapshot from a networkx graph.  Node attributes `label`,
    `status`, `category` and edge attribute `relation_type` are carried over;
    a missing label falls back to the node key.
    """
    nodes = []
    for key, data in G.nodes(data=True):
        entry = {
            "id": key,
            "label": data.get("label", str(key)),
            "status": data.get("status", GHOST),
            "category": data.get("category"),
        }
        for coord in ("x", "y"):
            if coord in data:
                entry[coord] = data[coord]
        nodes.append(entry)
    links = [{"source": u, "target": v, "relation_type": data.get("relation_type")}
             for u, v, data in G.edges(data=True)]
    return {"nodes": nodes, "links": links}
