# mindmap_layout.py – force-directed layout engine for the mind map
"""
Velocity-Verlet-ish force simulation over the tensors of a `GraphModel`.

Four forces run every tick, in this order:

1. **link**      – spring per edge toward `link_distance`
2. **charge**    – all-pairs repulsion, magnitude |strength|·alpha / d²
3. **centre**    – translate the whole graph so its centroid sits on `center`
4. **collision** – push overlapping pairs apart to 2·(radius + padding)

Forces write into `model.vel`; the integrator damps velocities, moves
positions, snaps pinned nodes back onto their pins and then cools `alpha`
toward `alpha_target`.  Once `alpha < alpha_min` the engine stops asking the
host for frames; `start()` / `reheat()` bring it back.

Coincident points never divide by zero: zero offsets get a tiny seeded
jiggle, and the charge distance is floored at `charge_distance_min`.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Hashable, List, Optional, Tuple
import logging
import math

import torch

from frame_scheduler import ManualFrameScheduler
from mindmap_graph import DTYPE, GraphModel, device

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
#  ── 1.  Tuning defaults  ───────────────────────────────────────────────────
# ---------------------------------------------------------------------------
LINK_DISTANCE = 100.0
CHARGE_STRENGTH = -300.0
NODE_RADIUS = 30.0
COLLISION_PADDING = 10.0
ALPHA_MIN = 0.001
ALPHA_DECAY = 1 - ALPHA_MIN ** (1 / 300)  # ≈ 0.0228, ~300 ticks from 1 to ALPHA_MIN
VELOCITY_DECAY = 0.4
DRAG_ALPHA_TARGET = 0.3
CLICK_DISTANCE = 3.0
JIGGLE = 1e-6
TINY = 1e-12


@dataclass(frozen=True)
class SimulationConfig:
    # link
    link_distance: float = LINK_DISTANCE
    link_strength: Optional[float] = None      # None → 1 / min(degree)
    link_iterations: int = 1
    # charge
    charge_strength: float = CHARGE_STRENGTH
    charge_distance_min: float = 1.0
    # centre
    center_strength: float = 1.0
    # collision
    node_radius: float = NODE_RADIUS
    collision_padding: float = COLLISION_PADDING
    collision_strength: float = 1.0
    collision_iterations: int = 1
    # cooling
    alpha: float = 1.0
    alpha_min: float = ALPHA_MIN
    alpha_decay: float = ALPHA_DECAY
    velocity_decay: float = VELOCITY_DECAY
    # interaction / viewport
    drag_alpha_target: float = DRAG_ALPHA_TARGET
    resize_alpha: float = 0.3
    click_distance: float = CLICK_DISTANCE
    # placement
    initial_radius: float = 10.0
    seed: int = 0

    @property
    def collision_radius(self) -> float:
        return self.node_radius + self.collision_padding

    def validate(self) -> "SimulationConfig":
        for name in ("alpha", "alpha_min", "alpha_decay", "velocity_decay",
                     "drag_alpha_target", "resize_alpha"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be in [0, 1], got {value}")
        for name in ("link_distance", "node_radius", "charge_distance_min", "initial_radius"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        for name in ("collision_padding", "click_distance", "center_strength", "collision_strength"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative")
        if self.link_iterations < 1 or self.collision_iterations < 1:
            raise ValueError("iteration counts must be at least 1")
        return self


@dataclass(frozen=True)
class TickSnapshot:
    """What tick observers see: positions by node id after one tick."""
    tick: int
    alpha: float
    positions: Dict[Hashable, Tuple[float, float]]


TickObserver = Callable[[TickSnapshot], None]


# ---------------------------------------------------------------------------
#  ── 2.  Engine  ────────────────────────────────────────────────────────────
# ---------------------------------------------------------------------------
class LayoutEngine:
    def __init__(self, model: GraphModel, config: Optional[SimulationConfig] = None,
                 scheduler=None, center: Tuple[float, float] = (0.0, 0.0)):
        self.model = model
        self.config = (config or SimulationConfig()).validate()
        self.scheduler = scheduler if scheduler is not None else ManualFrameScheduler()
        self.center = (float(center[0]), float(center[1]))
        self.alpha = self.config.alpha
        self.alpha_target = 0.0
        self.ticks = 0
        self._handle = None
        self._frame_seq = 0  # only the frame carrying the latest number may tick
        self._running = False
        self._disposed = False
        self._tick_observers: List[TickObserver] = []
        self._end_observers: List[Callable[[], None]] = []
        self._topology_version = -1
        self._topology: Tuple[torch.Tensor, torch.Tensor, torch.Tensor] = ()
        self._rng = torch.Generator(device=device)
        self._rng.manual_seed(self.config.seed)

    # -------------------------------------------------------------- observers
    def on_tick(self, callback: TickObserver) -> Callable[[], None]:
        self._tick_observers.append(callback)
        return lambda: self._discard(self._tick_observers, callback)

    def on_end(self, callback: Callable[[], None]) -> Callable[[], None]:
        self._end_observers.append(callback)
        return lambda: self._discard(self._end_observers, callback)

    @staticmethod
    def _discard(observers, callback):
        if callback in observers:
            observers.remove(callback)

    # -------------------------------------------------------------- lifecycle
    @property
    def running(self) -> bool:
        return self._running

    @property
    def settled(self) -> bool:
        return self.alpha < self.config.alpha_min

    @property
    def disposed(self) -> bool:
        return self._disposed

    def start(self) -> None:
        """Ask the host for frames until the layout settles; no-op if already running."""
        if self._disposed:
            return
        if len(self.model) == 0:
            self._settle_empty()
            return
        self._running = True
        if self._handle is None:
            self._schedule()
            log.debug("layout started at alpha=%.4f", self.alpha)

    restart = start

    def stop(self) -> None:
        if self._handle is not None:
            self.scheduler.cancel(self._handle)
            self._handle = None
        self._frame_seq += 1
        if self._running:
            log.debug("layout stopped after %d ticks", self.ticks)
        self._running = False

    def reset(self, alpha: Optional[float] = None) -> None:
        """Fresh cooling schedule for a newly loaded graph."""
        self.alpha = self.config.alpha if alpha is None else alpha
        self.alpha_target = 0.0
        self.ticks = 0

    def reheat(self, alpha_target: Optional[float] = None, alpha: Optional[float] = None) -> None:
        if alpha_target is not None:
            self.alpha_target = alpha_target
        if alpha is not None:
            self.alpha = max(self.alpha, alpha)
        self.start()

    def set_center(self, x: float, y: float) -> None:
        self.center = (float(x), float(y))

    def dispose(self) -> None:
        """Stop for good and let go of the model; later calls do nothing."""
        if self._disposed:
            return
        self.stop()
        self._disposed = True
        self._tick_observers.clear()
        self._end_observers.clear()
        self.model = None
        self._topology = ()

    def _settle_empty(self) -> None:
        self.stop()
        self.alpha = 0.0
        log.debug("empty graph, nothing to lay out")
        for fn in list(self._end_observers):
            fn()

    def _schedule(self) -> None:
        self._frame_seq += 1
        seq = self._frame_seq
        self._handle = self.scheduler.request(lambda: self._frame(seq))

    def _frame(self, seq: int) -> None:
        if seq != self._frame_seq:
            return  # cancelled or superseded
        self._handle = None
        if not self._running or self._disposed:
            return
        self.step()
        snapshot = TickSnapshot(self.ticks, self.alpha, self.model.positions())
        for fn in list(self._tick_observers):
            fn(snapshot)
        if self._disposed:
            return
        if self.settled:
            self._running = False
            log.debug("layout settled after %d ticks", self.ticks)
            for fn in list(self._end_observers):
                fn()
        elif self._running and self._handle is None:
            self._schedule()

    # -------------------------------------------------------------- stepping
    def tick(self, iterations: int = 1) -> None:
        """Advance synchronously without notifying observers."""
        for _ in range(iterations):
            self.step()

    def run_until_settled(self, max_ticks: int = 10_000) -> int:
        start = self.ticks
        self.step()
        while not self.settled and self.ticks - start < max_ticks:
            self.step()
        return self.ticks - start

    @torch.no_grad()
    def step(self) -> None:
        if self._disposed:
            return
        model, cfg = self.model, self.config
        if len(model) == 0:
            self.alpha = 0.0
            return
        alpha = self.alpha

        # 1) forces into velocities
        for _ in range(cfg.link_iterations):
            self._link_force(alpha)
        self._charge_force(alpha)
        self._center_force()
        for _ in range(cfg.collision_iterations):
            self._collision_force()

        # 2) damp, integrate, honour pins
        model.vel.mul_(1.0 - cfg.velocity_decay)
        model.pos.add_(model.vel)
        fixed = model.fixed
        if bool(fixed.any()):
            model.pos[fixed] = model.pin[fixed]
            model.vel[fixed] = 0.0

        # 3) cool toward target
        self.alpha += (self.alpha_target - self.alpha) * cfg.alpha_decay
        self.ticks += 1

    # -------------------------------------------------------------- forces
    def _topology_tensors(self):
        """(edge index, per-edge strength, per-edge bias), rebuilt after each load."""
        if self._topology_version != self.model.version:
            idx = self.model.edge_index()
            deg = self.model.degree()
            s, t = idx[:, 0], idx[:, 1]
            if self.config.link_strength is None:
                strength = 1.0 / torch.minimum(deg[s], deg[t])
            else:
                strength = torch.full((idx.size(0),), float(self.config.link_strength),
                                      dtype=DTYPE, device=device)
            bias = deg[s] / (deg[s] + deg[t])
            self._topology = (idx, strength, bias)
            self._topology_version = self.model.version
        return self._topology

    def _jiggle(self, d: torch.Tensor, where: torch.Tensor) -> torch.Tensor:
        """Replace exact-zero offset components with a tiny random one."""
        zero = (d == 0) & where
        if not bool(zero.any()):
            return d
        noise = (torch.rand(d.shape, generator=self._rng, dtype=DTYPE, device=device) - 0.5) * JIGGLE
        return torch.where(zero, noise, d)

    def _link_force(self, alpha: float) -> None:
        idx, strength, bias = self._topology_tensors()
        if idx.numel() == 0:
            return
        pos, vel = self.model.pos, self.model.vel
        s, t = idx[:, 0], idx[:, 1]
        d = (pos[t] + vel[t]) - (pos[s] + vel[s])
        d = self._jiggle(d, torch.ones_like(d, dtype=torch.bool))
        length = d.norm(dim=1, keepdim=True).clamp_min(TINY)
        d = d * ((length - self.config.link_distance) / length * alpha * strength.unsqueeze(1))
        b = bias.unsqueeze(1)
        vel.index_add_(0, t, -d * b)
        vel.index_add_(0, s, d * (1 - b))

    def _pairwise(self, points: torch.Tensor):
        """d[i, j] = points[i] - points[j] (jiggled off the diagonal) and |d|²."""
        n = points.size(0)
        off = ~torch.eye(n, dtype=torch.bool, device=device)
        d = points.unsqueeze(1) - points.unsqueeze(0)
        zero = (d == 0) & off.unsqueeze(2)
        if bool(zero.any()):
            # antisymmetric, so both nodes of a coincident pair are pushed apart
            noise = (torch.rand(d.shape, generator=self._rng, dtype=DTYPE, device=device) - 0.5) * JIGGLE
            d = torch.where(zero, noise - noise.transpose(0, 1), d)
        return d, (d * d).sum(dim=2), off

    def _charge_force(self, alpha: float) -> None:
        cfg = self.config
        pos, vel = self.model.pos, self.model.vel
        if pos.size(0) < 2 or cfg.charge_strength == 0:
            return
        d, l2, off = self._pairwise(pos)
        dist = l2.sqrt().clamp_min(TINY)
        l2 = l2.clamp_min(cfg.charge_distance_min ** 2)
        # d points from j to i: negative strength pushes i away from j
        coef = -cfg.charge_strength * alpha / (l2 * dist)
        coef = torch.where(off, coef, torch.zeros_like(coef))
        vel.add_((coef.unsqueeze(2) * d).sum(dim=1))

    def _center_force(self) -> None:
        strength = self.config.center_strength
        if strength == 0:
            return
        pos = self.model.pos
        target = torch.tensor(self.center, dtype=DTYPE, device=device)
        pos.sub_((pos.mean(dim=0) - target) * strength)

    def _collision_force(self) -> None:
        cfg = self.config
        pos, vel = self.model.pos, self.model.vel
        if pos.size(0) < 2 or cfg.collision_strength == 0:
            return
        r = 2.0 * cfg.collision_radius
        d, l2, off = self._pairwise(pos + vel)
        overlap = off & (l2 < r * r)
        if not bool(overlap.any()):
            return
        length = l2.sqrt().clamp_min(TINY)
        k = (r - length) / length * cfg.collision_strength
        k = torch.where(overlap, k, torch.zeros_like(k))
        # equal radii: each side of a pair takes half the correction
        vel.add_((k.unsqueeze(2) * d).sum(dim=1) * 0.5)


def separation(model: GraphModel) -> float:
    """Smallest centre-to-centre distance in the model (inf below two nodes)."""
    n = len(model)
    if n < 2:
        return math.inf
    d = torch.cdist(model.pos, model.pos)
    d.fill_diagonal_(math.inf)
    return float(d.min())
