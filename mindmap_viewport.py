# mindmap_viewport.py – container size tracking for the mind map
from __future__ import annotations

from typing import Callable, Optional, Tuple
import logging
import warnings

from mindmap_graph import DegenerateInputWarning
from mindmap_layout import LayoutEngine

log = logging.getLogger(__name__)

DEFAULT_WIDTH, DEFAULT_HEIGHT = 800.0, 600.0


class ViewportManager:
    """Keeps the centring force on the middle of the container."""

    def __init__(self, engine: LayoutEngine, redraw: Optional[Callable[[], None]] = None,
                 width: float = DEFAULT_WIDTH, height: float = DEFAULT_HEIGHT):
        self.engine = engine
        self.redraw = redraw
        self.width, self.height = DEFAULT_WIDTH, DEFAULT_HEIGHT
        if width > 0 and height > 0:
            self.width, self.height = float(width), float(height)
        else:
            warnings.warn(f"degenerate initial viewport {width}x{height}, "
                          f"using {DEFAULT_WIDTH:g}x{DEFAULT_HEIGHT:g}",
                          DegenerateInputWarning, stacklevel=2)
        self._disposed = False
        engine.set_center(*self.center)

    @property
    def size(self) -> Tuple[float, float]:
        return self.width, self.height

    @property
    def center(self) -> Tuple[float, float]:
        return self.width / 2, self.height / 2

    def resize(self, width: float, height: float) -> bool:
        """Apply a reported container size; returns whether anything changed."""
        if self._disposed:
            return False
        if not (width > 0 and height > 0):
            warnings.warn(f"ignoring degenerate viewport {width}x{height}",
                          DegenerateInputWarning, stacklevel=2)
            return False
        if (float(width), float(height)) == self.size:
            return False
        self.width, self.height = float(width), float(height)
        log.debug("viewport resized to %gx%g", self.width, self.height)
        self.engine.set_center(*self.center)
        self.engine.reheat(alpha=self.engine.config.resize_alpha)
        if self.redraw is not None:
            self.redraw()
        return True

    def dispose(self) -> None:
        self._disposed = True
        self.redraw = None
