# test_mindmap_view.py
import asyncio

import pytest

from frame_scheduler import AsyncioFrameScheduler, ManualFrameScheduler
from mindmap_graph import DegenerateInputWarning, GraphModel, ValidationError
from mindmap_layout import LayoutEngine
from mindmap_view import MindMapView, demo_snapshot
from mindmap_viewport import ViewportManager

SNAPSHOT = {
    "nodes": [{"id": 1, "label": "talo", "status": "solid", "category": "noun"},
              {"id": 2, "label": "koti", "status": "ghost", "category": "noun"},
              {"id": 3, "label": "asua", "status": "ghost", "category": "verb"}],
    "links": [{"source": 1, "target": 2, "relation_type": "synonym"},
              {"source": 2, "target": 3, "relation_type": "derived"}],
}


class Host:
    def __init__(self, snapshot=SNAPSHOT, size=(800, 600)):
        self.frames, self.selected = [], []
        self.scheduler = ManualFrameScheduler()
        self.view = MindMapView(snapshot, on_node_selected=self.selected.append,
                                draw=self.frames.append, size=size, scheduler=self.scheduler)


# ---------------------------------------------------------------------------
# 1 – view wiring
# ---------------------------------------------------------------------------
def test_load_draws_once_then_every_tick():
    host = Host()
    assert len(host.frames) == 1
    host.scheduler.run_until_idle()
    assert host.view.engine.settled
    assert len(host.frames) == 1 + host.view.engine.ticks
    assert len(host.frames[-1].circles) == 3


def test_layout_is_centered_in_viewport():
    host = Host(size=(1000, 400))
    host.scheduler.run_until_idle()
    cx, cy = host.view.model.pos.mean(dim=0).tolist()
    assert abs(cx - 500.0) < 10.0 and abs(cy - 200.0) < 10.0


def test_invalid_snapshot_keeps_current_graph():
    host = Host()
    bad = {"nodes": SNAPSHOT["nodes"], "links": [{"source": 1, "target": 404}]}
    with pytest.raises(ValidationError):
        host.view.load(bad)
    assert host.view.model.ids == [1, 2, 3]


def test_empty_snapshot_settles_immediately():
    host = Host({"nodes": [], "links": []})
    assert host.view.engine.settled
    assert host.scheduler.pending == 0
    assert len(host.frames[-1]) == 0


def test_click_through_view_reports_node():
    host = Host()
    host.scheduler.run_until_idle()
    x, y = host.view.model.position(3)
    host.view.pointer_down(x, y)
    host.view.pointer_up(x + 1.0, y)
    assert [s.node.label for s in host.selected] == ["asua"]


def test_reload_mid_drag_drops_the_gesture():
    host = Host()
    host.scheduler.run_until_idle()
    x, y = host.view.model.position(1)
    host.view.pointer_down(x, y)
    host.view.pointer_move(x + 40.0, y)
    host.view.load(demo_snapshot(n=5, seed=1))
    assert not host.view.model.fixed.any()
    assert host.view.pointer_up(x, y).value == "idle"


# ---------------------------------------------------------------------------
# 2 – viewport
# ---------------------------------------------------------------------------
def test_resize_retargets_center_and_redraws():
    host = Host()
    host.scheduler.run_until_idle()
    drawn = len(host.frames)
    host.view.resize(1200, 900)
    assert host.view.engine.center == (600.0, 450.0)
    assert len(host.frames) == drawn + 1
    assert host.frames[-1].size == (1200.0, 900.0)
    assert host.view.engine.running


def test_same_size_is_not_a_change():
    host = Host()
    host.scheduler.run_until_idle()
    assert host.view.viewport.resize(800, 600) is False
    assert host.scheduler.pending == 0


@pytest.mark.parametrize("w, h", [(0, 600), (800, 0), (-1, -1)])
def test_degenerate_size_is_skipped(w, h):
    host = Host()
    with pytest.warns(DegenerateInputWarning):
        assert host.view.viewport.resize(w, h) is False
    assert host.view.engine.center == (400.0, 300.0)


def test_zero_initial_size_falls_back_to_default():
    engine = LayoutEngine(GraphModel())
    with pytest.warns(DegenerateInputWarning):
        viewport = ViewportManager(engine, width=0, height=0)
    assert viewport.size == (800.0, 600.0)
    assert engine.center == (400.0, 300.0)


# ---------------------------------------------------------------------------
# 3 – teardown
# ---------------------------------------------------------------------------
def test_destroy_stops_once_and_ignores_late_events(monkeypatch):
    host = Host()
    engine = host.view.engine
    calls = []
    original = engine.stop

    def spy():
        calls.append(1)
        original()

    monkeypatch.setattr(engine, "stop", spy)
    assert not host.view.destroyed
    host.view.destroy()
    assert host.view.destroyed
    host.view.destroy()
    assert calls == [1]
    assert host.scheduler.pending == 0

    drawn = len(host.frames)
    host.view.resize(300, 300)
    assert host.view.pointer_down(0.0, 0.0) is None
    host.view.pointer_move(5.0, 5.0)
    host.view.pointer_up(5.0, 5.0)
    host.view.load(SNAPSHOT)
    host.scheduler.run_until_idle()
    assert len(host.frames) == drawn
    assert host.selected == []


# ---------------------------------------------------------------------------
# 4 – schedulers
# ---------------------------------------------------------------------------
def test_manual_scheduler_cancel_and_batches():
    scheduler = ManualFrameScheduler()
    ran = []
    keep = scheduler.request(lambda: ran.append("keep"))
    drop = scheduler.request(lambda: ran.append("drop"))
    scheduler.cancel(drop)
    assert scheduler.pending == 1
    assert scheduler.run_pending() == 1
    assert ran == ["keep"]
    scheduler.cancel(keep)


def test_manual_scheduler_skips_frames_cancelled_mid_batch():
    scheduler = ManualFrameScheduler()
    ran = []
    later = None

    def first():
        ran.append("first")
        scheduler.cancel(later)

    scheduler.request(first)
    later = scheduler.request(lambda: ran.append("later"))
    assert scheduler.run_pending() == 1
    assert ran == ["first"]
    assert scheduler.pending == 0


def test_asyncio_scheduler_drives_layout_to_rest():
    async def scenario():
        loop = asyncio.get_running_loop()
        done = loop.create_future()
        model = GraphModel()
        model.load(SNAPSHOT["nodes"], SNAPSHOT["links"])
        engine = LayoutEngine(model, scheduler=AsyncioFrameScheduler(frame_interval=0))
        engine.on_end(lambda: done.done() or done.set_result(engine.ticks))
        engine.start()
        engine.start()
        return await asyncio.wait_for(done, timeout=60)

    ticks = asyncio.run(scenario())
    assert ticks > 0
