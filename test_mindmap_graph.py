# test_mindmap_graph.py
import networkx as nx
import pytest
import torch

from mindmap_graph import (
    GHOST, SOLID, Edge, GraphModel, Node, ValidationError, phyllotaxis, snapshot_from_networkx,
)


# ---------------------------------------------------------------------------
# helpers
# ---------------------------------------------------------------------------
def _words(*ids, status=GHOST):
    return [{"id": i, "label": f"w{i}", "status": status, "category": "noun"} for i in ids]


def _links(*pairs):
    return [{"source": s, "target": t, "relation_type": "related"} for s, t in pairs]


@pytest.fixture
def model():
    m = GraphModel()
    m.load(_words(1, 2, 3), _links((1, 2), (2, 3)))
    return m


# ---------------------------------------------------------------------------
# 1 – loading
# ---------------------------------------------------------------------------
def test_load_builds_arena_and_tensors(model):
    assert len(model) == 3
    assert model.ids == [1, 2, 3]
    assert model.pos.shape == (3, 2)
    assert model.vel.abs().sum() == 0
    assert not model.fixed.any()
    assert model.edge_index().tolist() == [[0, 1], [1, 2]]


def test_get_node_returns_record_or_none(model):
    assert model.get_node(2) == Node(2, "w2", GHOST, "noun")
    assert model.get_node(99) is None
    with pytest.raises(KeyError):
        model.index_of(99)


def test_dangling_edge_is_rejected_and_previous_graph_kept(model):
    before_pos = model.pos.clone()
    before_version = model.version
    with pytest.raises(ValidationError) as err:
        model.load(_words(7, 8), _links((7, 8), (7, 42), (43, 8)))
    problems = err.value.problems
    assert len(problems) == 2
    assert any("42" in p for p in problems)
    assert any("43" in p for p in problems)
    # untouched
    assert model.ids == [1, 2, 3]
    assert torch.equal(model.pos, before_pos)
    assert model.version == before_version
    assert [(e.source_id, e.target_id) for e in model.edges] == [(1, 2), (2, 3)]


@pytest.mark.parametrize("nodes", [
    _words(1, 1),
    [{"id": 1, "label": "a", "status": "mastered"}],
    [{"id": 1}],
    ["not a mapping"],
    [{"id": [1], "label": "a"}],
    [{"id": 1, "label": "a", "x": "abc", "y": 0.0}],
    [{"id": 1, "label": "a", "x": 0.0, "y": float("nan")}],
    [{"id": 1, "label": "a", "vx": float("inf")}],
])
def test_bad_nodes_are_rejected(nodes):
    m = GraphModel()
    with pytest.raises(ValidationError):
        m.load(nodes, [])
    assert len(m) == 0


def test_bad_coordinate_is_named_in_problems():
    with pytest.raises(ValidationError) as err:
        GraphModel().load([{"id": 1, "label": "a", "x": "abc", "y": 0.0}])
    assert len(err.value.problems) == 1
    assert "'x'" in err.value.problems[0]


def test_unhashable_edge_endpoint_is_a_problem_not_a_crash(model):
    with pytest.raises(ValidationError) as err:
        model.load(_words(1, 2), [{"source": {"id": 1}, "target": 2}])
    assert any("source" in p for p in err.value.problems)
    assert model.ids == [1, 2, 3]


def test_snapshot_shape_and_word_alias():
    m = GraphModel()
    m.load_snapshot({
        "nodes": [{"id": 1, "word": "talo", "status": SOLID, "category": "noun"},
                  {"id": 2, "word": "koti", "status": GHOST, "category": "noun"}],
        "links": [{"source": 1, "target": 2, "relation_type": "synonym"}],
    })
    assert m.get_node(1).label == "talo"
    assert m.get_node(1).status == SOLID
    assert m.edges == [Edge(1, 2, "synonym")]


def test_snapshot_without_links_is_rejected():
    with pytest.raises(ValidationError):
        GraphModel().load_snapshot({"nodes": []})


def test_host_positions_are_inherited_and_others_placed_around_center():
    m = GraphModel()
    m.load([{"id": "a", "label": "a", "x": 12.5, "y": -3.0},
            {"id": "b", "label": "b", "x": 4.0},          # half a position → placed
            {"id": "c", "label": "c"}], center=(400.0, 300.0))
    assert m.position("a") == (12.5, -3.0)
    bx, by = m.position("b")
    assert abs(bx - 400.0) < 50 and abs(by - 300.0) < 50


def test_reload_replaces_everything(model):
    model.pin_node(1, 5.0, 5.0)
    model.load(_words("x", "y"), _links(("x", "y")))
    assert model.ids == ["x", "y"]
    assert not model.fixed.any()
    edge, source, target = next(model.resolved_edges())
    assert (source.id, target.id) == ("x", "y")


def test_empty_graph_loads():
    m = GraphModel()
    m.load([], [])
    assert len(m) == 0
    assert m.pos.shape == (0, 2)
    assert m.edge_index().shape == (0, 2)
    assert m.node_at(0.0, 0.0, 30.0) is None


# ---------------------------------------------------------------------------
# 2 – pins, hit testing, degree
# ---------------------------------------------------------------------------
def test_pin_moves_node_and_zeroes_velocity(model):
    model.vel[0] = torch.tensor([3.0, 4.0], dtype=model.vel.dtype)
    model.pin_node(1, 101.25, -7.5)
    state = model.node_state(1)
    assert (state.x, state.y) == (101.25, -7.5)
    assert (state.vx, state.vy) == (0.0, 0.0)
    assert state.pin == (101.25, -7.5)
    model.unpin_node(1)
    assert not model.is_pinned(1)
    assert model.node_state(1).pin is None


def test_node_at_picks_node_under_point(model):
    model.set_position(1, 0.0, 0.0)
    model.set_position(2, 200.0, 0.0)
    model.set_position(3, 400.0, 0.0)
    assert model.node_at(10.0, 10.0, 30.0) == 1
    assert model.node_at(205.0, -20.0, 30.0) == 2
    assert model.node_at(100.0, 0.0, 30.0) is None


def test_degree_counts_both_ends(model):
    assert model.degree().tolist() == [1.0, 2.0, 1.0]


# ---------------------------------------------------------------------------
# 3 – helpers
# ---------------------------------------------------------------------------
def test_phyllotaxis_points_are_distinct():
    pts = torch.tensor(phyllotaxis(50, 10.0, 20.0))
    d = torch.cdist(pts, pts)
    d.fill_diagonal_(float("inf"))
    assert d.min() > 1.0


def test_snapshot_from_networkx_round_trips_attributes():
    G = nx.Graph()
    G.add_node("kissa", label="kissa", status=SOLID, category="animal")
    G.add_node("koira")
    G.add_edge("kissa", "koira", relation_type="related")
    snap = snapshot_from_networkx(G)
    m = GraphModel()
    m.load_snapshot(snap)
    assert m.get_node("kissa").status == SOLID
    assert m.get_node("koira").label == "koira"
    assert m.edges[0].relation_type == "related"
