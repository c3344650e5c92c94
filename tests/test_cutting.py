import pytest

from cutting import (
    METHOD_LINEAR,
    METHOD_MULTI_LINE,
    METHOD_SHAPE,
    cut_shape,
    overlapping_edges,
    select_cut,
    spare_from_remaining_area,
    try_linear_cut,
    try_multi_line_cut,
)
from planks import (
    KIND_LINEAR_CUT,
    KIND_MULTI_LINE_CUT,
    KIND_SHAPE_CUT,
    Plank,
    PlankDimensions,
    fully_inside_polygon,
)

ROOM = [(100, 100), (350, 100), (350, 200), (100, 200)]
L_ROOM = [(100, 100), (300, 100), (300, 180), (180, 180), (180, 300), (100, 300)]
SLOPED_ROOM = [(0, 0), (400, 0), (0, 100)]
CORRIDOR = [(0, 0), (300, 0), (300, 30), (0, 30)]
# arms 30 and 40 wide around a gap between x=30 and x=60
U_ROOM = [(0, 0), (100, 0), (100, 100), (60, 100), (60, 30), (30, 30), (30, 100), (0, 100)]


def make_plank(x, y, rotation=0.0, length=120.0, width=24.0, plank_id="p"):
    return Plank(id=plank_id, x=x, y=y, rotation=rotation, length=length, width=width)


def test_linear_cut_at_right_wall():
    plank = make_plank(300, 150)
    result = select_cut(plank, ROOM)
    assert result.method == METHOD_LINEAR
    assert result.fitted.length == pytest.approx(109.5)
    assert result.fitted.x == pytest.approx(294.75)
    assert result.fitted.y == pytest.approx(150)
    assert result.fitted.kind == KIND_LINEAR_CUT
    assert result.spare.length == pytest.approx(10.5)
    assert result.fitted.length + result.spare.length == pytest.approx(plank.length)
    assert fully_inside_polygon(result.fitted, ROOM)


def test_linear_cut_falls_back_to_front_end():
    """Trimming the far end leaves a piece outside the room, so the near end is trimmed."""
    plank = make_plank(150, 150)
    result = try_linear_cut(plank, ROOM, PlankDimensions(length=120, width=24))
    assert result.fitted.length == pytest.approx(109.5)
    assert result.fitted.x == pytest.approx(155.25)
    assert fully_inside_polygon(result.fitted, ROOM)


def test_linear_cut_follows_plank_rotation():
    room = [(0, 0), (100, 0), (100, 300), (0, 300)]
    result = select_cut(make_plank(50, 250, rotation=90), room)
    assert result.method == METHOD_LINEAR
    assert result.fitted.length == pytest.approx(109.5)
    assert result.fitted.x == pytest.approx(50)
    assert result.fitted.y == pytest.approx(244.75)


def test_plank_outside_room_has_no_cut():
    assert select_cut(make_plank(300, 300), ROOM) is None


def test_touching_wall_is_not_an_overlapping_edge():
    # right end exactly on the right wall
    plank = make_plank(290, 150)
    assert overlapping_edges(plank, ROOM, 1e-6) == []


def test_multi_line_cut_at_inner_corner():
    plank = make_plank(200, 175, length=80, width=20)
    assert len(overlapping_edges(plank, L_ROOM, 1e-6)) == 2
    result = select_cut(plank, L_ROOM)
    assert result.method == METHOD_MULTI_LINE
    assert result.fitted.kind == KIND_MULTI_LINE_CUT
    assert len(result.fitted.cut_lines) == 2
    assert result.fitted.area == pytest.approx(1300)
    # 300 units left over is below the default minimum spare size
    assert result.spare is None


def test_multi_line_spare_respects_minimum_size():
    plank = make_plank(200, 175, length=80, width=20)
    dims = PlankDimensions(length=80, width=20, min_spare_length=10, min_spare_width=5)
    result = try_multi_line_cut(plank, L_ROOM, dims)
    assert result.spare is not None
    assert result.spare.length * result.spare.width == pytest.approx(300)


def test_parallel_walls_fall_through_to_shape_cut():
    """Both overlapping walls run along the plank, so only a shaped cut fits."""
    plank = make_plank(150, 15, length=100, width=40)
    assert try_multi_line_cut(plank, CORRIDOR) is None
    result = select_cut(plank, CORRIDOR)
    assert result.method == METHOD_SHAPE
    assert result.fitted.kind == KIND_SHAPE_CUT
    assert result.fitted.area == pytest.approx(3000)


def test_sloped_wall_uses_shape_cut():
    """A wall crossing the long side leaves no usable straight cut."""
    plank = make_plank(208, 50, length=100, width=20)
    assert try_linear_cut(plank, SLOPED_ROOM) is None
    result = select_cut(plank, SLOPED_ROOM)
    assert result.method == METHOD_SHAPE
    assert result.fitted.area == pytest.approx(840)
    assert result.fitted.original_length == 100


def test_plank_spanning_both_arms_keeps_one_piece():
    """The gap between the arms splits the clip; only the larger arm's part is kept."""
    plank = make_plank(50, 60, length=100, width=20)
    ring = cut_shape(plank, U_ROOM, 1e-6)
    assert all(x >= 60 - 1e-6 for x, _ in ring)
    result = select_cut(plank, U_ROOM)
    assert result.method == METHOD_SHAPE
    assert result.fitted.area == pytest.approx(800)


def test_cut_colliding_with_placed_plank_is_rejected():
    blocker = make_plank(340, 150, length=20, plank_id="blocker")
    assert select_cut(make_plank(300, 150), ROOM, placed=[blocker]) is None


def test_spare_from_remaining_area():
    plank = make_plank(0, 0)
    dims = PlankDimensions(length=120, width=24, min_spare_length=50, min_spare_width=20)
    spare = spare_from_remaining_area(plank, 10000, dims, spare_id="s1")
    assert spare.id == "s1"
    assert spare.length == pytest.approx(100)
    assert spare.width == pytest.approx(24)
    assert spare.is_spare
    assert spare_from_remaining_area(plank, 10000, PlankDimensions(length=120, width=24)) is None
    assert spare_from_remaining_area(plank, 0, dims) is None


def test_degenerate_input_has_no_cut():
    assert select_cut(make_plank(300, 150), [(0, 0), (1, 1)]) is None
    assert select_cut(make_plank(300, 150, length=0), ROOM) is None
