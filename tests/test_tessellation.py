import pytest

from geometry import point_inside_or_on, polygon_area
from planks import KIND_FULL, Plank, PlankDimensions, collides_with_existing, footprint
from tessellation import RowCursor, TerminationReason, generate_tessellation

RECT_ROOM = [(0, 0), (1000, 0), (1000, 300), (0, 300)]
L_ROOM = [(0, 0), (1000, 0), (1000, 400), (400, 400), (400, 1000), (0, 1000)]
TRIANGLE_ROOM = [(0, 0), (1000, 0), (0, 800)]


def make_seed(x, y, rotation=0.0):
    return Plank(id="seed", x=x, y=y, rotation=rotation, length=1, width=1)


def assert_valid_layout(result, polygon, dims):
    for plank in result.planks:
        for vertex in footprint(plank):
            assert point_inside_or_on(vertex, polygon, 1e-6), f"{plank.id} leaves the room"
    for i, later in enumerate(result.planks):
        assert not collides_with_existing(later, result.planks[:i], dims.gap, dims.tolerance), \
            f"{later.id} collides with an earlier plank"
    placed_area = sum(p.area for p in result.planks)
    spare_area = sum(s.length * s.width for s in result.spares)
    stock_area = result.stock_used * dims.length * dims.width
    assert placed_area + spare_area <= stock_area * (1 + 1e-9) + 1e-6


def test_exact_fit_uses_only_full_planks():
    """A room that is a whole multiple of the plank is covered without cuts."""
    room = [(0, 0), (3000, 0), (3000, 960), (0, 960)]
    dims = PlankDimensions(length=1500, width=240)
    result = generate_tessellation(make_seed(750, 120), room, dims)
    assert len(result.planks) == 8
    assert all(p.kind == KIND_FULL for p in result.planks)
    assert result.spares == []
    assert result.stock_used == 8
    assert sum(p.area for p in result.planks) == pytest.approx(polygon_area(room))
    complete = [r for r in result.rows if r.reason is TerminationReason.ROW_COMPLETE]
    assert sorted(r.index for r in complete) == [0, 1, 2, 3]
    assert all(r.placed == 2 for r in complete)


def test_staggered_rows_cut_at_walls():
    dims = PlankDimensions(length=300, width=100, min_row_offset=100)
    result = generate_tessellation(make_seed(150, 50), RECT_ROOM, dims)
    assert result.rows[0].index == 0 and result.rows[0].offset == 0
    assert result.rows[1].index == 1 and result.rows[1].offset == pytest.approx(100)
    first_row = [p for p in result.planks if p.y == pytest.approx(50)]
    assert len(first_row) == 4
    assert sum(p.length for p in first_row) == pytest.approx(1000 - dims.cut_margin)
    assert result.spares_reused >= 1
    assert_valid_layout(result, RECT_ROOM, dims)


@pytest.mark.parametrize("polygon, seed", [
    (RECT_ROOM, make_seed(150, 50)),
    (L_ROOM, make_seed(150, 50)),
    (TRIANGLE_ROOM, make_seed(150, 50)),
    (RECT_ROOM, make_seed(500, 150, rotation=30)),
])
def test_layout_stays_inside_and_conserves_material(polygon, seed):
    dims = PlankDimensions(length=300, width=100, gap=2, min_row_offset=100,
                           min_spare_length=20, min_spare_width=10)
    result = generate_tessellation(seed, polygon, dims)
    assert result.planks
    assert all(p.rotation == seed.rotation for p in result.planks)
    assert_valid_layout(result, polygon, dims)


def test_same_input_gives_same_output():
    dims = PlankDimensions(length=300, width=100, min_row_offset=100)
    first = generate_tessellation(make_seed(150, 50), L_ROOM, dims)
    second = generate_tessellation(make_seed(150, 50), L_ROOM, dims)
    assert [(p.id, p.x, p.y, p.length) for p in first.planks] == \
        [(p.id, p.x, p.y, p.length) for p in second.planks]
    assert [s.id for s in first.spares] == [s.id for s in second.spares]


def test_degenerate_input_gives_empty_result():
    dims = PlankDimensions(length=300, width=100)
    assert generate_tessellation(make_seed(0, 0), [(0, 0), (10, 10)], dims).planks == []
    empty = generate_tessellation(make_seed(0, 0), RECT_ROOM, PlankDimensions(length=0, width=100))
    assert empty.planks == [] and empty.spares == []


def test_candidate_budget_stops_run():
    dims = PlankDimensions(length=300, width=100, max_candidates=5)
    result = generate_tessellation(make_seed(150, 50), RECT_ROOM, dims)
    assert result.budget_exhausted is True
    assert result.candidates == 5
    assert result.rows[-1].reason is TerminationReason.BUDGET_EXHAUSTED


def test_gap_filling_only_adds_pieces():
    dims = PlankDimensions(length=300, width=100, min_row_offset=100)
    plain = generate_tessellation(make_seed(150, 50), TRIANGLE_ROOM, dims)
    dims_fill = PlankDimensions(length=300, width=100, min_row_offset=100, fill_gaps=True)
    filled = generate_tessellation(make_seed(150, 50), TRIANGLE_ROOM, dims_fill)
    assert len(filled.planks) >= len(plain.planks)
    assert [p.id for p in filled.planks[:len(plain.planks)]] == [p.id for p in plain.planks]
    assert_valid_layout(filled, TRIANGLE_ROOM, dims_fill)


def test_row_cursor_stops_after_retries():
    cursor = RowCursor(0, 100, 10, 2)
    seen = []
    for position in cursor.positions():
        seen.append(position)
        cursor.fail()
    assert seen == [0, 10]
    assert cursor.reason is TerminationReason.RETRIES_EXHAUSTED


def test_row_cursor_completes_past_end():
    cursor = RowCursor(0, 25, 10, 5)
    seen = []
    for position in cursor.positions():
        seen.append(position)
        cursor.skip()
    assert seen == [0, 10, 20]
    assert cursor.reason is TerminationReason.ROW_COMPLETE


def test_row_cursor_always_moves_forward():
    cursor = RowCursor(0, 100, 10, 5)
    cursor.advance_to(-5)
    assert cursor.position == 10
    cursor.advance_to(42)
    assert cursor.position == 42
