import pyclipper
import pytest

from metrics import kind_counts, ring_to_clipper, summarize, uncovered_area, uncovered_regions, union_coverage
from planks import Plank, PlankDimensions
from tessellation import TessellationResult, generate_tessellation

SQUARE = [(0, 0), (100, 0), (100, 100), (0, 100)]


def make_plank(plank_id, x, y, length=50.0, width=100.0, **kwargs):
    return Plank(id=plank_id, x=x, y=y, rotation=0, length=length, width=width, **kwargs)


def test_full_coverage_statistics():
    room = [(0, 0), (3000, 0), (3000, 960), (0, 960)]
    dims = PlankDimensions(length=1500, width=240)
    seed = Plank(id="seed", x=750, y=120, rotation=0, length=1500, width=240)
    result = generate_tessellation(seed, room, dims)
    stats = summarize(result, room, dims)
    assert stats["totalPlanks"] == 8
    assert stats["fullPlanks"] == 8
    assert stats["cutPlanks"] == 0
    assert stats["coveragePercent"] == 100
    assert stats["unionCoveredArea"] == pytest.approx(3000 * 960)
    assert stats["uncoveredArea"] == pytest.approx(0)
    assert stats["uncoveredRegions"] == 0
    assert stats["wasteArea"] == 0
    assert stats["materialBalanced"] is True


def test_half_covered_room():
    result = TessellationResult(planks=[make_plank("a", 25, 50)], spares=[], stock_used=1)
    stats = summarize(result, SQUARE, PlankDimensions(length=50, width=100))
    assert stats["coveragePercent"] == 50
    assert stats["uncoveredRegions"] == 1
    assert stats["uncoveredArea"] == pytest.approx(5000)


def test_uncovered_region_shape():
    regions = uncovered_regions([make_plank("a", 25, 50)], SQUARE)
    assert len(regions) == 1
    xs = sorted({round(p[0], 6) for p in regions[0]})
    assert xs == [50, 100]


def test_island_plank_is_subtracted_from_uncovered_area():
    """A piece in the middle of the room leaves one region with a hole."""
    room = [(0, 0), (1000, 0), (1000, 1000), (0, 1000)]
    island = make_plank("a", 500, 500, length=100, width=100)
    assert uncovered_area([island], room) == pytest.approx(990000)
    assert len(uncovered_regions([island], room)) == 1
    result = TessellationResult(planks=[island], spares=[], stock_used=1)
    stats = summarize(result, room, PlankDimensions(length=100, width=100))
    assert stats["uncoveredArea"] == pytest.approx(990000)
    assert stats["uncoveredRegions"] == 1


def test_union_counts_overlap_once():
    planks = [make_plank("a", 25, 50), make_plank("b", 50, 50)]
    assert union_coverage(planks, SQUARE) == pytest.approx(7500)
    assert union_coverage([], SQUARE) == 0


def test_material_imbalance_is_reported():
    # two pieces out of one stock plank
    result = TessellationResult(planks=[make_plank("a", 25, 50), make_plank("b", 75, 50)],
                                spares=[], stock_used=1)
    stats = summarize(result, SQUARE, PlankDimensions(length=50, width=100))
    assert stats["materialBalanced"] is False


def test_kind_counts():
    planks = [
        make_plank("a", 0, 0),
        make_plank("b", 0, 0, length=40, original_length=50),
        make_plank("c", 0, 0, shape=[(0, 0), (10, 0), (0, 10)]),
    ]
    assert kind_counts(planks) == {"full": 1, "linear-cut": 1, "multi-line-cut": 0, "shape-cut": 1}


def test_ring_to_clipper_orients_counter_clockwise():
    path = ring_to_clipper(list(reversed(SQUARE)))
    assert pyclipper.Area(path) > 0
    assert (1000000, 1000000) in path
    assert ring_to_clipper([(0, 0), (1, 1), (2, 2)]) == []
