# metrics.py - coverage, waste and material statistics of a tessellation result

import logging
from collections import Counter

import pyclipper
from shapely.geometry import Polygon
from shapely.ops import unary_union

from geometry import polygon_area
from planks import KIND_FULL, KIND_LINEAR_CUT, KIND_MULTI_LINE_CUT, KIND_SHAPE_CUT, footprint

logger = logging.getLogger(__name__)

CLIPPER_SCALE = 10000.0
ZERO_TOLERANCE = 1e-9
MIN_REGION_RATIO = 1e-6   # uncovered regions below this share of the room are rounding slivers


def scale_point_to_clipper(point):
    return (int(round(point[0] * CLIPPER_SCALE)), int(round(point[1] * CLIPPER_SCALE)))


def scale_point_from_clipper(point):
    return (float(point[0]) / CLIPPER_SCALE, float(point[1]) / CLIPPER_SCALE)


def scale_paths_from_clipper(paths):
    return [[scale_point_from_clipper(p) for p in path] for path in paths]


def ring_to_clipper(ring):
    """ Scaled integer path, counter-clockwise; [] for degenerate rings. """
    path = [scale_point_to_clipper(p) for p in ring]
    if len(path) < 3 or pyclipper.Area(path) == 0:
        return []
    if pyclipper.Area(path) < 0:
        path.reverse()
    return path


def piece_polygon(plank):
    poly = Polygon(footprint(plank))
    if not poly.is_valid:
        poly = poly.buffer(0)
    return poly


def union_coverage(planks, polygon):
    """ Area of the room actually covered by the union of the placed pieces. """
    if not planks or len(polygon) < 3:
        return 0.0
    room = Polygon(polygon)
    if not room.is_valid:
        room = room.buffer(0)
    pieces = [p for p in (piece_polygon(plank) for plank in planks) if not p.is_empty]
    if not pieces:
        return 0.0
    covered = unary_union(pieces).intersection(room)
    return float(covered.area)


def _uncovered_paths(planks, polygon):
    """ Clipper difference room minus pieces: outer rings and holes, scaled. """
    room_path = ring_to_clipper(polygon)
    if not room_path:
        return []
    pc = pyclipper.Pyclipper()
    pc.AddPath(room_path, pyclipper.PT_SUBJECT, True)
    for plank in planks:
        path = ring_to_clipper(footprint(plank))
        if not path:
            continue
        try:
            pc.AddPath(path, pyclipper.PT_CLIP, True)
        except pyclipper.ClipperException as e:
            logger.warning(f"Skipping plank {plank.id} in uncovered-region check: {e}")
    return pc.Execute(pyclipper.CT_DIFFERENCE, pyclipper.PFT_NONZERO, pyclipper.PFT_NONZERO)


def uncovered_regions(planks, polygon):
    """
    Parts of the room no placed piece covers, as rings in room units.
    Computed as a clipper difference (room minus pieces) on scaled
    integer coordinates; holes of the difference are not returned.
    """
    min_area = polygon_area(polygon) * MIN_REGION_RATIO
    regions = []
    for path in _uncovered_paths(planks, polygon):
        if not pyclipper.Orientation(path):
            continue
        ring = scale_paths_from_clipper([path])[0]
        if polygon_area(ring) <= max(min_area, ZERO_TOLERANCE):
            continue
        regions.append(ring)
    return regions


def uncovered_area(planks, polygon):
    """
    Area of the room left uncovered, in room units. Holes of the
    difference (a piece lying inside an uncovered region) have negative
    clipper area, so summing over all paths subtracts them.
    """
    paths = _uncovered_paths(planks, polygon)
    area = abs(sum(pyclipper.Area(path) for path in paths)) / (CLIPPER_SCALE * CLIPPER_SCALE)
    if area <= max(polygon_area(polygon) * MIN_REGION_RATIO, ZERO_TOLERANCE):
        return 0.0
    return area


def kind_counts(planks):
    counts = Counter(p.kind for p in planks)
    return {kind: counts.get(kind, 0) for kind in (KIND_FULL, KIND_LINEAR_CUT, KIND_MULTI_LINE_CUT, KIND_SHAPE_CUT)}


def summarize(result, polygon, dims):
    """ Statistics block of a run, keyed the way the job output reports them. """
    counts = kind_counts(result.planks)
    room_area = polygon_area(polygon)
    covered_area = sum(p.area for p in result.planks)
    waste_area = sum(s.length * s.width for s in result.spares)
    stock_area = result.stock_used * dims.length * dims.width
    union_area = union_coverage(result.planks, polygon)
    regions = uncovered_regions(result.planks, polygon)
    uncovered = uncovered_area(result.planks, polygon)

    coverage = 0.0
    if room_area > ZERO_TOLERANCE:
        coverage = min(100.0, covered_area / room_area * 100.0)
    balanced = covered_area + waste_area <= stock_area + dims.tolerance * max(1.0, stock_area)
    if not balanced:
        logger.error(f"Material check failed: placed {covered_area:.2f} + spares {waste_area:.2f} > stock {stock_area:.2f}")

    stats = {
        "totalPlanks": len(result.planks),
        "fullPlanks": counts[KIND_FULL],
        "linearCutPlanks": counts[KIND_LINEAR_CUT],
        "multiLineCutPlanks": counts[KIND_MULTI_LINE_CUT],
        "shapeCutPlanks": counts[KIND_SHAPE_CUT],
        "cutPlanks": len(result.planks) - counts[KIND_FULL],
        "spares": len(result.spares),
        "sparesReused": result.spares_reused,
        "stockUsed": result.stock_used,
        "candidatesEvaluated": result.candidates,
        "rows": len(result.rows),
        "polygonArea": room_area,
        "coveredArea": covered_area,
        "coveragePercent": round(coverage, 2),
        "unionCoveredArea": union_area,
        "uncoveredArea": uncovered,
        "uncoveredRegions": len(regions),
        "wasteArea": waste_area,
        "stockArea": stock_area,
        "materialBalanced": balanced,
        "budgetExhausted": result.budget_exhausted,
    }
    logger.info(f"Coverage {stats['coveragePercent']}% with {stats['totalPlanks']} planks "
                f"({stats['cutPlanks']} cut), {stats['uncoveredRegions']} uncovered regions")
    return stats
