# cutting.py - fit an oversized plank to the room boundary
#
# Three strategies are tried in order (linear -> multi-line -> shape) and
# the first one that yields a piece wins. Every strategy returns a
# CutResult or None when it does not apply or cannot produce a piece.

import math
import logging
from dataclasses import dataclass, replace
from typing import Optional

from shapely.geometry import Polygon

from geometry import (
    calculate_bounding_box,
    clip_polygon,
    clip_segment_to_box,
    dedupe_ring,
    point_inside_or_on,
    polygon_area,
    segment_intersection,
)
from planks import (
    Plank,
    PlankDimensions,
    axis_vectors,
    collides_with_existing,
    cut_plank,
    fully_inside_polygon,
    oriented_corners,
    to_local,
    to_world,
)

logger = logging.getLogger(__name__)

METHOD_LINEAR = "linear"
METHOD_MULTI_LINE = "multi-line"
METHOD_SHAPE = "shape"

LINEAR_MIN_RATIO = 0.05          # shorter pieces are not worth a straight cut
LINEAR_MAX_RATIO = 0.95          # longer ones hint at a different geometry
MULTI_LINE_MIN_AREA_RATIO = 0.15
SHAPE_MIN_AREA_RATIO = 0.02
SHAPE_MIN_AREA_RATIO_LARGE_PLANK = 0.005
LARGE_PLANK_ROOM_RATIO = 0.5
ALONG_AXIS_MAX_ANGLE = 45.0      # degrees between an edge and the plank axis


@dataclass
class CutResult:
    method: str
    fitted: Plank
    spare: Optional[Plank] = None


def _settings(plank, dims):
    if dims is not None:
        return dims
    return PlankDimensions(length=plank.length, width=plank.width)


def overlapping_edges(plank, polygon, tolerance):
    """
    Polygon edges whose bounding box overlaps the plank's bounding box by
    more than `tolerance`. An edge the plank only touches is not counted.
    """
    box = calculate_bounding_box(oriented_corners(plank))
    edges = []
    for i in range(len(polygon)):
        a = polygon[i]
        b = polygon[(i + 1) % len(polygon)]
        if (max(a[0], b[0]) > box["min_x"] + tolerance and box["max_x"] > min(a[0], b[0]) + tolerance
                and max(a[1], b[1]) > box["min_y"] + tolerance and box["max_y"] > min(a[1], b[1]) + tolerance):
            edges.append((a, b))
    return edges


def _ray_distance(origin, direction, length, polygon, tolerance):
    """ Distance to the nearest polygon edge along a ray of finite length. """
    end = (origin[0] + direction[0] * length, origin[1] + direction[1] * length)
    nearest = None
    for i in range(len(polygon)):
        hit = segment_intersection(origin, end, polygon[i], polygon[(i + 1) % len(polygon)])
        if hit is None:
            continue
        distance = math.hypot(hit[0] - origin[0], hit[1] - origin[1])
        if distance <= tolerance:
            continue
        if nearest is None or distance < nearest:
            nearest = distance
    return nearest


def try_linear_cut(plank, polygon, dims=None, spare_id=None):
    """
    Straight cut across the plank where it meets a single wall.

    Both long edges are cast as rays from one end along the length axis;
    the nearest wall hit, less the cut margin, becomes the new length.
    The far end is trimmed first; if that piece is not fully inside the
    polygon the near end is trimmed instead.
    """
    dims = _settings(plank, dims)
    edges = overlapping_edges(plank, polygon, dims.tolerance)
    if len(edges) != 1:
        logger.debug(f"Linear cut {plank.id}: {len(edges)} overlapping edges, not applicable")
        return None

    (ux, uy), _ = axis_vectors(plank.rotation)
    hl = plank.length / 2.0
    hw = plank.width / 2.0
    for direction in (1.0, -1.0):
        ray = (ux * direction, uy * direction)
        origins = [to_world((-direction * hl, side), plank) for side in (-hw, hw)]
        distances = [d for d in (_ray_distance(o, ray, plank.length, polygon, dims.tolerance) for o in origins)
                     if d is not None]
        if not distances:
            continue
        cut_length = min(distances) - dims.cut_margin
        if cut_length < plank.length * LINEAR_MIN_RATIO or cut_length > plank.length * LINEAR_MAX_RATIO:
            logger.debug(f"Linear cut {plank.id}: length {cut_length:.2f} outside accepted range")
            continue
        offset = direction * (cut_length / 2.0 - hl)
        trial = replace(plank, x=plank.x + offset * ux, y=plank.y + offset * uy, length=cut_length)
        if not fully_inside_polygon(trial, polygon, dims.tolerance):
            continue
        fitted, spare = cut_plank(plank, cut_length, spare_id)
        fitted.x = trial.x
        fitted.y = trial.y
        logger.debug(f"Linear cut {plank.id}: {plank.length:.2f} -> {cut_length:.2f}")
        return CutResult(METHOD_LINEAR, fitted, spare)
    return None


def _edge_runs_along(a, b, rotation):
    (ux, uy), _ = axis_vectors(rotation)
    dx = b[0] - a[0]
    dy = b[1] - a[1]
    angle = math.degrees(math.atan2(abs(dx * uy - dy * ux), abs(dx * ux + dy * uy)))
    return angle < ALONG_AXIS_MAX_ANGLE


def cut_shape(plank, polygon, tolerance):
    """
    Piece of the plank rectangle that lies inside the polygon, as a world
    ring. The room is clipped against the (convex) rectangle, so concave
    rooms are handled exactly; vertices come out in boundary order.

    A rectangle spanning two arms of a concave room clips to separate
    parts that Sutherland-Hodgman joins with zero-width bridges. That
    ring is not a valid polygon, so the piece is recomputed with shapely
    and only the largest part is kept: one plank gives one piece.
    """
    corners = oriented_corners(plank)
    ring = dedupe_ring(clip_polygon(polygon, corners), tolerance)
    if len(ring) < 3 or Polygon(ring).is_valid:
        return ring

    room = Polygon(polygon)
    if not room.is_valid:
        room = room.buffer(0)
    overlap = room.intersection(Polygon(corners))
    parts = [g for g in getattr(overlap, "geoms", [overlap]) if isinstance(g, Polygon) and not g.is_empty]
    if not parts:
        return []
    if len(parts) > 1:
        logger.debug(f"Shape cut {plank.id}: {len(parts)} disconnected parts, keeping the largest")
    largest = max(parts, key=lambda g: g.area)
    return dedupe_ring(list(largest.exterior.coords), tolerance)


def spare_from_remaining_area(plank, remaining_area, dims, spare_id=None):
    """
    Rectangular stand-in for the offcut of a shaped cut: a square of the
    remaining area, capped to the plank's own dimensions. None when it
    falls below the minimum viable size.
    """
    if remaining_area <= 0:
        return None
    spare_length = min(math.sqrt(remaining_area), plank.length)
    spare_width = min(remaining_area / spare_length, plank.width)
    if spare_length < dims.min_spare_length or spare_width < dims.min_spare_width:
        return None
    return replace(plank, id=spare_id or f"{plank.id}-spare", length=spare_length, width=spare_width,
                   is_spare=True, original_length=plank.original_length or plank.length,
                   shape=None, cut_lines=None)


def _local_shape(ring, plank):
    return [to_local(p, plank) for p in ring]


def try_multi_line_cut(plank, polygon, dims=None, spare_id=None):
    """
    Cut along several wall segments at once, for planks spanning a room
    corner. Needs at least two overlapping edges, one running along the
    plank axis and one across it.
    """
    dims = _settings(plank, dims)
    edges = overlapping_edges(plank, polygon, dims.tolerance)
    if len(edges) < 2:
        return None
    along = [_edge_runs_along(a, b, plank.rotation) for a, b in edges]
    if all(along) or not any(along):
        logger.debug(f"Multi-line cut {plank.id}: edges share one orientation, not applicable")
        return None

    hl = plank.length / 2.0
    hw = plank.width / 2.0
    cut_lines = []
    for a, b in edges:
        clipped = clip_segment_to_box(to_local(a, plank), to_local(b, plank), (-hl, -hw, hl, hw))
        if clipped is None:
            continue
        start, end = clipped
        if math.hypot(end[0] - start[0], end[1] - start[1]) <= dims.tolerance:
            continue
        cut_lines.append([to_world(start, plank), to_world(end, plank)])
    if not cut_lines:
        return None

    ring = cut_shape(plank, polygon, dims.tolerance)
    if len(ring) < 3:
        return None
    full_area = plank.length * plank.width
    cut_area = polygon_area(ring)
    if cut_area < full_area * MULTI_LINE_MIN_AREA_RATIO:
        logger.debug(f"Multi-line cut {plank.id}: piece area {cut_area:.2f} too small")
        return None

    fitted = replace(plank, id=f"{plank.id}-multicut", shape=_local_shape(ring, plank),
                     cut_lines=cut_lines, original_length=plank.original_length or plank.length)
    spare = spare_from_remaining_area(plank, full_area - cut_area, dims, spare_id)
    logger.debug(f"Multi-line cut {plank.id}: {len(cut_lines)} cut lines, area {cut_area:.2f}/{full_area:.2f}")
    return CutResult(METHOD_MULTI_LINE, fitted, spare)


def try_shape_cut(plank, polygon, dims=None, spare_id=None):
    """ Fallback: keep whatever part of the rectangle lies inside the polygon. """
    dims = _settings(plank, dims)
    ring = cut_shape(plank, polygon, dims.tolerance)
    if len(ring) < 3:
        return None
    full_area = plank.length * plank.width
    room_area = polygon_area(polygon)
    if room_area <= 0:
        return None
    if full_area / room_area > LARGE_PLANK_ROOM_RATIO:
        min_ratio = SHAPE_MIN_AREA_RATIO_LARGE_PLANK
    else:
        min_ratio = SHAPE_MIN_AREA_RATIO
    cut_area = polygon_area(ring)
    if cut_area < full_area * min_ratio:
        logger.debug(f"Shape cut {plank.id}: piece area {cut_area:.2f} below {min_ratio:.3f} of plank")
        return None
    if not all(point_inside_or_on(p, polygon, dims.tolerance) for p in ring):
        logger.debug(f"Shape cut {plank.id}: clipped vertex outside polygon")
        return None

    fitted = replace(plank, id=f"{plank.id}-shaped", shape=_local_shape(ring, plank), cut_lines=None,
                     original_length=plank.original_length or plank.length)
    spare = spare_from_remaining_area(plank, full_area - cut_area, dims, spare_id)
    return CutResult(METHOD_SHAPE, fitted, spare)


CUTTING_STRATEGIES = (
    (METHOD_LINEAR, try_linear_cut),
    (METHOD_MULTI_LINE, try_multi_line_cut),
    (METHOD_SHAPE, try_shape_cut),
)


def select_cut(plank, polygon, dims=None, placed=(), spare_id=None):
    """
    Run the strategies in order and return the first result whose piece
    keeps the configured gap to the already placed planks.
    """
    dims = _settings(plank, dims)
    if len(polygon) < 3 or dims.is_degenerate():
        return None
    for method, strategy in CUTTING_STRATEGIES:
        result = strategy(plank, polygon, dims, spare_id)
        if result is None:
            continue
        if placed and collides_with_existing(result.fitted, placed, dims.gap, dims.tolerance):
            logger.debug(f"{method} cut of {plank.id} collides with placed planks")
            continue
        logger.debug(f"Plank {plank.id} fitted by {method} cut")
        return result
    logger.debug(f"No cutting strategy fits plank {plank.id}")
    return None
