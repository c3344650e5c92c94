# planks.py - plank model, dimensions config and plank/polygon predicates

import math
import logging
from dataclasses import dataclass, replace
from typing import List, Optional, Tuple

from shapely.geometry import Polygon

from geometry import (
    BOUNDARY_TOLERANCE,
    calculate_bounding_box,
    point_inside_or_on,
    point_strictly_inside,
    polygon_area,
    rectangles_overlap,
    segments_cross,
)

logger = logging.getLogger(__name__)

# --- Engine defaults (overridable per run through PlankDimensions) ---
CUT_MARGIN = 0.5             # clearance between a straight cut and the wall
MIN_SPARE_LENGTH = 200.0
MIN_SPARE_WIDTH = 50.0
MAX_ROW_RETRIES = 20
MAX_CANDIDATES = 200000
ENGINE_TOLERANCE = 1e-6

Point = Tuple[float, float]

KIND_FULL = "full"
KIND_LINEAR_CUT = "linear-cut"
KIND_MULTI_LINE_CUT = "multi-line-cut"
KIND_SHAPE_CUT = "shape-cut"


@dataclass
class PlankDimensions:
    length: float
    width: float
    gap: float = 0.0
    min_row_offset: float = 0.0
    cut_margin: float = CUT_MARGIN
    min_spare_length: float = MIN_SPARE_LENGTH
    min_spare_width: float = MIN_SPARE_WIDTH
    max_row_retries: int = MAX_ROW_RETRIES
    max_candidates: int = MAX_CANDIDATES
    time_budget: Optional[float] = None   # seconds, None = unlimited
    fill_gaps: bool = False
    tolerance: float = ENGINE_TOLERANCE

    @property
    def span(self) -> float:
        """Distance between the starts of two neighbouring planks in a row."""
        return self.length + self.gap

    @property
    def row_spacing(self) -> float:
        return self.width + self.gap

    def is_degenerate(self) -> bool:
        return self.length <= 0 or self.width <= 0


@dataclass
class Plank:
    id: str
    x: float
    y: float
    rotation: float               # degrees, counter-clockwise
    length: float
    width: float
    is_spare: bool = False
    original_length: Optional[float] = None
    shape: Optional[List[Point]] = None        # plank-local frame
    cut_lines: Optional[List[List[Point]]] = None

    @property
    def kind(self) -> str:
        if self.shape:
            return KIND_MULTI_LINE_CUT if self.cut_lines else KIND_SHAPE_CUT
        if self.original_length is not None and self.length < self.original_length:
            return KIND_LINEAR_CUT
        return KIND_FULL

    @property
    def area(self) -> float:
        if self.shape:
            return polygon_area(self.shape)
        return self.length * self.width


def axis_vectors(rotation):
    """ Unit vectors along the plank length and across its width. """
    rad = math.radians(rotation)
    cos = math.cos(rad)
    sin = math.sin(rad)
    return (cos, sin), (-sin, cos)


def to_world(point, plank):
    (ux, uy), (vx, vy) = axis_vectors(plank.rotation)
    return (plank.x + point[0] * ux + point[1] * vx,
            plank.y + point[0] * uy + point[1] * vy)


def to_local(point, plank):
    (ux, uy), (vx, vy) = axis_vectors(plank.rotation)
    dx = point[0] - plank.x
    dy = point[1] - plank.y
    return (dx * ux + dy * uy, dx * vx + dy * vy)


def oriented_corners(plank):
    """ Rectangle corners, counter-clockwise, starting at the back-bottom corner. """
    hl = plank.length / 2.0
    hw = plank.width / 2.0
    return [to_world(p, plank) for p in ((-hl, -hw), (hl, -hw), (hl, hw), (-hl, hw))]


def footprint(plank):
    """ World polygon actually covered by the plank: its cut shape or its rectangle. """
    if plank.shape:
        return [to_world(p, plank) for p in plank.shape]
    return oriented_corners(plank)


def bounding_rectangle(plank, grow=0.0):
    """
    Oriented rectangle enclosing the plank, in the plank's own frame,
    grown by `grow` on every side. Cut shapes use their local extent.
    """
    if plank.shape:
        box = calculate_bounding_box(plank.shape)
        local = (box["min_x"], box["min_y"], box["max_x"], box["max_y"])
    else:
        hl = plank.length / 2.0
        hw = plank.width / 2.0
        local = (-hl, -hw, hl, hw)
    min_x, min_y, max_x, max_y = local
    min_x -= grow
    min_y -= grow
    max_x += grow
    max_y += grow
    return [to_world(p, plank) for p in ((min_x, min_y), (max_x, min_y), (max_x, max_y), (min_x, max_y))]


def _edges(ring):
    for i in range(len(ring)):
        yield ring[i], ring[(i + 1) % len(ring)]


def _any_edge_crossing(ring_a, ring_b, tolerance):
    for a1, a2 in _edges(ring_a):
        for b1, b2 in _edges(ring_b):
            if segments_cross(a1, a2, b1, b2, tolerance):
                return True
    return False


def fully_inside_polygon(plank, polygon, tolerance=BOUNDARY_TOLERANCE):
    """
    True when the plank footprint lies inside the polygon.

    Corners may touch the boundary. Corner and edge-crossing tests reject
    most pieces cheaply; what passes is settled by shapely containment in
    the polygon grown by `tolerance`, which also catches a notch whose
    tip and mouth both sit on the footprint boundary.
    """
    if len(polygon) < 3:
        return False
    ring = footprint(plank)
    if not all(point_inside_or_on(c, polygon, tolerance) for c in ring):
        return False
    if _any_edge_crossing(ring, polygon, tolerance):
        return False
    room = Polygon(polygon)
    if not room.is_valid:
        room = room.buffer(0)
    return room.buffer(tolerance).contains(Polygon(ring))


def overlaps_polygon(plank, polygon, tolerance=BOUNDARY_TOLERANCE):
    """
    True when the plank rectangle and the polygon share interior area:
    a corner or the centre strictly inside the polygon, a polygon vertex
    strictly inside the rectangle, or an edge crossing between the two.
    Merely touching the boundary is not an overlap.
    """
    if len(polygon) < 3:
        return False
    corners = oriented_corners(plank)
    samples = corners + [(plank.x, plank.y)]
    if any(point_strictly_inside(p, polygon, tolerance) for p in samples):
        return True
    if any(point_strictly_inside(v, corners, tolerance) for v in polygon):
        return True
    return _any_edge_crossing(corners, polygon, tolerance)


def collides_with_existing(plank, placed, gap, tolerance=BOUNDARY_TOLERANCE):
    """
    True when the plank comes closer than `gap` to any placed plank.
    Each placed plank's rectangle is grown by `gap` on every side and
    tested with the SAT overlap test, so a clearance of exactly `gap`
    is allowed.
    """
    corners = bounding_rectangle(plank)
    for existing in placed:
        if rectangles_overlap(corners, bounding_rectangle(existing, grow=gap), tolerance):
            logger.debug(f"Plank {plank.id} collides with {existing.id} (gap {gap})")
            return True
    return False


def cut_plank(plank, cut_length, spare_id=None):
    """ Split a plank at `cut_length` from its back end into (fitted, spare). """
    original_length = plank.original_length or plank.length
    fitted = replace(plank, id=f"{plank.id}-fitted", length=cut_length,
                     original_length=original_length)
    spare = replace(plank, id=spare_id or f"{plank.id}-spare",
                    length=plank.length - cut_length, is_spare=True,
                    original_length=original_length, shape=None, cut_lines=None)
    return fitted, spare
