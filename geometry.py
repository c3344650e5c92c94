# geometry.py - geometry kernel for the plank tessellation engine
#
# Points are (x, y) tuples, polygons are lists of points. A polygon is
# implicitly closed: the last point connects back to the first.

import math
import logging

import numpy as np

logger = logging.getLogger(__name__)

EPSILON = 1e-10              # determinant below this = parallel segments
OVERLAP_TOLERANCE = 1e-9     # projections closer than this only touch
BOUNDARY_TOLERANCE = 1e-6    # distance at which a point counts as "on" an edge


# --- Basic measures ---

def calculate_bounding_box(points):
    if not points:
        return {"min_x": 0.0, "min_y": 0.0, "max_x": 0.0, "max_y": 0.0, "width": 0.0, "height": 0.0}
    min_x = min(p[0] for p in points)
    max_x = max(p[0] for p in points)
    min_y = min(p[1] for p in points)
    max_y = max(p[1] for p in points)
    return {"min_x": min_x, "min_y": min_y, "max_x": max_x, "max_y": max_y,
            "width": max_x - min_x, "height": max_y - min_y}


def signed_area(polygon):
    """ Shoelace sum / 2. Positive for counter-clockwise rings (y axis up). """
    if len(polygon) < 3:
        return 0.0
    total = 0.0
    for i in range(len(polygon)):
        x1, y1 = polygon[i]
        x2, y2 = polygon[(i + 1) % len(polygon)]
        total += x1 * y2 - x2 * y1
    return total / 2.0


def polygon_area(polygon):
    return abs(signed_area(polygon))


def centroid(points):
    """ Vertex average, not the area centroid. """
    n = len(points)
    if n == 0:
        return (0.0, 0.0)
    return (sum(p[0] for p in points) / n, sum(p[1] for p in points) / n)


def dedupe_ring(points, tolerance=BOUNDARY_TOLERANCE):
    """ Drop consecutive duplicate vertices, including a closing duplicate. """
    cleaned = []
    for p in points:
        if cleaned and math.hypot(p[0] - cleaned[-1][0], p[1] - cleaned[-1][1]) <= tolerance:
            continue
        cleaned.append((float(p[0]), float(p[1])))
    while len(cleaned) > 1 and math.hypot(cleaned[0][0] - cleaned[-1][0], cleaned[0][1] - cleaned[-1][1]) <= tolerance:
        cleaned.pop()
    return cleaned


# --- Point predicates ---

def point_in_polygon(point, polygon):
    """
    Ray casting parity test (ray towards +x).

    Points exactly on the boundary are not special-cased: the half-open
    crossing rule reports most points on left/bottom edges as inside and
    most points on right/top edges as outside. Callers that need a
    boundary-aware answer combine this with point_on_boundary().
    """
    if len(polygon) < 3:
        return False
    px, py = point
    inside = False
    j = len(polygon) - 1
    for i in range(len(polygon)):
        xi, yi = polygon[i]
        xj, yj = polygon[j]
        if (yi > py) != (yj > py):
            x_cross = (xj - xi) * (py - yi) / (yj - yi) + xi
            if px < x_cross:
                inside = not inside
        j = i
    return inside


def distance_to_segment(point, seg_start, seg_end):
    px, py = point
    ax, ay = seg_start
    bx, by = seg_end
    dx = bx - ax
    dy = by - ay
    len_sq = dx * dx + dy * dy
    if len_sq == 0:
        return math.hypot(px - ax, py - ay)
    t = ((px - ax) * dx + (py - ay) * dy) / len_sq
    t = max(0.0, min(1.0, t))
    return math.hypot(px - (ax + t * dx), py - (ay + t * dy))


def point_on_boundary(point, polygon, tolerance=BOUNDARY_TOLERANCE):
    for i in range(len(polygon)):
        if distance_to_segment(point, polygon[i], polygon[(i + 1) % len(polygon)]) <= tolerance:
            return True
    return False


def point_inside_or_on(point, polygon, tolerance=BOUNDARY_TOLERANCE):
    return point_on_boundary(point, polygon, tolerance) or point_in_polygon(point, polygon)


def point_strictly_inside(point, polygon, tolerance=BOUNDARY_TOLERANCE):
    return point_in_polygon(point, polygon) and not point_on_boundary(point, polygon, tolerance)


# --- Segments ---

def segment_intersection(a, b, c, d):
    """
    Intersection point of segments a-b and c-d, or None.

    Only points on both finite segments are returned; (near) parallel
    segments never intersect, collinear overlap included.
    """
    x1, y1 = a
    x2, y2 = b
    x3, y3 = c
    x4, y4 = d
    denom = (x1 - x2) * (y3 - y4) - (y1 - y2) * (x3 - x4)
    if abs(denom) < EPSILON:
        return None
    t = ((x1 - x3) * (y3 - y4) - (y1 - y3) * (x3 - x4)) / denom
    u = -((x1 - x2) * (y1 - y3) - (y1 - y2) * (x1 - x3)) / denom
    if 0.0 <= t <= 1.0 and 0.0 <= u <= 1.0:
        return (x1 + t * (x2 - x1), y1 + t * (y2 - y1))
    return None


def segments_cross(a, b, c, d, tolerance=BOUNDARY_TOLERANCE):
    """ True when the segments cross away from all four endpoints. """
    hit = segment_intersection(a, b, c, d)
    if hit is None:
        return False
    for end in (a, b, c, d):
        if math.hypot(hit[0] - end[0], hit[1] - end[1]) <= tolerance:
            return False
    return True


def line_intersection(p1, p2, p3, p4):
    """ Intersection of the infinite lines through p1-p2 and p3-p4. """
    denom = (p1[0] - p2[0]) * (p3[1] - p4[1]) - (p1[1] - p2[1]) * (p3[0] - p4[0])
    if abs(denom) < EPSILON:
        return None
    t = ((p1[0] - p3[0]) * (p3[1] - p4[1]) - (p1[1] - p3[1]) * (p3[0] - p4[0])) / denom
    return (p1[0] + t * (p2[0] - p1[0]), p1[1] + t * (p2[1] - p1[1]))


def clip_segment_to_box(a, b, box):
    """
    Liang-Barsky clip of segment a-b to an axis aligned box
    (min_x, min_y, max_x, max_y). Returns the clipped pair or None.
    """
    min_x, min_y, max_x, max_y = box
    dx = b[0] - a[0]
    dy = b[1] - a[1]
    t0, t1 = 0.0, 1.0
    for p, q in ((-dx, a[0] - min_x), (dx, max_x - a[0]), (-dy, a[1] - min_y), (dy, max_y - a[1])):
        if p == 0:
            if q < 0:
                return None
            continue
        r = q / p
        if p < 0:
            if r > t1:
                return None
            t0 = max(t0, r)
        else:
            if r < t0:
                return None
            t1 = min(t1, r)
    return ((a[0] + t0 * dx, a[1] + t0 * dy), (a[0] + t1 * dx, a[1] + t1 * dy))


# --- Polygon clipping (Sutherland-Hodgman) ---

def _inside_edge(point, edge_start, edge_end):
    return ((edge_end[0] - edge_start[0]) * (point[1] - edge_start[1])
            - (edge_end[1] - edge_start[1]) * (point[0] - edge_start[0])) >= 0


def clip_polygon(subject, clip):
    """
    Clip `subject` against every edge of `clip` in turn.

    "Inside" is the left side of each clip edge, so the clip ring is
    brought to counter-clockwise order first. The result is exact when
    `clip` is convex; it may be empty or have fewer than 3 points.
    """
    if not subject or len(clip) < 3:
        return []
    if signed_area(clip) < 0:
        clip = list(reversed(clip))
    output = list(subject)
    for i in range(len(clip)):
        edge_start = clip[i]
        edge_end = clip[(i + 1) % len(clip)]
        input_list = output
        output = []
        if not input_list:
            break
        s = input_list[-1]
        for e in input_list:
            if _inside_edge(e, edge_start, edge_end):
                if not _inside_edge(s, edge_start, edge_end):
                    hit = line_intersection(s, e, edge_start, edge_end)
                    if hit:
                        output.append(hit)
                output.append(e)
            elif _inside_edge(s, edge_start, edge_end):
                hit = line_intersection(s, e, edge_start, edge_end)
                if hit:
                    output.append(hit)
            s = e
    if len(output) < 3:
        logger.debug(f"Clip left {len(output)} points of a {len(subject)}-point subject")
    return output


# --- Rectangle overlap (separating axis theorem) ---

def rectangles_overlap(corners_a, corners_b, tolerance=OVERLAP_TOLERANCE):
    """
    SAT test over the two edge directions of each rectangle.

    Projections that meet within `tolerance` are treated as separated, so
    rectangles that only share an edge or a corner do not overlap.
    """
    a = np.asarray(corners_a, dtype=float)
    b = np.asarray(corners_b, dtype=float)
    if len(a) < 3 or len(b) < 3:
        return False
    for axis in (a[1] - a[0], a[2] - a[1], b[1] - b[0], b[2] - b[1]):
        length = math.hypot(axis[0], axis[1])
        if length == 0:
            continue
        axis = axis / length
        proj_a = a @ axis
        proj_b = b @ axis
        if proj_a.max() <= proj_b.min() + tolerance or proj_b.max() <= proj_a.min() + tolerance:
            return False
    return True
