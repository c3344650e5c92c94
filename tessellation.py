# tessellation.py - row based placement of planks over a room polygon
#
# Rows run parallel to the seed plank. Each row is walked with a cursor
# along the plank axis; every cursor position yields one candidate plank
# that is placed from a spare, placed whole, cut to fit, or dropped.

import math
import time
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List, Optional

import numpy as np

from cutting import select_cut
from geometry import calculate_bounding_box
from planks import (
    Plank,
    axis_vectors,
    collides_with_existing,
    footprint,
    fully_inside_polygon,
    overlaps_polygon,
)
from spares import add_spare, calculate_optimal_row_offset, find_suitable_spare, take_spare

logger = logging.getLogger(__name__)

ROW_MARGIN = 2             # extra rows scanned beyond the polygon extent
GAP_FILL_STEP_RATIO = 0.25


class TerminationReason(Enum):
    ROW_COMPLETE = "row-complete"
    BOUND_EXCEEDED = "bound-exceeded"
    RETRIES_EXHAUSTED = "retries-exhausted"
    BUDGET_EXHAUSTED = "budget-exhausted"


@dataclass
class RowReport:
    index: int
    offset: float
    placed: int
    reason: TerminationReason


@dataclass
class TessellationState:
    """ Accumulators of one run; owned by generate_tessellation(). """
    planks: List[Plank] = field(default_factory=list)
    spares: List[Plank] = field(default_factory=list)
    rows: List[RowReport] = field(default_factory=list)
    stock_used: int = 0
    spares_reused: int = 0
    candidates: int = 0
    spare_counter: int = 0
    started: float = field(default_factory=time.monotonic)

    def next_spare_id(self, base):
        self.spare_counter += 1
        return f"{base}-spare-{self.spare_counter}"

    def budget_exhausted(self, dims):
        if self.candidates >= dims.max_candidates:
            return True
        return dims.time_budget is not None and time.monotonic() - self.started > dims.time_budget


@dataclass
class TessellationResult:
    planks: List[Plank]
    spares: List[Plank]
    rows: List[RowReport] = field(default_factory=list)
    stock_used: int = 0
    spares_reused: int = 0
    candidates: int = 0
    budget_exhausted: bool = False


class RowCursor:
    """
    Bounded walk over candidate positions of one row. Positions are the
    back end of the next plank, measured along the plank axis. The walk
    stops past `end`, after `max_retries` failed candidates, or when
    stop() is called; `reason` tells which.
    """

    def __init__(self, start, end, step, max_retries):
        self.position = start
        self.end = end
        self.step = step
        self.max_retries = max_retries
        self.retries = 0
        self.reason: Optional[TerminationReason] = None

    def positions(self):
        while self.reason is None:
            if self.position > self.end:
                self.reason = TerminationReason.ROW_COMPLETE
            elif self.retries >= self.max_retries:
                self.reason = TerminationReason.RETRIES_EXHAUSTED
            else:
                yield self.position

    def skip(self):
        self.position += self.step

    def fail(self):
        self.retries += 1
        self.position += self.step

    def advance_to(self, position):
        if position <= self.position:
            position = self.position + self.step
        self.position = position

    def stop(self, reason):
        self.reason = reason


def place_candidate(candidate, polygon, dims, state):
    """
    Place one candidate that overlaps the room and clears the placed
    planks: from a stored spare, as a full plank, or cut to fit.
    Returns the placed piece or None.
    """
    match = find_suitable_spare(candidate, polygon, state.spares, dims)
    if match is not None and not collides_with_existing(match.placed, state.planks, dims.gap, dims.tolerance):
        take_spare(state.spares, match.spare)
        if match.leftover is not None:
            add_spare(state.spares, replace(match.leftover, id=state.next_spare_id(candidate.id)))
        state.planks.append(match.placed)
        state.spares_reused += 1
        logger.debug(f"Plank {candidate.id} laid from spare {match.spare.id}")
        return match.placed

    if fully_inside_polygon(candidate, polygon, dims.tolerance):
        state.planks.append(candidate)
        state.stock_used += 1
        logger.debug(f"Full plank {candidate.id} fits completely")
        return candidate

    result = select_cut(candidate, polygon, dims, placed=state.planks)
    if result is None:
        return None
    state.planks.append(result.fitted)
    state.stock_used += 1
    if result.spare is not None:
        add_spare(state.spares, replace(result.spare, id=state.next_spare_id(candidate.id)))
    logger.debug(f"Plank {candidate.id} placed with {result.method} cut")
    return result.fitted


class _Frame:
    """ Seed-centred frame: s along the plank axis, t across the rows. """

    def __init__(self, seed, polygon):
        self.origin = (seed.x, seed.y)
        self.rotation = seed.rotation
        self.u, self.v = axis_vectors(seed.rotation)
        s_values = [self.along(p) for p in polygon]
        t_values = [self.across(p) for p in polygon]
        self.s_min, self.s_max = min(s_values), max(s_values)
        self.t_min, self.t_max = min(t_values), max(t_values)

    def along(self, p):
        return (p[0] - self.origin[0]) * self.u[0] + (p[1] - self.origin[1]) * self.u[1]

    def across(self, p):
        return (p[0] - self.origin[0]) * self.v[0] + (p[1] - self.origin[1]) * self.v[1]

    def point(self, s, t):
        return (self.origin[0] + s * self.u[0] + t * self.v[0],
                self.origin[1] + s * self.u[1] + t * self.v[1])


def _row_order(max_row):
    yield 0
    for i in range(1, max_row + 1):
        yield i
        yield -i


def _row_band(row_index, dims):
    t = row_index * dims.row_spacing
    return t - dims.width / 2.0, t + dims.width / 2.0


def _beyond_polygon(row_index, frame, dims):
    """ Row band lies past the polygon on its own side of the seed row. """
    low, high = _row_band(row_index, dims)
    if row_index > 0:
        return low >= frame.t_max
    if row_index < 0:
        return high <= frame.t_min
    return False


def _scan_row(row_index, offset, frame, polygon, dims, state):
    t = row_index * dims.row_spacing
    low, high = _row_band(row_index, dims)
    if low >= frame.t_max or high <= frame.t_min:
        return RowReport(row_index, offset, 0, TerminationReason.BOUND_EXCEEDED)

    # rewind the staggered row start until the first plank lies before the polygon
    start = -dims.length / 2.0 + offset
    first = frame.s_min - dims.length
    start -= math.ceil((start - first) / dims.span) * dims.span
    cursor = RowCursor(start, frame.s_max, dims.span, dims.max_row_retries)

    placed_count = 0
    for number, position in enumerate(cursor.positions()):
        if state.budget_exhausted(dims):
            cursor.stop(TerminationReason.BUDGET_EXHAUSTED)
            break
        state.candidates += 1
        x, y = frame.point(position + dims.length / 2.0, t)
        candidate = Plank(id=f"r{row_index}-p{number}", x=x, y=y, rotation=frame.rotation,
                          length=dims.length, width=dims.width)
        if not overlaps_polygon(candidate, polygon, dims.tolerance):
            cursor.skip()
            continue
        if collides_with_existing(candidate, state.planks, dims.gap, dims.tolerance):
            cursor.skip()
            continue
        placed = place_candidate(candidate, polygon, dims, state)
        if placed is None:
            logger.debug(f"Row {row_index}: nothing fits at {position:.2f}")
            cursor.fail()
            continue
        placed_count += 1
        far_end = max(frame.along(p) for p in footprint(placed))
        cursor.advance_to(far_end + dims.gap)
    return RowReport(row_index, offset, placed_count, cursor.reason)


def fill_remaining_gaps(frame, polygon, dims, state):
    """
    Second pass over a fine grid of the bounding box, at the seed
    rotation, for spots the rows left open.
    """
    box = calculate_bounding_box(polygon)
    step = min(dims.length, dims.width) * GAP_FILL_STEP_RATIO
    placed_count = 0
    for x in np.arange(box["min_x"], box["max_x"] + step / 2.0, step):
        for y in np.arange(box["min_y"], box["max_y"] + step / 2.0, step):
            if state.budget_exhausted(dims):
                return placed_count
            state.candidates += 1
            candidate = Plank(id=f"fill-{state.candidates}", x=float(x), y=float(y), rotation=frame.rotation,
                              length=dims.length, width=dims.width)
            if not overlaps_polygon(candidate, polygon, dims.tolerance):
                continue
            if collides_with_existing(candidate, state.planks, dims.gap, dims.tolerance):
                continue
            if place_candidate(candidate, polygon, dims, state) is not None:
                placed_count += 1
    return placed_count


def generate_tessellation(seed, polygon, dims):
    """
    Cover `polygon` with planks of `dims`, rows aligned with `seed`
    (position and rotation; its own length/width are ignored).
    """
    if len(polygon) < 3 or dims.is_degenerate():
        logger.warning(f"Degenerate input ({len(polygon)} points, {dims.length}x{dims.width}); nothing to place")
        return TessellationResult(planks=[], spares=[])

    polygon = [(float(p[0]), float(p[1])) for p in polygon]
    frame = _Frame(seed, polygon)
    state = TessellationState()
    reach = max(abs(frame.t_min), abs(frame.t_max))
    max_row = int(math.ceil(reach / dims.row_spacing)) + ROW_MARGIN
    logger.info(f"Tessellation start: {len(polygon)} points, plank {dims.length}x{dims.width}, "
                f"gap {dims.gap}, rows up to +/-{max_row}")

    offsets = {}
    closed = set()
    for row_index in _row_order(max_row):
        direction = (row_index > 0) - (row_index < 0)
        if direction in closed:
            continue
        offset = calculate_optimal_row_offset(row_index, dims.min_row_offset, dims.span, state.spares,
                                              neighbour_offset=offsets.get(row_index - direction))
        offsets[row_index] = offset
        report = _scan_row(row_index, offset, frame, polygon, dims, state)
        state.rows.append(report)
        logger.debug(f"Row {row_index}: offset {offset:.2f}, {report.placed} placed, {report.reason.value}")
        if report.reason is TerminationReason.BUDGET_EXHAUSTED:
            logger.warning(f"Candidate budget exhausted after {state.candidates} candidates")
            break
        if report.reason is TerminationReason.BOUND_EXCEEDED and _beyond_polygon(row_index, frame, dims):
            closed.add(direction)
            if len(closed) == 2:
                break

    if dims.fill_gaps and not state.budget_exhausted(dims):
        filled = fill_remaining_gaps(frame, polygon, dims, state)
        logger.info(f"Gap filling placed {filled} extra pieces")

    logger.info(f"Tessellation done: {len(state.planks)} planks, {len(state.spares)} spares, "
                f"{state.candidates} candidates")
    return TessellationResult(planks=state.planks, spares=state.spares, rows=state.rows,
                              stock_used=state.stock_used, spares_reused=state.spares_reused,
                              candidates=state.candidates, budget_exhausted=state.budget_exhausted(dims))
