# spares.py - ledger of offcuts and the row offset heuristic built on it

import math
import logging
from collections import Counter
from dataclasses import dataclass, replace
from typing import Optional

from cutting import try_linear_cut
from planks import Plank, PlankDimensions

logger = logging.getLogger(__name__)

LENGTH_KEY_DIGITS = 6     # spare lengths are grouped after rounding


@dataclass
class SpareMatch:
    spare: Plank                  # ledger entry that gets consumed
    placed: Plank                 # piece laid at the candidate slot
    leftover: Optional[Plank]     # rest of the spare, back into the ledger


def sort_spares(spares):
    """ Longest first; equal lengths keep ledger order. """
    return sorted(spares, key=lambda s: s.length, reverse=True)


def add_spare(spares, spare):
    spares.append(spare)
    logger.debug(f"Spare {spare.id} ({spare.length:.2f} x {spare.width:.2f}) added, {len(spares)} in ledger")


def take_spare(spares, spare):
    for i, s in enumerate(spares):
        if s is spare:
            del spares[i]
            return True
    return False


def find_suitable_spare(candidate, polygon, spares, dims=None):
    """
    Spare that can fill the candidate slot, longest spare first.

    Only slots that end at a wall qualify: the slot is measured with the
    linear cut, so the spare's cut edge meets the polygon boundary and its
    uncut end continues the row. A spare fits when it is at least as long
    as the slot and as wide as the plank; any excess is cut off and stays
    in the ledger as a shorter spare.
    """
    if not spares:
        return None
    if dims is None:
        dims = PlankDimensions(length=candidate.length, width=candidate.width)
    slot = try_linear_cut(candidate, polygon, dims)
    if slot is None:
        return None
    needed = slot.fitted.length
    for spare in sort_spares(spares):
        if spare.width + dims.tolerance < candidate.width:
            continue
        if spare.length + dims.tolerance < needed:
            continue
        placed = replace(slot.fitted, id=f"{spare.id}-reused", width=candidate.width, is_spare=False,
                         original_length=spare.original_length or spare.length)
        rest = spare.length - needed
        leftover = None
        if rest > dims.tolerance:
            leftover = replace(spare, id=f"{spare.id}-rest", length=rest)
        logger.debug(f"Spare {spare.id} ({spare.length:.2f}) fills slot {candidate.id} ({needed:.2f})")
        return SpareMatch(spare, placed, leftover)
    return None


def _stagger_too_small(offset, neighbour_offset, min_offset, span):
    d = (offset - neighbour_offset) % span
    return min(d, span - d) < min(min_offset, span / 2.0) - 1e-9


def calculate_optimal_row_offset(row_index, min_offset, full_plank_span, spares, neighbour_offset=None):
    """
    Offset of a row's start along the plank axis.

    Rows next to the seed row use the plain stagger
    (row_index * min_offset) mod span. Further out, when at least two
    spares share a length, the offset is set to that length (or its
    smallest multiple reaching min_offset, wrapped into the span) so the
    row starts where a stored offcut fits. A spare-based offset that
    would line up with the neighbouring row's joints falls back to
    neighbour + min_offset.
    """
    if full_plank_span <= 0:
        return 0.0
    offset = (row_index * min_offset) % full_plank_span
    if abs(row_index) <= 1 or not spares:
        return offset

    counts = Counter(round(s.length, LENGTH_KEY_DIGITS) for s in spares)
    common_length, count = counts.most_common(1)[0]
    if common_length <= 0 or count < 2:
        return offset

    if common_length >= min_offset:
        spare_offset = common_length
    else:
        spare_offset = common_length * math.ceil(min_offset / common_length)
    spare_offset %= full_plank_span
    if neighbour_offset is not None and _stagger_too_small(spare_offset, neighbour_offset, min_offset, full_plank_span):
        logger.debug(f"Row {row_index}: spare offset {spare_offset:.2f} too close to neighbour, using stagger")
        return (neighbour_offset + min_offset) % full_plank_span
    logger.debug(f"Row {row_index}: offset {spare_offset:.2f} aligned to {count} spares")
    return spare_offset
