#!/usr/bin/env python
# run_tessellation.py (v1.2 - row tessellation with cutting, spare reuse and SVG export)

import sys
import json
import os
import traceback
import time
import math
import logging

# --- Settings ---
_OUTPUT_SVG = True  # When True every placed piece carries its SVG path data in the JSON output.
_ENABLE_DEEP_DEBUG = False
# Override through the environment for debugging
if os.environ.get("TESSELLATION_DEBUG") == "1":
    _ENABLE_DEEP_DEBUG = True

try:
    from shapely.geometry import Polygon
    from shapely.validation import explain_validity
    HAS_SHAPELY = True
except ImportError:
    print("ERROR: Shapely library not found. Please install it: pip install shapely", file=sys.stderr)
    HAS_SHAPELY = False

try:
    import pyclipper
    HAS_PYCLIPPER = True
except ImportError:
    print("ERROR: Pyclipper library not found. Please install it: pip install pyclipper", file=sys.stderr)
    HAS_PYCLIPPER = False

from geometry import dedupe_ring, polygon_area
from planks import (
    CUT_MARGIN,
    MAX_CANDIDATES,
    MAX_ROW_RETRIES,
    MIN_SPARE_LENGTH,
    MIN_SPARE_WIDTH,
    Plank,
    PlankDimensions,
    footprint,
)
from tessellation import generate_tessellation

ENGINE_MODULES = ("geometry", "planks", "cutting", "spares", "tessellation", "metrics")
LOG_LEVELS = {
    "ERROR": logging.ERROR,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
}

# --- Helpers ---

def format_error(message, details=None):
    error_obj = {"success": False, "message": message}
    try:
        if details:
            error_obj["error_details"] = str(details)
            logging.error(f"FATAL_ERROR_DETAILS: {details}")
        logging.error(f"FATAL ERROR: {message}")
        logging.shutdown()
    except Exception:
        print(f"FATAL ERROR (logging failed): {message}\nDetails: {details}", file=sys.stderr)
    print(json.dumps(error_obj))
    sys.exit(1)

def create_room_polygon(coords):
    """ Validate the room outline; returns a list of (x, y) tuples or None. """
    if not isinstance(coords, list) or len(coords) < 3:
        logging.warning("Room polygon needs at least 3 points.")
        return None
    try:
        points = [(float(p[0]), float(p[1])) for p in coords]
    except (TypeError, ValueError, IndexError) as e:
        logging.warning(f"Room polygon has invalid points: {e}")
        return None
    if not all(math.isfinite(v) for p in points for v in p):
        logging.warning("Room polygon has non-finite coordinates.")
        return None
    points = dedupe_ring(points, 0.0)
    if len(set(points)) < 3:
        logging.warning("Room polygon requires >= 3 unique points.")
        return None
    shapely_poly = Polygon(points)
    if not shapely_poly.is_valid:
        logging.warning(f"Room polygon invalid: {explain_validity(shapely_poly)}")
        return None
    if polygon_area(points) <= 0:
        logging.warning("Room polygon has zero area.")
        return None
    return points

def configure_module_logging(log_levels):
    """ Apply per-module verbosity, e.g. {"cutting": "DEBUG", "geometry": "OFF"}. """
    if not isinstance(log_levels, dict):
        logging.warning("Parameter 'logLevels' is not a dict, ignored.")
        return
    for module_name, level_name in log_levels.items():
        if module_name not in ENGINE_MODULES:
            logging.warning(f"logLevels: unknown module '{module_name}', ignored.")
            continue
        module_logger = logging.getLogger(module_name)
        level_name = str(level_name).upper()
        if level_name == "OFF":
            module_logger.disabled = True
        elif level_name in LOG_LEVELS:
            module_logger.disabled = False
            module_logger.setLevel(LOG_LEVELS[level_name])
        else:
            logging.warning(f"logLevels: unknown level '{level_name}' for '{module_name}', ignored.")

def parse_dimensions(parameters):
    """ Engine settings from the job parameters; lengths are converted to room units with 'scale'. """
    scale = float(parameters.get("scale", 1.0))
    if scale <= 0:
        raise ValueError(f"scale must be positive, got {scale}")
    length = float(parameters.get("length", 0.0))
    width = float(parameters.get("width", 0.0))
    if length <= 0 or width <= 0:
        raise ValueError(f"plank length and width must be positive, got {length} x {width}")
    time_budget = parameters.get("timeBudget")
    dims = PlankDimensions(
        length=length * scale,
        width=width * scale,
        gap=max(0.0, float(parameters.get("gap", 0.0))) * scale,
        min_row_offset=max(0.0, float(parameters.get("minRowOffset", 0.0))) * scale,
        cut_margin=max(0.0, float(parameters.get("cutMargin", CUT_MARGIN))),
        min_spare_length=float(parameters.get("minSpareLength", MIN_SPARE_LENGTH)) * scale,
        min_spare_width=float(parameters.get("minSpareWidth", MIN_SPARE_WIDTH)) * scale,
        max_row_retries=int(parameters.get("maxRowRetries", MAX_ROW_RETRIES)),
        max_candidates=int(parameters.get("maxCandidates", MAX_CANDIDATES)),
        time_budget=float(time_budget) if time_budget is not None else None,
        fill_gaps=bool(parameters.get("fillGaps", False)),
    )
    return dims, scale

def parse_seed(seed_in):
    if not isinstance(seed_in, dict):
        raise ValueError("seed must be an object with x, y and rotation")
    return float(seed_in["x"]), float(seed_in["y"]), float(seed_in.get("rotation", 0.0))

def polygon_to_svg(ring):
    """ SVG path string of a closed ring. """
    if not ring:
        return ""
    path = "M " + " L ".join(f"{x:.2f},{y:.2f}" for x, y in ring) + " Z"
    return path

def plank_to_json(plank, scale):
    info = {
        "id": plank.id,
        "kind": plank.kind,
        "x": plank.x,
        "y": plank.y,
        "rotation": plank.rotation,
        "length": plank.length / scale,
        "width": plank.width / scale,
        "originalLength": (plank.original_length or plank.length) / scale,
        "shape": [list(p) for p in footprint(plank)] if plank.shape else None,
        "cutLines": [[list(p) for p in line] for line in plank.cut_lines] if plank.cut_lines else None,
    }
    if _OUTPUT_SVG:
        info["svg"] = polygon_to_svg(footprint(plank))
    return info

def spare_to_json(spare, scale):
    return {
        "id": spare.id,
        "length": spare.length / scale,
        "width": spare.width / scale,
        "originalLength": (spare.original_length or spare.length) / scale,
    }

def main(job_file_path):
    # Logging setup
    log_file_path = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'tessellation_run.log')
    log_level_file = logging.DEBUG if _ENABLE_DEEP_DEBUG else logging.INFO
    for handler in logging.root.handlers[:]:
        logging.root.removeHandler(handler)
    logging.basicConfig(level=log_level_file,
                        format='%(asctime)s %(levelname)-8s %(message)s',
                        datefmt='%Y-%m-%d %H:%M:%S',
                        filename=log_file_path,
                        filemode='w')
    logging.info("run_tessellation.py v1.2 started.")
    logging.info(f"Log file: {log_file_path}")
    if not HAS_SHAPELY:
        format_error("Shapely library not found.")
    if not HAS_PYCLIPPER:
        format_error("Pyclipper library not found.")
    from metrics import CLIPPER_SCALE, summarize
    logging.info(f"Shapely & Pyclipper found. Clipper scale: {CLIPPER_SCALE}")

    # Load job
    start_time_loading = time.time()
    try:
        with open(job_file_path, 'r', encoding='utf-8') as f:
            job_data = json.load(f)
        logging.info(f"Job file '{job_file_path}' loaded ({time.time()-start_time_loading:.2f}s).")
    except Exception as e:
        format_error(f"Error loading job file: {e}", traceback.format_exc())
    if not job_data or not isinstance(job_data, dict):
        format_error("Job data empty or not an object.")

    parameters = job_data.get("parameters", {})
    if not isinstance(parameters, dict):
        format_error("Input 'parameters' is not a dict.")
    configure_module_logging(parameters.get("logLevels", {}))

    polygon = create_room_polygon(job_data.get("polygon"))
    if polygon is None:
        format_error("Input 'polygon' invalid.")
    try:
        dims, scale = parse_dimensions(parameters)
        seed_x, seed_y, seed_rotation = parse_seed(job_data.get("seed"))
    except (KeyError, TypeError, ValueError) as e:
        format_error(f"Invalid parameters: {e}", traceback.format_exc())
    logging.info(f"Parameters: plank={dims.length}x{dims.width}, gap={dims.gap}, minRowOffset={dims.min_row_offset}, "
                 f"scale={scale}, maxCandidates={dims.max_candidates}, fillGaps={dims.fill_gaps}")

    # Tessellate
    start_time_tessellation = time.time()
    seed = Plank(id="seed", x=seed_x, y=seed_y, rotation=seed_rotation, length=dims.length, width=dims.width)
    result = generate_tessellation(seed, polygon, dims)
    logging.info(f"Tessellation finished ({time.time()-start_time_tessellation:.2f}s).")

    logging.info("Formatting results...")
    statistics = summarize(result, polygon, dims)
    statistics["tessellationTimeSeconds"] = round(time.time() - start_time_tessellation, 2)
    statistics["loadingTimeSeconds"] = round(start_time_tessellation - start_time_loading, 2)
    rows_out = [{"index": r.index, "offset": r.offset / scale, "placed": r.placed, "reason": r.reason.value}
                for r in result.rows]
    result_json = {
        "success": True,
        "message": f"Tessellation complete. Planks: {statistics['totalPlanks']}, coverage {statistics['coveragePercent']}%.",
        "planks": [plank_to_json(p, scale) for p in result.planks],
        "spares": [spare_to_json(s, scale) for s in result.spares],
        "rows": rows_out,
        "statistics": statistics
    }
    logging.info("Sending result to stdout.")
    logging.info(f"Statistics: {json.dumps(statistics)}")
    logging.shutdown()
    print(json.dumps(result_json, separators=(',', ':')))

if __name__ == "__main__":
    start_time_script = time.time()
    try:
        if len(sys.argv) < 2:
            print(json.dumps({"success": False, "message": "Error: no job file path given."}), file=sys.stderr)
            sys.exit(1)
        job_file = sys.argv[1]
        main(job_file)
    except Exception as e:
        try:
            logging.exception(f"UNEXPECTED FATAL ERROR: {e}")
        except Exception:
            print(f"FATAL UNHANDLED EXCEPTION (logging failed): {e}\n{traceback.format_exc()}", file=sys.stderr)
        error_output = {"success": False, "message": f"Unexpected fatal error: {e}", "error_details": traceback.format_exc()}
        print(json.dumps(error_output))
        sys.exit(1)
    finally:
        end_time_script = time.time()
        total_duration = end_time_script - start_time_script
        print(f"INFO: run_tessellation.py finished in {total_duration:.2f} seconds.", file=sys.stderr)
        sys.stdout.flush()
        sys.stderr.flush()
