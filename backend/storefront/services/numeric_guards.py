"""
numeric_guards.py — NaN / Infinity defence for the geometry pipeline.

Every public geometry function runs its inputs through these helpers first so
that a single bad frame (image not loaded yet, container measured at 0 px,
a persisted crop with a null field) degrades to a safe default instead of
propagating NaN into CSS or raster coordinates.

Nothing here raises on bad numbers.
"""

import logging
import math
from collections.abc import Mapping
from typing import Any, List, Optional

from storefront.models.crop_models import CropState, ImageSize, LegacyCropState

logger = logging.getLogger("storefront.guards")

DEFAULT_CROP = CropState(scale=1.0, x=0.0, y=0.0)


def is_finite_number(value: Any) -> bool:
    """True for real int/float values that are finite. ``bool`` is rejected."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def finite_or(value: Any, default: float) -> float:
    return float(value) if is_finite_number(value) else default


def positive_or(value: Any, default: float) -> float:
    return float(value) if is_finite_number(value) and value > 0 else default


def round_half_up(value: float) -> int:
    """
    Pixel rounding shared by the preview and raster call sites.

    Rounds .5 towards +inf (browser ``Math.round`` semantics). Python's
    built-in ``round`` is half-to-even and would make the two sites disagree
    on exact halves. Non-finite input rounds to 0 rather than raising.
    """
    if not math.isfinite(value):
        return 0
    return int(math.floor(value + 0.5))


def format_number(value: float) -> str:
    """
    Shortest text for a finite number; integral values print without ``.0``
    so CSS strings, cache keys and signatures read the same as the browser's.
    """
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return repr(value)


def _read(obj: Any, key: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, Mapping):
        return obj.get(key)
    return getattr(obj, key, None)


def coerce_size(size: Any) -> Optional[ImageSize]:
    """Accept an ImageSize, a (w, h) pair or a {"width", "height"} mapping."""
    if size is None:
        return None
    if isinstance(size, ImageSize):
        return size
    if isinstance(size, (tuple, list)) and len(size) == 2:
        w, h = size
    else:
        w, h = _read(size, "width"), _read(size, "height")
    if not (is_finite_number(w) and is_finite_number(h)):
        return None
    return ImageSize(float(w), float(h))


def is_valid_size(size: Any) -> bool:
    coerced = coerce_size(size)
    return coerced is not None and coerced.width > 0 and coerced.height > 0


def _is_legacy(crop: Any) -> bool:
    if isinstance(crop, LegacyCropState):
        return True
    if isinstance(crop, CropState) or crop is None:
        return False
    has_pixels = _read(crop, "x") is not None or _read(crop, "y") is not None
    has_fractions = _read(crop, "nx") is not None or _read(crop, "ny") is not None
    return has_fractions and not has_pixels


def is_valid_crop_state(crop: Any) -> bool:
    if crop is None:
        return False
    scale = _read(crop, "scale")
    if not (is_finite_number(scale) and scale > 0):
        return False
    keys = ("nx", "ny") if _is_legacy(crop) else ("x", "y")
    return all(is_finite_number(_read(crop, k)) for k in keys)


def sanitize_crop_state(crop: Any, container: Any = None) -> CropState:
    """
    Return a CropState with every component finite and ``scale > 0``.

    Handles both persisted forms: pixel offsets (``x``, ``y``) and the legacy
    container-relative offsets (``nx``, ``ny``). Legacy offsets are resolved
    against ``container``; without a valid container they fall back to 0.
    """
    replaced: List[str] = []

    raw_scale = _read(crop, "scale")
    scale = positive_or(raw_scale, DEFAULT_CROP.scale)
    if scale != raw_scale:
        replaced.append("scale")

    if _is_legacy(crop):
        nx = finite_or(_read(crop, "nx"), 0.0)
        ny = finite_or(_read(crop, "ny"), 0.0)
        size = coerce_size(container)
        if size is not None and is_valid_size(size):
            legacy = LegacyCropState(scale=scale, nx=nx, ny=ny)
            result = legacy.to_pixels(size)
        else:
            replaced.append("container")
            result = CropState(scale=scale, x=0.0, y=0.0)
    else:
        raw_x, raw_y = _read(crop, "x"), _read(crop, "y")
        x = finite_or(raw_x, DEFAULT_CROP.x)
        y = finite_or(raw_y, DEFAULT_CROP.y)
        if raw_x is not None and x != raw_x:
            replaced.append("x")
        if raw_y is not None and y != raw_y:
            replaced.append("y")
        result = CropState(scale=scale, x=x, y=y)

    if crop is not None and replaced:
        logger.warning(
            "crop state sanitized",
            extra={"replaced_fields": replaced, "geometry_input": repr(crop)},
        )
    return result
