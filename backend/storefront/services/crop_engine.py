"""
crop_engine.py — Deterministic cover-fit crop geometry.

Translates a zoom/pan gesture over an image shown in a fixed-aspect frame
into the two representations consumed downstream:

  - a CSS transform for the live preview (frame space), and
  - a resize + extract rectangle for the server-side raster step (pixel space).

Both are derived from the same numbers and must select the same region of
the source image. Offsets (``x``, ``y``) are unscaled frame pixels in both
paths: they are added after scaling, never multiplied by the effective scale.

No auto-zoom heuristics: the only scale computed here is the minimal
cover-fit scale; everything else comes from the stored CropState.

Invalid dimensions never raise. They produce an identity result and a
warning, because these functions run on every drag frame.
"""

import hashlib
import logging
import math
from typing import Any, Optional

from storefront import config
from storefront.models.crop_models import (
    CoverTransform,
    CropState,
    ExtractionPlan,
    ImageSize,
    Rectangle,
)
from storefront.services.numeric_guards import (
    coerce_size,
    format_number,
    is_valid_size,
    round_half_up,
    sanitize_crop_state,
)
from storefront.services.perf_monitor import tracker

logger = logging.getLogger("storefront.crop")

IDENTITY_TRANSFORM = "none"


def _valid_size_or_none(size: Any) -> Optional[ImageSize]:
    return coerce_size(size) if is_valid_size(size) else None


def _fallback(kind: str, **context) -> None:
    tracker.increment(f"geometry_fallback.{kind}")
    logger.warning("invalid geometry input, using identity result",
                   extra={"geometry_op": kind, "geometry_input": context})


# ---------------------------------------------------------------------------
# Cover-fit scale
# ---------------------------------------------------------------------------

def compute_cover_scale(image_size: Any, container_size: Any) -> float:
    """
    Minimal uniform scale so the scaled image covers the container on both
    axes: ``max(cw / iw, ch / ih)``. Returns 1.0 for invalid sizes.
    """
    image = _valid_size_or_none(image_size)
    container = _valid_size_or_none(container_size)
    if image is None or container is None:
        _fallback("cover_scale", image=repr(image_size), container=repr(container_size))
        return 1.0
    scale = max(container.width / image.width, container.height / image.height)
    if not math.isfinite(scale) or scale <= 0:
        _fallback("cover_scale", image=repr(image_size), container=repr(container_size))
        return 1.0
    return scale


def get_default_crop() -> CropState:
    """Crop for a freshly loaded image: exact cover-fit, centred."""
    return CropState(scale=1.0, x=0.0, y=0.0)


# ---------------------------------------------------------------------------
# Clamping
# ---------------------------------------------------------------------------

def clamp_crop_state(crop: Any, image_size: Any, container_size: Any) -> CropState:
    """
    Project a crop onto the set of crops that keep the frame fully covered.

    - ``scale`` (zoom multiplier on the cover-fit scale) is bounded to
      [MIN_ZOOM, MAX_ZOOM], i.e. effective scale in
      [coverScaleMin, coverScaleMin * MAX_ZOOM].
    - ``|x| <= max(0, (scaledW - containerW) / 2)``, same for ``y``.

    Non-finite components are replaced by defaults first. Clamping is a
    projection: clamping an already clamped state returns it unchanged.
    """
    safe = sanitize_crop_state(crop, container_size)
    scale = min(config.MAX_ZOOM, max(config.MIN_ZOOM, safe.scale))

    image = _valid_size_or_none(image_size)
    container = _valid_size_or_none(container_size)
    if image is None or container is None:
        _fallback("clamp", image=repr(image_size), container=repr(container_size))
        return CropState(scale=scale, x=0.0, y=0.0)

    effective = compute_cover_scale(image, container) * scale
    max_x = max(0.0, (image.width * effective - container.width) / 2)
    max_y = max(0.0, (image.height * effective - container.height) / 2)

    return CropState(
        scale=scale,
        x=max(-max_x, min(max_x, safe.x)),
        y=max(-max_y, min(max_y, safe.y)),
    )


# ---------------------------------------------------------------------------
# Preview (CSS) transform
# ---------------------------------------------------------------------------

def generate_transform(effective_scale: float, x: float, y: float) -> str:
    """
    CSS transform for an image absolutely positioned at the frame centre
    (top/left 50%) with ``transform-origin: center center``.
    """
    return (
        f"translate(calc(-50% + {format_number(x)}px), "
        f"calc(-50% + {format_number(y)}px)) "
        f"scale({format_number(effective_scale)})"
    )


def compute_cover_transform(
    img_w: Any,
    img_h: Any,
    frame_w: Any,
    frame_h: Any,
    scale: Any = 1.0,
    x: Any = 0.0,
    y: Any = 0.0,
) -> CoverTransform:
    """
    Visual transform for the live preview.

    ``base_scale`` is the cover-fit scale of the image in the frame,
    ``effective_scale = base_scale * scale``. The image centre is translated
    by ``(x, y)`` frame pixels, then scaled by ``effective_scale``.
    """
    image = _valid_size_or_none((img_w, img_h))
    frame = _valid_size_or_none((frame_w, frame_h))
    if image is None or frame is None:
        _fallback("cover_transform", image=repr((img_w, img_h)), frame=repr((frame_w, frame_h)))
        return CoverTransform(transform=IDENTITY_TRANSFORM, base_scale=1.0, effective_scale=1.0)

    crop = sanitize_crop_state({"scale": scale, "x": x, "y": y})
    base_scale = compute_cover_scale(image, frame)
    effective_scale = base_scale * crop.scale
    if not math.isfinite(effective_scale):
        _fallback("cover_transform", scale=repr(scale))
        return CoverTransform(transform=IDENTITY_TRANSFORM, base_scale=1.0, effective_scale=1.0)
    return CoverTransform(
        transform=generate_transform(effective_scale, crop.x, crop.y),
        base_scale=base_scale,
        effective_scale=effective_scale,
        offset_x=crop.x,
        offset_y=crop.y,
    )


# ---------------------------------------------------------------------------
# Raster extraction
# ---------------------------------------------------------------------------

def _full_frame_plan(orig: Optional[ImageSize], target: Optional[ImageSize]) -> ExtractionPlan:
    if target is not None:
        w, h = max(1, round_half_up(target.width)), max(1, round_half_up(target.height))
    elif orig is not None:
        w, h = max(1, round_half_up(orig.width)), max(1, round_half_up(orig.height))
    else:
        w, h = 1, 1
    return ExtractionPlan(
        resize_width=w,
        resize_height=h,
        rect=Rectangle(left=0, top=0, width=w, height=h),
        base_scale=1.0,
        effective_scale=1.0,
    )


def plan_extraction(
    orig_w: Any,
    orig_h: Any,
    target_w: Any,
    target_h: Any,
    scale: Any = 1.0,
    x: Any = 0.0,
    y: Any = 0.0,
) -> ExtractionPlan:
    """
    Resize + extract instructions reproducing the preview crop on the
    original raster.

    1. base scale = cover-fit of original into target
    2. effective = base * scale
    3. resize to round(orig * effective)
    4. top-left = resized/2 - target/2 + offset (offset unscaled)
    5. clamp into [0, resized - target]
    """
    orig = _valid_size_or_none((orig_w, orig_h))
    target = _valid_size_or_none((target_w, target_h))
    if orig is None or target is None:
        _fallback("extract_rect", orig=repr((orig_w, orig_h)), target=repr((target_w, target_h)))
        return _full_frame_plan(orig, target)

    crop = sanitize_crop_state({"scale": scale, "x": x, "y": y})
    tw = max(1, round_half_up(target.width))
    th = max(1, round_half_up(target.height))

    base_scale = compute_cover_scale(orig, target)
    effective_scale = base_scale * crop.scale
    raw_w = orig.width * effective_scale
    raw_h = orig.height * effective_scale
    if not (math.isfinite(raw_w) and math.isfinite(raw_h)) \
            or max(raw_w, raw_h) > config.MAX_RASTER_EDGE:
        _fallback("extract_rect", orig=repr((orig_w, orig_h)), scale=repr(scale))
        return _full_frame_plan(orig, target)
    resized_w = max(1, round_half_up(raw_w))
    resized_h = max(1, round_half_up(raw_h))

    width = min(tw, resized_w)
    height = min(th, resized_h)
    left = round_half_up(resized_w / 2 - tw / 2 + crop.x)
    top = round_half_up(resized_h / 2 - th / 2 + crop.y)
    left = min(max(left, 0), resized_w - width)
    top = min(max(top, 0), resized_h - height)

    return ExtractionPlan(
        resize_width=resized_w,
        resize_height=resized_h,
        rect=Rectangle(left=left, top=top, width=width, height=height),
        base_scale=base_scale,
        effective_scale=effective_scale,
    )


def compute_extract_rect(
    orig_w: Any,
    orig_h: Any,
    target_w: Any,
    target_h: Any,
    scale: Any = 1.0,
    x: Any = 0.0,
    y: Any = 0.0,
) -> Rectangle:
    """Pixel rectangle to cut from the resized original; see plan_extraction."""
    return plan_extraction(orig_w, orig_h, target_w, target_h, scale, x, y).rect


# ---------------------------------------------------------------------------
# Derived image naming
# ---------------------------------------------------------------------------

def crop_cache_key(product_id: str, image_path: str, crop: Any) -> str:
    """
    8-hex-char cache-busting key for a derived image.

    Includes the product id so two products sharing a source image never
    share a derived file.
    """
    safe = sanitize_crop_state(crop)
    raw = (
        f"{product_id}_{image_path}_{format_number(safe.scale)}"
        f"_{format_number(safe.x)}_{format_number(safe.y)}"
    )
    return hashlib.md5(raw.encode("utf-8")).hexdigest()[:8]


def derived_image_path(product_id: str, size_name: str, crop_hash: str, timestamp_ms: int) -> str:
    return (
        f"{config.DERIVED_IMAGE_PREFIX}/{product_id}/"
        f"{size_name}_{crop_hash}_{timestamp_ms}.{config.DERIVED_IMAGE_FORMAT}"
    )
