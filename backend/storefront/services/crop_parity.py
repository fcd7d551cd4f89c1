"""
crop_parity.py — Conformance harness for preview/raster crop parity.

Computes the crop twice from the same parameters:

  - CSS side: from ``compute_cover_transform`` alone. The visible region is
    reconstructed the way the browser lays it out (image scaled by the
    effective scale around its centre, frame-pixel offset added after
    scaling).
  - Raster side: ``plan_extraction`` / ``compute_extract_rect``.

and reports whether the two top-left corners agree within a pixel tolerance.
A mismatch means one of the two paths broke the unscaled-offset convention.
"""

import logging
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Iterable, List, Optional

from storefront import config
from storefront.services.crop_engine import compute_cover_transform, plan_extraction
from storefront.services.numeric_guards import is_valid_size, round_half_up
from storefront.services.perf_monitor import tracker

logger = logging.getLogger("storefront.crop.parity")


@dataclass(frozen=True)
class ParityParams:
    img_w: float
    img_h: float
    target_w: float
    target_h: float
    scale: float = 1.0
    x: float = 0.0
    y: float = 0.0

    @classmethod
    def reference(cls) -> "ParityParams":
        return cls(**config.PARITY_REFERENCE_CASE)


@dataclass
class ParityReport:
    params: Dict[str, Any]
    valid_input: bool
    match: bool
    tolerance_px: float
    css: Dict[str, Any] = field(default_factory=dict)
    raster: Dict[str, Any] = field(default_factory=dict)
    diff: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def run_parity_check(params: ParityParams, tolerance_px: Optional[float] = None) -> ParityReport:
    tolerance = config.PARITY_TOLERANCE_PX if tolerance_px is None else tolerance_px
    tracker.increment("parity.checks")

    transform = compute_cover_transform(
        params.img_w, params.img_h, params.target_w, params.target_h,
        params.scale, params.x, params.y,
    )
    plan = plan_extraction(
        params.img_w, params.img_h, params.target_w, params.target_h,
        params.scale, params.x, params.y,
    )
    raster = {
        "resized": {"width": plan.resize_width, "height": plan.resize_height},
        "rect": plan.rect.to_dict(),
        "normalized": plan.rect.normalized(plan.resize_width, plan.resize_height),
        "effectiveScale": plan.effective_scale,
    }

    if not (is_valid_size((params.img_w, params.img_h))
            and is_valid_size((params.target_w, params.target_h))):
        tracker.increment("parity.invalid_input")
        return ParityReport(
            params=asdict(params), valid_input=False, match=False,
            tolerance_px=tolerance, css=transform.to_dict(), raster=raster,
        )

    scaled_w = params.img_w * transform.effective_scale
    scaled_h = params.img_h * transform.effective_scale
    css_left = round_half_up(scaled_w / 2 - params.target_w / 2 + transform.offset_x)
    css_top = round_half_up(scaled_h / 2 - params.target_h / 2 + transform.offset_y)
    css = {
        "transform": transform.transform,
        "baseScale": transform.base_scale,
        "effectiveScale": transform.effective_scale,
        "scaled": {"width": scaled_w, "height": scaled_h},
        "left": css_left,
        "top": css_top,
        "normalized": {
            "left": css_left / scaled_w,
            "top": css_top / scaled_h,
            "width": params.target_w / scaled_w,
            "height": params.target_h / scaled_h,
        },
    }

    diff = {
        "left": float(css_left - plan.rect.left),
        "top": float(css_top - plan.rect.top),
    }
    match = abs(diff["left"]) <= tolerance and abs(diff["top"]) <= tolerance
    if not match:
        tracker.increment("parity.mismatches")
        logger.warning("crop parity mismatch",
                       extra={"parity_params": asdict(params), "parity_diff": diff})

    return ParityReport(
        params=asdict(params), valid_input=True, match=match,
        tolerance_px=tolerance, css=css, raster=raster, diff=diff,
    )


def sweep_frame_sizes(
    base: ParityParams,
    frame_widths: Iterable[int],
    tolerance_px: Optional[float] = None,
) -> List[ParityReport]:
    """
    Re-run the check for several frame sizes sharing ``base``'s aspect ratio
    (heights derived from the base target aspect). Offsets are frame pixels,
    so they are rescaled with the frame to describe the same crop.
    """
    aspect = base.target_h / base.target_w
    reports = []
    for width in frame_widths:
        ratio = width / base.target_w
        params = ParityParams(
            img_w=base.img_w, img_h=base.img_h,
            target_w=width, target_h=round_half_up(width * aspect),
            scale=base.scale, x=base.x * ratio, y=base.y * ratio,
        )
        reports.append(run_parity_check(params, tolerance_px))
    return reports
