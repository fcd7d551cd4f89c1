"""Crop routes — cover-fit scale, clamping, preview transform, raster plan, parity."""
import logging
import time
from typing import List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from storefront import config
from storefront.models.crop_models import ImageSize
from storefront.services.crop_engine import (
    clamp_crop_state,
    compute_cover_scale,
    compute_cover_transform,
    crop_cache_key,
    derived_image_path,
    plan_extraction,
)
from storefront.services.crop_parity import ParityParams, run_parity_check, sweep_frame_sizes

router = APIRouter(prefix="/api/crop", tags=["Crop Geometry"])
logger = logging.getLogger("storefront.api.crop")


# ─── Pydantic schemas ────────────────────────────────────────────────────────
# Numbers are accepted unconstrained: the engine itself falls back on
# non-positive or non-finite input.

class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SizeIn(_CamelModel):
    width: float
    height: float

    def to_size(self) -> ImageSize:
        return ImageSize(width=self.width, height=self.height)


class CropIn(_CamelModel):
    scale: Optional[float] = 1.0
    x: Optional[float] = 0.0
    y: Optional[float] = 0.0


class CoverScaleRequest(_CamelModel):
    image: SizeIn
    container: SizeIn


class ClampRequest(_CamelModel):
    crop: CropIn
    image: SizeIn
    container: SizeIn


class TransformRequest(_CamelModel):
    img_w: float
    img_h: float
    frame_w: float
    frame_h: float
    scale: Optional[float] = 1.0
    x: Optional[float] = 0.0
    y: Optional[float] = 0.0


class ExtractRectRequest(_CamelModel):
    orig_w: float
    orig_h: float
    target_w: float
    target_h: float
    scale: Optional[float] = 1.0
    x: Optional[float] = 0.0
    y: Optional[float] = 0.0


class ParityRequest(_CamelModel):
    img_w: Optional[float] = None
    img_h: Optional[float] = None
    target_w: Optional[float] = None
    target_h: Optional[float] = None
    scale: Optional[float] = None
    x: Optional[float] = None
    y: Optional[float] = None
    tolerance_px: Optional[float] = None
    sweep_widths: List[int] = []


class ThumbnailPlanRequest(_CamelModel):
    product_id: str
    image_path: str
    orig_w: float
    orig_h: float
    size: str = "shop"
    crop: CropIn = CropIn()
    timestamp_ms: Optional[int] = None


# ─── Routes ──────────────────────────────────────────────────────────────────

@router.post("/cover-scale")
async def cover_scale(body: CoverScaleRequest):
    return {"coverScale": compute_cover_scale(body.image.to_size(), body.container.to_size())}


@router.post("/clamp")
async def clamp(body: ClampRequest):
    crop = clamp_crop_state(
        body.crop.model_dump(), body.image.to_size(), body.container.to_size()
    )
    return {"crop": crop.to_dict()}


@router.post("/transform")
async def transform(body: TransformRequest):
    result = compute_cover_transform(
        body.img_w, body.img_h, body.frame_w, body.frame_h, body.scale, body.x, body.y
    )
    return result.to_dict()


@router.post("/extract-rect")
async def extract_rect(body: ExtractRectRequest):
    plan = plan_extraction(
        body.orig_w, body.orig_h, body.target_w, body.target_h, body.scale, body.x, body.y
    )
    return plan.to_dict()


@router.post("/parity")
async def parity(body: Optional[ParityRequest] = None):
    """
    Run the preview/raster parity check. Missing parameters fall back to the
    reference case; ``sweepWidths`` repeats it for same-aspect frames.
    """
    body = body or ParityRequest()
    overrides = body.model_dump(
        include={"img_w", "img_h", "target_w", "target_h", "scale", "x", "y"},
        exclude_none=True,
    )
    params = ParityParams(**{**config.PARITY_REFERENCE_CASE, **overrides})

    report = run_parity_check(params, body.tolerance_px)
    sweep = [r.to_dict() for r in sweep_frame_sizes(params, body.sweep_widths, body.tolerance_px)]
    return {
        "match": report.match and all(r["match"] for r in sweep),
        "report": report.to_dict(),
        "sweep": sweep,
    }


@router.post("/thumbnail-plan")
async def thumbnail_plan(body: ThumbnailPlanRequest):
    """
    Instructions for deriving a named-size image from an original: the
    resize/extract plan, the cache key and the storage path.
    """
    target = config.THUMBNAIL_SIZES.get(body.size)
    if target is None:
        raise HTTPException(
            status_code=400,
            detail=f"Unknown size '{body.size}'. Use one of: {', '.join(config.THUMBNAIL_SIZES)}",
        )
    crop = body.crop.model_dump()
    plan = plan_extraction(
        body.orig_w, body.orig_h, target[0], target[1],
        crop["scale"], crop["x"], crop["y"],
    )
    crop_hash = crop_cache_key(body.product_id, body.image_path, crop)
    timestamp_ms = body.timestamp_ms if body.timestamp_ms is not None else int(time.time() * 1000)
    logger.info(f"thumbnail plan {body.size} for product {body.product_id}")
    return {
        "size": body.size,
        "target": {"width": target[0], "height": target[1]},
        "plan": plan.to_dict(),
        "cacheKey": crop_hash,
        "derivedPath": derived_image_path(body.product_id, body.size, crop_hash, timestamp_ms),
    }
