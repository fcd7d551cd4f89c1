"""
Crop geometry value types.

All types are immutable; engines return new instances instead of mutating.
Offsets (``x``, ``y``) are always unscaled frame-pixel quantities.
"""
from dataclasses import dataclass, asdict
from typing import Any, Dict


@dataclass(frozen=True)
class ImageSize:
    width: float
    height: float

    @property
    def aspect(self) -> float:
        return self.width / self.height


@dataclass(frozen=True)
class CropState:
    """User zoom/pan over an image: ``scale`` multiplies the cover-fit scale."""
    scale: float = 1.0
    x: float = 0.0
    y: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class LegacyCropState:
    """Older persisted form: offsets as a fraction of the container size."""
    scale: float = 1.0
    nx: float = 0.0
    ny: float = 0.0

    def to_pixels(self, container: ImageSize) -> CropState:
        return CropState(
            scale=self.scale,
            x=self.nx * container.width,
            y=self.ny * container.height,
        )


@dataclass(frozen=True)
class Rectangle:
    """Integer extraction rectangle in resized-image pixel space."""
    left: int
    top: int
    width: int
    height: int

    def normalized(self, space_w: float, space_h: float) -> Dict[str, float]:
        """Rectangle as fractions of the pixel space it was cut from."""
        return {
            "left": self.left / space_w,
            "top": self.top / space_h,
            "width": self.width / space_w,
            "height": self.height / space_h,
        }

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass(frozen=True)
class CoverTransform:
    transform: str
    base_scale: float
    effective_scale: float
    offset_x: float = 0.0
    offset_y: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transform": self.transform,
            "baseScale": self.base_scale,
            "effectiveScale": self.effective_scale,
            "offsetX": self.offset_x,
            "offsetY": self.offset_y,
        }


@dataclass(frozen=True)
class ExtractionPlan:
    """Resize-then-extract instructions for the external raster step."""
    resize_width: int
    resize_height: int
    rect: Rectangle
    base_scale: float
    effective_scale: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "resize": {"width": self.resize_width, "height": self.resize_height},
            "extract": self.rect.to_dict(),
            "baseScale": self.base_scale,
            "effectiveScale": self.effective_scale,
        }
