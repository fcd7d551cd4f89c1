"""
Storefront engine configuration — single source of truth for crop limits,
output sizes, pricing defaults and service settings.

Import from here in services and routes rather than hardcoding values.
Environment variables override the defaults where noted.
"""
from __future__ import annotations

import os


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


# ── Crop geometry ──────────────────────────────────────────────────────────────

# Hard upper bound for the user zoom multiplier on top of the cover-fit scale
MAX_ZOOM: float = 2.5

# Lower bound for the user zoom multiplier (1.0 == exact cover-fit)
MIN_ZOOM: float = 1.0

# Largest resized edge (px) a raster plan may request; larger plans fall back
MAX_RASTER_EDGE: int = 100_000

# Canonical frame aspect ratio used across shop cards, admin list and editor
FRAME_ASPECT: tuple[int, int] = (4, 5)

# Named derived-image sizes handed to the external raster step (all 4:5)
THUMBNAIL_SIZES: dict[str, tuple[int, int]] = {
    "thumb": (240, 300),     # admin list
    "shop":  (900, 1125),    # shop cards (retina)
}

# Storage prefix for server-derived crops
DERIVED_IMAGE_PREFIX: str = "derived"
DERIVED_IMAGE_FORMAT: str = "webp"

# UI/raster parity: maximum allowed per-axis disagreement after rounding
PARITY_TOLERANCE_PX: float = _env_float("PARITY_TOLERANCE_PX", 1.0)

# Reference case checked by the parity harness when no params are given
PARITY_REFERENCE_CASE: dict[str, float] = {
    "img_w": 1920,
    "img_h": 1440,
    "target_w": 900,
    "target_h": 1125,
    "scale": 1.9,
    "x": -49,
    "y": -51,
}


# ── Pricing ────────────────────────────────────────────────────────────────────

DEFAULT_CURRENCY: str = os.getenv("DEFAULT_CURRENCY", "EUR")

# Optional JSON pricebook; the built-in tables are used when unset
PRICEBOOK_PATH: str = os.getenv("PRICEBOOK_PATH", "")

# Business rule: one configured design == one cart line, quantity fixed
CART_ITEM_QUANTITY: int = 1


# ── Service ────────────────────────────────────────────────────────────────────

SERVICE_NAME: str = "storefront-engines"
SERVICE_VERSION: str = "1.0.0"

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
LOG_JSON: bool = os.getenv("LOG_FORMAT", "json").lower() != "text"

_cors_default = "http://localhost:3000,http://localhost:8000"
CORS_ORIGINS: list[str] = [
    o.strip() for o in os.getenv("CORS_ORIGINS", _cors_default).split(",") if o.strip()
]
