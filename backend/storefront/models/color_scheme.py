"""
Colour schemes for configured holders.

Incoming configurator payloads come in three shapes. They are recognised once
at the boundary (``parse_color_scheme``) and carried as an explicit tagged
variant from then on:

  four_part          glass holder: base, arm, module (adapter), pattern
  three_part_legacy  glass holder saved before the adapter was configurable
  bottle_holder      only the pattern is configurable, other parts black

Part rules (physical manufacturing constraints):
  - base / arm / pattern: the seven canonical colours, never grey
  - module (adapter):      red, black, iceBlue, green, grey
"""
import logging
from collections.abc import Mapping
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

logger = logging.getLogger("storefront.colors")

CANONICAL_COLOR_IDS: List[str] = [
    "mint",
    "green",
    "purple",
    "iceBlue",
    "darkBlue",
    "red",
    "black",
]

ADAPTER_ALLOWED_COLOR_IDS: List[str] = ["red", "black", "iceBlue", "green", "grey"]

COLOR_HEX: Dict[str, str] = {
    "mint": "#a2d9ce",
    "green": "#145a32",
    "purple": "#4a235a",
    "iceBlue": "#5499c7",
    "darkBlue": "#1b2631",
    "red": "#b03a2e",
    "black": "#121212",
    "grey": "#888888",
}

FALLBACK_COLOR = "black"
UNKNOWN_HEX = "#cccccc"


class ColorSchemeError(ValueError):
    def __init__(self, errors: List[str]):
        self.errors = errors
        super().__init__("; ".join(errors))


class FourPartColors(BaseModel):
    model_config = {"frozen": True}

    kind: Literal["four_part"] = "four_part"
    base: str
    arm: str
    module: str
    pattern: str


class ThreePartLegacyColors(BaseModel):
    model_config = {"frozen": True}

    kind: Literal["three_part_legacy"] = "three_part_legacy"
    base: str
    arm: str
    pattern: str

    def to_four_part(self) -> FourPartColors:
        return FourPartColors(base=self.base, arm=self.arm, module=FALLBACK_COLOR, pattern=self.pattern)


class BottleHolderColors(BaseModel):
    model_config = {"frozen": True}

    kind: Literal["bottle_holder"] = "bottle_holder"
    pattern: str

    def to_four_part(self) -> FourPartColors:
        return FourPartColors(
            base=FALLBACK_COLOR, arm=FALLBACK_COLOR, module=FALLBACK_COLOR, pattern=self.pattern
        )


ColorScheme = Annotated[
    Union[FourPartColors, ThreePartLegacyColors, BottleHolderColors],
    Field(discriminator="kind"),
]

_PARTS_BY_KIND: Dict[str, List[str]] = {
    "four_part": ["base", "arm", "module", "pattern"],
    "three_part_legacy": ["base", "arm", "pattern"],
    "bottle_holder": ["pattern"],
}

_MODELS_BY_KIND = {
    "four_part": FourPartColors,
    "three_part_legacy": ThreePartLegacyColors,
    "bottle_holder": BottleHolderColors,
}


def is_color_allowed_for_part(part: str, color_id: str) -> bool:
    if part == "module":
        return color_id in ADAPTER_ALLOWED_COLOR_IDS
    return color_id in CANONICAL_COLOR_IDS


def color_hex(color_id: str) -> str:
    return COLOR_HEX.get(color_id, UNKNOWN_HEX)


def _detect_kind(raw: Mapping, variant: Optional[str]) -> str:
    if raw.get("kind") in _MODELS_BY_KIND:
        return raw["kind"]
    if variant == "bottle_holder":
        return "bottle_holder"
    if "module" in raw:
        return "four_part"
    return "three_part_legacy"


def _normalize_part(part: str, color_id: Any, errors: List[str]) -> Optional[str]:
    if not color_id or not isinstance(color_id, str):
        errors.append(f"Missing required color: {part}")
        return None
    if is_color_allowed_for_part(part, color_id):
        return color_id

    if part == "module":
        if color_id == "mint":
            logger.warning("migrating legacy adapter color 'mint' -> 'grey'")
            return "grey"
        logger.warning(
            f"invalid adapter color {color_id!r}, falling back to {FALLBACK_COLOR}"
        )
        return FALLBACK_COLOR

    if color_id == "grey":
        logger.error(f"grey is not allowed for {part}, falling back to {FALLBACK_COLOR}")
        return FALLBACK_COLOR

    errors.append(
        f"Invalid color ID for {part}: {color_id!r} "
        f"(must be one of: {', '.join(CANONICAL_COLOR_IDS)})"
    )
    return None


def parse_color_scheme(raw: Any, variant: Optional[str] = None):
    """
    Recognise and validate a raw colour mapping.

    Returns one of the tagged variants. Raises ColorSchemeError listing every
    unrecoverable problem; recoverable ones (legacy adapter mint, grey on a
    non-adapter part, unknown adapter colour) are corrected and logged.
    """
    if isinstance(raw, (FourPartColors, ThreePartLegacyColors, BottleHolderColors)):
        return raw
    if not isinstance(raw, Mapping):
        raise ColorSchemeError([f"colors must be an object, got {type(raw).__name__}"])

    kind = _detect_kind(raw, variant)
    errors: List[str] = []
    values = {part: _normalize_part(part, raw.get(part), errors) for part in _PARTS_BY_KIND[kind]}
    if errors:
        raise ColorSchemeError(errors)
    return _MODELS_BY_KIND[kind](**values)
