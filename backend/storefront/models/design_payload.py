"""
DesignPayload v1 — the frozen, priceable representation of a configured design.

Built progressively by the configurator UI and frozen at "add to cart" time.
Models are immutable: duplicating a design creates a new ``designId`` via
``duplicate_design`` instead of mutating the original.

Field names are snake_case in Python and camelCase on the wire.
"""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional, Tuple

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
)
from pydantic.alias_generators import to_camel

from storefront.models.color_scheme import ColorScheme, parse_color_scheme

PAYLOAD_VERSION = "1.0"
DEFAULT_FEE_KEY = "CUSTOM_DESIGN_FEE"


class ProductFamily(str, Enum):
    GLASSHOLDER = "GLASSHOLDER"
    BOTTLEHOLDER = "BOTTLEHOLDER"
    WINEHOLDER = "WINEHOLDER"
    GASTRO = "GASTRO"


class _PayloadModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


def _non_blank(value: str) -> str:
    if not value.strip():
        raise ValueError("must be a non-empty string")
    return value


NonBlankStr = Annotated[str, AfterValidator(_non_blank)]


class BaseComponent(_PayloadModel):
    sku: NonBlankStr
    qty: int = Field(ge=1)
    title: Optional[str] = None
    product_key: Optional[str] = None
    variant_id: Optional[str] = None


class Customization(_PayloadModel):
    enabled: bool = False
    fee_key: NonBlankStr = DEFAULT_FEE_KEY
    complexity: Optional[str] = None
    notes: Optional[str] = None


class PremiumAddon(_PayloadModel):
    pricing_key: NonBlankStr
    qty: int = Field(ge=1)
    addon_id: Optional[str] = None
    label: Optional[str] = None
    unit: Optional[str] = None
    material_id: Optional[str] = None


class DesignPayload(_PayloadModel):
    version: str = PAYLOAD_VERSION
    design_id: NonBlankStr
    configurator_version: str = "1.0.0"
    product_family: ProductFamily
    base_components: Tuple[BaseComponent, ...] = Field(min_length=1)
    customization: Customization = Field(default_factory=Customization)
    premium_addons: Tuple[PremiumAddon, ...] = ()
    colors: Optional[ColorScheme] = None
    scene_state: Dict[str, Any] = Field(default_factory=dict)
    previews: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("version")
    @classmethod
    def check_version(cls, value: str) -> str:
        if value != PAYLOAD_VERSION:
            raise ValueError(f'version must be "{PAYLOAD_VERSION}"')
        return value

    @field_validator("colors", mode="before")
    @classmethod
    def parse_colors(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            return None
        family = info.data.get("product_family")
        variant = "bottle_holder" if family == ProductFamily.BOTTLEHOLDER else None
        return parse_color_scheme(value, variant).model_dump()

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


def _format_error(error: Dict[str, Any]) -> str:
    loc = ".".join(str(part) for part in error.get("loc", ()))
    return f"{loc}: {error.get('msg')}" if loc else str(error.get("msg"))


def validate_design_payload(raw: Any) -> Tuple[Optional[DesignPayload], List[str]]:
    """
    Boundary validation. Returns ``(payload, [])`` or ``(None, errors)`` with
    one readable message per problem.
    """
    if not isinstance(raw, dict):
        return None, [f"payload must be an object, got {type(raw).__name__}"]
    try:
        return DesignPayload.model_validate(raw), []
    except ValidationError as exc:
        return None, [_format_error(e) for e in exc.errors()]


def duplicate_design(payload: DesignPayload) -> DesignPayload:
    now = datetime.now(timezone.utc)
    return payload.model_copy(
        update={"design_id": str(uuid.uuid4()), "created_at": now, "updated_at": now}
    )
