"""Result types produced by the design pricing engine."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class LineType(str, Enum):
    BASE = "base"
    CUSTOMIZATION = "customization"
    ADDON = "addon"


# wire name of the reference key for each line type
_KEY_FIELD = {
    LineType.BASE: "sku",
    LineType.CUSTOMIZATION: "feeKey",
    LineType.ADDON: "pricingKey",
}


class VerificationError(str, Enum):
    PRICEBOOK_VERSION_MISMATCH = "PRICEBOOK_VERSION_MISMATCH"
    PRICING_CALCULATION_ERROR = "PRICING_CALCULATION_ERROR"
    SIGNATURE_MISMATCH = "SIGNATURE_MISMATCH"


@dataclass(frozen=True)
class BreakdownLine:
    type: LineType
    key: str
    title: str
    qty: int
    unit_price: float
    line_total: float
    currency: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            _KEY_FIELD[self.type]: self.key,
            "title": self.title,
            "qty": self.qty,
            "unitPrice": self.unit_price,
            "lineTotal": self.line_total,
            "currency": self.currency,
        }


@dataclass(frozen=True)
class PricingResult:
    """
    Authoritative price breakdown of one design.

    ``total == base_total + customization_fee + addons_total`` exactly; no
    currency rounding happens here (display concern).
    """
    valid: bool
    errors: Tuple[str, ...]
    currency: str
    base_total: float
    customization_fee: float
    addons_total: float
    total: float
    breakdown_lines: Tuple[BreakdownLine, ...]
    pricebook_version: str
    pricing_signature: str = ""
    calculated_at: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": list(self.errors),
            "currency": self.currency,
            "baseTotal": self.base_total,
            "customizationFee": self.customization_fee,
            "addonsTotal": self.addons_total,
            "total": self.total,
            "breakdownLines": [line.to_dict() for line in self.breakdown_lines],
            "pricebookVersion": self.pricebook_version,
            "pricingSignature": self.pricing_signature,
            "calculatedAt": self.calculated_at,
        }


@dataclass(frozen=True)
class VerificationResult:
    valid: bool
    error: Optional[VerificationError] = None
    details: Dict[str, Any] = field(default_factory=dict)
    server_pricing: Optional[PricingResult] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"valid": self.valid}
        if self.error is not None:
            out["error"] = self.error.value
            out["details"] = self.details
        out["serverPricing"] = self.server_pricing.to_dict() if self.server_pricing else None
        return out


class PricingError(ValueError):
    """Raised where a priced design is required but pricing failed."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__(f"Pricing errors: {', '.join(self.errors)}")
