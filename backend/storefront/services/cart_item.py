"""
cart_item.py — Configured designs as cart line items.

Business rules:
  - 1 design == 1 cart item, quantity fixed at 1
  - more of the same design means duplicating it (new designId), never
    raising the quantity
  - a cart item only exists for a validly priced design
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from storefront import config
from storefront.models.design_payload import DesignPayload, ProductFamily, duplicate_design
from storefront.models.pricing_models import PricingError
from storefront.services.pricing_engine import DesignPricingEngine

CART_ITEM_TYPE = "CONFIGURATOR_DESIGN"

_FAMILY_NAMES = {
    ProductFamily.GLASSHOLDER: "Glashalter",
    ProductFamily.BOTTLEHOLDER: "Flaschenhalter",
    ProductFamily.WINEHOLDER: "Weinglas-Halter",
    ProductFamily.GASTRO: "Gastro Edition",
}


def generate_title(payload: DesignPayload) -> str:
    name = _FAMILY_NAMES.get(payload.product_family, "Produkt")
    variant_id = payload.base_components[0].variant_id
    if variant_id and "set" in variant_id:
        return f"{name} {variant_id.replace('-', ' ', 1)}"
    if payload.customization.enabled:
        return f"{name} – individuelles Design"
    return name


def create_configurable_cart_item(
    payload: DesignPayload,
    engine: DesignPricingEngine,
    title: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Price ``payload`` and wrap it as a cart item.

    Raises PricingError (listing every unresolved reference) when the design
    cannot be priced.
    """
    pricing = engine.price_design(payload)
    if not pricing.valid:
        raise PricingError(list(pricing.errors))

    now = datetime.now(timezone.utc).isoformat()
    quantity = config.CART_ITEM_QUANTITY
    return {
        "type": CART_ITEM_TYPE,
        "cartItemId": f"cart_{uuid.uuid4().hex}",
        "designId": payload.design_id,
        "title": title or generate_title(payload),
        "quantity": quantity,
        "pricing": {
            "currency": pricing.currency,
            "unitPrice": pricing.total,
            "total": pricing.total * quantity,
            "breakdownLines": [line.to_dict() for line in pricing.breakdown_lines],
            "pricebookVersion": pricing.pricebook_version,
            "pricingSignature": pricing.pricing_signature,
            "calculatedAt": pricing.calculated_at,
        },
        "previews": {
            "heroUrl": payload.previews.get("heroUrl"),
            "thumbUrl": payload.previews.get("thumbUrl"),
        },
        "payload": payload.to_wire(),
        "addedAt": now,
        "updatedAt": now,
    }


def validate_cart_item(cart_item: Dict[str, Any]) -> List[str]:
    errors: List[str] = []
    if cart_item.get("type") != CART_ITEM_TYPE:
        errors.append("Invalid cart item type")
    if not cart_item.get("designId"):
        errors.append("Missing designId")
    if not cart_item.get("payload"):
        errors.append("Missing design payload")
    pricing = cart_item.get("pricing") or {}
    if not pricing:
        errors.append("Missing pricing data")
    if not pricing.get("pricingSignature"):
        errors.append("Missing pricing signature")
    if cart_item.get("quantity") != config.CART_ITEM_QUANTITY:
        errors.append("Configurable items must have quantity = 1")
    return errors


def update_cart_item_quantity(cart_item: Dict[str, Any], quantity: int) -> Dict[str, Any]:
    if quantity != config.CART_ITEM_QUANTITY:
        raise ValueError(
            "Cannot change quantity of configurable items. Duplicate the design instead."
        )
    return {**cart_item, "updatedAt": datetime.now(timezone.utc).isoformat()}


def duplicate_cart_item(
    cart_item: Dict[str, Any],
    payload: DesignPayload,
    engine: DesignPricingEngine,
) -> Dict[str, Any]:
    """New cart item for a copy of ``payload`` with a fresh designId."""
    return create_configurable_cart_item(
        duplicate_design(payload), engine, title=cart_item.get("title")
    )
