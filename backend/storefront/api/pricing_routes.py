"""Pricing routes — server-side design pricing, signature verification, add-to-cart."""
import logging
from dataclasses import asdict
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from storefront.api.deps import get_pricebook, get_pricing_engine
from storefront.models.design_payload import DesignPayload, validate_design_payload
from storefront.models.pricing_models import PricingError, PricingResult
from storefront.services.cart_item import create_configurable_cart_item
from storefront.services.pricebook import Pricebook
from storefront.services.pricing_engine import DesignPricingEngine, pricing_summary

router = APIRouter(tags=["Design Pricing"])
logger = logging.getLogger("storefront.api.pricing")


# ─── Pydantic schemas ────────────────────────────────────────────────────────

class ClientPricing(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    pricing_signature: Optional[str] = None
    pricebook_version: Optional[str] = None


class DesignRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    # validated by validate_design_payload so every problem is reported at once
    payload: Any = None
    client_pricing: Optional[ClientPricing] = None
    currency: Optional[str] = None


# ─── Helpers ─────────────────────────────────────────────────────────────────

def _parse_payload(raw: Any) -> DesignPayload:
    payload, errors = validate_design_payload(raw)
    if payload is None:
        logger.warning(f"design payload rejected: {len(errors)} error(s)")
        raise HTTPException(
            status_code=400,
            detail={"error": "INVALID_PAYLOAD", "details": errors, "valid": False},
        )
    return payload


def _require_valid(pricing: PricingResult) -> None:
    if not pricing.valid:
        raise HTTPException(
            status_code=400,
            detail={"error": "PRICING_ERROR", "details": list(pricing.errors), "valid": False},
        )


# ─── Routes ──────────────────────────────────────────────────────────────────

@router.get("/api/pricing/pricebook")
async def get_pricebook_info(pricebook: Pricebook = Depends(get_pricebook)):
    """Version plus the active customization fees and addon deltas."""
    return {
        "version": pricebook.version,
        "currency": pricebook.currency,
        "customizationFees": {k: asdict(v) for k, v in pricebook.active_customization_fees().items()},
        "addonDeltas": {k: asdict(v) for k, v in pricebook.active_addon_deltas().items()},
    }


@router.post("/api/pricing/calculate")
async def calculate_pricing(
    body: DesignRequest,
    engine: DesignPricingEngine = Depends(get_pricing_engine),
):
    """
    Price a design. Always 200 for a structurally valid payload; unresolved
    references come back as ``valid: false`` with ``errors``.
    """
    payload = _parse_payload(body.payload)
    pricing = engine.price_design(payload, currency=body.currency)
    return {
        "pricing": pricing.to_dict(),
        "summary": pricing_summary(pricing),
        "clientEcho": engine.client_echo_signature(payload, pricing),
    }


@router.post("/api/pricing/validate-design")
async def validate_design(
    body: DesignRequest,
    engine: DesignPricingEngine = Depends(get_pricing_engine),
):
    """Re-price a design and, when the client sent one, verify its signature."""
    payload = _parse_payload(body.payload)
    server_pricing = engine.price_design(payload)
    _require_valid(server_pricing)

    verification = None
    client = body.client_pricing
    if client is not None and client.pricing_signature:
        verification = engine.verify_pricing_signature(
            payload, client.pricing_signature, client.pricebook_version
        )

    return {
        "valid": True,
        "serverPricing": server_pricing.to_dict(),
        "signatureVerification": verification.to_dict() if verification else None,
        "match": bool(verification and verification.valid),
    }


@router.post("/api/cart/add-design")
async def add_design_to_cart(
    body: DesignRequest,
    engine: DesignPricingEngine = Depends(get_pricing_engine),
):
    """
    Validate, re-price and verify a design, then return its cart item.

    409 carries the verification error and the server pricing so the client
    can refresh its prices and retry.
    """
    payload = _parse_payload(body.payload)
    server_pricing = engine.price_design(payload)
    if not server_pricing.valid:
        logger.warning(
            "add-to-cart blocked by pricing errors",
            extra={"design_id": payload.design_id, "pricing_errors": list(server_pricing.errors)},
        )
    _require_valid(server_pricing)

    client = body.client_pricing
    if client is not None and client.pricing_signature:
        verification = engine.verify_pricing_signature(
            payload, client.pricing_signature, client.pricebook_version
        )
        if not verification.valid:
            raise HTTPException(
                status_code=409,
                detail={
                    "error": verification.error.value,
                    "details": verification.details,
                    "serverPricing": verification.server_pricing.to_dict(),
                    "message": "Price must be recalculated",
                },
            )

    try:
        cart_item = create_configurable_cart_item(payload, engine)
    except PricingError as e:
        raise HTTPException(
            status_code=400,
            detail={"error": "PRICING_ERROR", "details": e.errors, "valid": False},
        )
    except Exception as e:
        logger.error(f"cart item creation failed: {e}", exc_info=True,
                     extra={"design_id": payload.design_id})
        raise HTTPException(
            status_code=500,
            detail={"error": "INTERNAL_ERROR", "message": "Cart item could not be created"},
        )

    logger.info(
        f"cart item created: {cart_item['cartItemId']}",
        extra={"design_id": payload.design_id},
    )
    return {
        "success": True,
        "cartItem": cart_item,
        "pricing": server_pricing.to_dict(),
    }
