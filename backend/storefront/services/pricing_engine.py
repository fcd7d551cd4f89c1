"""
pricing_engine.py — Authoritative pricing for DesignPayload v1.

Covers:
  - Base components priced from the shop catalog (unit price x qty)
  - Customization fee from the pricebook (applied iff customization.enabled)
  - Premium addon deltas from the pricebook (unit delta x qty)
  - Deterministic pricing signature binding totals to the normalized payload
    and pricebook version
  - Server-side verification of a client-computed signature

Formula: TOTAL = SUM(base sku x qty) + customizationFee + SUM(addon x qty)

Unresolved references never abort pricing: every problem is collected in
one pass and the result is marked invalid. An invalid result must block
add-to-cart and checkout; it is never a partial price.

Signatures:
  - server: SHA-256 over the canonical string (the only value ever trusted)
  - client: ``client_echo_hash`` — a 32-bit rolling hash the storefront can
    compute synchronously for display/echo. Verification never accepts it.
"""

import dataclasses
import hashlib
import hmac
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from storefront.models.design_payload import DesignPayload
from storefront.models.pricing_models import (
    BreakdownLine,
    LineType,
    PricingResult,
    VerificationError,
    VerificationResult,
)
from storefront.services.perf_monitor import timed, tracker
from storefront.services.pricebook import Pricebook

logger = logging.getLogger("storefront.pricing")

_CURRENCY_SYMBOLS: Dict[str, str] = {"EUR": "€", "USD": "$", "GBP": "£"}


# ---------------------------------------------------------------------------
# Canonical form
# ---------------------------------------------------------------------------

def _canonical_number(value: float) -> Any:
    """Integral floats serialize as ints (15.0 -> 15) to match browser JSON."""
    value = float(value)
    return int(value) if value.is_integer() else value


def normalize_payload(payload: DesignPayload) -> Dict[str, Any]:
    """
    Pricing-relevant projection of a payload.

    Insensitive to array order and to every non-pricing field (timestamps,
    scene state, previews, labels, colours).
    """
    base = sorted(
        ({"sku": c.sku, "qty": c.qty} for c in payload.base_components),
        key=lambda item: (item["sku"], item["qty"]),
    )
    addons = sorted(
        ({"pricingKey": a.pricing_key, "qty": a.qty} for a in payload.premium_addons),
        key=lambda item: (item["pricingKey"], item["qty"]),
    )
    customization = (
        {"feeKey": payload.customization.fee_key} if payload.customization.enabled else None
    )
    return {
        "baseComponents": base,
        "customization": customization,
        "premiumAddons": addons,
    }


def canonical_signature_input(payload: DesignPayload, pricing: PricingResult) -> str:
    data = {
        "normalized": normalize_payload(payload),
        "baseTotal": _canonical_number(pricing.base_total),
        "customizationFee": _canonical_number(pricing.customization_fee),
        "addonsTotal": _canonical_number(pricing.addons_total),
        "total": _canonical_number(pricing.total),
        "currency": pricing.currency,
        "pricebookVersion": pricing.pricebook_version,
    }
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False)


def client_echo_hash(text: str) -> str:
    """
    32-bit rolling hash (``h = h * 31 + unit``, int32 wrap) over UTF-16 code
    units, as hex padded to 8 chars. Not cryptographic.
    """
    h = 0
    data = text.encode("utf-16-le")
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        h = (h * 31 + unit) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return format(abs(h), "x").zfill(8)


# ---------------------------------------------------------------------------
# Display helpers
# ---------------------------------------------------------------------------

def format_price(amount: float, currency: str = "EUR") -> str:
    """German shop formatting: ``1.234,50 €`` (non-breaking space before symbol)."""
    grouped = f"{amount:,.2f}".replace(",", "\x00").replace(".", ",").replace("\x00", ".")
    return f"{grouped}\u00a0{_CURRENCY_SYMBOLS.get(currency, currency)}"


def pricing_summary(result: PricingResult) -> Dict[str, Any]:
    return {
        "subtotal": result.base_total,
        "customization": result.customization_fee,
        "addons": result.addons_total,
        "total": result.total,
        "currency": result.currency,
        "formatted": {
            "subtotal": format_price(result.base_total, result.currency),
            "customization": format_price(result.customization_fee, result.currency),
            "addons": format_price(result.addons_total, result.currency),
            "total": format_price(result.total, result.currency),
        },
    }


# ---------------------------------------------------------------------------
# DesignPricingEngine
# ---------------------------------------------------------------------------

class DesignPricingEngine:
    """
    Prices design payloads against one injected Pricebook.

    Stateless apart from the pricebook reference; safe to share across
    requests and threads.
    """

    def __init__(self, pricebook: Pricebook) -> None:
        self.pricebook = pricebook

    # -----------------------------------------------------------------------
    # 1. Pricing
    # -----------------------------------------------------------------------

    @timed
    def price_design(self, payload: DesignPayload, currency: Optional[str] = None) -> PricingResult:
        """
        Price every line of ``payload``.

        Breakdown order: base components (input order), customization line
        (if enabled), addon lines (input order). Lines whose reference does
        not resolve are skipped and reported in ``errors``.
        """
        book = self.pricebook
        currency = currency or book.currency
        errors: List[str] = []
        lines: List[BreakdownLine] = []

        base_total = 0.0
        for component in payload.base_components:
            product = book.get_product_by_sku(component.sku)
            if product is None:
                errors.append(f"Unknown SKU: {component.sku}")
                continue
            if product.currency != currency:
                errors.append(f"Currency mismatch for SKU {component.sku}: {product.currency} != {currency}")
                continue
            line_total = product.price * component.qty
            base_total += line_total
            lines.append(BreakdownLine(
                type=LineType.BASE,
                key=component.sku,
                title=product.title,
                qty=component.qty,
                unit_price=product.price,
                line_total=line_total,
                currency=product.currency,
            ))

        customization_fee = 0.0
        if payload.customization.enabled:
            fee_key = payload.customization.fee_key
            fee = book.get_customization_fee(fee_key)
            if fee is None:
                errors.append(f"Unknown customization fee: {fee_key}")
            elif fee.currency != currency:
                errors.append(f"Currency mismatch for fee {fee_key}: {fee.currency} != {currency}")
            else:
                customization_fee = fee.amount
                lines.append(BreakdownLine(
                    type=LineType.CUSTOMIZATION,
                    key=fee_key,
                    title=fee.description,
                    qty=1,
                    unit_price=fee.amount,
                    line_total=fee.amount,
                    currency=fee.currency,
                ))

        addons_total = 0.0
        for addon in payload.premium_addons:
            delta = book.get_addon_delta(addon.pricing_key)
            if delta is None:
                errors.append(f"Unknown addon pricingKey: {addon.pricing_key}")
                continue
            if delta.currency != currency:
                errors.append(f"Currency mismatch for addon {addon.pricing_key}: {delta.currency} != {currency}")
                continue
            line_total = delta.amount * addon.qty
            addons_total += line_total
            lines.append(BreakdownLine(
                type=LineType.ADDON,
                key=addon.pricing_key,
                title=addon.label or delta.description,
                qty=addon.qty,
                unit_price=delta.amount,
                line_total=line_total,
                currency=delta.currency,
            ))

        result = PricingResult(
            valid=not errors,
            errors=tuple(errors),
            currency=currency,
            base_total=base_total,
            customization_fee=customization_fee,
            addons_total=addons_total,
            total=base_total + customization_fee + addons_total,
            breakdown_lines=tuple(lines),
            pricebook_version=book.version,
            calculated_at=datetime.now(timezone.utc).isoformat(),
        )
        result = dataclasses.replace(
            result, pricing_signature=self.generate_pricing_signature(payload, result)
        )

        if errors:
            logger.warning(
                "design pricing failed",
                extra={"design_id": payload.design_id, "pricing_errors": errors},
            )
        return result

    # -----------------------------------------------------------------------
    # 2. Signature
    # -----------------------------------------------------------------------

    def generate_pricing_signature(self, payload: DesignPayload, pricing: PricingResult) -> str:
        """SHA-256 hex over the canonical (normalized payload + totals) string."""
        canonical = canonical_signature_input(payload, pricing)
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()

    def client_echo_signature(self, payload: DesignPayload, pricing: PricingResult) -> str:
        """The lightweight client-side echo of the signature (display only)."""
        return client_echo_hash(canonical_signature_input(payload, pricing))

    # -----------------------------------------------------------------------
    # 3. Verification (trust boundary)
    # -----------------------------------------------------------------------

    def verify_pricing_signature(
        self,
        payload: DesignPayload,
        client_signature: Any,
        client_pricebook_version: Any,
    ) -> VerificationResult:
        """
        Check a client-computed signature against a full server recomputation.

        Order of checks:
          1. pricebook version  -> PRICEBOOK_VERSION_MISMATCH (client refetches prices)
          2. server pricing     -> PRICING_CALCULATION_ERROR (payload unpriceable)
          3. signature compare  -> SIGNATURE_MISMATCH (tampered or stale)

        ``server_pricing`` is always returned so the client can resynchronize.
        """
        server_pricing = self.price_design(payload)

        if client_pricebook_version != self.pricebook.version:
            return self._reject(
                VerificationError.PRICEBOOK_VERSION_MISMATCH,
                {
                    "client": client_pricebook_version,
                    "server": self.pricebook.version,
                    "message": "Price recalculation required",
                },
                server_pricing,
                payload,
            )

        if not server_pricing.valid:
            return self._reject(
                VerificationError.PRICING_CALCULATION_ERROR,
                {"errors": list(server_pricing.errors)},
                server_pricing,
                payload,
            )

        if not isinstance(client_signature, str) or not hmac.compare_digest(
            server_pricing.pricing_signature.encode("utf-8"),
            client_signature.encode("utf-8"),
        ):
            return self._reject(
                VerificationError.SIGNATURE_MISMATCH,
                {
                    "client": client_signature,
                    "server": server_pricing.pricing_signature,
                    "message": "Pricing data has been modified or recalculation required",
                },
                server_pricing,
                payload,
            )

        tracker.increment("verification.valid")
        return VerificationResult(valid=True, server_pricing=server_pricing)

    def _reject(
        self,
        error: VerificationError,
        details: Dict[str, Any],
        server_pricing: PricingResult,
        payload: DesignPayload,
    ) -> VerificationResult:
        tracker.increment(f"verification.{error.value.lower()}")
        logger.warning(
            f"pricing verification rejected: {error.value}",
            extra={"design_id": payload.design_id},
        )
        return VerificationResult(
            valid=False, error=error, details=details, server_pricing=server_pricing
        )
