"""
pricebook.py — Read-only price tables for design pricing.

Covers:
  - Shop catalog (SKU -> unit price, currency, title)
  - Customization fee (feeKey -> amount); one global surcharge for any
    non-default design, quantity always 1
  - Premium addon deltas (pricingKey -> amount per unit); additive on top of
    base + customization, never base products themselves
  - Version tag threaded into every pricing signature

A Pricebook is an immutable value passed into the pricing engine. There is no
module-level "current" pricebook: the app builds one at startup and tests
build their own, so several versions can coexist during a rollout.

Bump the version on ANY price change; clients holding the old version are
then rejected with PRICEBOOK_VERSION_MISMATCH instead of silently repriced.
"""

import json
import logging
import math
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

from storefront import config

logger = logging.getLogger("storefront.pricebook")

DEFAULT_PRICEBOOK_VERSION = "v1.2024-01-03"


@dataclass(frozen=True)
class CatalogProduct:
    price: float
    currency: str
    title: str
    active: bool = True


@dataclass(frozen=True)
class CustomizationFee:
    amount: float
    currency: str
    description: str
    label: str = ""
    active: bool = True


@dataclass(frozen=True)
class AddonDelta:
    amount: float
    currency: str
    unit: str
    description: str
    label: str = ""
    active: bool = True


# ---------------------------------------------------------------------------
# Built-in tables (EUR)
# ---------------------------------------------------------------------------
_DEFAULT_PRODUCTS: Dict[str, Dict[str, Any]] = {
    "UNBREAK-GLAS-01":        {"price": 49.90,  "title": "Glashalter Einzeln"},
    "UNBREAK-GLAS-SET-2":     {"price": 89.90,  "title": "Glashalter 2er Set"},
    "UNBREAK-GLAS-SET-4":     {"price": 169.90, "title": "Glashalter 4er Set"},
    "UNBREAK-FLASCHE-01":     {"price": 54.90,  "title": "Flaschenhalter Einzeln"},
    "UNBREAK-FLASCHE-SET-2":  {"price": 99.90,  "title": "Flaschenhalter 2er Set"},
    "UNBREAK-WEIN-01":        {"price": 44.90,  "title": "Weinglas-Halter Einzeln"},
    "UNBREAK-GASTRO-SET-6":   {"price": 249.90, "title": "Gastro Edition 6er Set"},
    "UNBREAK-GASTRO-SET-12":  {"price": 469.90, "title": "Gastro Edition 12er Set"},
}

_DEFAULT_FEES: Dict[str, Dict[str, Any]] = {
    "CUSTOM_DESIGN_FEE": {
        "amount": 15.00,
        "description": "Individualisierung",
        "label": "Individuelles Design",
    },
}

_DEFAULT_ADDONS: Dict[str, Dict[str, Any]] = {
    "ADDON_ENGRAVING_STANDARD": {"amount": 12.00, "unit": "pcs", "description": "Lasergravur Standard (bis 20 Zeichen)", "label": "Gravur"},
    "ADDON_ENGRAVING_LOGO":     {"amount": 25.00, "unit": "pcs", "description": "Lasergravur mit Logo", "label": "Logo-Gravur"},
    "ADDON_WOOD_INLAY":         {"amount": 18.00, "unit": "pcs", "description": "Holz-Einlage (Walnuss)", "label": "Holzsockel"},
    "ADDON_METAL_RING":         {"amount": 22.00, "unit": "pcs", "description": "Edelstahl-Ring", "label": "Metallring"},
    "ADDON_CUSTOM_COLOR_RAL":   {"amount": 20.00, "unit": "set", "description": "Pulverbeschichtung RAL-Wunschfarbe", "label": "Wunschfarbe (RAL)"},
    "ADDON_CUSTOM_COLOR_HEX":   {"amount": 30.00, "unit": "set", "description": "Pulverbeschichtung individuelle Farbe", "label": "Individuelle Farbe"},
    "ADDON_GIFT_BOX":           {"amount": 8.00,  "unit": "pcs", "description": "Geschenkbox Premium", "label": "Geschenkbox"},
    "ADDON_PREMIUM_PACKAGING":  {"amount": 15.00, "unit": "set", "description": "Premium Verpackung", "label": "Premium-Verpackung"},
}


class Pricebook:
    """Versioned, read-only lookup of products, fees and addon deltas."""

    def __init__(
        self,
        version: str,
        currency: str,
        products: Mapping[str, CatalogProduct],
        customization_fees: Mapping[str, CustomizationFee],
        addon_deltas: Mapping[str, AddonDelta],
    ) -> None:
        self.version = version
        self.currency = currency
        self._products = MappingProxyType(dict(products))
        self._fees = MappingProxyType(dict(customization_fees))
        self._addons = MappingProxyType(dict(addon_deltas))

    def __repr__(self) -> str:
        return (
            f"Pricebook(version={self.version!r}, products={len(self._products)}, "
            f"fees={len(self._fees)}, addons={len(self._addons)})"
        )

    # -----------------------------------------------------------------------
    # Lookups — inactive entries resolve exactly like unknown ones
    # -----------------------------------------------------------------------

    def get_product_by_sku(self, sku: str) -> Optional[CatalogProduct]:
        product = self._products.get(sku)
        return product if product is not None and product.active else None

    def get_customization_fee(self, fee_key: str) -> Optional[CustomizationFee]:
        fee = self._fees.get(fee_key)
        return fee if fee is not None and fee.active else None

    def get_addon_delta(self, pricing_key: str) -> Optional[AddonDelta]:
        addon = self._addons.get(pricing_key)
        return addon if addon is not None and addon.active else None

    def active_customization_fees(self) -> Dict[str, CustomizationFee]:
        return {k: v for k, v in self._fees.items() if v.active}

    def active_addon_deltas(self) -> Dict[str, AddonDelta]:
        return {k: v for k, v in self._addons.items() if v.active}

    # -----------------------------------------------------------------------
    # Consistency
    # -----------------------------------------------------------------------

    def validate(self) -> List[str]:
        """Return a list of consistency problems; empty when the book is usable."""
        errors: List[str] = []
        if not self.version:
            errors.append("Pricebook version must be a non-empty string")

        def _check(kind: str, key: str, amount: Any, currency: str) -> None:
            if (isinstance(amount, bool) or not isinstance(amount, (int, float))
                    or not math.isfinite(amount) or amount < 0):
                errors.append(f"Invalid {kind} amount for {key}: {amount}")
            if not currency:
                errors.append(f"Missing currency for {key}")

        for sku, product in self._products.items():
            _check("product", sku, product.price, product.currency)
        for key, fee in self._fees.items():
            _check("fee", key, fee.amount, fee.currency)
        for key, addon in self._addons.items():
            _check("addon", key, addon.amount, addon.currency)
        return errors

    # -----------------------------------------------------------------------
    # Construction
    # -----------------------------------------------------------------------

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Pricebook":
        """
        Build from a plain mapping (e.g. parsed JSON)::

            {"version": "...", "currency": "EUR",
             "products": {sku: {price, title, currency?, active?}},
             "customizationFees": {feeKey: {amount, description, ...}},
             "addonDeltas": {pricingKey: {amount, unit, description, ...}}}

        Entry currencies default to the book currency.
        """
        currency = data.get("currency") or config.DEFAULT_CURRENCY
        products = {
            sku: CatalogProduct(
                price=entry["price"],
                currency=entry.get("currency", currency),
                title=entry.get("title", sku),
                active=entry.get("active", True),
            )
            for sku, entry in (data.get("products") or {}).items()
        }
        fees = {
            key: CustomizationFee(
                amount=entry["amount"],
                currency=entry.get("currency", currency),
                description=entry.get("description", key),
                label=entry.get("label", ""),
                active=entry.get("active", True),
            )
            for key, entry in (data.get("customizationFees") or {}).items()
        }
        addons = {
            key: AddonDelta(
                amount=entry["amount"],
                currency=entry.get("currency", currency),
                unit=entry.get("unit", "pcs"),
                description=entry.get("description", key),
                label=entry.get("label", ""),
                active=entry.get("active", True),
            )
            for key, entry in (data.get("addonDeltas") or {}).items()
        }
        return cls(
            version=str(data.get("version") or ""),
            currency=currency,
            products=products,
            customization_fees=fees,
            addon_deltas=addons,
        )


def default_pricebook() -> Pricebook:
    """The built-in tables, version ``DEFAULT_PRICEBOOK_VERSION``."""
    return Pricebook.from_mapping({
        "version": DEFAULT_PRICEBOOK_VERSION,
        "currency": "EUR",
        "products": _DEFAULT_PRODUCTS,
        "customizationFees": _DEFAULT_FEES,
        "addonDeltas": _DEFAULT_ADDONS,
    })


def load_pricebook(path: Optional[str] = None) -> Pricebook:
    """
    Load the pricebook from ``path`` (or ``PRICEBOOK_PATH``), falling back to
    the built-in tables when neither is set. Raises ValueError if the loaded
    book fails ``validate()``.
    """
    source = path if path is not None else config.PRICEBOOK_PATH
    if source:
        with Path(source).open(encoding="utf-8") as fh:
            book = Pricebook.from_mapping(json.load(fh))
        logger.info(f"Loaded pricebook {book.version} from {source}")
    else:
        book = default_pricebook()
        logger.info(f"Using built-in pricebook {book.version}")

    errors = book.validate()
    if errors:
        raise ValueError(f"Pricebook {book.version!r} is inconsistent: {'; '.join(errors)}")
    return book
