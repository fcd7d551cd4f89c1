"""
test_pricing_engine.py — Unit tests for the pricebook and DesignPricingEngine.

Tests cover:
  - Pricebook lookups, inactive entries, consistency checks, JSON loading
  - Additive pricing: base x qty + customization fee + addon deltas x qty
  - Breakdown line order and content
  - Fail-closed behaviour: every unresolved reference reported, result invalid
  - Signature determinism, order-insensitivity and sensitivity to pricing inputs
  - Signature verification and its three error kinds
  - Client echo hash and German price formatting

All tests are pure unit tests; no network or external services required.
"""

import json
import pytest

from storefront.models.pricing_models import LineType, VerificationError
from storefront.services.pricebook import (
    DEFAULT_PRICEBOOK_VERSION,
    Pricebook,
    default_pricebook,
    load_pricebook,
)
from storefront.services.pricing_engine import (
    DesignPricingEngine,
    canonical_signature_input,
    client_echo_hash,
    format_price,
    normalize_payload,
    pricing_summary,
)


def _book(version="v-test", **overrides):
    data = {
        "version": version,
        "currency": "EUR",
        "products": {"SKU-A": {"price": 10.0, "title": "A"}, "SKU-B": {"price": 2.5, "title": "B"}},
        "customizationFees": {"FEE": {"amount": 5.0, "description": "Custom"}},
        "addonDeltas": {"ADD-1": {"amount": 1.25, "unit": "pcs", "description": "Add one"}},
    }
    data.update(overrides)
    return Pricebook.from_mapping(data)


# ===========================================================================
# Class 1: Pricebook
# ===========================================================================

class TestPricebook:

    def test_default_version_and_currency(self, pricebook):
        assert pricebook.version == DEFAULT_PRICEBOOK_VERSION == "v1.2024-01-03"
        assert pricebook.currency == "EUR"
        assert pricebook.validate() == []

    def test_lookups(self, pricebook):
        assert pricebook.get_product_by_sku("UNBREAK-GLAS-01").price == 49.90
        assert pricebook.get_customization_fee("CUSTOM_DESIGN_FEE").amount == 15.00
        assert pricebook.get_addon_delta("ADDON_GIFT_BOX").amount == 8.00
        assert pricebook.get_product_by_sku("NOPE") is None

    def test_inactive_entries_resolve_like_unknown(self):
        book = _book(addonDeltas={"OLD": {"amount": 3.0, "active": False}})
        assert book.get_addon_delta("OLD") is None
        assert book.active_addon_deltas() == {}

    def test_validate_reports_bad_amounts(self):
        book = _book(products={"NEG": {"price": -1.0}}, customizationFees={"NAN": {"amount": float("nan")}})
        errors = book.validate()
        assert any("NEG" in e for e in errors)
        assert any("NAN" in e for e in errors)

    def test_validate_requires_version(self):
        assert any("version" in e for e in _book(version="").validate())

    def test_entry_currency_defaults_to_book_currency(self):
        assert _book().get_product_by_sku("SKU-A").currency == "EUR"

    def test_load_from_json(self, tmp_path):
        path = tmp_path / "pricebook.json"
        path.write_text(json.dumps({
            "version": "v9", "currency": "EUR",
            "products": {"X": {"price": 1.0}},
        }))
        book = load_pricebook(str(path))
        assert book.version == "v9"
        assert book.get_product_by_sku("X").price == 1.0

    def test_load_inconsistent_json_raises(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"version": "v9", "products": {"X": {"price": -5}}}))
        with pytest.raises(ValueError, match="inconsistent"):
            load_pricebook(str(path))

    def test_load_without_path_uses_builtin(self, monkeypatch):
        from storefront import config
        monkeypatch.setattr(config, "PRICEBOOK_PATH", "")
        assert load_pricebook().version == DEFAULT_PRICEBOOK_VERSION


# ===========================================================================
# Class 2: Pricing
# ===========================================================================

class TestPriceDesign:

    def test_sample_totals(self, engine, payload):
        result = engine.price_design(payload)
        assert result.valid
        assert result.errors == ()
        assert result.base_total == pytest.approx(99.80)
        assert result.customization_fee == pytest.approx(15.00)
        assert result.addons_total == pytest.approx(32.00)
        assert result.total == pytest.approx(146.80)
        assert result.currency == "EUR"
        assert result.pricebook_version == DEFAULT_PRICEBOOK_VERSION

    def test_total_is_exact_sum(self, engine, payload):
        r = engine.price_design(payload)
        assert r.total == r.base_total + r.customization_fee + r.addons_total

    def test_breakdown_order(self, engine, payload):
        lines = engine.price_design(payload).breakdown_lines
        assert [l.type for l in lines] == [LineType.BASE, LineType.CUSTOMIZATION, LineType.ADDON, LineType.ADDON]
        assert [l.key for l in lines] == [
            "UNBREAK-GLAS-01", "CUSTOM_DESIGN_FEE", "ADDON_ENGRAVING_STANDARD", "ADDON_GIFT_BOX",
        ]

    def test_breakdown_line_values(self, engine, payload):
        base, fee, engraving, gift = engine.price_design(payload).breakdown_lines
        assert (base.qty, base.unit_price, base.line_total) == (2, 49.90, pytest.approx(99.80))
        assert fee.qty == 1 and fee.line_total == 15.00
        assert engraving.title == "Gravur"
        assert gift.title == "Geschenkbox Premium"

    def test_breakdown_wire_keys(self, engine, payload):
        lines = engine.price_design(payload).to_dict()["breakdownLines"]
        assert lines[0]["sku"] == "UNBREAK-GLAS-01"
        assert lines[1]["feeKey"] == "CUSTOM_DESIGN_FEE"
        assert lines[2]["pricingKey"] == "ADDON_ENGRAVING_STANDARD"

    def test_customization_disabled_adds_nothing(self, engine, make_payload):
        result = engine.price_design(make_payload(customization={"enabled": False}))
        assert result.customization_fee == 0
        assert all(l.type is not LineType.CUSTOMIZATION for l in result.breakdown_lines)

    def test_only_base(self, engine, make_payload):
        p = make_payload(
            baseComponents=[{"sku": "UNBREAK-GLAS-SET-2", "qty": 1}],
            customization={"enabled": False},
            premiumAddons=[],
        )
        result = engine.price_design(p)
        assert result.total == pytest.approx(89.90)
        assert len(result.breakdown_lines) == 1

    def test_one_unknown_sku_invalidates(self, engine, make_payload):
        p = make_payload(baseComponents=[
            {"sku": "UNBREAK-GLAS-01", "qty": 1},
            {"sku": "UNBREAK-GHOST", "qty": 1},
        ])
        result = engine.price_design(p)
        assert not result.valid
        assert result.errors == ("Unknown SKU: UNBREAK-GHOST",)
        assert result.base_total == pytest.approx(49.90)

    def test_all_errors_collected(self, engine, make_payload):
        p = make_payload(
            baseComponents=[{"sku": "BAD-SKU", "qty": 1}],
            customization={"enabled": True, "feeKey": "BAD_FEE"},
            premiumAddons=[{"pricingKey": "BAD_ADDON", "qty": 1}],
        )
        result = engine.price_design(p)
        assert list(result.errors) == [
            "Unknown SKU: BAD-SKU",
            "Unknown customization fee: BAD_FEE",
            "Unknown addon pricingKey: BAD_ADDON",
        ]

    def test_currency_mismatch_is_an_error(self, engine, payload):
        result = engine.price_design(payload, currency="USD")
        assert not result.valid
        assert any("Currency mismatch" in e for e in result.errors)

    def test_summary_formatting(self, engine, payload):
        summary = pricing_summary(engine.price_design(payload))
        assert summary["formatted"]["total"] == "146,80\u00a0€"


# ===========================================================================
# Class 3: Signature
# ===========================================================================

class TestPricingSignature:

    def test_hex_sha256(self, engine, payload):
        sig = engine.price_design(payload).pricing_signature
        assert len(sig) == 64
        int(sig, 16)

    def test_deterministic_across_calls(self, engine, payload):
        """calculated_at differs between calls; the signature must not."""
        assert engine.price_design(payload).pricing_signature == engine.price_design(payload).pricing_signature

    def test_insensitive_to_component_order(self, engine, make_payload):
        a = make_payload(premiumAddons=[
            {"pricingKey": "ADDON_ENGRAVING_STANDARD", "qty": 2},
            {"pricingKey": "ADDON_GIFT_BOX", "qty": 1},
        ])
        b = make_payload(premiumAddons=[
            {"pricingKey": "ADDON_GIFT_BOX", "qty": 1},
            {"pricingKey": "ADDON_ENGRAVING_STANDARD", "qty": 2},
        ])
        assert engine.price_design(a).pricing_signature == engine.price_design(b).pricing_signature

    def test_insensitive_to_non_pricing_fields(self, engine, make_payload):
        a = make_payload()
        b = make_payload(sceneState={"camera": {"zoom": 3}}, previews={}, designId="other", colors=None)
        assert engine.price_design(a).pricing_signature == engine.price_design(b).pricing_signature

    @pytest.mark.parametrize("overrides", [
        {"baseComponents": [{"sku": "UNBREAK-GLAS-01", "qty": 3}]},
        {"customization": {"enabled": False}},
        {"premiumAddons": [{"pricingKey": "ADDON_GIFT_BOX", "qty": 1}]},
    ])
    def test_sensitive_to_pricing_inputs(self, engine, make_payload, overrides):
        base = engine.price_design(make_payload()).pricing_signature
        assert engine.price_design(make_payload(**overrides)).pricing_signature != base

    def test_sensitive_to_pricebook_version(self, payload):
        sig_a = DesignPricingEngine(_book("v1")).price_design(payload).pricing_signature
        sig_b = DesignPricingEngine(_book("v2")).price_design(payload).pricing_signature
        assert sig_a != sig_b

    def test_normalized_payload_shape(self, payload):
        normalized = normalize_payload(payload)
        assert normalized == {
            "baseComponents": [{"sku": "UNBREAK-GLAS-01", "qty": 2}],
            "customization": {"feeKey": "CUSTOM_DESIGN_FEE"},
            "premiumAddons": [
                {"pricingKey": "ADDON_ENGRAVING_STANDARD", "qty": 2},
                {"pricingKey": "ADDON_GIFT_BOX", "qty": 1},
            ],
        }

    def test_canonical_input_is_compact_with_integral_numbers(self, engine, make_payload):
        p = make_payload(customization={"enabled": False}, premiumAddons=[])
        pricing = engine.price_design(p)
        text = canonical_signature_input(p, pricing)
        assert " " not in text
        assert '"customization":null' in text
        assert '"customizationFee":0,' in text


# ===========================================================================
# Class 4: Verification
# ===========================================================================

class TestVerifyPricingSignature:

    def test_round_trip_valid(self, engine, payload, pricebook):
        signature = engine.price_design(payload).pricing_signature
        result = engine.verify_pricing_signature(payload, signature, pricebook.version)
        assert result.valid
        assert result.error is None
        assert result.server_pricing.total == pytest.approx(146.80)

    def test_version_mismatch(self, engine, payload, fresh_tracker):
        signature = engine.price_design(payload).pricing_signature
        result = engine.verify_pricing_signature(payload, signature, "v0.outdated")
        assert not result.valid
        assert result.error is VerificationError.PRICEBOOK_VERSION_MISMATCH
        assert result.details["server"] == DEFAULT_PRICEBOOK_VERSION
        assert result.server_pricing is not None
        counters = fresh_tracker.get_metrics()["counters"]
        assert counters["verification.pricebook_version_mismatch"] == 1

    def test_signature_from_old_pricebook_rejected(self, payload):
        old = DesignPricingEngine(_book("v-old"))
        new = DesignPricingEngine(_book("v-new"))
        signature = old.price_design(payload).pricing_signature
        result = new.verify_pricing_signature(payload, signature, "v-old")
        assert result.error is VerificationError.PRICEBOOK_VERSION_MISMATCH

    def test_unpriceable_payload(self, engine, make_payload, pricebook):
        p = make_payload(baseComponents=[{"sku": "BAD-SKU", "qty": 1}])
        result = engine.verify_pricing_signature(p, "whatever", pricebook.version)
        assert result.error is VerificationError.PRICING_CALCULATION_ERROR
        assert result.details["errors"] == ["Unknown SKU: BAD-SKU"]

    def test_tampered_signature(self, engine, payload, pricebook):
        signature = engine.price_design(payload).pricing_signature
        tampered = ("0" if signature[0] != "0" else "1") + signature[1:]
        result = engine.verify_pricing_signature(payload, tampered, pricebook.version)
        assert result.error is VerificationError.SIGNATURE_MISMATCH
        assert result.server_pricing.pricing_signature == signature

    def test_signature_of_different_design_rejected(self, engine, make_payload, pricebook):
        signature = engine.price_design(make_payload(premiumAddons=[])).pricing_signature
        result = engine.verify_pricing_signature(make_payload(), signature, pricebook.version)
        assert result.error is VerificationError.SIGNATURE_MISMATCH

    @pytest.mark.parametrize("signature", [None, 12345, ""])
    def test_missing_or_non_string_signature(self, engine, payload, pricebook, signature):
        result = engine.verify_pricing_signature(payload, signature, pricebook.version)
        assert result.error is VerificationError.SIGNATURE_MISMATCH

    def test_client_echo_never_accepted(self, engine, payload, pricebook):
        pricing = engine.price_design(payload)
        echo = engine.client_echo_signature(payload, pricing)
        result = engine.verify_pricing_signature(payload, echo, pricebook.version)
        assert result.error is VerificationError.SIGNATURE_MISMATCH

    def test_to_dict(self, engine, payload):
        d = engine.verify_pricing_signature(payload, "x", "v0").to_dict()
        assert d["valid"] is False
        assert d["error"] == "PRICEBOOK_VERSION_MISMATCH"
        assert d["serverPricing"]["pricebookVersion"] == DEFAULT_PRICEBOOK_VERSION


# ===========================================================================
# Class 5: Client echo hash and display
# ===========================================================================

class TestClientEchoAndFormatting:

    @pytest.mark.parametrize("text, expected", [
        ("", "00000000"),
        ("a", "00000061"),
        ("ab", "00000c21"),
    ])
    def test_echo_hash_known_values(self, text, expected):
        assert client_echo_hash(text) == expected

    def test_echo_hash_wraps_to_32_bits(self):
        h = client_echo_hash("x" * 500)
        assert len(h) == 8
        int(h, 16)

    @pytest.mark.parametrize("amount, expected", [
        (15, "15,00\u00a0€"),
        (1234.5, "1.234,50\u00a0€"),
        (0, "0,00\u00a0€"),
        (1000000, "1.000.000,00\u00a0€"),
    ])
    def test_format_price(self, amount, expected):
        assert format_price(amount) == expected

    def test_format_price_other_currency(self):
        assert format_price(8, "USD") == "8,00\u00a0$"
