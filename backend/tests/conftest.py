"""
conftest.py — Shared pytest fixtures for the storefront engines test suite.

No network or external service fixtures are defined here. Engine tests are
pure unit tests; API tests run the FastAPI app in-process via TestClient.

Import-path bootstrapping:
    The ``backend/`` directory is inserted into sys.path so that all
    ``storefront.*`` imports resolve correctly regardless of where pytest is
    invoked.
"""

import sys
import os
import copy
import pytest

# ---------------------------------------------------------------------------
# Ensure ``backend/`` is on the import path before any storefront imports occur.
# ---------------------------------------------------------------------------
_BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)


# ---------------------------------------------------------------------------
# Pricing fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def pricebook():
    """
    The built-in pricebook (version v1.2024-01-03, EUR).

    Prices used in assertions:
      UNBREAK-GLAS-01 = 49.90, UNBREAK-GLAS-SET-2 = 89.90,
      CUSTOM_DESIGN_FEE = 15.00,
      ADDON_ENGRAVING_STANDARD = 12.00, ADDON_GIFT_BOX = 8.00
    """
    from storefront.services.pricebook import default_pricebook
    return default_pricebook()


@pytest.fixture(scope="session")
def engine(pricebook):
    from storefront.services.pricing_engine import DesignPricingEngine
    return DesignPricingEngine(pricebook)


_SAMPLE_PAYLOAD = {
    "version": "1.0",
    "designId": "design-0001",
    "configuratorVersion": "1.0.0",
    "productFamily": "GLASSHOLDER",
    "baseComponents": [
        {"sku": "UNBREAK-GLAS-01", "qty": 2, "title": "Glashalter Einzeln"},
    ],
    "customization": {"enabled": True, "feeKey": "CUSTOM_DESIGN_FEE"},
    "premiumAddons": [
        {"pricingKey": "ADDON_ENGRAVING_STANDARD", "qty": 2, "label": "Gravur"},
        {"pricingKey": "ADDON_GIFT_BOX", "qty": 1},
    ],
    "colors": {"base": "black", "arm": "red", "module": "grey", "pattern": "mint"},
    "sceneState": {"camera": {"zoom": 1.2}},
    "previews": {"heroUrl": "https://cdn.example/hero.png", "thumbUrl": "https://cdn.example/thumb.png"},
    "createdAt": "2024-01-03T10:00:00Z",
    "updatedAt": "2024-01-03T10:05:00Z",
}


@pytest.fixture
def payload_dict():
    """
    Raw wire-format payload (camelCase). Expected pricing with the default
    pricebook:
      base          = 2 x 49.90        = 99.80
      customization =                    15.00
      addons        = 2 x 12.00 + 8.00 = 32.00
      total                            = 146.80
    """
    return copy.deepcopy(_SAMPLE_PAYLOAD)


@pytest.fixture
def make_payload(payload_dict):
    """Factory: build a validated DesignPayload from the sample with overrides."""
    from storefront.models.design_payload import DesignPayload

    def _make(**overrides):
        raw = {**payload_dict, **overrides}
        return DesignPayload.model_validate(raw)

    return _make


@pytest.fixture
def payload(make_payload):
    return make_payload()


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------

@pytest.fixture
def fresh_tracker():
    """The process-wide tracker, reset before and after the test."""
    from storefront.services.perf_monitor import tracker
    tracker.reset()
    yield tracker
    tracker.reset()


# ---------------------------------------------------------------------------
# API
# ---------------------------------------------------------------------------

@pytest.fixture
def client(pricebook):
    """
    TestClient over the app with the lifespan run and the pricebook
    dependency pinned to the session pricebook.
    """
    from fastapi.testclient import TestClient
    from storefront.main import app
    from storefront.api.deps import get_pricebook

    app.dependency_overrides[get_pricebook] = lambda: pricebook
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
