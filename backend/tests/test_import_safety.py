"""
test_import_safety.py — Import and circular-import checks.

Verifies that:
  1. Every storefront module imports cleanly in a fresh import order.
  2. The geometry and pricing engines do not pull in the web stack, so they
     can be used from scripts and workers without FastAPI installed.

No network or external services are required.
"""

import sys
import os
import importlib
import pytest

_BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)


ENGINE_MODULES = [
    "storefront.config",
    "storefront.models.crop_models",
    "storefront.models.color_scheme",
    "storefront.models.design_payload",
    "storefront.models.pricing_models",
    "storefront.services.numeric_guards",
    "storefront.services.perf_monitor",
    "storefront.services.crop_engine",
    "storefront.services.crop_parity",
    "storefront.services.pricebook",
    "storefront.services.pricing_engine",
    "storefront.services.cart_item",
    "storefront.services.logging_config",
]

API_MODULES = [
    "storefront.services.middleware",
    "storefront.api.deps",
    "storefront.api.crop_routes",
    "storefront.api.pricing_routes",
    "storefront.main",
]


def _evict_storefront():
    saved = {k: v for k, v in sys.modules.items() if k == "storefront" or k.startswith("storefront.")}
    for key in saved:
        del sys.modules[key]
    return saved


@pytest.fixture
def fresh_imports():
    """Drop cached storefront modules for the test; restore them afterwards."""
    saved = _evict_storefront()
    yield
    _evict_storefront()
    sys.modules.update(saved)


class TestModuleImports:

    @pytest.mark.parametrize("module", ENGINE_MODULES + API_MODULES)
    def test_module_imports(self, module, fresh_imports):
        mod = importlib.import_module(module)
        assert mod is not None


class TestEngineIndependence:

    def test_engines_do_not_import_web_stack(self, fresh_imports):
        """Engine modules may import pydantic, never storefront.api or main."""
        for module in ENGINE_MODULES:
            importlib.import_module(module)
        loaded = [k for k in sys.modules if k.startswith("storefront.")]
        assert not any(k.startswith("storefront.api") for k in loaded)
        assert "storefront.main" not in loaded
