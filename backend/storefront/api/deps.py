"""FastAPI dependency injection — pricebook and pricing engine."""
from fastapi import Depends, HTTPException, Request, status

from storefront.services.pricebook import Pricebook
from storefront.services.pricing_engine import DesignPricingEngine


def get_pricebook(request: Request) -> Pricebook:
    """The pricebook loaded at startup (see ``main.lifespan``)."""
    pricebook = getattr(request.app.state, "pricebook", None)
    if pricebook is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Pricebook not loaded",
        )
    return pricebook


def get_pricing_engine(pricebook: Pricebook = Depends(get_pricebook)) -> DesignPricingEngine:
    return DesignPricingEngine(pricebook)
