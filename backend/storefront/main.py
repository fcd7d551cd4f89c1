"""
Storefront Engines API v1.0
FastAPI service exposing the crop geometry engine (cover-fit transforms,
raster extraction plans, parity checks) and the design pricing engine
(server-side pricing, signature verification, add-to-cart).
"""
import logging
import time
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

from storefront import config
from storefront.api.crop_routes import router as crop_router
from storefront.api.pricing_routes import router as pricing_router
from storefront.services.logging_config import setup_logging
from storefront.services.middleware import RequestTimingMiddleware, SecurityHeadersMiddleware
from storefront.services.perf_monitor import tracker as perf_tracker
from storefront.services.pricebook import load_pricebook

setup_logging(level=config.LOG_LEVEL, json_output=config.LOG_JSON)
logger = logging.getLogger("storefront")

# Record process start time for uptime calculation
_PROCESS_START = time.monotonic()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # A broken pricebook must stop startup; serving prices from it is worse.
    app.state.pricebook = load_pricebook()
    logger.info(f"{config.SERVICE_NAME} started with pricebook {app.state.pricebook.version}")
    yield
    app.state.pricebook = None


app = FastAPI(
    title="Storefront Engines API",
    version=config.SERVICE_VERSION,
    description="Crop geometry and design pricing for the configurator storefront",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Accept", "X-Requested-With", "X-Request-ID"],
)
app.add_middleware(SecurityHeadersMiddleware)
# Request timing + X-Request-ID must be outermost so it wraps all other middleware
app.add_middleware(RequestTimingMiddleware)

app.include_router(crop_router)
app.include_router(pricing_router)


@app.get("/health")
async def health_check():
    pricebook = getattr(app.state, "pricebook", None)
    return {
        "status": "active",
        "service": config.SERVICE_NAME,
        "version": config.SERVICE_VERSION,
        "pricebook_version": pricebook.version if pricebook is not None else None,
    }


@app.get("/metrics")
async def metrics():
    """
    In-process counters: geometry fallbacks, verification outcomes, parity
    checks and average durations of timed engine calls.
    """
    snapshot = perf_tracker.get_metrics()
    return {
        "uptime_seconds": round(time.monotonic() - _PROCESS_START, 1),
        **snapshot,
    }
