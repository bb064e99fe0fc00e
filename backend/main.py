"""
Grocesphere — Hyperlocal Grocery Marketplace API

Customer shopping and order tracking, store-owner console, and the order
lifecycle shared between them. Order changes fan out to both roles over the
change feed; the demo account runs on an in-memory store with a simulator.
"""
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi import HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import settings
from domain.responses import error_response
from routes import auth, customer, health, location, realtime, store_owner

# ── Logging ─────────────────────────────────────────────────────────

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# ── Lifespan ────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: create DB tables, build the app context, start the demo simulator."""
    # Ensure data/ directory exists for SQLite
    os.makedirs("data", exist_ok=True)

    settings.validate_production_settings()

    from database import async_session, init_db
    await init_db()
    logger.info("Database initialized")

    from app_context import AppContext
    context = AppContext.build(settings, async_session)
    app.state.context = context

    if context.simulator is not None:
        context.simulator.start()
        logger.info("Demo simulator started")

    yield  # app runs here

    await context.aclose()
    app.state.context = None
    logger.info("Shutting down")


# ── App Factory ─────────────────────────────────────────────────────

app = FastAPI(
    title="Grocesphere API",
    description="Hyperlocal grocery marketplace: stores, inventory, orders and live tracking",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routes ──────────────────────────────────────────────────────────

app.include_router(health.router)
app.include_router(auth.router)
app.include_router(customer.router)
app.include_router(store_owner.router)
app.include_router(location.router)
app.include_router(realtime.router)


# ── Demo Simulator Status Endpoint ─────────────────────────────────

@app.get("/demo/status", tags=["demo"])
async def get_demo_status():
    """Get the current status of the demo order simulator and change feed."""
    context = getattr(app.state, "context", None)
    if context is None or context.simulator is None:
        return {"running": False, "demoMode": settings.demo_mode}
    return {
        "demoMode": True,
        **context.simulator.get_status(),
        "feed": context.feed.get_status(),
    }


# ── Exception Handler ───────────────────────────────────────────────


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """
    Catch-all for unhandled exceptions.

    Never return raw exception details to clients. The full traceback is
    logged server-side for debugging.
    """
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": {
                "code": "internal_server_error",
                "message": "Internal server error",
            },
        },
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc: HTTPException):
    """
    Standardize HTTPException responses for frontend consumers.

    Keeps the original HTTP status code, but wraps the payload.
    """
    # DomainError (a subclass of HTTPException) carries structured error info
    if hasattr(exc, "message") and hasattr(exc, "details"):
        error_code = exc.__class__.__name__.replace("Error", "").lower()
        return JSONResponse(
            status_code=exc.status_code,
            content=error_response(error_code, exc.message, exc.details),
        )

    detail = exc.detail
    message = detail if isinstance(detail, str) else "Request failed"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response("http_error", message, detail if not isinstance(detail, str) else None),
    )
