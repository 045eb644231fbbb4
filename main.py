"""
FreshCart - Application Entry Point
=====================================
FastAPI app initialization, middleware, and router registration.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import settings
from config.database import Base, engine
from common.exceptions import ShopError
from common.flash import (
    FLASH_COOKIE, clear_flash_cookie, get_flashed_messages, pending_messages, set_flash_cookie,
)

logger = logging.getLogger("freshcart.app")


# ==========================================
# Exception handlers
# ==========================================

async def shop_error_handler(request: Request, exc: ShopError):
    """Business errors → structured JSON with the matching status code."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc!r}")
    else:
        logger.info(f"{request.method} {request.url.path}: {exc.code}")
    return JSONResponse(jsonable_encoder(exc.to_dict()), status_code=exc.status_code)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Redirect browsers to login on 401, JSON for everything else."""
    is_html = "text/html" in request.headers.get("accept", "")
    if exc.status_code == 401 and is_html:
        return RedirectResponse("/login", status_code=302)
    return JSONResponse({"detail": exc.detail}, status_code=exc.status_code)


# ==========================================
# Import ALL models so Alembic/Base can see them
# ==========================================
from modules.user.models import User  # noqa: F401,E402
from modules.catalog.models import Product  # noqa: F401,E402
from modules.cart.models import CartItem  # noqa: F401,E402
from modules.order.models import Order, OrderItem  # noqa: F401,E402

# ==========================================
# Import routers
# ==========================================
from modules.catalog.routes import router as catalog_router  # noqa: E402
from modules.cart.routes import router as cart_router  # noqa: E402
from modules.order.admin_routes import router as order_admin_router  # noqa: E402


@asynccontextmanager
async def lifespan(app):
    # Auto-create any missing tables (safe for existing tables)
    Base.metadata.create_all(bind=engine)
    logger.info("FreshCart started")
    yield
    logger.info("FreshCart stopped")


# ==========================================
# Create App
# ==========================================
app = FastAPI(
    title="FreshCart",
    description="Cart, checkout and order history",
    version="1.0.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url=None,
    lifespan=lifespan,
)

app.add_exception_handler(ShopError, shop_error_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)


# ==========================================
# Middleware: Flash Messages
# ==========================================
@app.middleware("http")
async def flash_message_middleware(request: Request, call_next):
    """Write messages queued by the route to the flash cookie."""
    response = await call_next(request)
    queued = pending_messages(request)
    if queued:
        set_flash_cookie(response, queued)
    elif request.method == "GET" and FLASH_COOKIE in request.cookies:
        # Shown on this GET
        clear_flash_cookie(response)
    return response


# ==========================================
# Routers
# ==========================================
app.include_router(catalog_router)
app.include_router(cart_router)
app.include_router(order_admin_router)


@app.get("/")
async def home():
    return RedirectResponse("/shopping", status_code=302)


@app.get("/messages")
async def messages(request: Request):
    """Flash messages queued by the previous request (consumed on read)."""
    return {"messages": get_flashed_messages(request)}
