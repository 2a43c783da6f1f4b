"""Delivery tracking FastAPI application.

Serves order tracking, courier pings and chat over HTTP. The backend is
built once here and handed to every route through ``app.state``.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# PROTEAN_ENV controls which config overlay is applied:
#   - unset/"test"  → in-memory provider
#   - "production"  → PostgreSQL via DATABASE_URL
# DELIVERY_BACKEND picks the backend adapter ("domain" or "fake").
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from delivery.backend import create_backend
from delivery.domain import delivery
from delivery.utils.logging import bind_tracking_context, clear_tracking_context

delivery.init()

# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Delivery Tracking API",
    description="Live order status, courier location and order chat",
)

app.state.backend = create_backend()

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def tracking_context_middleware(request: Request, call_next):
    """Tag every log line of a request with its method and path."""
    clear_tracking_context()
    bind_tracking_context(method=request.method, path=request.url.path)
    return await call_next(request)


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from delivery.api import backend_router, chat_router, tracking_router  # noqa: E402

app.include_router(tracking_router)
app.include_router(chat_router)
app.include_router(backend_router)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(
        content={
            "status": "ok",
            "domain": delivery.name,
            "backend": type(app.state.backend).__name__,
        }
    )
