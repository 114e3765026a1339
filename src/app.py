"""SiteLedger FastAPI application.

Processes ledger operations synchronously over HTTP. Every request to a
ledger route runs inside the ledger domain context.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# Initialized at module level so uvicorn workers share it.
# PROTEAN_ENV selects the config overlay:
#   - default      → event_processing = "sync"  (projectors fire in UoW)
#   - "production" → event_processing = "async" (projectors fire via Engine)
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from ledger.domain import ledger
from ledger.errors import TransientLedgerError
from ledger.utils.logging import add_context, clear_context

ledger.init()

_LEDGER_PREFIXES = ("/sites", "/stock", "/requests", "/reports", "/audit")


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="SiteLedger API",
    description="Construction site inventory ledger and material fulfillment",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the ledger domain context for ledger routes and tag their log lines."""
    if request.url.path.startswith(_LEDGER_PREFIXES):
        add_context(http_method=request.method, http_path=request.url.path)
        try:
            with ledger.domain_context():
                response = await call_next(request)
        finally:
            clear_context()
        return response
    return await call_next(request)


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from ledger.api import (  # noqa: E402
    audit_router,
    reports_router,
    requests_router,
    sites_router,
    stock_router,
    transient_error_handler,
)

app.add_exception_handler(TransientLedgerError, transient_error_handler)

app.include_router(sites_router)
app.include_router(stock_router)
app.include_router(requests_router)
app.include_router(reports_router)
app.include_router(audit_router)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(content={"status": "ok", "domain": ledger.name})
