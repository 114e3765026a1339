from ledger.api.routes import (
    audit_router,
    reports_router,
    requests_router,
    sites_router,
    stock_router,
    transient_error_handler,
)

__all__ = [
    "sites_router",
    "stock_router",
    "requests_router",
    "reports_router",
    "audit_router",
    "transient_error_handler",
]
