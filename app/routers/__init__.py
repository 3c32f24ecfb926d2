# app/routers/__init__.py

from .billing.quote_router import router as quote_router
from .billing.invoice_router import router as invoice_router


__all__ = [
"quote_router",
"invoice_router",
]
