from __future__ import annotations

import logging

from fastapi import FastAPI

from backoffice.api.errors import fulfillment_error_handler
from backoffice.api.routes_inventory import router as inventory_router
from backoffice.api.routes_ledger import router as ledger_router
from backoffice.api.routes_orders import router as orders_router
from backoffice.core.config import get_settings
from backoffice.core.logging import configure_logging
from backoffice.demo import seed_default_catalog
from backoffice.domain.errors import FulfillmentError
from backoffice.persistence.pg import init_db, session_scope

configure_logging()
logger = logging.getLogger(__name__)
settings = get_settings()

app = FastAPI(title=settings.app_name)


@app.on_event("startup")
def on_startup() -> None:
    init_db()
    if settings.bootstrap_demo_on_startup:
        with session_scope() as session:
            result = seed_default_catalog(session)
        logger.info(
            "demo catalog ready: organization_id=%s seeded_now=%s",
            result.get("organization_id"),
            result.get("seeded_now"),
        )


app.add_exception_handler(FulfillmentError, fulfillment_error_handler)


@app.get("/healthz")
def healthz() -> dict:
    return {"status": "ok"}


app.include_router(orders_router)
app.include_router(inventory_router)
app.include_router(ledger_router)
