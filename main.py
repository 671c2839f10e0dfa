from fastapi import FastAPI

from shared.config.database import close_db, create_tables, init_db
from shared.observability import setup_observability

# IMPORTANT: import models so they register with Base
from services.order_service import models as order_models  # noqa: F401

from services.order_service.main import order_app
from services.payment_service.main import payment_app
from services.asset_service.main import asset_app
from services.identity_service.main import identity_app

app = FastAPI(title="Sticker Storefront")

# --- OBSERVABILITY BOOTSTRAP ---
# Covers the mounted services too: one log format, one tracer, one /metrics
setup_observability(app, "sticker_storefront")


@app.on_event("startup")
async def startup_event():
    # Mounted apps do not get lifespan events, so the cluster owns the database handle
    await init_db()
    await create_tables()


@app.on_event("shutdown")
async def shutdown_event():
    await close_db()


@app.get("/health", include_in_schema=False)
async def health_check():
    return {"service": "storefront", "status": "running"}


app.mount("/orders", order_app)
app.mount("/payments", payment_app)
app.mount("/assets", asset_app)
app.mount("/identity", identity_app)
