from fastapi import FastAPI

from shared.errors import register_error_handlers

from .router import router, public_router


payment_app = FastAPI(title="Payment Service", version="2.0.0")

register_error_handlers(payment_app)

payment_app.include_router(router)
payment_app.include_router(public_router)
