from fastapi import FastAPI

from shared.errors import register_error_handlers

from .router import router, public_router

identity_app = FastAPI(
    title="Identity Service",
    version="1.0.0",
    description="Operator-only lookup of display names for order owners.",
)

register_error_handlers(identity_app)

identity_app.include_router(router)
identity_app.include_router(public_router)
