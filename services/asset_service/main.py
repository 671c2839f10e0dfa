from fastapi import FastAPI

from shared.errors import register_error_handlers

from .router import router, public_router

asset_app = FastAPI(title="Asset Service", version="1.0.0")

register_error_handlers(asset_app)

asset_app.include_router(public_router)
asset_app.include_router(router)
