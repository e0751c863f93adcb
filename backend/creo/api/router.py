from fastapi import APIRouter

from creo.api.routes import batches, providers

api_router = APIRouter()
api_router.include_router(providers.router, tags=['providers'])
api_router.include_router(batches.router, tags=['batches'])
