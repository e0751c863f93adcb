from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from creo.api.router import api_router
from creo.core.config import settings
from creo.core.logging import configure_logging
from creo.services.session_store import batch_sessions

configure_logging()

app = FastAPI(title=settings.app_name, version='0.1.0')

app.add_middleware(
    CORSMiddleware,
    allow_origins=['*'],
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

app.include_router(api_router, prefix=settings.api_v1_prefix)


@app.on_event('shutdown')
def shutdown() -> None:
    batch_sessions.close_all()


@app.get('/health')
def health() -> dict:
    return {'status': 'ok'}
