from functools import lru_cache

from fastapi import Depends, HTTPException

from creo.services.session_store import BatchSessionRegistry, batch_sessions
from creo.services.stock.catalog import CatalogSource
from creo.services.stock.client import StockApiClient
from creo.services.stock.pipeline import StockBatchPipeline


@lru_cache
def get_stock_client() -> StockApiClient:
    return StockApiClient()


@lru_cache
def get_catalog_source() -> CatalogSource:
    return CatalogSource(get_stock_client().get_providers)


def get_sessions() -> BatchSessionRegistry:
    return batch_sessions


def get_pipeline(session_id: str, sessions: BatchSessionRegistry = Depends(get_sessions)) -> StockBatchPipeline:
    try:
        return sessions.get(session_id)
    except KeyError:
        raise HTTPException(status_code=404, detail='Batch session not found')
