import threading

from creo.core.logging import get_logger
from creo.services.stock.catalog import CatalogSource
from creo.services.stock.client import StockApiClient
from creo.services.stock.pipeline import BatchSession, StockBatchPipeline

logger = get_logger('sessions')


class BatchSessionRegistry:
    """In-memory pipelines for the batch stock screen, one per browser session."""

    def __init__(self) -> None:
        self._pipelines: dict[str, StockBatchPipeline] = {}
        self._lock = threading.Lock()

    def create(self, user_id: str, client: StockApiClient, catalog_source: CatalogSource) -> StockBatchPipeline:
        pipeline = StockBatchPipeline(BatchSession(user_id=user_id), client, catalog_source)
        with self._lock:
            self._pipelines[pipeline.session.session_id] = pipeline
        logger.info('Opened batch session %s for user %s', pipeline.session.session_id, user_id)
        return pipeline

    def get(self, session_id: str) -> StockBatchPipeline:
        with self._lock:
            pipeline = self._pipelines.get(session_id)
        if pipeline is None:
            raise KeyError(session_id)
        return pipeline

    def discard(self, session_id: str) -> bool:
        with self._lock:
            pipeline = self._pipelines.pop(session_id, None)
        if pipeline is None:
            return False
        pipeline.close()
        logger.info('Closed batch session %s', session_id)
        return True

    def close_all(self) -> None:
        with self._lock:
            pipelines = list(self._pipelines.values())
            self._pipelines.clear()
        for pipeline in pipelines:
            pipeline.close()


batch_sessions = BatchSessionRegistry()
