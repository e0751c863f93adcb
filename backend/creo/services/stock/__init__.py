from creo.services.stock.catalog import CatalogSource, ProviderCatalog
from creo.services.stock.pipeline import BatchSession, StockBatchPipeline
from creo.services.stock.reference_parser import parse_references
from creo.services.stock.resolver import BatchResolver

__all__ = ['BatchResolver', 'BatchSession', 'CatalogSource', 'ProviderCatalog', 'StockBatchPipeline', 'parse_references']
