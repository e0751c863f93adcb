from creo.schemas.batch import (
    BatchCreate,
    BatchInputUpdate,
    BatchStateOut,
    BatchStatsOut,
    CostSummaryOut,
    ItemMetadataOut,
    OrderConfirmationOut,
    OrderItemOut,
    ParsedReferenceOut,
    ResolvedItemOut,
)
from creo.schemas.provider import ProviderOut

__all__ = [
    'BatchCreate',
    'BatchInputUpdate',
    'BatchStateOut',
    'BatchStatsOut',
    'CostSummaryOut',
    'ItemMetadataOut',
    'OrderConfirmationOut',
    'OrderItemOut',
    'ParsedReferenceOut',
    'ProviderOut',
    'ResolvedItemOut',
]
