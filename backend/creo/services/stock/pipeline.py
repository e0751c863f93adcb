import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

from creo.core.logging import get_logger
from creo.models.enums import GateReason
from creo.services.stock.aggregator import BatchStats, CostSummary, aggregate, compute_stats
from creo.services.stock.catalog import CatalogSource, ProviderCatalog
from creo.services.stock.client import StockApiClient
from creo.services.stock.models import ItemMetadata, OrderConfirmation, ParsedReference, ResolvedItem
from creo.services.stock.order_creator import BulkOrderCreator, EmptyOrderError
from creo.services.stock.reference_parser import parse_references, remove_line
from creo.services.stock.resolver import BatchResolver, ItemCallback, LookupFn, ResolutionPass, make_lookup

logger = get_logger('stock.pipeline')


@dataclass
class BatchSession:
    user_id: str
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    raw_text: str = ''
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class InsufficientBalanceError(Exception):
    def __init__(self, summary: CostSummary) -> None:
        if summary.reason == GateReason.CURRENCY_MISMATCH:
            message = 'Items are priced in a different unit than the account balance'
        else:
            message = f'Balance is short by {summary.shortfall}'
        super().__init__(message)
        self.summary = summary


class BatchNotSettledError(Exception):
    pass


class StockBatchPipeline:
    """parse -> resolve -> aggregate -> gate -> order, for one user session."""

    def __init__(
        self,
        session: BatchSession,
        client: StockApiClient,
        catalog_source: CatalogSource,
        max_workers: int | None = None,
        on_item: ItemCallback | None = None,
    ) -> None:
        self.session = session
        self.client = client
        self.catalog_source = catalog_source
        self.on_item = on_item
        self.order_creator = BulkOrderCreator(client)
        self.resolver = BatchResolver(self._lookup, max_workers=max_workers)
        self._catalog: ProviderCatalog | None = None
        self._lookup_fn: LookupFn | None = None
        self._references: list[ParsedReference] = []
        self._pass: ResolutionPass | None = None
        self._input_lock = threading.RLock()

    @property
    def references(self) -> list[ParsedReference]:
        return list(self._references)

    @property
    def current_pass(self) -> ResolutionPass | None:
        return self._pass

    @property
    def catalog(self) -> ProviderCatalog | None:
        return self._catalog

    def update_input(self, raw_text: str) -> list[ParsedReference]:
        with self._input_lock:
            catalog = self.catalog_source.current()
            references = parse_references(raw_text, catalog)
            valid = [ref for ref in references if ref.is_valid]

            self.session.raw_text = raw_text
            self._catalog = catalog
            self._lookup_fn = make_lookup(self.client, catalog)
            self._references = references

            if valid:
                self._pass = self.resolver.resolve(valid, on_item=self.on_item)
            else:
                self.resolver.cancel()
                self._pass = None

        logger.info(
            'Session %s: %s reference(s), %s valid',
            self.session.session_id,
            len(references),
            len(valid),
        )
        return references

    def items(self) -> list[ResolvedItem]:
        return self._pass.items() if self._pass else []

    def stats(self) -> BatchStats:
        if self._pass is None:
            return compute_stats(self._references, [])
        return compute_stats(self._references, self._pass.items(), self._pass.statuses())

    def wait(self, timeout: float | None = None) -> bool:
        return self._pass.wait(timeout) if self._pass else True

    def quote(self) -> CostSummary:
        return aggregate(self.items(), self.client.get_balance, self.session.user_id)

    def submit_order(self, wait_timeout: float | None = 0) -> OrderConfirmation:
        if self._pass is not None and not self._pass.wait(wait_timeout):
            raise BatchNotSettledError('Some items are still being resolved')

        summary = self.quote()
        if not summary.eligible_items:
            if summary.reason in {GateReason.INSUFFICIENT_BALANCE, GateReason.CURRENCY_MISMATCH}:
                raise InsufficientBalanceError(summary)
            raise EmptyOrderError('No valid items to order')

        return self.order_creator.create_bulk_order(self.session.user_id, summary.eligible_items)

    def retry_item(self, position: int) -> None:
        if self._pass is None:
            raise ValueError('Nothing is being resolved')
        if not 0 <= position < len(self._pass.references):
            raise IndexError(position)
        self._pass.retry(position)

    def remove_line(self, line_number: int) -> list[ParsedReference]:
        with self._input_lock:
            reference = next((ref for ref in self._references if ref.line_number == line_number), None)
            if reference is None:
                raise ValueError(f'No reference on line {line_number}')
            return self.update_input(remove_line(self.session.raw_text, reference))

    def close(self) -> None:
        self.resolver.close()

    def _lookup(self, reference: ParsedReference) -> ItemMetadata:
        if self._lookup_fn is None:
            raise RuntimeError('Lookup requested before any input was parsed')
        return self._lookup_fn(reference)
