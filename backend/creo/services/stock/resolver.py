import queue
import threading
from collections.abc import Callable, Iterator
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timezone

from creo.core.config import settings
from creo.core.logging import get_logger
from creo.models.enums import ItemStatus, LookupErrorCode
from creo.services.stock.catalog import ProviderCatalog
from creo.services.stock.client import StockApiClient, StockApiError, classify_http_error
from creo.services.stock.models import ItemMetadata, ParsedReference, ResolvedItem

logger = get_logger('stock.resolver')

LookupFn = Callable[[ParsedReference], ItemMetadata]
ItemCallback = Callable[[ResolvedItem], None]


def make_lookup(client: StockApiClient, catalog: ProviderCatalog) -> LookupFn:
    def lookup(reference: ParsedReference) -> ItemMetadata:
        provider = catalog.get(reference.site or '')
        return client.lookup(
            reference.site,
            reference.external_id,
            url=reference.source_url,
            fallback_price=provider.price if provider else None,
            fallback_currency=provider.currency_unit if provider else None,
        )

    return lookup


class ResolutionPass:
    """One resolution run over a fixed list of valid references.

    Results are keyed by position in the submitted list; a result is only
    accepted while this pass is the resolver's current generation and the
    attempt that produced it is the latest one for that position.
    """

    def __init__(
        self,
        generation: int,
        references: list[ParsedReference],
        resolver: 'BatchResolver',
        on_item: ItemCallback | None = None,
    ) -> None:
        self.generation = generation
        self.references = list(references)
        self._resolver = resolver
        self._on_item = on_item
        self._lock = threading.Lock()
        self._changed = threading.Condition(self._lock)
        self._statuses = [ItemStatus.PENDING] * len(self.references)
        self._attempts = [0] * len(self.references)
        self._items: dict[int, ResolvedItem] = {}
        self._futures: dict[int, Future] = {}
        self._events: queue.Queue[ResolvedItem | None] = queue.Queue()
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def is_done(self) -> bool:
        with self._lock:
            return self._done_locked()

    def start(self) -> None:
        for position in range(len(self.references)):
            self._submit(position, 0)

    def status(self, position: int) -> ItemStatus:
        with self._lock:
            return self._statuses[position]

    def statuses(self) -> list[ItemStatus]:
        with self._lock:
            return list(self._statuses)

    def in_flight(self) -> list[int]:
        with self._lock:
            return [i for i, status in enumerate(self._statuses) if status == ItemStatus.IN_FLIGHT]

    def items(self) -> list[ResolvedItem]:
        """Settled items in input order."""
        with self._lock:
            return [self._items[position] for position in sorted(self._items)]

    def snapshot(self) -> list[tuple[ItemStatus, ResolvedItem | None]]:
        """Status and settled item for every position, read together."""
        with self._lock:
            return [(status, self._items.get(position)) for position, status in enumerate(self._statuses)]

    def item(self, position: int) -> ResolvedItem | None:
        with self._lock:
            return self._items.get(position)

    def wait(self, timeout: float | None = None) -> bool:
        with self._changed:
            return self._changed.wait_for(self._done_locked, timeout=timeout)

    def iter_completed(self, timeout: float | None = None) -> Iterator[ResolvedItem]:
        """Yield items in completion order until the pass settles or is cancelled.

        Meant for a single consumer; *timeout* bounds the wait for each item.
        """
        while True:
            with self._lock:
                if self._done_locked() and self._events.empty():
                    return
            try:
                item = self._events.get(timeout=timeout)
            except queue.Empty:
                return
            if item is None:
                return
            yield item

    def retry(self, position: int) -> None:
        with self._lock:
            if self._cancelled or not self._resolver.is_current(self.generation):
                raise RuntimeError('Resolution pass is no longer current')
            item = self._items.get(position)
            if self._statuses[position] != ItemStatus.SETTLED or item is None:
                raise ValueError(f'Item {position} has not settled yet')
            if item.is_success:
                raise ValueError(f'Item {position} already resolved')
            self._attempts[position] += 1
            attempt = self._attempts[position]
            self._statuses[position] = ItemStatus.PENDING
            del self._items[position]
            self._changed.notify_all()
        logger.info('Retrying lookup for %s:%s', self.references[position].site, self.references[position].external_id)
        self._submit(position, attempt)

    def cancel(self) -> None:
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            for position, status in enumerate(self._statuses):
                if status != ItemStatus.SETTLED:
                    self._statuses[position] = ItemStatus.CANCELLED
            futures = list(self._futures.values())
            self._changed.notify_all()
        for future in futures:
            future.cancel()
        self._events.put(None)
        logger.debug('Resolution pass %s cancelled', self.generation)

    def _submit(self, position: int, attempt: int) -> None:
        future = self._resolver.submit(self._run, position, attempt)
        with self._lock:
            self._futures[position] = future

    def _run(self, position: int, attempt: int) -> None:
        with self._lock:
            if not self._accepts(position, attempt):
                return
            self._statuses[position] = ItemStatus.IN_FLIGHT

        item = self._resolver.lookup_item(self.references[position], position)

        with self._lock:
            if not self._accepts(position, attempt):
                logger.debug('Discarding stale result for position %s of pass %s', position, self.generation)
                return
            self._items[position] = item
            self._statuses[position] = ItemStatus.SETTLED
            self._events.put(item)
            self._changed.notify_all()

        if self._on_item is not None:
            try:
                self._on_item(item)
            except Exception:
                logger.exception('on_item callback failed for position %s', position)

    def _accepts(self, position: int, attempt: int) -> bool:
        return (
            not self._cancelled
            and self._attempts[position] == attempt
            and self._resolver.is_current(self.generation)
        )

    def _done_locked(self) -> bool:
        return all(status in {ItemStatus.SETTLED, ItemStatus.CANCELLED} for status in self._statuses)


class BatchResolver:
    def __init__(self, lookup: LookupFn, max_workers: int | None = None) -> None:
        self._lookup = lookup
        self.max_workers = max_workers or settings.max_concurrent_lookups
        self._executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix='creo-lookup')
        self._lock = threading.Lock()
        self._generation = 0
        self._current: ResolutionPass | None = None

    @property
    def current(self) -> ResolutionPass | None:
        return self._current

    def is_current(self, generation: int) -> bool:
        return self._generation == generation

    def resolve(self, references: list[ParsedReference], on_item: ItemCallback | None = None) -> ResolutionPass:
        invalid = [ref.raw for ref in references if not ref.is_valid]
        if invalid:
            raise ValueError(f'Only valid references can be resolved, got {len(invalid)} invalid')

        with self._lock:
            previous = self._current
            self._generation += 1
            run = ResolutionPass(self._generation, references, self, on_item=on_item)
            self._current = run

        if previous is not None:
            previous.cancel()

        logger.info('Starting resolution pass %s for %s reference(s)', run.generation, len(references))
        run.start()
        return run

    def cancel(self) -> None:
        with self._lock:
            current = self._current
            self._generation += 1
        if current is not None:
            current.cancel()

    def submit(self, fn, *args) -> Future:
        return self._executor.submit(fn, *args)

    def lookup_item(self, reference: ParsedReference, position: int) -> ResolvedItem:
        resolved_at = datetime.now(timezone.utc)
        try:
            metadata = self._lookup(reference)
            available = metadata.available
        except StockApiError as exc:
            logger.warning('Lookup failed for %s:%s: %s (%s)', reference.site, reference.external_id, exc.message, exc.code.value)
            return _failed(reference, position, resolved_at, exc.code, exc.message)
        except Exception as exc:
            error = classify_http_error(exc)
            logger.exception('Unexpected lookup failure for %s:%s', reference.site, reference.external_id)
            return _failed(reference, position, resolved_at, error.code, error.message)

        if not available:
            return _failed(reference, position, resolved_at, LookupErrorCode.UNAVAILABLE, 'Item is not available for purchase')

        return ResolvedItem(
            input=reference,
            position=position,
            is_success=True,
            resolved_at=resolved_at,
            metadata=metadata,
        )

    def close(self) -> None:
        self.cancel()
        self._executor.shutdown(wait=False, cancel_futures=True)


def _failed(
    reference: ParsedReference,
    position: int,
    resolved_at: datetime,
    code: LookupErrorCode,
    message: str | None,
) -> ResolvedItem:
    return ResolvedItem(
        input=reference,
        position=position,
        is_success=False,
        resolved_at=resolved_at,
        error=code,
        error_message=message,
    )
