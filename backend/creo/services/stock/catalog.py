import threading
import time
from collections.abc import Iterable
from typing import Any, Callable

from creo.core.config import settings
from creo.core.logging import get_logger
from creo.services.stock.providers import ProviderDescriptor, descriptor_from_service

logger = get_logger('stock.catalog')


class CatalogUnavailableError(Exception):
    pass


class ProviderCatalog:
    """Immutable snapshot of the provider registry.

    Providers are iterated in name order so that parsing against a snapshot is
    deterministic regardless of the order the service returned them in.
    """

    def __init__(self, providers: Iterable[ProviderDescriptor], fetched_at: float | None = None) -> None:
        self._providers: tuple[ProviderDescriptor, ...] = tuple(sorted(providers, key=lambda p: p.name))
        self.fetched_at = fetched_at if fetched_at is not None else time.time()

    @classmethod
    def from_service(cls, payload: dict[str, dict[str, Any]], fetched_at: float | None = None) -> 'ProviderCatalog':
        return cls([descriptor_from_service(name, entry) for name, entry in payload.items()], fetched_at=fetched_at)

    @property
    def providers(self) -> tuple[ProviderDescriptor, ...]:
        return self._providers

    @property
    def active_providers(self) -> tuple[ProviderDescriptor, ...]:
        return tuple(p for p in self._providers if p.active)

    def get(self, name: str) -> ProviderDescriptor | None:
        for provider in self._providers:
            if provider.name == name.strip().lower():
                return provider
        for provider in self._providers:
            if provider.matches_name(name):
                return provider
        return None

    def for_host(self, host: str) -> ProviderDescriptor | None:
        for provider in self._providers:
            if provider.matches_host(host):
                return provider
        return None

    def __len__(self) -> int:
        return len(self._providers)

    def __iter__(self):
        return iter(self._providers)


class CatalogSource:
    """Keeps a live :class:`ProviderCatalog`, refreshed from the provider service."""

    def __init__(
        self,
        fetch: Callable[[], dict[str, dict[str, Any]]],
        ttl_seconds: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._fetch = fetch
        self._ttl = settings.catalog_ttl_seconds if ttl_seconds is None else ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._snapshot: ProviderCatalog | None = None
        self._loaded_at: float | None = None

    def current(self) -> ProviderCatalog:
        with self._lock:
            snapshot = self._snapshot
            stale = self._loaded_at is None or self._clock() - self._loaded_at >= self._ttl
        if snapshot is not None and not stale:
            return snapshot
        return self.refresh()

    def refresh(self) -> ProviderCatalog:
        try:
            catalog = ProviderCatalog.from_service(self._fetch())
        except Exception as exc:
            with self._lock:
                snapshot = self._snapshot
                if snapshot is not None:
                    # Previous snapshot stays in use for another TTL.
                    self._loaded_at = self._clock()
            if snapshot is None:
                raise CatalogUnavailableError(f'Provider catalog could not be loaded: {exc}') from exc
            logger.warning('Provider catalog refresh failed, keeping previous snapshot: %s', exc)
            return snapshot

        with self._lock:
            self._snapshot = catalog
            self._loaded_at = self._clock()
        logger.info('Provider catalog refreshed: %s providers (%s active)', len(catalog), len(catalog.active_providers))
        return catalog
