from decimal import Decimal

import pytest

from creo.services.stock.catalog import CatalogSource, CatalogUnavailableError, ProviderCatalog
from creo.services.stock.providers import descriptor_from_service


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class FlakyFetch:
    def __init__(self, payloads):
        self.payloads = list(payloads)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        payload = self.payloads.pop(0)
        if isinstance(payload, Exception):
            raise payload
        return payload


def test_catalog_from_service_merges_builtin_patterns(catalog):
    shutter = catalog.get('shutterstock')
    assert shutter.active
    assert shutter.price == Decimal('10')
    assert shutter.currency_unit == 'points'
    assert shutter.matches_host('www.shutterstock.com')
    assert not shutter.matches_host('notshutterstock.com')

    assert catalog.get('adobe') is catalog.get('adobestock')
    assert catalog.get('istockphoto').name == 'istock'
    assert catalog.get('getty') is None
    assert [p.name for p in catalog.active_providers] == ['adobestock', 'alamy', 'istock', 'shutterstock']


def test_descriptor_from_service_applies_overrides():
    descriptor = descriptor_from_service(
        'newsite',
        {'active': True, 'urlPattern': r'/asset/(\d+)', 'idPattern': r'\d{3}'},
    )

    assert descriptor.name == 'newsite'
    assert descriptor.extract_id('/asset/123') == '123'
    assert descriptor.is_valid_id('123')
    assert not descriptor.is_valid_id('1234')


def test_descriptor_defaults_to_inactive():
    assert not descriptor_from_service('shutterstock', {}).active


def test_catalog_source_caches_until_ttl_expires():
    clock = FakeClock()
    fetch = FlakyFetch([{'shutterstock': {'active': True}}, {'shutterstock': {'active': False}}])
    source = CatalogSource(fetch, ttl_seconds=60, clock=clock)

    first = source.current()
    assert source.current() is first
    assert fetch.calls == 1

    clock.now += 61
    second = source.current()
    assert fetch.calls == 2
    assert not second.get('shutterstock').active


def test_catalog_source_keeps_previous_snapshot_on_failure():
    clock = FakeClock()
    fetch = FlakyFetch([{'shutterstock': {'active': True}}, RuntimeError('down')])
    source = CatalogSource(fetch, ttl_seconds=60, clock=clock)

    first = source.current()
    clock.now += 61

    assert source.current() is first
    assert source.current() is first
    assert fetch.calls == 2


def test_catalog_source_keeps_previous_snapshot_on_bad_payload():
    clock = FakeClock()
    fetch = FlakyFetch(
        [
            {'shutterstock': {'active': True}},
            {'shutterstock': {'active': True, 'urlPattern': '(['}},
            {'shutterstock': {'active': True, 'price': 'lots'}},
        ]
    )
    source = CatalogSource(fetch, ttl_seconds=0, clock=clock)

    first = source.current()
    assert source.current() is first
    assert source.current() is first
    assert fetch.calls == 3


def test_catalog_source_bad_first_payload_is_unavailable():
    source = CatalogSource(FlakyFetch([{'shutterstock': {'idPattern': '('}}]), ttl_seconds=60)

    with pytest.raises(CatalogUnavailableError):
        source.current()


def test_catalog_source_without_snapshot_raises():
    source = CatalogSource(FlakyFetch([RuntimeError('down')]), ttl_seconds=60)

    with pytest.raises(CatalogUnavailableError):
        source.current()


def test_provider_catalog_iterates_in_name_order():
    catalog = ProviderCatalog.from_service({'pexels': {'active': True}, 'alamy': {'active': True}})
    assert [p.name for p in catalog] == ['alamy', 'pexels']
    assert len(catalog) == 2
