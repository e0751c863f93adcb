import pytest

from creo.services.stock.catalog import ProviderCatalog


@pytest.fixture
def catalog() -> ProviderCatalog:
    return ProviderCatalog.from_service(
        {
            'shutterstock': {'active': True, 'price': 10, 'currencyUnit': 'points'},
            'istock': {'active': True, 'price': 12, 'currencyUnit': 'points'},
            'adobestock': {'active': True, 'price': '8.5', 'currencyUnit': 'points'},
            'alamy': {'active': True},
            'freepik': {'active': False, 'price': 1},
        }
    )
