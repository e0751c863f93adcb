from fastapi import APIRouter, Depends, HTTPException

from creo.api.deps import get_catalog_source
from creo.schemas.provider import ProviderOut
from creo.services.stock.catalog import CatalogSource, CatalogUnavailableError

router = APIRouter()


@router.get('/providers/', response_model=list[ProviderOut])
def list_providers(catalog_source: CatalogSource = Depends(get_catalog_source)):
    try:
        catalog = catalog_source.current()
    except CatalogUnavailableError as exc:
        raise HTTPException(status_code=503, detail=str(exc))

    return [
        ProviderOut(
            name=provider.name,
            aliases=list(provider.aliases),
            domains=list(provider.domains),
            active=provider.active,
            price=provider.price,
            currency_unit=provider.currency_unit,
        )
        for provider in catalog
    ]
