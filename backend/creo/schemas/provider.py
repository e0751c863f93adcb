from decimal import Decimal

from pydantic import BaseModel


class ProviderOut(BaseModel):
    name: str
    aliases: list[str]
    domains: list[str]
    active: bool
    price: Decimal | None
    currency_unit: str | None
