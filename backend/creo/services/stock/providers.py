import re
from dataclasses import dataclass, field, replace
from decimal import Decimal


@dataclass(frozen=True)
class ProviderDescriptor:
    name: str
    aliases: tuple[str, ...] = ()
    domains: tuple[str, ...] = ()
    url_patterns: tuple[re.Pattern, ...] = ()
    id_pattern: re.Pattern = field(default_factory=lambda: re.compile(r'[A-Za-z0-9_-]+'))
    bare_id_pattern: re.Pattern | None = None
    id_prefix: str | None = None
    active: bool = True
    price: Decimal | None = None
    currency_unit: str | None = None

    def matches_name(self, value: str) -> bool:
        key = value.strip().lower()
        return key == self.name or key in self.aliases

    def matches_host(self, host: str) -> bool:
        host = host.lower()
        return any(host == domain or host.endswith('.' + domain) for domain in self.domains)

    def extract_id(self, url_tail: str) -> str | None:
        for pattern in self.url_patterns:
            match = pattern.search(url_tail)
            if match and pattern.groups and match.group(1):
                return self.normalize_id(match.group(1))
        return None

    def is_valid_id(self, value: str) -> bool:
        return bool(self.id_pattern.fullmatch(value))

    def matches_bare_id(self, value: str) -> bool:
        return self.bare_id_pattern is not None and bool(self.bare_id_pattern.fullmatch(value))

    def normalize_id(self, value: str) -> str:
        if self.id_prefix and value.lower().startswith(self.id_prefix):
            return value[len(self.id_prefix):]
        return value


def _descriptor(
    name: str,
    domains: list[str],
    url_patterns: list[str],
    id_pattern: str = r'\d+',
    aliases: tuple[str, ...] = (),
    bare_id_pattern: str | None = None,
    id_prefix: str | None = None,
) -> ProviderDescriptor:
    return ProviderDescriptor(
        name=name,
        aliases=aliases,
        domains=tuple(domains),
        url_patterns=tuple(re.compile(p) for p in url_patterns),
        id_pattern=re.compile(id_pattern),
        bare_id_pattern=re.compile(bare_id_pattern) if bare_id_pattern else None,
        id_prefix=id_prefix,
    )


# Known URL shapes, keyed by canonical provider name. The catalog service decides
# which of them are active and may override the URL / id patterns.
BUILTIN_PROVIDERS: dict[str, ProviderDescriptor] = {
    d.name: d
    for d in [
        _descriptor(
            'shutterstock',
            ['shutterstock.com'],
            [r'-(\d{5,})/?(?:[?#]|$)', r'/(\d{5,})/?(?:[?#]|$)', r'[?&]id=(\d+)'],
        ),
        _descriptor(
            'istockphoto',
            ['istockphoto.com'],
            [r'gm(\d+)', r'-(\d{5,})/?(?:[?#]|$)'],
            id_pattern=r'(?:gm)?\d+',
            aliases=('istock',),
            bare_id_pattern=r'gm\d{5,}',
            id_prefix='gm',
        ),
        _descriptor(
            'adobestock',
            ['stock.adobe.com'],
            [r'/(\d{5,})/?(?:[?#]|$)', r'[?&]asset_id=(\d+)'],
            aliases=('adobe', 'adobe-stock'),
        ),
        _descriptor(
            'dreamstime',
            ['dreamstime.com'],
            [r'image(\d+)', r'-(\d{5,})(?:\.html)?/?(?:[?#]|$)'],
        ),
        _descriptor(
            'alamy',
            ['alamy.com'],
            [r'-([A-Z0-9]{6,8})\.html', r'/image-details/([A-Z0-9]{6,8})'],
            id_pattern=r'[A-Za-z0-9]{6,8}',
            bare_id_pattern=r'(?=[A-Z0-9]*[A-Z])(?=[A-Z0-9]*\d)[A-Z0-9]{6,8}',
        ),
        _descriptor(
            'freepik',
            ['freepik.com'],
            [r'_(\d+)\.htm', r'-(\d{5,})(?:\.htm)?/?(?:[?#]|$)'],
        ),
        _descriptor(
            'unsplash',
            ['unsplash.com'],
            [r'/photos/([A-Za-z0-9_-]+)'],
            id_pattern=r'[A-Za-z0-9_-]{6,}',
        ),
        _descriptor(
            'pexels',
            ['pexels.com'],
            [r'/(?:photo|video)/(?:[^/?#]*-)?(\d+)/?'],
        ),
        _descriptor(
            'pixabay',
            ['pixabay.com'],
            [r'-(\d+)/?(?:[?#]|$)'],
        ),
        _descriptor(
            'gettyimages',
            ['gettyimages.com'],
            [r'/detail/[^?#]*?/(\d+)/?(?:[?#]|$)', r'/(\d{5,})/?(?:[?#]|$)'],
            aliases=('getty',),
        ),
    ]
}


def descriptor_from_service(name: str, payload: dict) -> ProviderDescriptor:
    """Merge one ``GET /providers`` entry into the built-in descriptor for *name*."""
    key = name.strip().lower()
    base = next((d for d in BUILTIN_PROVIDERS.values() if d.matches_name(key)), None)
    if base is None:
        base = ProviderDescriptor(name=key)
    elif base.name != key:
        # The service may publish an alias as the site name; lookups must use its spelling.
        aliases = tuple(a for a in (base.name, *base.aliases) if a != key)
        base = replace(base, name=key, aliases=aliases)

    url_patterns = base.url_patterns
    url_pattern = payload.get('urlPattern') or payload.get('url_pattern')
    if url_pattern:
        url_patterns = (re.compile(url_pattern),) + url_patterns

    id_pattern = base.id_pattern
    raw_id_pattern = payload.get('idPattern') or payload.get('id_pattern')
    if raw_id_pattern:
        id_pattern = re.compile(raw_id_pattern)

    price = payload.get('price')
    return replace(
        base,
        url_patterns=url_patterns,
        id_pattern=id_pattern,
        active=bool(payload.get('active', False)),
        price=Decimal(str(price)) if price is not None else None,
        currency_unit=payload.get('currencyUnit') or payload.get('currency_unit'),
    )
