import re
from collections import Counter
from dataclasses import dataclass, field
from urllib.parse import urlparse

from creo.models.enums import InvalidReason
from creo.services.stock.catalog import ProviderCatalog
from creo.services.stock.models import ParsedReference

LINE_BREAK_RE = re.compile(r'(\r\n|\r|\n)')
SHORTHAND_RE = re.compile(r'^(?P<site>[A-Za-z][A-Za-z0-9_-]*)\s*:\s*(?P<id>(?!//)\S+)$')
URL_RE = re.compile(r'^(?:https?://|www\.)', re.IGNORECASE)
BARE_ID_RE = re.compile(r'^[A-Za-z0-9_-]+$')


@dataclass
class InputStats:
    total: int
    valid: int
    invalid: int
    site_breakdown: dict[str, int] = field(default_factory=dict)


def parse_references(raw_text: str, catalog: ProviderCatalog) -> list[ParsedReference]:
    references: list[ParsedReference] = []
    for line_number, line in enumerate(split_lines(raw_text), start=1):
        if not line.strip():
            continue
        references.append(parse_reference(line, catalog, line_number=line_number))
    return references


def parse_reference(line: str, catalog: ProviderCatalog, line_number: int = 1) -> ParsedReference:
    value = line.strip()
    if not value:
        return _invalid(line, line_number, InvalidReason.EMPTY_LINE, 'Empty input')

    shorthand = SHORTHAND_RE.match(value)
    if shorthand:
        return _parse_shorthand(line, line_number, shorthand.group('site'), shorthand.group('id'), catalog)

    if URL_RE.match(value):
        return _parse_url(line, line_number, value, catalog)

    if BARE_ID_RE.match(value):
        return _parse_bare_id(line, line_number, value, catalog)

    return _invalid(line, line_number, InvalidReason.UNRECOGNIZED_FORMAT, 'Unrecognized format. Use URL, ID, or site:id format')


def split_lines(raw_text: str) -> list[str]:
    if not raw_text:
        return []
    return LINE_BREAK_RE.split(raw_text)[::2]


def input_stats(references: list[ParsedReference]) -> InputStats:
    valid = [ref for ref in references if ref.is_valid]
    breakdown = Counter(ref.site for ref in valid if ref.site)
    return InputStats(
        total=len(references),
        valid=len(valid),
        invalid=len(references) - len(valid),
        site_breakdown=dict(sorted(breakdown.items())),
    )


def remove_line(raw_text: str, reference: ParsedReference) -> str:
    """Return *raw_text* without the line *reference* was parsed from.

    The line is located by its number first and by its verbatim content when
    the text was edited in between; unrelated lines keep their separators.
    """
    parts = LINE_BREAK_RE.split(raw_text) if raw_text else []
    lines = parts[::2]

    index = reference.line_number - 1
    if not (0 <= index < len(lines) and lines[index] == reference.raw):
        index = next((i for i, line in enumerate(lines) if line == reference.raw), -1)
    if index < 0:
        return raw_text

    position = index * 2
    if position + 1 < len(parts):
        del parts[position:position + 2]
    elif position > 0:
        del parts[position - 1:position + 1]
    else:
        del parts[position]
    return ''.join(parts)


def _parse_shorthand(line: str, line_number: int, site: str, raw_id: str, catalog: ProviderCatalog) -> ParsedReference:
    provider = catalog.get(site)
    if provider is None:
        return _invalid(line, line_number, InvalidReason.UNRECOGNIZED_PROVIDER, f'Unknown provider "{site}"')

    if not provider.is_valid_id(raw_id):
        return _invalid(
            line,
            line_number,
            InvalidReason.MALFORMED_ID,
            f'"{raw_id}" is not a valid {provider.name} id',
            site=provider.name,
        )

    return _checked(line, line_number, provider.name, provider.normalize_id(raw_id), None, provider.active)


def _parse_url(line: str, line_number: int, value: str, catalog: ProviderCatalog) -> ParsedReference:
    url = value if value.lower().startswith(('http://', 'https://')) else f'https://{value}'
    try:
        parsed = urlparse(url)
        host = (parsed.hostname or '').lower()
    except ValueError:
        host = ''
    if not host:
        return _invalid(line, line_number, InvalidReason.UNRECOGNIZED_FORMAT, 'Invalid URL format')

    provider = catalog.for_host(host)
    if provider is None:
        return _invalid(line, line_number, InvalidReason.UNRECOGNIZED_PROVIDER, f'Unsupported stock site "{host}"', source_url=url)

    tail = parsed.path + (f'?{parsed.query}' if parsed.query else '')
    external_id = provider.extract_id(tail)
    if not external_id or not provider.is_valid_id(external_id):
        return _invalid(
            line,
            line_number,
            InvalidReason.MALFORMED_ID,
            f'Could not extract ID from {provider.name} URL',
            site=provider.name,
            source_url=url,
        )

    return _checked(line, line_number, provider.name, external_id, url, provider.active)


def _parse_bare_id(line: str, line_number: int, value: str, catalog: ProviderCatalog) -> ParsedReference:
    candidates = [provider for provider in catalog if provider.matches_bare_id(value)]
    if len(candidates) != 1:
        detail = 'Unrecognized format. Use URL, ID, or site:id format'
        if candidates:
            detail = f'Ambiguous id, prefix it with one of: {", ".join(p.name for p in candidates)}'
        return _invalid(line, line_number, InvalidReason.UNRECOGNIZED_FORMAT, detail)

    provider = candidates[0]
    return _checked(line, line_number, provider.name, provider.normalize_id(value), None, provider.active)


def _checked(
    line: str,
    line_number: int,
    site: str,
    external_id: str,
    source_url: str | None,
    active: bool,
) -> ParsedReference:
    if not active:
        return _invalid(
            line,
            line_number,
            InvalidReason.PROVIDER_INACTIVE,
            f'{site} is currently inactive',
            site=site,
            external_id=external_id,
            source_url=source_url,
        )
    return ParsedReference(
        raw=line,
        line_number=line_number,
        site=site,
        external_id=external_id,
        source_url=source_url,
        is_valid=True,
    )


def _invalid(
    line: str,
    line_number: int,
    reason: InvalidReason,
    detail: str,
    site: str | None = None,
    external_id: str | None = None,
    source_url: str | None = None,
) -> ParsedReference:
    return ParsedReference(
        raw=line,
        line_number=line_number,
        site=site,
        external_id=external_id,
        source_url=source_url,
        is_valid=False,
        invalid_reason=reason,
        detail=detail,
    )
