from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass, field
from decimal import Decimal

from creo.core.config import settings
from creo.core.logging import get_logger
from creo.models.enums import GateReason, ItemStatus
from creo.services.stock.models import AccountBalance, ParsedReference, ResolvedItem

logger = get_logger('stock.aggregator')

BalanceReader = Callable[[str], AccountBalance]


class BalanceUnavailableError(Exception):
    """Eligibility cannot be determined because the balance could not be read."""


@dataclass
class BatchStats:
    total: int = 0
    valid: int = 0
    invalid: int = 0
    site_breakdown: dict[str, int] = field(default_factory=dict)
    pending: int = 0
    in_flight: int = 0
    success: int = 0
    errors: int = 0
    total_cost: Decimal = Decimal('0')


@dataclass
class CostSummary:
    total_cost: Decimal
    eligible_items: list[ResolvedItem]
    totals_by_currency: dict[str, Decimal] = field(default_factory=dict)
    balance: AccountBalance | None = None
    affordable: bool = False
    reason: GateReason = GateReason.NOTHING_TO_ORDER
    shortfall: Decimal = Decimal('0')


def total_cost(items: list[ResolvedItem]) -> Decimal:
    return sum((item.metadata.price for item in items if item.is_success and item.metadata), Decimal('0'))


def compute_stats(
    references: list[ParsedReference],
    items: list[ResolvedItem],
    statuses: list[ItemStatus] | None = None,
) -> BatchStats:
    valid = [ref for ref in references if ref.is_valid]
    statuses = statuses or []
    return BatchStats(
        total=len(references),
        valid=len(valid),
        invalid=len(references) - len(valid),
        site_breakdown=dict(sorted(Counter(ref.site for ref in valid if ref.site).items())),
        pending=sum(1 for status in statuses if status == ItemStatus.PENDING),
        in_flight=sum(1 for status in statuses if status == ItemStatus.IN_FLIGHT),
        success=sum(1 for item in items if item.is_success),
        errors=sum(1 for item in items if not item.is_success),
        total_cost=total_cost(items),
    )


def aggregate(items: list[ResolvedItem], balance_reader: BalanceReader, user_id: str) -> CostSummary:
    """Sum successful items and gate the whole set against the user's balance.

    The gate is all-or-nothing: either every successful item is eligible or
    none is. Items priced in a unit other than the balance's make the whole
    set ineligible. Nothing is read from the balance service when there is
    nothing to price.
    """
    successful = [item for item in items if item.is_success and item.metadata is not None]
    cost = total_cost(successful)

    totals: dict[str, Decimal] = {}
    for item in successful:
        unit = _unit(item.metadata.currency_unit)
        totals[unit] = totals.get(unit, Decimal('0')) + item.metadata.price

    if not successful:
        return CostSummary(total_cost=cost, eligible_items=[], totals_by_currency=totals)

    try:
        balance = balance_reader(user_id)
    except Exception as exc:
        logger.warning('Balance lookup failed for user %s: %s', user_id, exc)
        raise BalanceUnavailableError(f'Cannot determine eligibility: {exc}') from exc

    foreign = [unit for unit in totals if unit != _unit(balance.currency_unit)]
    if foreign:
        return CostSummary(
            total_cost=cost,
            eligible_items=[],
            totals_by_currency=totals,
            balance=balance,
            reason=GateReason.CURRENCY_MISMATCH,
        )

    if cost > balance.amount:
        return CostSummary(
            total_cost=cost,
            eligible_items=[],
            totals_by_currency=totals,
            balance=balance,
            reason=GateReason.INSUFFICIENT_BALANCE,
            shortfall=cost - balance.amount,
        )

    return CostSummary(
        total_cost=cost,
        eligible_items=successful,
        totals_by_currency=totals,
        balance=balance,
        affordable=True,
        reason=GateReason.AFFORDABLE,
    )


def _unit(value: str | None) -> str:
    return (value or settings.default_currency_unit).strip().lower()
