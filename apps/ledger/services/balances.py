"""Balance and aggregation helpers (balances, totals, time-range filters, debtors).

A balance is never stored: it is always Σ(debt) − Σ(payment) over the
customer's transactions. Both the pure-Python reductions below and the ORM
annotation in ``annotate_balances`` must agree on that.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from django.db.models import DecimalField, ExpressionWrapper, Max, Q, QuerySet, Sum, Value
from django.db.models.functions import Coalesce
from django.utils import timezone

from ..models import Transaction

ZERO = Decimal("0")
TIME_RANGES = ("today", "week", "month", "all")


@dataclass(frozen=True)
class Totals:
    total_debt: Decimal
    total_paid: Decimal

    @property
    def net(self) -> Decimal:
        return self.total_debt - self.total_paid


def signed_amount(kind: str, amount) -> Decimal:
    """Debt raises the balance, payment lowers it."""
    value = Decimal(amount)
    return value if kind == Transaction.DEBT else -value


def compute_balance(transactions: Iterable) -> Decimal:
    return sum((signed_amount(t.kind, t.amount) for t in transactions), ZERO)


def compute_totals(transactions: Iterable) -> Totals:
    total_debt = ZERO
    total_paid = ZERO
    for t in transactions:
        if t.kind == Transaction.DEBT:
            total_debt += Decimal(t.amount)
        else:
            total_paid += Decimal(t.amount)
    return Totals(total_debt=total_debt, total_paid=total_paid)


def range_start(time_range: str, now: Optional[datetime] = None) -> Optional[datetime]:
    """Start of the reporting window in local time; ``None`` means no lower bound."""
    if time_range not in TIME_RANGES:
        raise ValueError(f"Unknown time range: {time_range!r}")
    if time_range == "all":
        return None
    now = timezone.localtime(now or timezone.now())
    start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if time_range == "today":
        return start_of_day
    if time_range == "week":
        # Week starts on Monday.
        return start_of_day - timedelta(days=start_of_day.weekday())
    return start_of_day.replace(day=1)


def filter_by_range(transactions: Iterable, time_range: str, now: Optional[datetime] = None) -> List:
    start = range_start(time_range, now)
    if start is None:
        return list(transactions)
    return [t for t in transactions if t.created_at > start]


@dataclass
class PeriodDebtor:
    customer: object
    period_debt: Decimal
    period_paid: Decimal

    @property
    def period_balance(self) -> Decimal:
        return self.period_debt - self.period_paid


def period_debtors(customers: Iterable, transactions: Iterable) -> List[PeriodDebtor]:
    """Customers with any activity in ``transactions``, largest period balance first."""
    by_customer: Dict[object, List] = {}
    for t in transactions:
        by_customer.setdefault(t.customer_id, []).append(t)

    rows = []
    for customer in customers:
        own = by_customer.get(customer.id)
        if not own:
            continue
        totals = compute_totals(own)
        if totals.total_debt <= 0 and totals.total_paid <= 0:
            continue
        rows.append(PeriodDebtor(customer=customer, period_debt=totals.total_debt, period_paid=totals.total_paid))
    rows.sort(key=lambda row: row.period_balance, reverse=True)
    return rows


def _money_sum(condition: Q):
    money = DecimalField(max_digits=16, decimal_places=2)
    return Coalesce(
        Sum("transactions__amount", filter=condition, output_field=money),
        Value(ZERO),
        output_field=money,
    )


def annotate_balances(queryset: QuerySet) -> QuerySet:
    """Annotate customers with ``balance_value`` and ``last_transaction_at``."""
    money = DecimalField(max_digits=16, decimal_places=2)
    debt = _money_sum(Q(transactions__kind=Transaction.DEBT))
    paid = _money_sum(Q(transactions__kind=Transaction.PAYMENT))
    return queryset.annotate(
        balance_value=ExpressionWrapper(debt - paid, output_field=money),
        last_transaction_at=Max("transactions__created_at"),
    )


def queryset_totals(queryset: QuerySet) -> Totals:
    money = DecimalField(max_digits=16, decimal_places=2)
    aggregated = queryset.aggregate(
        debt=Coalesce(Sum("amount", filter=Q(kind=Transaction.DEBT)), Value(ZERO), output_field=money),
        paid=Coalesce(Sum("amount", filter=Q(kind=Transaction.PAYMENT)), Value(ZERO), output_field=money),
    )
    return Totals(total_debt=aggregated["debt"], total_paid=aggregated["paid"])
