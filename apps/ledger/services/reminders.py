"""Due-date reminders for debts that are still open."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List

from ..models import Transaction

OVERDUE = "overdue"
TODAY = "today"
UPCOMING = "upcoming"


@dataclass
class Reminder:
    transaction: Transaction
    status: str
    days_left: int


@dataclass
class ReminderDigest:
    items: List[Reminder]
    overdue_count: int
    today_count: int

    @property
    def has_active(self) -> bool:
        return (self.overdue_count + self.today_count) > 0


def _status(days_left: int) -> str:
    if days_left < 0:
        return OVERDUE
    if days_left == 0:
        return TODAY
    return UPCOMING


def due_reminders(
    transactions: Iterable[Transaction],
    balances: Dict[object, Decimal],
    today: date,
    window_days: int = 3,
) -> ReminderDigest:
    """Debts with a due date up to ``window_days`` ahead whose customer still owes money."""
    items = []
    for t in transactions:
        if t.kind != Transaction.DEBT or not t.due_date:
            continue
        if balances.get(t.customer_id, Decimal("0")) <= 0:
            continue
        days_left = (t.due_date - today).days
        if days_left > window_days:
            continue
        items.append(Reminder(transaction=t, status=_status(days_left), days_left=days_left))
    items.sort(key=lambda r: r.transaction.due_date)
    return ReminderDigest(
        items=items,
        overdue_count=sum(1 for r in items if r.status == OVERDUE),
        today_count=sum(1 for r in items if r.status == TODAY),
    )
