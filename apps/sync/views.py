import logging
from datetime import timedelta
from decimal import Decimal, InvalidOperation
from uuid import UUID

from django.db import IntegrityError, transaction as db_transaction
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime
from rest_framework.decorators import api_view
from rest_framework.response import Response

from apps.ledger.models import Customer, ShopSettings, Transaction
from apps.ledger.serializers import CustomerSerializer, ShopSettingsSerializer, TransactionSerializer
from apps.ledger.services.balances import annotate_balances

from .models import ConflictLog, SyncEventLog
from .serializers import ConflictLogSerializer, DeletedEntitySerializer

logger = logging.getLogger(__name__)


def _parse_uuid(value):
    try:
        return UUID(str(value))
    except (TypeError, ValueError, AttributeError):
        return None


def _parse_amount(value):
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        return None
    return amount if amount.is_finite() and amount > 0 else None


def _text(value) -> str:
    """Stripped string payload field; anything that is not a string counts as empty."""
    return value.strip() if isinstance(value, str) else ""


def _now_iso():
    return timezone.now().isoformat()


def _register_conflict(owner, event_id, entity_type, entity_id, conflict_type, server_payload, client_payload):
    ConflictLog.objects.create(
        owner=owner,
        event_id=event_id,
        entity_type=entity_type,
        entity_id=entity_id,
        conflict_type=conflict_type,
        server_payload=server_payload,
        client_payload=client_payload,
    )
    logger.warning("Sync conflict %s on %s %s (owner=%s)", conflict_type, entity_type, entity_id, owner.id)


def _apply_customer(owner, event_id, entity_id, operation, payload):
    customer = Customer.objects.filter(owner=owner, id=entity_id).first()

    if operation == "DELETE":
        if not customer:
            return SyncEventLog.IGNORED
        customer.delete()
        return SyncEventLog.APPLIED

    incoming_version = int(payload.get("version") or 1)
    if customer:
        if operation == "CREATE" or incoming_version <= customer.version:
            _register_conflict(
                owner,
                event_id,
                "customer",
                customer.id,
                "version_conflict",
                CustomerSerializer(customer).data,
                payload,
            )
            return SyncEventLog.CONFLICT
        customer.name = _text(payload.get("name")) or customer.name
        if "phone" in payload:
            customer.phone = _text(payload["phone"])
        if "note" in payload:
            customer.note = _text(payload["note"])
        customer.version = incoming_version
        customer.save()
        return SyncEventLog.APPLIED

    name = _text(payload.get("name"))
    if not name:
        return SyncEventLog.INVALID
    if Customer.objects.filter(id=entity_id).exists():
        # The id is taken by another shop.
        return SyncEventLog.INVALID
    created_at = parse_datetime(payload.get("created_at") or "") or timezone.now()
    Customer.objects.create(
        id=entity_id,
        owner=owner,
        name=name,
        phone=_text(payload.get("phone")),
        note=_text(payload.get("note")),
        version=incoming_version,
        created_at=created_at,
    )
    return SyncEventLog.APPLIED


def _apply_transaction(owner, event_id, entity_id, operation, payload):
    existing = Transaction.objects.filter(owner=owner, id=entity_id).first()

    if operation == "DELETE":
        if not existing:
            return SyncEventLog.IGNORED
        existing.delete()
        return SyncEventLog.APPLIED

    if operation != "CREATE":
        # Transactions are append-only: edits are recorded, never applied.
        _register_conflict(owner, event_id, "transaction", entity_id, "append_only", {}, payload)
        return SyncEventLog.IGNORED

    if existing:
        return SyncEventLog.DUPLICATE
    if Transaction.objects.filter(id=entity_id).exists():
        return SyncEventLog.INVALID

    customer_id = _parse_uuid(payload.get("customer"))
    customer = Customer.objects.filter(owner=owner, id=customer_id).first() if customer_id else None
    amount = _parse_amount(payload.get("amount"))
    kind = _text(payload.get("kind")).lower()
    if customer is None or amount is None or kind not in (Transaction.DEBT, Transaction.PAYMENT):
        return SyncEventLog.INVALID

    due_raw = payload.get("due_date")
    created_raw = payload.get("created_at")
    Transaction.objects.create(
        id=entity_id,
        owner=owner,
        customer=customer,
        kind=kind,
        amount=amount,
        note=_text(payload.get("note")),
        due_date=parse_date(due_raw) if due_raw else None,
        created_at=(parse_datetime(created_raw) if created_raw else None) or timezone.now(),
    )
    return SyncEventLog.APPLIED


APPLIERS = {
    "customer": _apply_customer,
    "transaction": _apply_transaction,
}


@api_view(["POST"])
def sync_push(request):
    owner = request.user
    device_id = _text(request.data.get("device_id"))
    events = request.data.get("events") or []
    if not isinstance(events, list):
        events = []
    results = []

    for event in events:
        if not isinstance(event, dict):
            results.append({"event_id": None, "status": SyncEventLog.INVALID})
            continue
        event_id = _parse_uuid(event.get("event_id"))
        entity_type = _text(event.get("entity_type")).lower()
        entity_id = _parse_uuid(event.get("entity_id"))
        operation = _text(event.get("operation")).upper()
        payload = event.get("payload_json") or {}

        if not event_id or not entity_id or entity_type not in APPLIERS or not isinstance(payload, dict):
            results.append({"event_id": str(event.get("event_id")), "status": SyncEventLog.INVALID})
            continue

        if SyncEventLog.objects.filter(owner=owner, event_id=event_id).exists():
            results.append({"event_id": str(event_id), "status": SyncEventLog.DUPLICATE})
            continue

        try:
            with db_transaction.atomic():
                status = APPLIERS[entity_type](owner, event_id, entity_id, operation, payload)
        except (IntegrityError, TypeError, ValueError) as exc:
            logger.warning("Rejected sync event %s: %s", event_id, exc)
            status = SyncEventLog.INVALID

        SyncEventLog.objects.create(
            owner=owner,
            event_id=event_id,
            entity_type=entity_type,
            entity_id=entity_id,
            operation=operation,
            payload_json=payload,
            device_id=device_id,
            status=status,
        )
        results.append({"event_id": str(event_id), "status": status})

    return Response({"server_time": _now_iso(), "results": results})


@api_view(["GET"])
def sync_pull(request):
    owner = request.user
    since_raw = request.query_params.get("since")
    try:
        since = parse_datetime(since_raw) if since_raw else None
    except ValueError:
        since = None
    if since is None:
        since = timezone.now() - timedelta(days=3650)
    elif timezone.is_naive(since):
        since = timezone.make_aware(since)

    shop = ShopSettings.for_user(owner)
    context = {"request": request, "shop_settings": shop}
    customers = annotate_balances(Customer.objects.filter(owner=owner, updated_at__gt=since))
    transactions = Transaction.objects.filter(owner=owner, updated_at__gt=since).select_related("customer")
    deleted = SyncEventLog.objects.filter(
        owner=owner,
        operation="DELETE",
        status=SyncEventLog.APPLIED,
        created_at__gt=since,
    ).order_by("created_at")

    payload = {
        "server_time": _now_iso(),
        "customers": CustomerSerializer(customers, many=True, context=context).data,
        "transactions": TransactionSerializer(transactions, many=True, context=context).data,
        "settings": ShopSettingsSerializer(shop).data if shop.updated_at > since else None,
        "deleted": DeletedEntitySerializer(deleted, many=True).data,
    }
    return Response(payload)


@api_view(["GET"])
def sync_conflicts(request):
    conflicts = ConflictLog.objects.filter(owner=request.user, resolved=False)[:200]
    return Response(ConflictLogSerializer(conflicts, many=True).data)
