import logging
import re
from datetime import timedelta
from uuid import UUID

from django.conf import settings
from django.db import transaction as db_transaction
from django.db.models import Q
from django.http import HttpResponse
from django.utils import timezone
from rest_framework import mixins, serializers, viewsets
from rest_framework.decorators import action, api_view
from rest_framework.response import Response
from rest_framework.throttling import UserRateThrottle

from apps.sync.models import record_deletion

from .models import Customer, ShopSettings, Transaction
from .serializers import (
    CENTS,
    CustomerSerializer,
    OnboardingSerializer,
    ShopSettingsSerializer,
    TransactionSerializer,
)
from .services.balances import (
    TIME_RANGES,
    annotate_balances,
    compute_balance,
    compute_totals,
    filter_by_range,
    period_debtors,
    queryset_totals,
    range_start,
)
from .services.reminders import due_reminders
from .services.sms import format_currency, render_sms, sms_link, tel_link
from .utils.pdf import build_pdf

logger = logging.getLogger(__name__)

RANGE_LABELS = {
    "today": "Bugun",
    "week": "Bu hafta",
    "month": "Bu oy",
    "all": "Umumiy",
}


class SmsThrottle(UserRateThrottle):
    scope = "sms"


def _parse_limit(raw, default: int, maximum: int = 100) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return default
    return max(1, min(value, maximum))


def _parse_range(raw, default: str = "all") -> str:
    value = (raw or default).strip().lower()
    if value not in TIME_RANGES:
        raise serializers.ValidationError({"range": f"Noto'g'ri davr: {value}. Mumkin: {', '.join(TIME_RANGES)}."})
    return value


def _parse_customer_id(raw):
    try:
        return UUID(str(raw).strip())
    except ValueError:
        raise serializers.ValidationError({"customer": f"Noto'g'ri mijoz identifikatori: {raw}."})


def _normalize_search(text: str) -> str:
    return re.sub(r"[\s+()\-]", "", (text or "").lower())


class ShopScopedMixin:
    def shop_settings(self):
        if not hasattr(self, "_shop_settings"):
            self._shop_settings = ShopSettings.for_user(self.request.user)
        return self._shop_settings

    def get_serializer_context(self):
        context = super().get_serializer_context()
        context["shop_settings"] = self.shop_settings()
        return context


class CustomerViewSet(ShopScopedMixin, viewsets.ModelViewSet):
    serializer_class = CustomerSerializer

    def get_queryset(self):
        base = Customer.objects.filter(owner=self.request.user)
        if self.action != "list":
            return annotate_balances(base)
        search = (self.request.query_params.get("search") or "").strip()
        if search:
            base = base.filter(Q(name__icontains=search) | Q(phone__contains=search))
        qs = annotate_balances(base)
        if self.request.query_params.get("filter") == "debt":
            qs = qs.filter(balance_value__gt=0)
        return qs.order_by("-created_at")

    def perform_create(self, serializer):
        serializer.save(owner=self.request.user)

    @db_transaction.atomic
    def perform_destroy(self, instance):
        removed = instance.transactions.count()
        customer_id = instance.id
        instance.delete()
        record_deletion(self.request.user, "customer", customer_id)
        logger.info("Customer %s deleted with %s transactions (owner=%s)", customer_id, removed, self.request.user.id)

    @action(detail=True, methods=["get"])
    def transactions(self, request, pk=None):
        customer = self.get_object()
        items = list(customer.transactions.select_related("customer").order_by("-created_at"))
        balance = compute_balance(items)
        currency = self.shop_settings().currency
        return Response(
            {
                "customer": CustomerSerializer(customer, context=self.get_serializer_context()).data,
                "balance": str(balance.quantize(CENTS)),
                "balance_display": format_currency(balance, currency),
                "transactions": TransactionSerializer(items, many=True, context=self.get_serializer_context()).data,
            }
        )

    @action(detail=True, methods=["get"], throttle_classes=[SmsThrottle])
    def sms(self, request, pk=None):
        customer = self.get_object()
        if not customer.phone:
            raise serializers.ValidationError({"phone": "Mijozda telefon raqami yo'q."})
        shop = self.shop_settings()
        amount_text = format_currency(customer.balance(), shop.currency)
        message = render_sms(shop.sms_template, customer.name, shop.store_name, amount_text)
        ios = (request.query_params.get("platform") or "").lower() == "ios"
        return Response(
            {
                "phone": customer.phone,
                "message": message,
                "sms_url": sms_link(customer.phone, message, ios=ios),
                "tel_url": tel_link(customer.phone),
            }
        )


class TransactionViewSet(
    ShopScopedMixin,
    mixins.CreateModelMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet,
):
    serializer_class = TransactionSerializer

    def get_queryset(self):
        qs = Transaction.objects.filter(owner=self.request.user).select_related("customer")
        if self.action != "list":
            return qs
        params = self.request.query_params
        kind = (params.get("kind") or "all").lower()
        if kind in (Transaction.DEBT, Transaction.PAYMENT):
            qs = qs.filter(kind=kind)
        customer_id = params.get("customer")
        if customer_id:
            qs = qs.filter(customer_id=_parse_customer_id(customer_id))
        if (params.get("date") or "all").lower() == "today":
            qs = qs.filter(created_at__date=timezone.localdate())
        start = range_start(_parse_range(params.get("range")))
        if start is not None:
            qs = qs.filter(created_at__gt=start)
        return qs.order_by("-created_at")

    def list(self, request, *args, **kwargs):
        items = list(self.get_queryset())
        search = _normalize_search(request.query_params.get("search"))
        if search:
            items = [
                t
                for t in items
                if search in _normalize_search(t.customer.name) or search in _normalize_search(t.note)
            ]
        return Response(self.get_serializer(items, many=True).data)

    def perform_create(self, serializer):
        created = serializer.save(owner=self.request.user, created_at=timezone.now())
        logger.debug("Transaction %s %s for customer %s", created.kind, created.amount, created.customer_id)

    @db_transaction.atomic
    def perform_destroy(self, instance):
        transaction_id = instance.id
        instance.delete()
        record_deletion(self.request.user, "transaction", transaction_id)


@api_view(["GET", "PATCH"])
def shop_settings(request):
    instance = ShopSettings.for_user(request.user)
    if request.method == "PATCH":
        serializer = ShopSettingsSerializer(instance, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(serializer.data)
    return Response(ShopSettingsSerializer(instance).data)


@api_view(["POST"])
def onboarding(request):
    serializer = OnboardingSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    instance = ShopSettings.for_user(request.user)
    for field, value in serializer.validated_data.items():
        setattr(instance, field, value)
    instance.is_setup_completed = True
    instance.save()
    return Response(ShopSettingsSerializer(instance).data)


def _money(amount, currency):
    return {"amount": str(amount), "display": format_currency(amount, currency)}


@api_view(["GET"])
def dashboard(request):
    shop = ShopSettings.for_user(request.user)
    currency = shop.currency
    owned = Transaction.objects.filter(owner=request.user)
    totals = queryset_totals(owned)
    limit = _parse_limit(request.query_params.get("limit"), settings.NASIYA_RECENT_LIMIT)
    recent = owned.select_related("customer").order_by("-created_at")[:limit]
    context = {"request": request, "shop_settings": shop}
    return Response(
        {
            "total_debt": _money(totals.total_debt, currency),
            "total_paid": _money(totals.total_paid, currency),
            "net_balance": _money(totals.net, currency),
            "customers_count": Customer.objects.filter(owner=request.user).count(),
            "overview": [
                {"name": "Qarz", "total": str(totals.total_debt)},
                {"name": "To'lov", "total": str(totals.total_paid)},
            ],
            "recent_transactions": TransactionSerializer(recent, many=True, context=context).data,
        }
    )


def _build_report(request):
    time_range = _parse_range(request.query_params.get("range"), default="month")
    owned = list(Transaction.objects.filter(owner=request.user).order_by("-created_at"))
    period = filter_by_range(owned, time_range)
    totals = compute_totals(period)
    customers = Customer.objects.filter(owner=request.user)
    debtors = period_debtors(customers, period)
    return time_range, totals, debtors


@api_view(["GET"])
def report(request):
    shop = ShopSettings.for_user(request.user)
    currency = shop.currency
    time_range, totals, debtors = _build_report(request)
    limit = _parse_limit(request.query_params.get("limit"), settings.NASIYA_REPORT_DEBTORS_LIMIT)
    return Response(
        {
            "range": time_range,
            "range_label": RANGE_LABELS[time_range],
            "total_debt": _money(totals.total_debt, currency),
            "total_paid": _money(totals.total_paid, currency),
            "net_change": _money(totals.net, currency),
            "chart": [
                {"name": "Berilgan Qarz", "amount": str(totals.total_debt)},
                {"name": "Undirilgan", "amount": str(totals.total_paid)},
            ],
            "debtors": [
                {
                    "id": str(row.customer.id),
                    "name": row.customer.name,
                    "phone": row.customer.phone,
                    "period_debt": str(row.period_debt),
                    "period_paid": str(row.period_paid),
                    "period_balance": str(row.period_balance),
                    "period_balance_display": format_currency(row.period_balance, currency),
                }
                for row in debtors[:limit]
            ],
            "debtors_count": len(debtors),
        }
    )


@api_view(["GET"])
def report_pdf(request):
    shop = ShopSettings.for_user(request.user)
    currency = shop.currency
    time_range, totals, debtors = _build_report(request)
    lines = [
        f"{shop.store_name or 'Nasiya Daftar'} - Hisobot ({RANGE_LABELS[time_range]})",
        f"Yaratilgan: {timezone.localtime().strftime('%Y-%m-%d %H:%M')}",
        "",
        f"Berilgan qarz: {format_currency(totals.total_debt, currency)}",
        f"Undirilgan:    {format_currency(totals.total_paid, currency)}",
        f"Sof o'zgarish: {format_currency(totals.net, currency)}",
        "",
        "Mijoz | Telefon | Qarz | To'lov | Qoldiq",
        "-" * 80,
    ]
    for row in debtors:
        lines.append(
            f"{row.customer.name} | {row.customer.phone or '-'} | "
            f"{format_currency(row.period_debt, currency)} | {format_currency(row.period_paid, currency)} | "
            f"{format_currency(row.period_balance, currency)}"
        )
    if not debtors:
        lines.append("Bu davrda operatsiyalar yo'q.")
    response = HttpResponse(build_pdf(lines), content_type="application/pdf")
    response["Content-Disposition"] = f'attachment; filename="nasiya_report_{time_range}.pdf"'
    return response


@api_view(["GET"])
def notifications(request):
    shop = ShopSettings.for_user(request.user)
    today = timezone.localdate()
    window = settings.NASIYA_REMINDER_WINDOW_DAYS
    balances = {
        c.id: c.balance_value
        for c in annotate_balances(Customer.objects.filter(owner=request.user))
    }
    candidates = (
        Transaction.objects.filter(
            owner=request.user,
            kind=Transaction.DEBT,
            due_date__isnull=False,
            due_date__lte=today + timedelta(days=window),
        )
        .select_related("customer")
    )
    digest = due_reminders(candidates, balances, today, window_days=window)
    context = {"request": request, "shop_settings": shop}
    return Response(
        {
            "count": len(digest.items),
            "overdue_count": digest.overdue_count,
            "today_count": digest.today_count,
            "has_active": digest.has_active,
            "items": [
                {
                    "status": item.status,
                    "days_left": item.days_left,
                    "transaction": TransactionSerializer(item.transaction, context=context).data,
                }
                for item in digest.items
            ],
        }
    )
