from datetime import datetime, timedelta
from decimal import Decimal
from types import SimpleNamespace
from zoneinfo import ZoneInfo

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.test import SimpleTestCase, TestCase
from django.utils import timezone
from rest_framework.test import APITestCase
from rest_framework_simplejwt.tokens import RefreshToken

from apps.accounts.models import Profile
from apps.sync.models import SyncEventLog

from .models import Customer, ShopSettings, Transaction
from .services.balances import (
    annotate_balances,
    compute_balance,
    compute_totals,
    filter_by_range,
    period_debtors,
    range_start,
)
from .services.reminders import due_reminders
from .services.sms import format_currency, render_sms, sms_link, tel_link

User = get_user_model()
TASHKENT = ZoneInfo("Asia/Tashkent")


def _tx(customer_id, kind, amount, created_at=None, due_date=None):
    return SimpleNamespace(
        customer_id=customer_id,
        kind=kind,
        amount=Decimal(amount),
        created_at=created_at,
        due_date=due_date,
    )


class BalanceServiceTests(SimpleTestCase):
    def test_balance_is_debts_minus_payments(self):
        items = [_tx(1, "debt", "100000"), _tx(1, "debt", "50000"), _tx(1, "payment", "30000")]
        self.assertEqual(compute_balance(items), Decimal("120000"))
        totals = compute_totals(items)
        self.assertEqual(totals.total_debt, Decimal("150000"))
        self.assertEqual(totals.total_paid, Decimal("30000"))
        self.assertEqual(totals.net, Decimal("120000"))

    def test_empty_history_has_zero_balance(self):
        self.assertEqual(compute_balance([]), Decimal("0"))

    def test_range_start_boundaries(self):
        now = datetime(2026, 10, 15, 14, 30, tzinfo=TASHKENT)  # Thursday
        self.assertEqual(range_start("today", now), datetime(2026, 10, 15, tzinfo=TASHKENT))
        self.assertEqual(range_start("week", now), datetime(2026, 10, 12, tzinfo=TASHKENT))
        self.assertEqual(range_start("month", now), datetime(2026, 10, 1, tzinfo=TASHKENT))
        self.assertIsNone(range_start("all", now))
        with self.assertRaises(ValueError):
            range_start("year", now)

    def test_filter_by_range_is_strictly_after_start(self):
        now = datetime(2026, 10, 15, 14, 30, tzinfo=TASHKENT)
        at_midnight = _tx(1, "debt", "10", created_at=datetime(2026, 10, 15, tzinfo=TASHKENT))
        morning = _tx(1, "debt", "20", created_at=datetime(2026, 10, 15, 9, 0, tzinfo=TASHKENT))
        monday = _tx(1, "debt", "30", created_at=datetime(2026, 10, 12, 10, 0, tzinfo=TASHKENT))
        items = [at_midnight, morning, monday]
        self.assertEqual(filter_by_range(items, "today", now), [morning])
        self.assertEqual(filter_by_range(items, "week", now), [at_midnight, morning, monday])
        self.assertEqual(len(filter_by_range(items, "all", now)), 3)

    def test_period_debtors_sorted_by_balance(self):
        customers = [SimpleNamespace(id=1), SimpleNamespace(id=2), SimpleNamespace(id=3)]
        items = [
            _tx(1, "debt", "10000"),
            _tx(2, "debt", "90000"),
            _tx(2, "payment", "20000"),
            _tx(1, "payment", "15000"),
        ]
        rows = period_debtors(customers, items)
        self.assertEqual([row.customer.id for row in rows], [2, 1])
        self.assertEqual(rows[0].period_balance, Decimal("70000"))
        self.assertEqual(rows[1].period_balance, Decimal("-5000"))


class SmsServiceTests(SimpleTestCase):
    def test_format_currency(self):
        self.assertEqual(format_currency(Decimal("1250000")), "1 250 000 so'm")
        self.assertEqual(format_currency(Decimal("999.5"), "uzs"), "1 000 so'm")
        self.assertEqual(format_currency(-5000, "USD"), "-5 000 USD")
        self.assertEqual(format_currency(0), "0 so'm")

    def test_render_sms_fills_placeholders(self):
        message = render_sms(
            "Hurmatli {mijoz}, sizning {do'kon}dagi qarzingiz: {summa}",
            "Ali",
            "Baraka Market",
            "120 000 so'm",
        )
        self.assertEqual(message, "Hurmatli Ali, sizning Baraka Marketdagi qarzingiz: 120 000 so'm")

    def test_links_strip_formatting(self):
        self.assertEqual(sms_link("+998 (90) 123-45-67", "Salom dunyo"), "sms:+998901234567?body=Salom%20dunyo")
        self.assertEqual(sms_link("+998901234567", "Salom", ios=True), "sms:+998901234567&body=Salom")
        self.assertEqual(tel_link("+998 90 123 45 67"), "tel:+998901234567")


class ReminderServiceTests(SimpleTestCase):
    def test_window_and_statuses(self):
        today = datetime(2026, 10, 15).date()
        items = [
            _tx("a", "debt", "100", due_date=today + timedelta(days=2)),
            _tx("a", "debt", "100", due_date=today - timedelta(days=1)),
            _tx("a", "debt", "100", due_date=today),
            _tx("a", "debt", "100", due_date=today + timedelta(days=4)),
            _tx("a", "payment", "100", due_date=today),
            _tx("a", "debt", "100"),
            _tx("b", "debt", "100", due_date=today),
        ]
        digest = due_reminders(items, {"a": Decimal("500"), "b": Decimal("0")}, today, window_days=3)
        self.assertEqual([r.status for r in digest.items], ["overdue", "today", "upcoming"])
        self.assertEqual(digest.overdue_count, 1)
        self.assertEqual(digest.today_count, 1)
        self.assertTrue(digest.has_active)

    def test_nothing_due(self):
        digest = due_reminders([], {}, datetime(2026, 10, 15).date())
        self.assertFalse(digest.has_active)


class AnnotationConsistencyTests(TestCase):
    def test_orm_balance_matches_python_reduction(self):
        owner = User.objects.create_user(username="x@nasiya.uz", password="Kuchli-parol-2024")
        customer = Customer.objects.create(owner=owner, name="Ali")
        empty = Customer.objects.create(owner=owner, name="Vali")
        for kind, amount in [("debt", "70000"), ("payment", "25000"), ("debt", "5000.50")]:
            Transaction.objects.create(owner=owner, customer=customer, kind=kind, amount=Decimal(amount))

        annotated = {c.id: c for c in annotate_balances(Customer.objects.filter(owner=owner))}
        self.assertEqual(annotated[customer.id].balance_value, compute_balance(customer.transactions.all()))
        self.assertEqual(annotated[customer.id].balance_value, Decimal("50000.50"))
        self.assertEqual(annotated[empty.id].balance_value, Decimal("0"))
        self.assertIsNone(annotated[empty.id].last_transaction_at)


class LedgerApiTestCase(APITestCase):
    def setUp(self):
        cache.clear()
        self.user = User.objects.create_user(
            username="dukon@nasiya.uz", email="dukon@nasiya.uz", password="Kuchli-parol-2024", first_name="Azizbek"
        )
        Profile.objects.create(user=self.user, store_name="Baraka Market")
        token = RefreshToken.for_user(self.user)
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token.access_token}")

    def _customer(self, name="Ali Valiyev", phone="+998 90 123 45 67", owner=None):
        return Customer.objects.create(owner=owner or self.user, name=name, phone=phone)

    def _add(self, customer, kind, amount, **extra):
        payload = {"customer": str(customer.id), "kind": kind, "amount": amount}
        payload.update(extra)
        return self.client.post("/api/transactions/", payload, format="json")


class CustomerApiTests(LedgerApiTestCase):
    def test_create_and_balance(self):
        resp = self.client.post(
            "/api/customers/", {"name": "Ali Valiyev", "phone": "+998901234567", "note": "Qo'shni"}, format="json"
        )
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.data["balance"], "0.00")
        customer = Customer.objects.get(id=resp.data["id"])
        self.assertEqual(customer.owner, self.user)

        self.assertEqual(self._add(customer, "debt", "100000").status_code, 201)
        self.assertEqual(self._add(customer, "debt", "50000").status_code, 201)
        self.assertEqual(self._add(customer, "payment", "30000").status_code, 201)

        detail = self.client.get(f"/api/customers/{customer.id}/")
        self.assertEqual(detail.data["balance"], "120000.00")
        self.assertEqual(detail.data["balance_display"], "120 000 so'm")
        self.assertIsNotNone(detail.data["last_transaction_at"])

    def test_debt_filter_and_search(self):
        debtor = self._customer()
        settled = self._customer(name="Dilnoza Karimova", phone="+998911112233")
        self._add(debtor, "debt", "40000")
        self._add(settled, "debt", "10000")
        self._add(settled, "payment", "10000")

        resp = self.client.get("/api/customers/", {"filter": "debt"})
        self.assertEqual([row["id"] for row in resp.data], [str(debtor.id)])

        resp = self.client.get("/api/customers/", {"search": "dilnoza"})
        self.assertEqual([row["id"] for row in resp.data], [str(settled.id)])

        resp = self.client.get("/api/customers/", {"search": "11112233"})
        self.assertEqual([row["id"] for row in resp.data], [str(settled.id)])

    def test_update_bumps_version(self):
        customer = self._customer()
        resp = self.client.patch(f"/api/customers/{customer.id}/", {"note": "Doimiy mijoz"}, format="json")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["version"], 2)

    def test_delete_cascades_transactions(self):
        customer = self._customer()
        self._add(customer, "debt", "40000")
        self._add(customer, "payment", "1000")
        resp = self.client.delete(f"/api/customers/{customer.id}/")
        self.assertEqual(resp.status_code, 204)
        self.assertFalse(Transaction.objects.filter(customer_id=customer.id).exists())
        self.assertTrue(
            SyncEventLog.objects.filter(entity_type="customer", entity_id=customer.id, operation="DELETE").exists()
        )

    def test_other_shop_customer_is_hidden(self):
        other = User.objects.create_user(username="boshqa@nasiya.uz", password="Kuchli-parol-2024")
        foreign = self._customer(owner=other)
        self.assertEqual(self.client.get(f"/api/customers/{foreign.id}/").status_code, 404)
        self.assertEqual(self.client.get("/api/customers/").data, [])

    def test_customer_transactions_history(self):
        customer = self._customer()
        Transaction.objects.create(
            owner=self.user, customer=customer, kind="debt", amount=Decimal("5000"),
            created_at=timezone.now() - timedelta(days=2),
        )
        Transaction.objects.create(owner=self.user, customer=customer, kind="payment", amount=Decimal("2000"))
        resp = self.client.get(f"/api/customers/{customer.id}/transactions/")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(Decimal(resp.data["balance"]), Decimal("3000"))
        self.assertEqual([row["kind"] for row in resp.data["transactions"]], ["payment", "debt"])

    def test_empty_history_balance_keeps_cents(self):
        customer = self._customer()
        resp = self.client.get(f"/api/customers/{customer.id}/transactions/")
        self.assertEqual(resp.data["balance"], "0.00")
        self.assertEqual(resp.data["transactions"], [])

        self._add(customer, "debt", "5000")
        resp = self.client.get(f"/api/customers/{customer.id}/transactions/")
        self.assertEqual(resp.data["balance"], "5000.00")

    def test_sms_reminder(self):
        customer = self._customer()
        self._add(customer, "debt", "120000")
        resp = self.client.get(f"/api/customers/{customer.id}/sms/")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["message"], "Hurmatli Ali Valiyev, sizning Baraka Marketdagi qarzingiz: 120 000 so'm")
        self.assertTrue(resp.data["sms_url"].startswith("sms:+998901234567?body="))
        self.assertEqual(resp.data["tel_url"], "tel:+998901234567")

        ios = self.client.get(f"/api/customers/{customer.id}/sms/", {"platform": "ios"})
        self.assertTrue(ios.data["sms_url"].startswith("sms:+998901234567&body="))

    def test_sms_requires_phone(self):
        customer = self._customer(phone="")
        resp = self.client.get(f"/api/customers/{customer.id}/sms/")
        self.assertEqual(resp.status_code, 400)


class TransactionApiTests(LedgerApiTestCase):
    def test_amount_must_be_positive(self):
        customer = self._customer()
        self.assertEqual(self._add(customer, "debt", "0").status_code, 400)
        self.assertEqual(self._add(customer, "payment", "-10").status_code, 400)
        self.assertEqual(Transaction.objects.count(), 0)

    def test_cannot_write_to_foreign_customer(self):
        other = User.objects.create_user(username="boshqa@nasiya.uz", password="Kuchli-parol-2024")
        foreign = self._customer(owner=other)
        resp = self._add(foreign, "debt", "1000")
        self.assertEqual(resp.status_code, 400)

    def test_list_filters(self):
        ali = self._customer()
        vali = self._customer(name="Vali Aliyev", phone="")
        self._add(ali, "debt", "1000", note="Non va sut")
        self._add(vali, "payment", "500")
        Transaction.objects.create(
            owner=self.user, customer=vali, kind="debt", amount=Decimal("700"),
            created_at=timezone.now() - timedelta(days=400),
        )

        resp = self.client.get("/api/transactions/")
        self.assertEqual(len(resp.data), 3)

        resp = self.client.get("/api/transactions/", {"kind": "payment"})
        self.assertEqual([row["amount"] for row in resp.data], ["500.00"])

        resp = self.client.get("/api/transactions/", {"search": "ALI VAL"})
        self.assertEqual([row["customer_name"] for row in resp.data], ["Ali Valiyev"])

        resp = self.client.get("/api/transactions/", {"search": "non va"})
        self.assertEqual(len(resp.data), 1)

        resp = self.client.get("/api/transactions/", {"date": "today"})
        self.assertEqual(len(resp.data), 2)

        resp = self.client.get("/api/transactions/", {"range": "month"})
        self.assertEqual(len(resp.data), 2)

    def test_invalid_range(self):
        resp = self.client.get("/api/transactions/", {"range": "year"})
        self.assertEqual(resp.status_code, 400)

    def test_customer_filter(self):
        ali = self._customer()
        vali = self._customer(name="Vali", phone="")
        self._add(ali, "debt", "1000")
        self._add(vali, "debt", "2000")

        resp = self.client.get("/api/transactions/", {"customer": str(vali.id)})
        self.assertEqual([row["customer_name"] for row in resp.data], ["Vali"])

        resp = self.client.get("/api/transactions/", {"customer": "not-a-uuid"})
        self.assertEqual(resp.status_code, 400)
        self.assertIn("customer", resp.data)

    def test_transactions_are_immutable(self):
        customer = self._customer()
        created = self._add(customer, "debt", "1000").data
        resp = self.client.patch(f"/api/transactions/{created['id']}/", {"amount": "5"}, format="json")
        self.assertEqual(resp.status_code, 405)

    def test_delete_transaction(self):
        customer = self._customer()
        created = self._add(customer, "debt", "1000").data
        resp = self.client.delete(f"/api/transactions/{created['id']}/")
        self.assertEqual(resp.status_code, 204)
        self.assertFalse(Transaction.objects.exists())


class SettingsApiTests(LedgerApiTestCase):
    def test_defaults_come_from_profile(self):
        resp = self.client.get("/api/settings/")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["store_name"], "Baraka Market")
        self.assertEqual(resp.data["owner_name"], "Azizbek")
        self.assertEqual(resp.data["currency"], "UZS")
        self.assertFalse(resp.data["is_setup_completed"])

    def test_partial_update(self):
        resp = self.client.patch("/api/settings/", {"currency": "usd", "sms_template": "{mijoz}: {summa}"}, format="json")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["currency"], "USD")
        self.assertEqual(ShopSettings.objects.get(owner=self.user).store_name, "Baraka Market")

    def test_onboarding(self):
        resp = self.client.post("/api/settings/onboarding/", {"store_name": "Super Market", "owner_name": "Ali", "phone": "+998 "}, format="json")
        self.assertEqual(resp.status_code, 400)
        resp = self.client.post(
            "/api/settings/onboarding/",
            {"store_name": "Super Market", "owner_name": "Ali", "phone": "+998 90 123 45 67"},
            format="json",
        )
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.data["is_setup_completed"])
        self.assertEqual(resp.data["store_name"], "Super Market")


class DashboardAndReportApiTests(LedgerApiTestCase):
    def setUp(self):
        super().setUp()
        self.ali = self._customer()
        self.vali = self._customer(name="Vali", phone="+998911111111")
        self._add(self.ali, "debt", "100000")
        self._add(self.ali, "payment", "20000")
        self._add(self.vali, "debt", "30000")
        Transaction.objects.create(
            owner=self.user, customer=self.vali, kind="debt", amount=Decimal("500000"),
            created_at=timezone.now() - timedelta(days=400),
        )

    def test_dashboard(self):
        resp = self.client.get("/api/dashboard/", {"limit": 2})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(Decimal(resp.data["total_debt"]["amount"]), Decimal("630000"))
        self.assertEqual(Decimal(resp.data["total_paid"]["amount"]), Decimal("20000"))
        self.assertEqual(Decimal(resp.data["net_balance"]["amount"]), Decimal("610000"))
        self.assertEqual(resp.data["net_balance"]["display"], "610 000 so'm")
        self.assertEqual(resp.data["customers_count"], 2)
        self.assertEqual(len(resp.data["recent_transactions"]), 2)
        self.assertEqual([row["name"] for row in resp.data["overview"]], ["Qarz", "To'lov"])

    def test_month_report(self):
        resp = self.client.get("/api/reports/", {"range": "month"})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(Decimal(resp.data["total_debt"]["amount"]), Decimal("130000"))
        self.assertEqual(Decimal(resp.data["net_change"]["amount"]), Decimal("110000"))
        names = [row["name"] for row in resp.data["debtors"]]
        self.assertEqual(names, ["Ali Valiyev", "Vali"])

    def test_all_time_report_reorders_debtors(self):
        resp = self.client.get("/api/reports/", {"range": "all"})
        self.assertEqual([row["name"] for row in resp.data["debtors"]], ["Vali", "Ali Valiyev"])
        self.assertEqual(Decimal(resp.data["debtors"][0]["period_balance"]), Decimal("530000"))

    def test_report_rejects_unknown_range(self):
        self.assertEqual(self.client.get("/api/reports/", {"range": "decade"}).status_code, 400)

    def test_report_pdf(self):
        resp = self.client.get("/api/reports/export.pdf", {"range": "all"})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp["Content-Type"], "application/pdf")
        self.assertTrue(resp.content.startswith(b"%PDF-1.4"))
        self.assertIn(b"Ali Valiyev", resp.content)


class NotificationApiTests(LedgerApiTestCase):
    def test_due_reminders(self):
        today = timezone.localdate()
        ali = self._customer()
        self._add(ali, "debt", "100000", due_date=str(today - timedelta(days=1)), note="Un")
        self._add(ali, "debt", "50000", due_date=str(today))
        self._add(ali, "debt", "20000", due_date=str(today + timedelta(days=2)))
        self._add(ali, "debt", "10000", due_date=str(today + timedelta(days=10)))
        settled = self._customer(name="Vali", phone="")
        self._add(settled, "debt", "5000", due_date=str(today - timedelta(days=3)))
        self._add(settled, "payment", "5000")

        resp = self.client.get("/api/notifications/")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["count"], 3)
        self.assertEqual(resp.data["overdue_count"], 1)
        self.assertEqual(resp.data["today_count"], 1)
        self.assertTrue(resp.data["has_active"])
        self.assertEqual([item["status"] for item in resp.data["items"]], ["overdue", "today", "upcoming"])
        self.assertEqual(resp.data["items"][0]["transaction"]["note"], "Un")
