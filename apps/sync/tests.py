from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework.test import APITestCase
from rest_framework_simplejwt.tokens import RefreshToken

from apps.accounts.models import Profile
from apps.ledger.models import Customer, Transaction

from .models import ConflictLog, SyncEventLog

User = get_user_model()


def _event(entity_type, entity_id, operation, payload, event_id=None):
    return {
        "event_id": str(event_id or uuid4()),
        "entity_type": entity_type,
        "entity_id": str(entity_id),
        "operation": operation,
        "payload_json": payload,
    }


class SyncApiTests(APITestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="tester@nasiya.uz", password="Kuchli-parol-2024")
        Profile.objects.create(user=self.user, store_name="Test Market")
        self._login(self.user)

    def _login(self, user):
        token = RefreshToken.for_user(user)
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token.access_token}")

    def _push(self, events):
        return self.client.post("/api/sync/push", {"device_id": "device-1", "events": events}, format="json")

    def test_customer_create_idempotent(self):
        customer_id = uuid4()
        event = _event("customer", customer_id, "CREATE", {"name": "Ali", "phone": "+998901234567", "version": 1})
        resp1 = self._push([event])
        resp2 = self._push([event])
        self.assertEqual(resp1.status_code, 200)
        self.assertEqual(resp1.data["results"][0]["status"], "applied")
        self.assertEqual(resp2.data["results"][0]["status"], "duplicate")
        self.assertEqual(Customer.objects.filter(owner=self.user).count(), 1)
        self.assertEqual(SyncEventLog.objects.count(), 1)

    def test_customer_stale_update_is_conflict(self):
        customer = Customer.objects.create(owner=self.user, name="Ali", version=2)
        resp = self._push([_event("customer", customer.id, "UPDATE", {"name": "Eski", "version": 1})])
        customer.refresh_from_db()
        self.assertEqual(resp.data["results"][0]["status"], "conflict")
        self.assertEqual(customer.name, "Ali")
        conflict = ConflictLog.objects.get()
        self.assertEqual(conflict.conflict_type, "version_conflict")
        self.assertEqual(conflict.server_payload["name"], "Ali")

        listed = self.client.get("/api/sync/conflicts")
        self.assertEqual(len(listed.data), 1)

    def test_customer_newer_update_applies(self):
        customer = Customer.objects.create(owner=self.user, name="Ali", version=1)
        resp = self._push([_event("customer", customer.id, "UPDATE", {"name": "Ali Valiyev", "version": 2})])
        customer.refresh_from_db()
        self.assertEqual(resp.data["results"][0]["status"], "applied")
        self.assertEqual(customer.name, "Ali Valiyev")
        self.assertEqual(customer.version, 2)

    def test_customer_create_requires_name(self):
        resp = self._push([_event("customer", uuid4(), "CREATE", {"name": "  "})])
        self.assertEqual(resp.data["results"][0]["status"], "invalid")
        self.assertFalse(Customer.objects.exists())

    def test_transaction_append_only(self):
        customer = Customer.objects.create(owner=self.user, name="Ali")
        tx_id = uuid4()
        create = _event(
            "transaction",
            tx_id,
            "CREATE",
            {"customer": str(customer.id), "kind": "debt", "amount": "25000", "due_date": "2026-11-01"},
        )
        resp = self._push([create])
        self.assertEqual(resp.data["results"][0]["status"], "applied")
        tx = Transaction.objects.get(id=tx_id)
        self.assertEqual(tx.amount, Decimal("25000"))
        self.assertEqual(str(tx.due_date), "2026-11-01")

        update = _event("transaction", tx_id, "UPDATE", {"customer": str(customer.id), "kind": "debt", "amount": "1"})
        resp = self._push([update])
        tx.refresh_from_db()
        self.assertEqual(resp.data["results"][0]["status"], "ignored")
        self.assertEqual(tx.amount, Decimal("25000"))
        self.assertTrue(ConflictLog.objects.filter(conflict_type="append_only").exists())

        replay = _event("transaction", tx_id, "CREATE", {"customer": str(customer.id), "kind": "debt", "amount": "9"})
        self.assertEqual(self._push([replay]).data["results"][0]["status"], "duplicate")

    def test_transaction_validation(self):
        customer = Customer.objects.create(owner=self.user, name="Ali")
        events = [
            _event("transaction", uuid4(), "CREATE", {"customer": str(uuid4()), "kind": "debt", "amount": "100"}),
            _event("transaction", uuid4(), "CREATE", {"customer": str(customer.id), "kind": "debt", "amount": "0"}),
            _event("transaction", uuid4(), "CREATE", {"customer": str(customer.id), "kind": "gift", "amount": "10"}),
            _event("invoice", uuid4(), "CREATE", {}),
        ]
        resp = self._push(events)
        self.assertEqual([r["status"] for r in resp.data["results"]], ["invalid"] * 4)
        self.assertFalse(Transaction.objects.exists())

    def test_transaction_for_foreign_customer_is_invalid(self):
        other = User.objects.create_user(username="boshqa@nasiya.uz", password="Kuchli-parol-2024")
        foreign = Customer.objects.create(owner=other, name="Begona")
        resp = self._push(
            [_event("transaction", uuid4(), "CREATE", {"customer": str(foreign.id), "kind": "debt", "amount": "5"})]
        )
        self.assertEqual(resp.data["results"][0]["status"], "invalid")

    def test_event_ids_are_scoped_per_owner(self):
        event_id = uuid4()
        self._push([_event("customer", uuid4(), "CREATE", {"name": "Ali"}, event_id=event_id)])

        other = User.objects.create_user(username="boshqa@nasiya.uz", password="Kuchli-parol-2024")
        Profile.objects.create(user=other, store_name="Boshqa Market")
        self._login(other)
        resp = self._push([_event("customer", uuid4(), "CREATE", {"name": "Vali"}, event_id=event_id)])
        self.assertEqual(resp.data["results"][0]["status"], "applied")
        self.assertEqual(Customer.objects.filter(owner=other).count(), 1)

    def test_pull_returns_balances_and_tombstones(self):
        since = (timezone.now() - timedelta(minutes=1)).isoformat()
        ali = Customer.objects.create(owner=self.user, name="Ali")
        Transaction.objects.create(owner=self.user, customer=ali, kind="debt", amount=Decimal("40000"))
        Transaction.objects.create(owner=self.user, customer=ali, kind="payment", amount=Decimal("15000"))
        gone = Customer.objects.create(owner=self.user, name="Vali")
        self.assertEqual(self.client.delete(f"/api/customers/{gone.id}/").status_code, 204)

        resp = self.client.get("/api/sync/pull", {"since": since})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual([row["name"] for row in resp.data["customers"]], ["Ali"])
        self.assertEqual(resp.data["customers"][0]["balance"], "25000.00")
        self.assertEqual(len(resp.data["transactions"]), 2)
        self.assertEqual(resp.data["deleted"][0]["entity_type"], "customer")
        self.assertEqual(resp.data["deleted"][0]["entity_id"], str(gone.id))
        self.assertIn("server_time", resp.data)

    def test_pull_hides_other_owners(self):
        other = User.objects.create_user(username="boshqa@nasiya.uz", password="Kuchli-parol-2024")
        Customer.objects.create(owner=other, name="Begona")
        resp = self.client.get("/api/sync/pull")
        self.assertEqual(resp.data["customers"], [])

    def test_reused_id_of_another_shop_does_not_break_batch(self):
        other = User.objects.create_user(username="boshqa@nasiya.uz", password="Kuchli-parol-2024")
        foreign = Customer.objects.create(owner=other, name="Begona")
        foreign_tx = Transaction.objects.create(owner=other, customer=foreign, kind="debt", amount=Decimal("100"))
        own_id = uuid4()
        events = [
            _event("customer", own_id, "CREATE", {"name": "Ali"}),
            _event("customer", foreign.id, "CREATE", {"name": "O'g'ri"}),
            _event("transaction", foreign_tx.id, "CREATE", {"customer": str(own_id), "kind": "debt", "amount": "5"}),
        ]
        resp = self._push(events)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual([r["status"] for r in resp.data["results"]], ["applied", "invalid", "invalid"])
        foreign.refresh_from_db()
        self.assertEqual(foreign.owner, other)
        self.assertEqual(foreign.name, "Begona")
        self.assertEqual(Transaction.objects.get(id=foreign_tx.id).customer_id, foreign.id)
        self.assertEqual(SyncEventLog.objects.filter(owner=self.user).count(), 3)

    def test_non_string_fields_are_invalid(self):
        customer = Customer.objects.create(owner=self.user, name="Ali")
        events = [
            _event("customer", uuid4(), "CREATE", {"name": 123}),
            _event("transaction", uuid4(), "CREATE", {"customer": str(customer.id), "kind": 5, "amount": "10"}),
            {"event_id": str(uuid4()), "entity_type": 7, "entity_id": str(uuid4()), "operation": "CREATE"},
            _event("customer", uuid4(), "CREATE", {"name": "Vali", "version": "birinchi"}),
        ]
        resp = self._push(events)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual([r["status"] for r in resp.data["results"]], ["invalid"] * 4)
        self.assertEqual(Customer.objects.count(), 1)
        self.assertFalse(Transaction.objects.exists())

    def test_customer_delete_cascades_and_is_pulled(self):
        since = (timezone.now() - timedelta(minutes=1)).isoformat()
        customer = Customer.objects.create(owner=self.user, name="Ali")
        Transaction.objects.create(owner=self.user, customer=customer, kind="debt", amount=Decimal("7000"))
        resp = self._push([_event("customer", customer.id, "DELETE", {})])
        self.assertEqual(resp.data["results"][0]["status"], "applied")
        self.assertFalse(Customer.objects.filter(id=customer.id).exists())
        self.assertFalse(Transaction.objects.filter(customer_id=customer.id).exists())

        pulled = self.client.get("/api/sync/pull", {"since": since})
        self.assertEqual(pulled.data["customers"], [])
        self.assertEqual(pulled.data["transactions"], [])
        self.assertEqual(
            [(row["entity_type"], row["entity_id"]) for row in pulled.data["deleted"]],
            [("customer", str(customer.id))],
        )

    def test_transaction_delete(self):
        customer = Customer.objects.create(owner=self.user, name="Ali")
        tx = Transaction.objects.create(owner=self.user, customer=customer, kind="debt", amount=Decimal("7000"))
        resp = self._push([_event("transaction", tx.id, "DELETE", {})])
        self.assertEqual(resp.data["results"][0]["status"], "applied")
        self.assertFalse(Transaction.objects.filter(id=tx.id).exists())
        self.assertTrue(Customer.objects.filter(id=customer.id).exists())

    def test_delete_of_unknown_entity_is_ignored(self):
        other = User.objects.create_user(username="boshqa@nasiya.uz", password="Kuchli-parol-2024")
        foreign = Customer.objects.create(owner=other, name="Begona")
        resp = self._push(
            [
                _event("customer", uuid4(), "DELETE", {}),
                _event("transaction", uuid4(), "DELETE", {}),
                _event("customer", foreign.id, "DELETE", {}),
            ]
        )
        self.assertEqual([r["status"] for r in resp.data["results"]], ["ignored"] * 3)
        self.assertTrue(Customer.objects.filter(id=foreign.id).exists())

        pulled = self.client.get("/api/sync/pull")
        self.assertEqual(pulled.data["deleted"], [])

    def test_conflicts_list_is_owner_scoped_and_unresolved(self):
        customer = Customer.objects.create(owner=self.user, name="Ali", version=3)
        self._push([_event("customer", customer.id, "UPDATE", {"name": "Eski", "version": 2})])
        resolved_event = uuid4()
        self._push([_event("customer", customer.id, "CREATE", {"name": "Qayta"}, event_id=resolved_event)])
        ConflictLog.objects.filter(event_id=resolved_event).update(resolved=True)

        other = User.objects.create_user(username="boshqa@nasiya.uz", password="Kuchli-parol-2024")
        ConflictLog.objects.create(
            owner=other,
            event_id=uuid4(),
            entity_type="customer",
            entity_id=uuid4(),
            conflict_type="version_conflict",
        )

        resp = self.client.get("/api/sync/conflicts")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(len(resp.data), 1)
        self.assertEqual(resp.data[0]["entity_id"], str(customer.id))
        self.assertEqual(resp.data[0]["client_payload"], {"name": "Eski", "version": 2})
