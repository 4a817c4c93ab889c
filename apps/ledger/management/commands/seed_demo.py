from datetime import timedelta
from random import choice, randint

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from apps.accounts.models import Profile
from apps.ledger.models import Customer, ShopSettings, Transaction

User = get_user_model()

DEMO_NAMES = ["Ali Valiyev", "Dilnoza Karimova", "Sardor Rahimov", "Madina Tursunova", "Jasur Qodirov"]


def _ensure_user(email, password, name, store_name, is_staff=False):
    user = User.objects.filter(username=email).first()
    if user:
        return user, False
    user = User.objects.create_user(
        username=email,
        email=email,
        password=password,
        first_name=name,
        is_staff=is_staff,
        is_superuser=is_staff,
    )
    Profile.objects.create(user=user, store_name=store_name)
    return user, True


def _ensure_count(queryset, target, factory):
    existing = queryset.count()
    for idx in range(existing, target):
        factory(idx)


class Command(BaseCommand):
    help = "Seed an admin, a demo shop and demo customers/transactions for local/dev usage."

    def add_arguments(self, parser):
        parser.add_argument("--password", default="nasiya-demo-123", help="Password for the seeded accounts.")
        parser.add_argument("--customers", type=int, default=len(DEMO_NAMES))

    @transaction.atomic
    def handle(self, *args, **options):
        password = options["password"]
        _ensure_user("admin@nasiya.uz", password, "Super Admin", "Bosh Ofis", is_staff=True)
        shop, created = _ensure_user("demo@nasiya.uz", password, "Demo Do'kon", "Demo Market")

        shop_settings = ShopSettings.for_user(shop)
        if not shop_settings.is_setup_completed:
            shop_settings.phone = "+998 90 123 45 67"
            shop_settings.is_setup_completed = True
            shop_settings.save()

        _ensure_count(
            Customer.objects.filter(owner=shop),
            options["customers"],
            lambda idx: Customer.objects.create(
                owner=shop,
                name=DEMO_NAMES[idx % len(DEMO_NAMES)],
                phone=f"+99890{1000000 + idx:07d}",
                note="Demo mijoz.",
                created_at=timezone.now() - timedelta(days=40 - idx),
            ),
        )

        today = timezone.localdate()
        for customer in Customer.objects.filter(owner=shop):
            _ensure_count(
                customer.transactions.all(),
                4,
                lambda idx, customer=customer: Transaction.objects.create(
                    owner=shop,
                    customer=customer,
                    kind=Transaction.DEBT if idx % 2 == 0 else Transaction.PAYMENT,
                    amount=randint(5, 60) * 10000 if idx % 2 == 0 else randint(1, 4) * 10000,
                    note=choice(["Non va sut", "Un", "Yog'", "Naqd to'lov", ""]),
                    due_date=today + timedelta(days=randint(-5, 10)) if idx % 2 == 0 else None,
                    created_at=timezone.now() - timedelta(days=idx * 7, hours=randint(0, 10)),
                ),
            )

        status = "yaratildi" if created else "yangilandi"
        self.stdout.write(self.style.SUCCESS(f"Demo ma'lumotlar {status}."))
