from decimal import Decimal

from django.conf import settings
import django.core.validators
from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone
import uuid

import apps.ledger.models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Customer",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=255, verbose_name="F.I.Sh")),
                ("phone", models.CharField(blank=True, max_length=50, verbose_name="Telefon")),
                ("note", models.TextField(blank=True, verbose_name="Izoh")),
                ("version", models.PositiveIntegerField(default=1)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "owner",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="customers",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="Do'kon",
                    ),
                ),
            ],
            options={
                "verbose_name": "Mijoz",
                "verbose_name_plural": "Mijozlar",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="ShopSettings",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "currency",
                    models.CharField(default=apps.ledger.models.default_currency, max_length=10, verbose_name="Valyuta"),
                ),
                ("store_name", models.CharField(blank=True, max_length=255, verbose_name="Do'kon nomi")),
                ("owner_name", models.CharField(blank=True, max_length=255, verbose_name="Egasi ismi")),
                ("phone", models.CharField(blank=True, max_length=50, verbose_name="Telefon")),
                (
                    "sms_template",
                    models.TextField(default=apps.ledger.models.default_sms_template, verbose_name="SMS shablon"),
                ),
                ("is_setup_completed", models.BooleanField(default=False, verbose_name="Sozlash yakunlangan")),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "owner",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="shop_settings",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="Egasi",
                    ),
                ),
            ],
            options={
                "verbose_name": "Sozlamalar",
                "verbose_name_plural": "Sozlamalar",
            },
        ),
        migrations.CreateModel(
            name="Transaction",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "kind",
                    models.CharField(choices=[("debt", "Qarz"), ("payment", "To'lov")], max_length=10, verbose_name="Turi"),
                ),
                (
                    "amount",
                    models.DecimalField(
                        decimal_places=2,
                        max_digits=14,
                        validators=[django.core.validators.MinValueValidator(Decimal("0.01"))],
                        verbose_name="Summa",
                    ),
                ),
                ("note", models.CharField(blank=True, max_length=500, verbose_name="Izoh")),
                ("due_date", models.DateField(blank=True, null=True, verbose_name="Qaytarish sanasi")),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now, verbose_name="Sana")),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "customer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="transactions",
                        to="ledger.customer",
                        verbose_name="Mijoz",
                    ),
                ),
                (
                    "owner",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="transactions",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="Do'kon",
                    ),
                ),
            ],
            options={
                "verbose_name": "Operatsiya",
                "verbose_name_plural": "Operatsiyalar",
                "ordering": ["-created_at"],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("amount__gt", 0)), name="ledger_transaction_amount_positive"),
                ],
            },
        ),
    ]
