import uuid
from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone


def default_currency():
    return settings.NASIYA_DEFAULT_CURRENCY


def default_sms_template():
    return settings.NASIYA_DEFAULT_SMS_TEMPLATE


class ShopSettings(models.Model):
    owner = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="shop_settings",
        verbose_name="Egasi",
    )
    currency = models.CharField("Valyuta", max_length=10, default=default_currency)
    store_name = models.CharField("Do'kon nomi", max_length=255, blank=True)
    owner_name = models.CharField("Egasi ismi", max_length=255, blank=True)
    phone = models.CharField("Telefon", max_length=50, blank=True)
    sms_template = models.TextField("SMS shablon", default=default_sms_template)
    is_setup_completed = models.BooleanField("Sozlash yakunlangan", default=False)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Sozlamalar"
        verbose_name_plural = "Sozlamalar"

    def __str__(self):
        return self.store_name or f"Sozlamalar #{self.owner_id}"

    @classmethod
    def for_user(cls, user):
        """Settings row of a shop; created from the account profile on first access."""
        existing = cls.objects.filter(owner=user).first()
        if existing:
            return existing
        profile = getattr(user, "profile", None)
        return cls.objects.create(
            owner=user,
            store_name=getattr(profile, "store_name", "") or "",
            owner_name=user.first_name or "",
        )


class Customer(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="customers",
        verbose_name="Do'kon",
    )
    name = models.CharField("F.I.Sh", max_length=255)
    phone = models.CharField("Telefon", max_length=50, blank=True)
    note = models.TextField("Izoh", blank=True)
    version = models.PositiveIntegerField(default=1)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Mijoz"
        verbose_name_plural = "Mijozlar"

    def __str__(self):
        return f"{self.name} ({self.phone})" if self.phone else self.name

    def balance(self) -> Decimal:
        annotated = getattr(self, "balance_value", None)
        if annotated is not None:
            return annotated
        from .services.balances import compute_balance

        return compute_balance(self.transactions.all())


class Transaction(models.Model):
    DEBT = "debt"
    PAYMENT = "payment"
    KIND_CHOICES = [
        (DEBT, "Qarz"),
        (PAYMENT, "To'lov"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="transactions",
        verbose_name="Do'kon",
    )
    customer = models.ForeignKey(
        Customer,
        on_delete=models.CASCADE,
        related_name="transactions",
        verbose_name="Mijoz",
    )
    kind = models.CharField("Turi", max_length=10, choices=KIND_CHOICES)
    amount = models.DecimalField(
        "Summa",
        max_digits=14,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01"))],
    )
    note = models.CharField("Izoh", max_length=500, blank=True)
    due_date = models.DateField("Qaytarish sanasi", null=True, blank=True)
    created_at = models.DateTimeField("Sana", default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Operatsiya"
        verbose_name_plural = "Operatsiyalar"
        constraints = [
            models.CheckConstraint(condition=models.Q(amount__gt=0), name="ledger_transaction_amount_positive"),
        ]

    def __str__(self):
        return f"{self.get_kind_display()} {self.amount} ({self.customer_id})"
