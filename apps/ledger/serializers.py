from decimal import Decimal

from rest_framework import serializers

from .models import Customer, ShopSettings, Transaction
from .services.sms import format_currency

CENTS = Decimal("0.01")


class CurrencyMixin:
    def _currency(self):
        shop_settings = self.context.get("shop_settings")
        return shop_settings.currency if shop_settings else "UZS"


class CustomerSerializer(CurrencyMixin, serializers.ModelSerializer):
    balance = serializers.SerializerMethodField()
    balance_display = serializers.SerializerMethodField()
    last_transaction_at = serializers.SerializerMethodField()

    class Meta:
        model = Customer
        fields = [
            "id",
            "name",
            "phone",
            "note",
            "created_at",
            "updated_at",
            "version",
            "balance",
            "balance_display",
            "last_transaction_at",
        ]
        read_only_fields = ["id", "created_at", "updated_at", "version"]

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Mijoz ismi bo'sh bo'lmasligi kerak.")
        return value

    def get_balance(self, obj) -> str:
        return str(Decimal(obj.balance()).quantize(CENTS))

    def get_balance_display(self, obj) -> str:
        return format_currency(obj.balance(), self._currency())

    def get_last_transaction_at(self, obj):
        value = getattr(obj, "last_transaction_at", None)
        return value.isoformat() if value else None

    def update(self, instance, validated_data):
        instance.version = (instance.version or 0) + 1
        return super().update(instance, validated_data)


class TransactionSerializer(CurrencyMixin, serializers.ModelSerializer):
    customer_name = serializers.CharField(source="customer.name", read_only=True)
    amount_display = serializers.SerializerMethodField()

    class Meta:
        model = Transaction
        fields = [
            "id",
            "customer",
            "customer_name",
            "kind",
            "amount",
            "amount_display",
            "note",
            "due_date",
            "created_at",
        ]
        read_only_fields = ["id", "created_at"]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        request = self.context.get("request")
        if request is not None and "customer" in self.fields:
            self.fields["customer"].queryset = Customer.objects.filter(owner=request.user)

    def validate_amount(self, value):
        if value is None or value <= Decimal("0"):
            raise serializers.ValidationError("Summa noldan katta bo'lishi kerak.")
        return value

    def get_amount_display(self, obj) -> str:
        return format_currency(obj.amount, self._currency())


class ShopSettingsSerializer(serializers.ModelSerializer):
    class Meta:
        model = ShopSettings
        fields = [
            "currency",
            "store_name",
            "owner_name",
            "phone",
            "sms_template",
            "is_setup_completed",
            "updated_at",
        ]
        read_only_fields = ["updated_at"]

    def validate_currency(self, value):
        value = (value or "").strip().upper()
        if not value:
            raise serializers.ValidationError("Valyuta kodi bo'sh bo'lmasligi kerak.")
        return value


class OnboardingSerializer(serializers.Serializer):
    store_name = serializers.CharField(max_length=255)
    owner_name = serializers.CharField(max_length=255)
    phone = serializers.CharField(max_length=50)

    def validate_phone(self, value):
        value = value.strip()
        digits = "".join(ch for ch in value if ch.isdigit())
        # "+998 " alone is the form's prefill, not a phone number.
        if len(digits) <= 3:
            raise serializers.ValidationError("Telefon raqamini kiriting.")
        return value
