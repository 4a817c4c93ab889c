from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from django.db import transaction
from rest_framework import serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

from .models import Profile, get_profile
from .permissions import ShopBlocked

User = get_user_model()


def normalize_login(value: str) -> str:
    return (value or "").strip().lower()


def login_taken(login: str, exclude_user_id=None) -> bool:
    qs = User.objects.filter(username__iexact=login)
    if exclude_user_id is not None:
        qs = qs.exclude(id=exclude_user_id)
    return qs.exists()


class MeSerializer(serializers.ModelSerializer):
    name = serializers.CharField(source="first_name", read_only=True)
    store_name = serializers.SerializerMethodField()
    is_admin = serializers.BooleanField(source="is_staff", read_only=True)
    is_blocked = serializers.SerializerMethodField()
    subscription_date = serializers.SerializerMethodField()
    subscription_expires_at = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = [
            "id",
            "email",
            "name",
            "store_name",
            "is_admin",
            "is_blocked",
            "subscription_date",
            "subscription_expires_at",
        ]

    def _profile(self, obj) -> Profile:
        return get_profile(obj)

    def get_store_name(self, obj):
        return self._profile(obj).store_name

    def get_is_blocked(self, obj):
        return self._profile(obj).is_blocked

    def get_subscription_date(self, obj):
        return self._profile(obj).subscription_date.isoformat()

    def get_subscription_expires_at(self, obj):
        profile = self._profile(obj)
        if obj.is_staff:
            return None
        return profile.subscription_expires_at.isoformat()


class RegisterSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, min_length=6)
    name = serializers.CharField(max_length=150)
    store_name = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")

    def validate_email(self, value):
        login = normalize_login(value)
        if login_taken(login):
            raise serializers.ValidationError("Bu email bilan hisob allaqachon mavjud.")
        return login

    def validate(self, attrs):
        candidate = User(username=attrs["email"], email=attrs["email"], first_name=attrs["name"])
        validate_password(attrs["password"], user=candidate)
        return attrs

    @transaction.atomic
    def create(self, validated_data):
        user = User.objects.create_user(
            username=validated_data["email"],
            email=validated_data["email"],
            password=validated_data["password"],
            first_name=validated_data["name"],
        )
        Profile.objects.create(user=user, store_name=validated_data.get("store_name", ""))
        return user


class ShopTokenObtainPairSerializer(TokenObtainPairSerializer):
    """JWT login by email; expired or blocked shops are refused."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields["email"] = serializers.EmailField(write_only=True, required=False)
        self.fields[self.username_field].required = False

    def validate(self, attrs):
        email = attrs.pop("email", None)
        if not attrs.get(self.username_field):
            if not email:
                raise serializers.ValidationError({"email": "Email kiritilishi shart."})
            attrs[self.username_field] = normalize_login(email)
        data = super().validate(attrs)
        if not self.user.is_staff and get_profile(self.user).enforce_subscription():
            raise ShopBlocked()
        data["user"] = MeSerializer(self.user).data
        return data


class ShopSerializer(serializers.ModelSerializer):
    name = serializers.CharField(source="first_name", read_only=True)
    store_name = serializers.CharField(source="profile.store_name", read_only=True)
    is_blocked = serializers.BooleanField(source="profile.is_blocked", read_only=True)
    subscription_date = serializers.DateTimeField(source="profile.subscription_date", read_only=True)
    customers_count = serializers.IntegerField(read_only=True, default=0)
    transactions_count = serializers.IntegerField(read_only=True, default=0)

    class Meta:
        model = User
        fields = [
            "id",
            "email",
            "name",
            "store_name",
            "is_blocked",
            "subscription_date",
            "customers_count",
            "transactions_count",
            "date_joined",
        ]


class SetPasswordSerializer(serializers.Serializer):
    password = serializers.CharField(write_only=True, min_length=6)


class UpdateLoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
