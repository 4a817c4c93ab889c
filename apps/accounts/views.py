import logging

from django.contrib.auth import get_user_model
from django.db.models import Count
from django.shortcuts import get_object_or_404
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action, api_view, permission_classes, throttle_classes
from rest_framework.permissions import AllowAny, IsAdminUser, IsAuthenticated
from rest_framework.response import Response
from rest_framework.throttling import AnonRateThrottle
from rest_framework_simplejwt.views import TokenObtainPairView

from .models import get_profile
from .serializers import (
    MeSerializer,
    RegisterSerializer,
    SetPasswordSerializer,
    ShopSerializer,
    ShopTokenObtainPairSerializer,
    UpdateLoginSerializer,
    login_taken,
    normalize_login,
)

logger = logging.getLogger(__name__)
User = get_user_model()


class AuthThrottle(AnonRateThrottle):
    scope = "auth"


class ShopTokenObtainPairView(TokenObtainPairView):
    serializer_class = ShopTokenObtainPairSerializer
    throttle_classes = [AuthThrottle]


@api_view(["POST"])
@permission_classes([AllowAny])
@throttle_classes([AuthThrottle])
def register(request):
    serializer = RegisterSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    user = serializer.save()
    logger.info("Shop registered: user=%s", user.id)
    return Response(MeSerializer(user).data, status=status.HTTP_201_CREATED)


@api_view(["GET"])
@permission_classes([IsAuthenticated])
def me(request):
    get_profile(request.user).enforce_subscription()
    return Response(MeSerializer(request.user).data)


class ShopAdminViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    """Super-admin control over shop accounts (non-staff users)."""

    serializer_class = ShopSerializer
    permission_classes = [IsAdminUser]

    def get_queryset(self):
        return (
            User.objects.filter(is_staff=False)
            .select_related("profile")
            .annotate(
                customers_count=Count("customers", distinct=True),
                transactions_count=Count("transactions", distinct=True),
            )
            .order_by("-date_joined")
        )

    def list(self, request, *args, **kwargs):
        shops = list(self.get_queryset())
        blocked = sum(1 for shop in shops if get_profile(shop).is_blocked)
        return Response(
            {
                "stats": {
                    "total": len(shops),
                    "active": len(shops) - blocked,
                    "blocked": blocked,
                },
                "results": ShopSerializer(shops, many=True).data,
            }
        )

    def create(self, request):
        serializer = RegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        logger.info("Shop created by admin=%s: user=%s", request.user.id, user.id)
        shop = self.get_queryset().get(id=user.id)
        return Response(ShopSerializer(shop).data, status=status.HTTP_201_CREATED)

    def _shop(self, pk):
        return get_object_or_404(User, pk=pk, is_staff=False)

    @action(detail=True, methods=["post"], url_path="set-password")
    def set_password(self, request, pk=None):
        shop = self._shop(pk)
        serializer = SetPasswordSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        shop.set_password(serializer.validated_data["password"])
        shop.save(update_fields=["password"])
        logger.info("Password reset by admin=%s: user=%s", request.user.id, shop.id)
        return Response({"status": "ok"})

    @action(detail=True, methods=["post"], url_path="toggle-block")
    def toggle_block(self, request, pk=None):
        shop = self._shop(pk)
        profile = get_profile(shop)
        profile.is_blocked = not profile.is_blocked
        profile.save(update_fields=["is_blocked"])
        logger.info("Shop %s by admin=%s: user=%s", "blocked" if profile.is_blocked else "unblocked", request.user.id, shop.id)
        return Response({"id": shop.id, "is_blocked": profile.is_blocked})

    @action(detail=True, methods=["post"], url_path="update-login")
    def update_login(self, request, pk=None):
        shop = self._shop(pk)
        serializer = UpdateLoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        login = normalize_login(serializer.validated_data["email"])
        if login_taken(login, exclude_user_id=shop.id):
            return Response(
                {"email": ["Bu email bilan hisob allaqachon mavjud."]},
                status=status.HTTP_400_BAD_REQUEST,
            )
        shop.username = login
        shop.email = login
        shop.save(update_fields=["username", "email"])
        return Response({"id": shop.id, "email": shop.email})

    @action(detail=True, methods=["post"])
    def renew(self, request, pk=None):
        shop = self._shop(pk)
        profile = get_profile(shop)
        profile.renew()
        logger.info("Subscription renewed by admin=%s: user=%s", request.user.id, shop.id)
        return Response(MeSerializer(shop).data)
